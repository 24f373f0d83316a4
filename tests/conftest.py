from datetime import datetime, timedelta

import pytest

from zenit import activity
from zenit.config import ConfigManager, set_config_manager
from zenit.storage import Storage


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, days: int = 0) -> datetime:
        self.now += timedelta(seconds=seconds, days=days)
        return self.now


@pytest.fixture
def clock():
    # Local noon keeps the calendar date stable whatever the machine's zone
    return FakeClock(datetime(2026, 3, 10, 12, 0, 0).astimezone())


@pytest.fixture
def storage(tmp_path):
    return Storage(tmp_path / "zenit.db")


@pytest.fixture
def config_manager(tmp_path):
    cm = ConfigManager(tmp_path / "home")
    set_config_manager(cm)
    yield cm
    set_config_manager(None)


@pytest.fixture(autouse=True)
def fresh_registrars():
    activity._registrars.clear()
    yield
    activity._registrars.clear()


class RecordingNotifier:
    """Stands in for a Notifier and remembers every call."""

    def __init__(self):
        self.calls = []

    def __getattr__(self, name):
        if not name.startswith("notify_"):
            raise AttributeError(name)

        def record(*args):
            self.calls.append((name, args))
            return True

        return record

    def names(self):
        return [name for name, _ in self.calls]


@pytest.fixture
def notifier():
    return RecordingNotifier()
