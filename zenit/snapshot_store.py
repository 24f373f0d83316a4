"""Persistence for the focus timer snapshot."""

import json
import logging
import threading
from pathlib import Path
from typing import Optional, Protocol

from .models import TimerSnapshot

logger = logging.getLogger(__name__)


class SnapshotStore(Protocol):
    """Where the timer keeps the state it needs to survive a restart."""

    def load(self) -> Optional[TimerSnapshot]:
        ...

    def save(self, snapshot: TimerSnapshot) -> None:
        ...

    def clear(self) -> None:
        ...


class FileSnapshotStore:
    """JSON file holding the last timer snapshot."""

    def __init__(self, state_file: Path):
        self.state_file = state_file
        self._lock = threading.Lock()

    def load(self) -> Optional[TimerSnapshot]:
        """Load snapshot from file.

        Returns:
            TimerSnapshot if file exists and is valid, None otherwise
        """
        if not self.state_file.exists():
            return None

        try:
            with open(self.state_file) as f:
                data = json.load(f)
            return TimerSnapshot.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Discarding unreadable timer state: {e}")
            return None

    def save(self, snapshot: TimerSnapshot) -> None:
        """Write snapshot to file, replacing the previous one."""
        with self._lock:
            self.state_file.parent.mkdir(parents=True, exist_ok=True)
            tmp_file = self.state_file.with_suffix(".tmp")
            with open(tmp_file, "w") as f:
                json.dump(snapshot.to_dict(), f, indent=2)
            tmp_file.replace(self.state_file)

    def clear(self) -> None:
        """Remove state file."""
        with self._lock:
            self.state_file.unlink(missing_ok=True)


class MemorySnapshotStore:
    """Keeps the snapshot in memory as serialized data."""

    def __init__(self, data: Optional[dict] = None):
        self.data = data
        self.saves = 0

    def load(self) -> Optional[TimerSnapshot]:
        if self.data is None:
            return None
        try:
            return TimerSnapshot.from_dict(self.data)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Discarding unreadable timer state: {e}")
            return None

    def save(self, snapshot: TimerSnapshot) -> None:
        self.data = snapshot.to_dict()
        self.saves += 1

    def clear(self) -> None:
        self.data = None
