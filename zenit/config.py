"""Settings for Zenit, stored as TOML under ~/.zenit (or $ZENIT_HOME)."""

import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Optional

import toml

logger = logging.getLogger(__name__)

DEFAULT_DIR_NAME = ".zenit"


@dataclass
class TelegramConfig:
    """Where Telegram notifications go; off unless token and chat are set."""
    bot_token: str = ""
    chat_id: str = ""
    enabled: bool = False


@dataclass
class TimerConfig:
    """Cycle lengths and how often a live countdown refreshes."""
    focus_minutes: int = 25
    break_minutes: int = 5
    tick_seconds: float = 1.0

    @property
    def focus_seconds(self) -> int:
        return self.focus_minutes * 60

    @property
    def break_seconds(self) -> int:
        return self.break_minutes * 60

    def validate(self) -> None:
        """Raise ValueError if any duration is not positive."""
        if self.focus_minutes <= 0 or self.break_minutes <= 0:
            raise ValueError("Focus and break durations must be positive")
        if self.tick_seconds <= 0:
            raise ValueError("Tick interval must be positive")


@dataclass
class ProfileConfig:
    """Which profile row activity is recorded against."""
    user_id: str = "local"


def _section(cls, values: dict):
    """Build a settings section, ignoring unknown keys."""
    known = {f.name: f for f in fields(cls)}
    kwargs = {}
    for key, value in values.items():
        if key not in known:
            logger.debug(f"Ignoring unknown setting {cls.__name__}.{key}")
            continue
        # Chat IDs are often written as bare numbers in TOML
        if known[key].type in (str, "str") and not isinstance(value, str):
            value = str(value)
        kwargs[key] = value
    return cls(**kwargs)


@dataclass
class Config:
    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    timer: TimerConfig = field(default_factory=TimerConfig)
    profile: ProfileConfig = field(default_factory=ProfileConfig)

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        return cls(
            telegram=_section(TelegramConfig, data.get("telegram", {})),
            timer=_section(TimerConfig, data.get("timer", {})),
            profile=_section(ProfileConfig, data.get("profile", {})),
        )

    def to_dict(self) -> dict:
        return asdict(self)


class ConfigManager:
    """Locates the Zenit home directory and the files inside it."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Resolve file locations.

        Args:
            config_dir: Directory to use; defaults to $ZENIT_HOME, then
                ~/.zenit
        """
        if config_dir is None:
            home = os.environ.get("ZENIT_HOME")
            config_dir = Path(home) if home else Path.home() / DEFAULT_DIR_NAME
        self.config_dir = config_dir
        self.config_file = config_dir / "config.toml"
        self.db_file = config_dir / "zenit.db"
        self.state_file = config_dir / "timer.state"

    def ensure_dirs(self) -> None:
        self.config_dir.mkdir(parents=True, exist_ok=True)

    def load(self) -> Config:
        """Read settings, falling back to defaults.

        A missing file gives the defaults silently; an unreadable one is
        logged and also gives the defaults.
        """
        if not self.config_file.exists():
            return Config()

        try:
            return Config.from_dict(toml.load(self.config_file))
        except (toml.TomlDecodeError, OSError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable config {self.config_file}: {e}")
            return Config()

    def save(self, config: Config) -> None:
        self.ensure_dirs()
        with open(self.config_file, "w") as f:
            toml.dump(config.to_dict(), f)
        logger.debug(f"Saved settings to {self.config_file}")

    def is_configured(self) -> bool:
        """True once `zenit setup` has written a config file."""
        return self.config_file.exists()


_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Shared ConfigManager, created on first use."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def set_config_manager(config_manager: Optional[ConfigManager]) -> None:
    """Replace the shared ConfigManager (None restores the default)."""
    global _config_manager
    _config_manager = config_manager
