"""Tests for configuration loading and saving."""

import pytest

from zenit.config import Config, ConfigManager, TimerConfig, get_config_manager, set_config_manager


def test_defaults_without_file(tmp_path):
    cm = ConfigManager(tmp_path)
    config = cm.load()
    assert config.timer.focus_minutes == 25
    assert config.timer.break_minutes == 5
    assert config.profile.user_id == "local"
    assert not config.telegram.enabled
    assert not cm.is_configured()


def test_save_and_load(tmp_path):
    cm = ConfigManager(tmp_path / "nested")
    config = Config()
    config.timer.focus_minutes = 50
    config.telegram.bot_token = "123:abc"
    config.telegram.chat_id = "42"
    config.telegram.enabled = True
    cm.save(config)

    assert cm.is_configured()
    loaded = cm.load()
    assert loaded == config


def test_partial_file_fills_defaults(tmp_path):
    cm = ConfigManager(tmp_path)
    cm.config_file.write_text('[timer]\nbreak_minutes = 10\n\n[telegram]\nchat_id = 42\n')
    config = cm.load()
    assert config.timer.break_minutes == 10
    assert config.timer.focus_minutes == 25
    assert config.telegram.chat_id == "42"


def test_unreadable_file_falls_back(tmp_path):
    cm = ConfigManager(tmp_path)
    cm.config_file.write_text("this is = = not toml [")
    assert cm.load() == Config()


def test_zenit_home_override(tmp_path, monkeypatch):
    monkeypatch.setenv("ZENIT_HOME", str(tmp_path))
    cm = ConfigManager()
    assert cm.config_dir == tmp_path
    assert cm.db_file == tmp_path / "zenit.db"
    assert cm.state_file == tmp_path / "timer.state"


def test_global_manager(tmp_path):
    cm = ConfigManager(tmp_path)
    set_config_manager(cm)
    try:
        assert get_config_manager() is cm
    finally:
        set_config_manager(None)


class TestTimerConfig:
    def test_seconds(self):
        timer = TimerConfig(focus_minutes=30, break_minutes=10)
        assert timer.focus_seconds == 1800
        assert timer.break_seconds == 600

    @pytest.mark.parametrize("kwargs", [
        {"focus_minutes": 0},
        {"break_minutes": -1},
        {"tick_seconds": 0},
    ])
    def test_validate_rejects(self, kwargs):
        with pytest.raises(ValueError):
            TimerConfig(**kwargs).validate()

    def test_validate_accepts_defaults(self):
        TimerConfig().validate()
