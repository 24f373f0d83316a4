"""Tests for the command-line interface."""

import json
from datetime import date, datetime, timedelta

import pytest
from click.testing import CliRunner

from zenit import __version__
from zenit.cli import main
from zenit.config import Config
from zenit.models import StreakState
from zenit.storage import Storage


@pytest.fixture
def runner(config_manager):
    return CliRunner()


def invoke(runner, *args, **kwargs):
    result = runner.invoke(main, list(args), **kwargs)
    assert result.exception is None or isinstance(result.exception, SystemExit), result.output
    return result


def read_state(config_manager) -> dict:
    return json.loads(config_manager.state_file.read_text())


class TestTimerCommands:
    def test_version(self, runner):
        result = invoke(runner, "--version")
        assert result.output.strip() == f"zenit {__version__}"

    def test_status_when_idle(self, runner):
        result = invoke(runner, "status")
        assert result.exit_code == 0
        assert "Timer is idle" in result.output
        assert "25:00" in result.output
        assert "Streak: 0 days" in result.output

    def test_no_subcommand_shows_status(self, runner):
        result = invoke(runner)
        assert "Timer is idle" in result.output

    def test_start_persists_deadline(self, runner, config_manager):
        result = invoke(runner, "start")
        assert result.exit_code == 0
        assert "Focus Time" in result.output
        assert "FOCUS TIME" in result.output

        state = read_state(config_manager)
        assert state["phase"] == "running"
        assert state["deadline"] is not None

    def test_start_twice(self, runner):
        invoke(runner, "start")
        result = invoke(runner, "start")
        assert "Timer is already running." in result.output

    def test_pause_and_resume(self, runner, config_manager):
        invoke(runner, "start")

        result = invoke(runner, "pause")
        assert "Timer paused." in result.output
        state = read_state(config_manager)
        assert state["phase"] == "paused"
        assert state["deadline"] is None
        assert 0 < state["remaining_seconds"] <= 25 * 60

        result = invoke(runner, "start")
        assert "Timer is paused." in result.output

        result = invoke(runner, "resume")
        assert "Timer Resumed" in result.output
        assert read_state(config_manager)["phase"] == "running"

    def test_pause_when_idle(self, runner):
        result = invoke(runner, "pause")
        assert "Timer is not running." in result.output

    def test_resume_when_idle(self, runner):
        result = invoke(runner, "resume")
        assert "Timer is not paused." in result.output

    def test_reset(self, runner, config_manager):
        invoke(runner, "start")
        result = invoke(runner, "reset")
        assert "Timer reset to 25:00." in result.output
        assert read_state(config_manager)["phase"] == "idle"

    def test_configured_durations(self, runner, config_manager):
        config = Config()
        config.timer.focus_minutes = 50
        config_manager.save(config)
        result = invoke(runner, "reset")
        assert "Timer reset to 50:00." in result.output

    def test_invalid_configuration_exits(self, runner, config_manager):
        config = Config()
        config.timer.break_minutes = 0
        config_manager.save(config)
        result = invoke(runner, "start")
        assert result.exit_code == 1
        assert "Invalid configuration" in result.output

    def test_expired_cycle_is_booked_on_next_command(self, runner, config_manager):
        invoke(runner, "start")
        state = read_state(config_manager)
        state["deadline"] = (datetime.now().astimezone() - timedelta(minutes=1)).isoformat()
        config_manager.state_file.write_text(json.dumps(state))

        result = invoke(runner, "status")
        assert "Pomodoro #1 Complete!" in result.output
        assert "Cycle complete! Time for a break." in result.output
        assert "Streak: 1 day" in result.output

        result = invoke(runner, "status")
        assert "Pomodoro #1 Complete!" not in result.output

        profile = Storage(config_manager.db_file).get_profile("local")
        assert profile.pomodoro_sessions == 1

        result = invoke(runner, "start")
        assert "Short Break" in result.output
        assert read_state(config_manager)["phase"] == "break"

    def test_watch_when_idle(self, runner):
        result = invoke(runner, "watch")
        assert result.exit_code == 0
        assert "Timer is idle" in result.output


class TestTaskCommands:
    def test_add_and_list(self, runner):
        invoke(runner, "task", "add", "Read chapter 3")
        invoke(runner, "task", "add", "Exercises")
        result = invoke(runner, "task", "list")
        assert "1. Read chapter 3" in result.output
        assert "2. Exercises" in result.output

    def test_empty_list(self, runner):
        result = invoke(runner, "task", "list")
        assert "No tasks yet." in result.output

    def test_done_registers_activity(self, runner, config_manager):
        invoke(runner, "task", "add", "Read chapter 3")
        result = invoke(runner, "task", "done", "1")
        assert "Completed: Read chapter 3" in result.output
        assert "Streak started!" in result.output

        profile = Storage(config_manager.db_file).get_profile("local")
        assert profile.current_streak == 1
        assert profile.last_activity_date == date.today()

    def test_second_task_same_day_keeps_streak(self, runner, config_manager):
        invoke(runner, "task", "add", "One")
        invoke(runner, "task", "add", "Two")
        invoke(runner, "task", "done", "1")
        result = invoke(runner, "task", "done", "2")
        assert "Streak" not in result.output
        assert Storage(config_manager.db_file).get_profile("local").current_streak == 1

    def test_done_twice(self, runner):
        invoke(runner, "task", "add", "One")
        invoke(runner, "task", "done", "1")
        result = invoke(runner, "task", "done", "1")
        assert "Task already completed: One" in result.output

    def test_invalid_number(self, runner):
        result = invoke(runner, "task", "done", "3")
        assert "Invalid task number. You have 0 tasks." in result.output


class TestStreakCommands:
    def test_streak_after_task(self, runner):
        invoke(runner, "task", "add", "One")
        invoke(runner, "task", "done", "1")
        result = invoke(runner, "streak")
        assert "1 day" in result.output
        assert "Active today" in result.output

    def test_broken_streak_is_reset_once(self, runner, config_manager):
        storage = Storage(config_manager.db_file)
        storage.get_or_create_profile("local")
        storage.update_profile_streak("local", StreakState(4, False, date.today() - timedelta(days=3)))

        result = invoke(runner, "streak")
        assert "Streak lost" in result.output
        assert storage.get_profile("local").current_streak == 0
        assert storage.get_profile("local").longest_streak == 4

        result = invoke(runner, "streak")
        assert "Streak lost" not in result.output

    def test_heatmap(self, runner):
        invoke(runner, "task", "add", "One")
        invoke(runner, "task", "done", "1")
        result = invoke(runner, "heatmap", "--days", "7")
        assert result.exit_code == 0
        assert "1/7 active days, 14% consistency" in result.output

    def test_heatmap_explicit_range(self, runner):
        result = invoke(runner, "heatmap", "--from", "2026-03-01", "--to", "2026-03-10")
        assert "0/10 active days, 0% consistency" in result.output

    def test_heatmap_inverted_range(self, runner):
        result = invoke(runner, "heatmap", "--from", "2026-03-10", "--to", "2026-03-01")
        assert result.exit_code == 1
        assert "--from must not be after --to." in result.output

    def test_stats(self, runner):
        invoke(runner, "task", "add", "One")
        invoke(runner, "task", "done", "1")
        result = invoke(runner, "stats")
        assert "Pomodoros completed: 0" in result.output
        assert "Current streak: 1 day" in result.output
        assert "Longest streak: 1 day" in result.output

    def test_achievements(self, runner):
        invoke(runner, "task", "add", "One")
        result = invoke(runner, "task", "done", "1")
        assert "Achievement unlocked!" in result.output
        assert "First Step" in result.output

        result = invoke(runner, "achievements")
        assert result.exit_code == 0
        assert "1/9 unlocked" in result.output
        assert "1/3" in result.output
        assert "Achievement unlocked!" not in result.output

    def test_achievements_catch_up_on_existing_streak(self, runner, config_manager):
        storage = Storage(config_manager.db_file)
        storage.get_or_create_profile("local")
        storage.update_profile_streak("local", StreakState(8, False, date.today()))

        result = invoke(runner, "achievements")
        assert "3/9 unlocked" in result.output
        assert storage.get_unlocked_achievement_ids("local") == {"first-step", "warming-up", "full-week"}


def test_setup_with_options(runner, config_manager):
    result = invoke(
        runner,
        "setup",
        "--telegram-token", "",
        "--telegram-chat-id", "",
        "--focus-minutes", "40",
        "--break-minutes", "10",
    )
    assert result.exit_code == 0
    assert "Setup complete!" in result.output

    config = config_manager.load()
    assert config.timer.focus_minutes == 40
    assert config.timer.break_minutes == 10
    assert not config.telegram.enabled


class TestUnavailableDatabase:
    @pytest.fixture
    def blocked_db(self, config_manager):
        # A directory where the database file should be cannot be opened
        config_manager.db_file.mkdir(parents=True)
        return config_manager

    def test_timer_still_runs(self, runner, blocked_db):
        result = invoke(runner, "start")
        assert result.exit_code == 0
        assert "Focus Time" in result.output
        assert read_state(blocked_db)["phase"] == "running"

        result = invoke(runner, "pause")
        assert result.exit_code == 0
        assert read_state(blocked_db)["phase"] == "paused"

    def test_status_skips_streak(self, runner, blocked_db):
        result = invoke(runner, "status")
        assert result.exit_code == 0
        assert "Streak:" not in result.output

    @pytest.mark.parametrize("args", [
        ["task", "add", "Read"],
        ["task", "list"],
        ["task", "done", "1"],
        ["streak"],
        ["heatmap"],
        ["stats"],
        ["achievements"],
    ])
    def test_data_commands_exit_cleanly(self, runner, blocked_db, args):
        result = invoke(runner, *args)
        assert result.exit_code == 1
        assert "Cannot open the Zenit database." in result.output

    def test_corrupt_database_file(self, runner, config_manager):
        config_manager.ensure_dirs()
        config_manager.db_file.write_bytes(b"this is not sqlite" * 100)

        result = invoke(runner, "task", "add", "Read")
        assert result.exit_code == 1
        assert "Cannot open the Zenit database." in result.output

        result = invoke(runner, "start")
        assert result.exit_code == 0
