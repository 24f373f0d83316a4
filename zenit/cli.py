"""Main CLI entry point for Zenit - focus timer and study streaks."""

import logging
from datetime import date, timedelta
from typing import Optional

import click

from . import __version__
from .activity import (
    FocusCompletionHandler,
    check_achievements,
    completion_events,
    fetch_user_streak,
    register_activity,
    streak_keeper,
)
from .config import Config, get_config_manager
from .display import (
    print_achievements,
    print_header,
    print_heatmap,
    print_setup_complete,
    print_stats,
    print_streak,
    print_subheader,
    print_tasks,
    print_timer_status,
    render_countdown,
)
from .models import StreakState, Task, TimerPhase
from .notifier import Notifier, build_notifier, check_connection_sync
from .snapshot_store import FileSnapshotStore
from .storage import Storage, StorageError
from .streak import compute_current_streak, compute_heatmap
from .timer import FocusTimer, Ticker

logger = logging.getLogger(__name__)


def get_storage() -> Optional[Storage]:
    """Get storage instance, or None if the database cannot be opened."""
    cm = get_config_manager()
    try:
        cm.ensure_dirs()
        return Storage(cm.db_file)
    except (StorageError, OSError) as e:
        logger.error(f"Cannot open database {cm.db_file}: {e}")
        click.secho(f"Warning: activity data is unavailable ({e})", fg="yellow", err=True)
        return None


def require_storage(ctx: click.Context) -> Storage:
    """Storage for commands that cannot work without it."""
    storage = get_storage()
    if storage is None:
        click.echo("Cannot open the Zenit database.")
        ctx.exit(1)
    return storage


def load_config(ctx: click.Context) -> Config:
    """Load and validate configuration, exiting on bad values."""
    config = get_config_manager().load()
    try:
        config.timer.validate()
    except ValueError as e:
        click.echo(f"Invalid configuration: {e}")
        ctx.exit(1)
    return config


def load_timer(config: Config, storage: Optional[Storage], notifier: Notifier) -> FocusTimer:
    """Rebuild the timer from its snapshot, booking any cycle that ran out.

    Without storage the timer still runs but finished cycles are not booked.
    """
    cm = get_config_manager()
    if storage is None:
        listeners = []
    else:
        listeners = [
            FocusCompletionHandler(
                storage,
                config.profile.user_id,
                notifier,
                focus_minutes=config.timer.focus_minutes,
            )
        ]
    return FocusTimer.rehydrate(
        FileSnapshotStore(cm.state_file),
        listeners=listeners,
        focus_seconds=config.timer.focus_seconds,
        break_seconds=config.timer.break_seconds,
    )


def check_streak(storage: Storage, user_id: str, notifier: Notifier) -> StreakState:
    """Fetch the stored streak, zero it if it broke and unlock achievements."""
    state = fetch_user_streak(storage, user_id)
    streak_keeper(storage, user_id, notifier).observe(state)
    check_achievements(storage, user_id, 0 if state.is_broken else state.count, notifier)
    return state


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version")
@click.option("--debug", is_flag=True, help="Log debug output to stderr")
@click.pass_context
def main(ctx: click.Context, version: bool, debug: bool) -> None:
    """Zenit - focus timer with study streaks.

    Use 'zenit start' to begin a focus cycle and 'zenit streak' to see
    how many days in a row you have studied.
    """
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if version:
        click.echo(f"zenit {__version__}")
        return

    if ctx.invoked_subcommand is None:
        ctx.invoke(status)


# ============================================================================
# Setup Command
# ============================================================================

@main.command()
@click.option("--telegram-token", help="Telegram bot token")
@click.option("--telegram-chat-id", help="Telegram chat ID")
@click.option("--focus-minutes", type=click.IntRange(min=1), help="Focus cycle length")
@click.option("--break-minutes", type=click.IntRange(min=1), help="Break length")
def setup(
    telegram_token: Optional[str],
    telegram_chat_id: Optional[str],
    focus_minutes: Optional[int],
    break_minutes: Optional[int],
) -> None:
    """Configure Zenit settings interactively."""
    cm = get_config_manager()
    config = cm.load()

    print_header("Zenit Setup")

    click.echo("\nTelegram notifications (optional)")
    click.echo("To get a bot token, message @BotFather on Telegram")

    if telegram_token is None:
        telegram_token = click.prompt(
            "Bot token",
            default=config.telegram.bot_token or "",
            show_default=False,
        )

    if telegram_chat_id is None:
        telegram_chat_id = click.prompt(
            "Chat ID",
            default=config.telegram.chat_id or "",
            show_default=False,
        )

    config.telegram.bot_token = telegram_token.strip()
    config.telegram.chat_id = telegram_chat_id.strip()
    config.telegram.enabled = bool(config.telegram.bot_token and config.telegram.chat_id)

    if config.telegram.enabled:
        click.echo("\nTesting Telegram connection...")
        success, message = check_connection_sync(config.telegram)
        if success:
            click.secho(f"✓ {message}", fg="green")
        else:
            click.secho(f"✗ {message}", fg="red")
            if not click.confirm("Save anyway?", default=True):
                config.telegram.enabled = False

    print_subheader("Timer Settings")
    if focus_minutes is None and break_minutes is None:
        click.echo(f"Focus duration: {config.timer.focus_minutes} minutes")
        click.echo(f"Break duration: {config.timer.break_minutes} minutes")
        if click.confirm("Customize timer durations?", default=False):
            focus_minutes = click.prompt(
                "Focus duration (minutes)", default=config.timer.focus_minutes, type=click.IntRange(min=1)
            )
            break_minutes = click.prompt(
                "Break duration (minutes)", default=config.timer.break_minutes, type=click.IntRange(min=1)
            )
    if focus_minutes is not None:
        config.timer.focus_minutes = focus_minutes
    if break_minutes is not None:
        config.timer.break_minutes = break_minutes

    cm.save(config)
    print_setup_complete()


# ============================================================================
# Timer Commands
# ============================================================================

@main.command()
@click.pass_context
def start(ctx: click.Context) -> None:
    """Start the next focus or break cycle."""
    config = load_config(ctx)
    notifier = build_notifier(config)
    timer = load_timer(config, get_storage(), notifier)

    if not timer.start():
        if timer.phase == TimerPhase.PAUSED:
            click.echo("Timer is paused. Use 'zenit resume' to continue.")
        else:
            click.echo("Timer is already running.")
        print_timer_status(timer)
        return

    if timer.is_break:
        notifier.notify_break_start(config.timer.break_minutes)
    else:
        notifier.notify_focus_start(config.timer.focus_minutes)
    print_timer_status(timer)


@main.command()
@click.pass_context
def pause(ctx: click.Context) -> None:
    """Pause the running timer."""
    config = load_config(ctx)
    notifier = build_notifier(config)
    timer = load_timer(config, get_storage(), notifier)

    if timer.pause():
        notifier.notify_timer_paused()
        click.echo("Timer paused. Use 'zenit resume' to continue.")
    else:
        click.echo("Timer is not running.")


@main.command()
@click.pass_context
def resume(ctx: click.Context) -> None:
    """Resume a paused timer."""
    config = load_config(ctx)
    notifier = build_notifier(config)
    timer = load_timer(config, get_storage(), notifier)

    if timer.resume():
        notifier.notify_timer_resumed(timer.formatted)
    else:
        click.echo("Timer is not paused.")


@main.command()
@click.pass_context
def reset(ctx: click.Context) -> None:
    """Stop the timer and go back to a fresh focus cycle."""
    config = load_config(ctx)
    timer = load_timer(config, get_storage(), build_notifier(config))
    timer.reset()
    click.echo(f"Timer reset to {timer.formatted}.")


@main.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show timer status and streak."""
    config = load_config(ctx)
    notifier = build_notifier(config)
    storage = get_storage()

    timer = load_timer(config, storage, notifier)
    print_timer_status(timer)
    if storage is None:
        return

    state = check_streak(storage, config.profile.user_id, notifier)
    count = 0 if state.is_broken else state.count
    click.echo(f"\n🔥 Streak: {count} day{'s' if count != 1 else ''}")


@main.command()
@click.pass_context
def watch(ctx: click.Context) -> None:
    """Follow the countdown live until the cycle ends."""
    config = load_config(ctx)
    notifier = build_notifier(config)
    timer = load_timer(config, get_storage(), notifier)

    if not timer.counting:
        print_timer_status(timer)
        return

    ticker = Ticker(
        timer,
        interval=config.timer.tick_seconds,
        on_tick=lambda t: click.echo(render_countdown(t), nl=False),
    )
    click.echo(render_countdown(timer), nl=False)
    ticker.start()
    try:
        while ticker.running:
            ticker.join(0.5)
    except KeyboardInterrupt:
        click.echo("\nStopped watching. The timer keeps running.")
        return
    finally:
        ticker.stop()

    click.echo()
    print_timer_status(timer)


# ============================================================================
# Task Commands
# ============================================================================

@main.group()
def task() -> None:
    """Manage tasks."""
    pass


@task.command(name="add")
@click.argument("title")
@click.pass_context
def task_add(ctx: click.Context, title: str) -> None:
    """Add a new task."""
    config = load_config(ctx)
    storage = require_storage(ctx)
    try:
        storage.get_or_create_profile(config.profile.user_id)
        storage.create_task(Task(user_id=config.profile.user_id, title=title))
    except StorageError as e:
        click.echo(f"Could not add task: {e}")
        ctx.exit(1)
    click.echo(f"Added task: {title}")


@task.command(name="done")
@click.argument("number", type=int)
@click.pass_context
def task_done(ctx: click.Context, number: int) -> None:
    """Mark a task as completed."""
    config = load_config(ctx)
    storage = require_storage(ctx)
    try:
        tasks = storage.get_tasks(config.profile.user_id)
    except StorageError as e:
        click.echo(f"Could not read tasks: {e}")
        ctx.exit(1)

    if number <= 0 or number > len(tasks):
        click.echo(f"Invalid task number. You have {len(tasks)} tasks.")
        return

    item = tasks[number - 1]
    if item.completed:
        click.echo(f"Task already completed: {item.title}")
        return

    try:
        storage.complete_task(item.id)
    except StorageError as e:
        click.echo(f"Could not complete task: {e}")
        ctx.exit(1)
    click.secho(f"✓ Completed: {item.title}", fg="green")

    notifier = build_notifier(config)
    state = register_activity(storage, config.profile.user_id, notifier)
    if state is not None:
        check_achievements(storage, config.profile.user_id, state.count, notifier)


@task.command(name="list")
@click.pass_context
def task_list(ctx: click.Context) -> None:
    """List tasks."""
    config = load_config(ctx)
    storage = require_storage(ctx)
    try:
        tasks = storage.get_tasks(config.profile.user_id)
    except StorageError as e:
        click.echo(f"Could not read tasks: {e}")
        ctx.exit(1)
    print_tasks(tasks)


# ============================================================================
# Streak and statistics
# ============================================================================

@main.command()
@click.pass_context
def streak(ctx: click.Context) -> None:
    """Show your current streak."""
    config = load_config(ctx)
    notifier = build_notifier(config)
    storage = require_storage(ctx)
    user_id = config.profile.user_id

    state = check_streak(storage, user_id, notifier)
    events = completion_events(storage, user_id)
    result = compute_current_streak(e.occurred_at for e in events)
    print_streak(state, result)


@main.command()
@click.option("--days", "-d", default=28, type=click.IntRange(min=1), help="Number of days to show")
@click.option("--from", "from_date", type=click.DateTime(formats=["%Y-%m-%d"]), help="First day (YYYY-MM-DD)")
@click.option("--to", "to_date", type=click.DateTime(formats=["%Y-%m-%d"]), help="Last day (YYYY-MM-DD)")
@click.pass_context
def heatmap(ctx: click.Context, days: int, from_date, to_date) -> None:
    """Show daily activity as a heatmap."""
    config = load_config(ctx)
    end = to_date.date() if to_date else date.today()
    begin = from_date.date() if from_date else end - timedelta(days=days - 1)
    if begin > end:
        click.echo("--from must not be after --to.")
        ctx.exit(1)

    events = completion_events(require_storage(ctx), config.profile.user_id, begin, end)
    print_heatmap(compute_heatmap(events, begin, end))


@main.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show overall statistics."""
    config = load_config(ctx)
    storage = require_storage(ctx)
    user_id = config.profile.user_id

    check_streak(storage, user_id, build_notifier(config))
    try:
        profile = storage.get_or_create_profile(user_id)
        total_minutes = storage.get_total_focus_minutes(user_id)
    except StorageError as e:
        click.echo(f"Could not read statistics: {e}")
        ctx.exit(1)

    end = date.today()
    begin = end - timedelta(days=29)
    events = completion_events(storage, user_id, begin, end)
    print_stats(profile, total_minutes, compute_heatmap(events, begin, end))


@main.command()
@click.pass_context
def achievements(ctx: click.Context) -> None:
    """Show unlocked and upcoming achievements."""
    config = load_config(ctx)
    storage = require_storage(ctx)
    user_id = config.profile.user_id

    state = check_streak(storage, user_id, build_notifier(config))
    try:
        catalog = storage.get_achievements()
        unlocked_ids = storage.get_unlocked_achievement_ids(user_id)
    except StorageError as e:
        click.echo(f"Could not read achievements: {e}")
        ctx.exit(1)

    print_achievements(catalog, unlocked_ids, 0 if state.is_broken else state.count)


if __name__ == "__main__":
    main()
