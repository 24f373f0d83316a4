"""Display formatting for Zenit - progress bars, streaks and heatmaps."""

import click

from .models import Achievement, HeatmapDay, Profile, StreakResult, StreakState, Task, TimerPhase
from .streak import consistency_rate, group_weeks
from .timer import FocusTimer
from .timeutil import format_time

WEEKDAY_LABELS = "Su Mo Tu We Th Fr Sa"


def progress_bar(current: float, total: float, width: int = 20, filled: str = "█", empty: str = "░") -> str:
    """Create an ASCII progress bar.

    Args:
        current: Current value
        total: Total value
        width: Width of the bar in characters
        filled: Character for filled portion
        empty: Character for empty portion

    Returns:
        Progress bar string
    """
    if total == 0:
        return empty * width

    ratio = min(max(current / total, 0.0), 1.0)
    filled_width = int(width * ratio)
    empty_width = width - filled_width
    return filled * filled_width + empty * empty_width


def days_label(count: int) -> str:
    return "day" if count == 1 else "days"


def print_header(text: str) -> None:
    """Print a title between double rules."""
    width = 50
    click.echo()
    click.echo("═" * width)
    click.echo(f" {text}")
    click.echo("═" * width)


def print_subheader(text: str) -> None:
    click.echo()
    click.echo(f"── {text} ──")


def print_timer_status(timer: FocusTimer) -> None:
    """Print current timer status.

    Args:
        timer: Rehydrated focus timer
    """
    phase = timer.phase
    label = "BREAK" if timer.is_break else "FOCUS"

    if phase == TimerPhase.IDLE:
        click.echo("\nTimer is idle. Run 'zenit start' to focus.")
    elif phase == TimerPhase.PAUSED:
        click.secho(f"\n⏸  {label} PAUSED", fg="yellow", bold=True)
    elif phase == TimerPhase.RUNNING:
        click.secho("\n🍅 FOCUS TIME", fg="red", bold=True)
    elif phase == TimerPhase.BREAK:
        click.secho("\n☕ SHORT BREAK", fg="green", bold=True)
    elif phase == TimerPhase.COMPLETED:
        next_up = "a break" if timer.is_break else "focus"
        click.secho(f"\n🎉 Cycle complete! Time for {next_up}.", fg="green", bold=True)
        click.echo(f"   Next cycle: {format_time(timer.next_cycle_seconds)}")

    click.echo(f"\n   {timer.formatted}")
    bar = progress_bar(timer.progress, 1.0, width=30)
    click.echo(f"   [{bar}] {timer.progress * 100:.0f}%")
    click.echo(f"\n   Pomodoros this session: {timer.completed_cycles}")


def render_countdown(timer: FocusTimer) -> str:
    """Single-line countdown used by the live watch view."""
    icon = "☕" if timer.is_break else "🍅"
    bar = progress_bar(timer.progress, 1.0, width=20)
    return f"\r{icon} {timer.formatted} [{bar}]"


def print_streak(state: StreakState, result: StreakResult) -> None:
    """Print the stored streak and the one derived from history.

    Args:
        state: Stored streak with breakage applied
        result: Streak computed from completion events
    """
    print_header("Streak")

    count = 0 if state.is_broken else state.count
    style = {"fg": "yellow", "bold": True} if count > 0 else {"dim": True}
    flame = "🔥" if count > 0 else "🧊"
    click.secho(f"\n{flame} {count} {days_label(count)}", **style)

    if state.last_activity_date:
        click.echo(f"   Last activity: {state.last_activity_date.isoformat()}")
    if result.completed_today:
        click.secho("   ✓ Active today", fg="green")
    elif result.completed_yesterday:
        click.echo("   Do something today to keep it going.")

    click.echo(f"\nConsecutive days in history: {result.count}")


def print_heatmap(days: list[HeatmapDay]) -> None:
    """Print heatmap rows, one per week, with the consistency rate."""
    if not days:
        click.echo("No data in the selected period.")
        return

    print_header(f"Consistency {days[0].date.isoformat()} – {days[-1].date.isoformat()}")
    click.echo(f"\n   {WEEKDAY_LABELS}")

    for week in group_weeks(days):
        # Pad the first week so columns line up with weekday labels
        offset = (week[0].date.weekday() + 1) % 7
        cells = ["  "] * offset
        for day in week:
            if day.had_task and day.had_focus_session:
                cells.append(click.style("██", fg="red"))
            elif day.active:
                cells.append(click.style("▓▓", fg="yellow"))
            else:
                cells.append(click.style("░░", dim=True))
        click.echo(f"   {' '.join(cells)}  {week[0].date.strftime('%b %d')}")

    active = sum(1 for d in days if d.active)
    click.echo(f"\n{active}/{len(days)} active days, {consistency_rate(days)}% consistency")


def print_tasks(tasks: list[Task]) -> None:
    """Print task list.

    Args:
        tasks: List of tasks to display
    """
    if not tasks:
        click.echo("No tasks yet.")
        return

    click.echo("\nTasks:")
    for number, task in enumerate(tasks, 1):
        status = click.style("✓", fg="green") if task.completed else click.style("○", fg="yellow")
        title = click.style(task.title, dim=task.completed)
        click.echo(f"  {status} {number}. {title}")


def print_stats(profile: Profile, total_focus_minutes: int, days: list[HeatmapDay]) -> None:
    print_header("Statistics")

    hours, minutes = divmod(total_focus_minutes, 60)
    click.echo(f"\nPomodoros completed: {profile.pomodoro_sessions}")
    click.echo(f"Focus time: {hours}h {minutes:02d}m")
    click.echo(f"Current streak: {profile.current_streak} {days_label(profile.current_streak)}")
    click.echo(f"Longest streak: {profile.longest_streak} {days_label(profile.longest_streak)}")
    if days:
        click.echo(f"Last {len(days)} days: {consistency_rate(days)}% consistency")


def print_achievements(achievements: list[Achievement], unlocked_ids: set[str], streak: int) -> None:
    """Print the achievement catalog with progress towards locked ones."""
    print_header("Achievements")
    if not achievements:
        click.echo("\nNo achievements available.")
        return

    unlocked = sum(1 for a in achievements if a.id in unlocked_ids)
    click.echo(f"\n{unlocked}/{len(achievements)} unlocked\n")
    for achievement in achievements:
        if achievement.id in unlocked_ids:
            mark = click.style("✓", fg="green")
            click.echo(f"  {mark} {achievement.icon} {achievement.title} - {achievement.description}")
        else:
            progress = min(streak, achievement.required_value)
            bar = progress_bar(progress, achievement.required_value, width=10)
            title = click.style(achievement.title, dim=True)
            click.echo(f"  🔒 {title} {bar} {progress}/{achievement.required_value}")


def print_setup_complete() -> None:
    click.echo()
    click.secho("✓ Setup complete!", fg="green", bold=True)
    click.echo()
    click.echo("Get started:")
    click.echo("  zenit start   - Start a focus cycle")
    click.echo("  zenit watch   - Follow the countdown")
    click.echo("  zenit streak  - Check your streak")
    click.echo("  zenit --help  - See all commands")

