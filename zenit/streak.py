"""Streak and consistency calculations.

Everything here works on local calendar dates. Timestamps are reduced to a
date before comparison, and events whose timestamp cannot be read are left
out instead of failing the whole computation.
"""

import logging
import threading
from dataclasses import replace
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Callable, Iterable, Optional, Union

from .models import CompletionEvent, EventKind, HeatmapDay, StreakResult, StreakState
from .timeutil import to_local_date, yesterday_of

logger = logging.getLogger(__name__)

Timestamp = Union[datetime, date, str, None]


class ActivityOutcome(Enum):
    """What register_activity did to the streak."""
    STARTED = "started"
    CONTINUED = "continued"
    RESET = "reset"
    UNCHANGED = "unchanged"


def _distinct_dates(values: Iterable[Timestamp]) -> set[date]:
    dates = set()
    for value in values:
        day = to_local_date(value)
        if day is not None:
            dates.add(day)
    return dates


def compute_heatmap(
    events: Iterable[CompletionEvent],
    from_date: date,
    to_date: date,
) -> list[HeatmapDay]:
    """One entry per calendar day in [from_date, to_date], oldest first."""
    task_days = set()
    focus_days = set()
    for event in events:
        day = to_local_date(event.occurred_at)
        if day is None:
            continue
        if event.kind == EventKind.FOCUS_SESSION:
            focus_days.add(day)
        else:
            task_days.add(day)

    days = []
    current = from_date
    while current <= to_date:
        had_task = current in task_days
        had_focus = current in focus_days
        days.append(
            HeatmapDay(
                date=current,
                active=had_task or had_focus,
                had_task=had_task,
                had_focus_session=had_focus,
            )
        )
        current += timedelta(days=1)
    return days


def consistency_rate(days: list[HeatmapDay]) -> int:
    """Percentage of active days, rounded."""
    if not days:
        return 0
    active = sum(1 for d in days if d.active)
    return round(active / len(days) * 100)


def group_weeks(days: list[HeatmapDay]) -> list[list[HeatmapDay]]:
    """Split heatmap days into rows that end on Saturday."""
    weeks: list[list[HeatmapDay]] = []
    current: list[HeatmapDay] = []
    for day in days:
        current.append(day)
        # date.weekday(): Monday=0 ... Saturday=5
        if day.date.weekday() == 5:
            weeks.append(current)
            current = []
    if current:
        weeks.append(current)
    return weeks


def compute_current_streak(
    completion_dates: Iterable[Timestamp],
    today: Optional[date] = None,
) -> StreakResult:
    """Count consecutive active days ending today or yesterday.

    Args:
        completion_dates: Timestamps of completed activity
        today: Reference day (defaults to the local date)

    Returns:
        StreakResult; count is 0 if neither today nor yesterday was active
    """
    if today is None:
        today = date.today()
    dates = _distinct_dates(completion_dates)
    yesterday = yesterday_of(today)

    completed_today = today in dates
    completed_yesterday = yesterday in dates

    if completed_today:
        anchor = today
    elif completed_yesterday:
        anchor = yesterday
    else:
        return StreakResult(0, completed_today, completed_yesterday)

    count = 0
    day = anchor
    while day in dates:
        count += 1
        day = yesterday_of(day)

    return StreakResult(count, completed_today, completed_yesterday)


def register_activity(state: StreakState, now: Union[datetime, date]) -> tuple[StreakState, ActivityOutcome]:
    """Apply one activity to a persisted streak.

    Counting happens at most once per calendar day: a state whose last
    activity is already today, or later, comes back unchanged.
    """
    today = to_local_date(now)
    last = state.last_activity_date

    if last is None:
        count, outcome = 1, ActivityOutcome.STARTED
    elif last >= today:
        # Activity dated before the stored day never rewinds the streak
        return state, ActivityOutcome.UNCHANGED
    elif last == yesterday_of(today):
        count, outcome = state.count + 1, ActivityOutcome.CONTINUED
    else:
        count, outcome = 1, ActivityOutcome.RESET

    return StreakState(count=count, is_broken=False, last_activity_date=today), outcome


def detect_break(state: StreakState, today: Optional[date] = None) -> StreakState:
    """Flag a streak whose last activity is older than yesterday."""
    if today is None:
        today = date.today()
    last = state.last_activity_date
    is_broken = (
        state.count > 0
        and last is not None
        and last < yesterday_of(today)
    )
    return replace(state, is_broken=is_broken)


class StreakKeeper:
    """Resets a broken streak once per breakage.

    The same broken state may be observed many times (every status refresh);
    only the first one resets the stored count and notifies. The latch
    re-arms as soon as a healthy state is observed.
    """

    def __init__(
        self,
        reset: Callable[[], bool],
        on_reset: Optional[Callable[[StreakState], None]] = None,
    ):
        """Initialize keeper.

        Args:
            reset: Sets the persisted count to 0; returns True on success
            on_reset: Called with the broken state once the reset is written
        """
        self._reset = reset
        self._on_reset = on_reset
        self._handled = False
        self._lock = threading.Lock()

    @property
    def handled(self) -> bool:
        return self._handled

    def observe(self, state: StreakState) -> bool:
        """Look at a freshly fetched state.

        Returns:
            True if this call handled the breakage, even if the write failed
        """
        with self._lock:
            if not state.is_broken:
                self._handled = False
                return False
            if self._handled or state.count <= 0:
                return False
            self._handled = True

        if not self._reset():
            logger.error("Failed to reset broken streak")
            return True
        if self._on_reset is not None:
            self._on_reset(state)
        return True


class ActivityRegistrar:
    """Serializes register_activity against the stored streak.

    The stored last-activity date, not anything remembered in this object,
    decides whether today already counted; the lock only keeps two callers
    in this process from reading the same stale row.
    """

    def __init__(
        self,
        load: Callable[[], StreakState],
        save: Callable[[StreakState], None],
    ):
        self._load = load
        self._save = save
        self._lock = threading.Lock()

    def register(self, now: Union[datetime, date]) -> tuple[StreakState, ActivityOutcome]:
        with self._lock:
            current = self._load()
            updated, outcome = register_activity(current, now)
            if outcome != ActivityOutcome.UNCHANGED:
                self._save(updated)
                logger.info(f"Streak {outcome.value}: {updated.count}")
            return updated, outcome
