"""Activity bookkeeping against the profile store.

These calls are best-effort: a storage failure is logged and the caller gets
a safe default back, so a broken database never stops the timer or the CLI.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from .achievements import AchievementChecker, achievements_to_unlock
from .models import Achievement, CompletionEvent, EventKind, FocusSession, StreakState, TimerSnapshot
from .notifier import Notifier, NullNotifier
from .storage import Storage, StorageError
from .streak import ActivityOutcome, ActivityRegistrar, StreakKeeper, detect_break
from .timer import BREAK_COMPLETED, FOCUS_COMPLETED
from .timeutil import local_now

logger = logging.getLogger(__name__)

# One registrar per (database, user) so in-process callers share a lock
_registrars: dict[tuple[str, str], ActivityRegistrar] = {}


def _registrar(storage: Storage, user_id: str) -> ActivityRegistrar:
    key = (str(storage.db_path), user_id)
    registrar = _registrars.get(key)
    if registrar is None:
        registrar = ActivityRegistrar(
            load=lambda: storage.get_or_create_profile(user_id).streak_state(),
            save=lambda state: storage.update_profile_streak(user_id, state),
        )
        _registrars[key] = registrar
    return registrar


def register_activity(
    storage: Storage,
    user_id: str,
    notifier: Optional[Notifier] = None,
    clock: Callable[[], datetime] = local_now,
) -> Optional[StreakState]:
    """Count today's activity towards the user's streak.

    Returns:
        The stored streak after the update, or None if the store failed
    """
    if not user_id:
        return None
    notifier = notifier or NullNotifier()

    try:
        state, outcome = _registrar(storage, user_id).register(clock())
    except StorageError as e:
        logger.error(f"Failed to update streak: {e}")
        return None

    if outcome == ActivityOutcome.STARTED:
        notifier.notify_streak_started()
    elif outcome == ActivityOutcome.CONTINUED:
        notifier.notify_streak_continued(state.count)
    elif outcome == ActivityOutcome.RESET:
        notifier.notify_streak_reset()
    return state


def fetch_user_streak(
    storage: Storage,
    user_id: str,
    today: Optional[date] = None,
) -> StreakState:
    """Read the stored streak with breakage detection applied."""
    if not user_id:
        return StreakState()
    try:
        profile = storage.get_or_create_profile(user_id)
    except StorageError as e:
        logger.error(f"Failed to fetch streak: {e}")
        return StreakState()
    return detect_break(profile.streak_state(), today)


def reset_streak(storage: Storage, user_id: str) -> bool:
    try:
        storage.reset_streak(user_id)
        return True
    except StorageError as e:
        logger.error(f"Failed to reset streak: {e}")
        return False


def streak_keeper(storage: Storage, user_id: str, notifier: Optional[Notifier] = None) -> StreakKeeper:
    """Keeper that zeroes a broken stored streak and tells the user once."""
    notifier = notifier or NullNotifier()
    return StreakKeeper(
        reset=lambda: reset_streak(storage, user_id),
        on_reset=lambda state: notifier.notify_streak_lost(state.count),
    )


def check_achievements(
    storage: Storage,
    user_id: str,
    streak: int,
    notifier: Optional[Notifier] = None,
) -> list[Achievement]:
    """Unlock every achievement the streak has reached.

    All eligible achievements are stored; only the highest one is announced.

    Returns:
        The achievements unlocked by this call
    """
    if not user_id or streak <= 0:
        return []
    notifier = notifier or NullNotifier()
    try:
        storage.get_or_create_profile(user_id)
        due = achievements_to_unlock(
            storage.get_achievements(),
            storage.get_unlocked_achievement_ids(user_id),
            streak,
        )
        unlocked = [a for a in due if storage.unlock_achievement(user_id, a.id)]
    except StorageError as e:
        logger.error(f"Failed to check achievements: {e}")
        return []

    if unlocked:
        highest = unlocked[-1]
        logger.info(f"Unlocked {len(unlocked)} achievement(s), highest {highest.id}")
        notifier.notify_achievement_unlocked(highest.title, highest.icon)
    return unlocked


def achievement_checker(storage: Storage, user_id: str, notifier: Optional[Notifier] = None) -> AchievementChecker:
    return AchievementChecker(lambda streak: check_achievements(storage, user_id, streak, notifier))


def increment_pomodoro_count(storage: Storage, user_id: str) -> Optional[int]:
    """Add one finished pomodoro to the profile counter."""
    if not user_id:
        return None
    try:
        storage.get_or_create_profile(user_id)
        return storage.increment_pomodoro_sessions(user_id)
    except StorageError as e:
        logger.error(f"Failed to count pomodoro: {e}")
        return None


def record_focus_session(
    storage: Storage,
    user_id: str,
    started_at: datetime,
    duration_minutes: int,
) -> Optional[FocusSession]:
    """Store a finished focus session."""
    if not user_id:
        return None
    session = FocusSession(
        user_id=user_id,
        started_at=started_at,
        ended_at=started_at + timedelta(minutes=duration_minutes),
        duration_minutes=duration_minutes,
    )
    try:
        return storage.create_focus_session(session)
    except StorageError as e:
        logger.error(f"Failed to record focus session: {e}")
        return None


def completion_events(
    storage: Storage,
    user_id: str,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
) -> list[CompletionEvent]:
    """Completed tasks and focus sessions as streak/heatmap input."""
    events = []
    try:
        for task in storage.get_completed_tasks(user_id, from_date, to_date):
            events.append(CompletionEvent(task.updated_at, EventKind.TASK))
        for session in storage.get_focus_sessions(user_id, from_date, to_date):
            events.append(CompletionEvent(session.started_at, EventKind.FOCUS_SESSION))
    except StorageError as e:
        logger.error(f"Failed to load activity: {e}")
    return events


class FocusCompletionHandler:
    """Timer listener that books finished cycles.

    On a finished focus cycle it records the session, bumps the profile's
    pomodoro counter, registers activity for the streak and unlocks any
    achievement the streak reached. The cycle is dated by its deadline, so
    a cycle found expired the next morning still counts for the day it ran.
    Phase changes are forwarded to the notifier.
    """

    def __init__(
        self,
        storage: Storage,
        user_id: str,
        notifier: Optional[Notifier] = None,
        focus_minutes: int = 25,
        clock: Callable[[], datetime] = local_now,
    ):
        self.storage = storage
        self.user_id = user_id
        self.notifier = notifier or NullNotifier()
        self.focus_minutes = focus_minutes
        self.clock = clock
        self.sessions_recorded = 0
        self.achievements = achievement_checker(storage, user_id, self.notifier)

    def __call__(self, event: str, snapshot: TimerSnapshot) -> None:
        if event == FOCUS_COMPLETED:
            self._on_focus_completed(snapshot)
        elif event == BREAK_COMPLETED:
            self.notifier.notify_break_complete()

    def _on_focus_completed(self, snapshot: TimerSnapshot) -> None:
        # The cycle ended at its deadline even if nobody was watching then
        ended_at = snapshot.completed_at or self.clock()
        started_at = ended_at - timedelta(minutes=self.focus_minutes)
        if record_focus_session(self.storage, self.user_id, started_at, self.focus_minutes):
            self.sessions_recorded += 1
        increment_pomodoro_count(self.storage, self.user_id)
        self.notifier.notify_focus_complete(snapshot.completed_cycles)
        state = register_activity(self.storage, self.user_id, self.notifier, lambda: ended_at)
        if state is not None:
            self.achievements.observe(state.count)
