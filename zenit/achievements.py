"""Streak badges and the check that hands them out."""

import logging
import threading
from typing import Callable, Iterable, Optional

from .models import Achievement

logger = logging.getLogger(__name__)

DEFAULT_ACHIEVEMENTS = [
    Achievement("first-step", "First Step", "Study one day", "🌱", 1),
    Achievement("warming-up", "Warming Up", "Study 3 days in a row", "🔥", 3),
    Achievement("full-week", "Full Week", "Study 7 days in a row", "📅", 7),
    Achievement("fortnight", "Fortnight", "Study 14 days in a row", "⚡", 14),
    Achievement("monthly", "Monthly Habit", "Study 30 days in a row", "🌙", 30),
    Achievement("fifty", "Half Century", "Study 50 days in a row", "🎯", 50),
    Achievement("hundred", "Centurion", "Study 100 days in a row", "💯", 100),
    Achievement("two-hundred", "Unstoppable", "Study 200 days in a row", "🚀", 200),
    Achievement("year", "Year of Focus", "Study 365 days in a row", "👑", 365),
]


def achievements_to_unlock(
    achievements: Iterable[Achievement],
    unlocked_ids: set[str],
    streak: int,
) -> list[Achievement]:
    """Achievements the streak has reached that are not unlocked yet.

    Returned in ascending order of the streak they require.
    """
    due = [
        a for a in achievements
        if a.required_value <= streak and a.id not in unlocked_ids
    ]
    return sorted(due, key=lambda a: a.required_value)


class AchievementChecker:
    """Runs the unlock check only when the streak value changes.

    Status screens observe the same streak over and over; the store is only
    asked again once the count differs from the last one checked.
    """

    def __init__(self, check: Callable[[int], list[Achievement]]):
        self._check = check
        self._last_streak: Optional[int] = None
        self._lock = threading.Lock()

    def observe(self, streak: int) -> list[Achievement]:
        with self._lock:
            if streak == self._last_streak:
                return []
            self._last_streak = streak
        return self._check(streak)
