"""Data models for Zenit."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional, Union

logger = logging.getLogger(__name__)

FOCUS_SECONDS = 25 * 60
BREAK_SECONDS = 5 * 60

TASK_DONE_STATUS = "done"


class TimerPhase(Enum):
    """Timer state enumeration."""
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    BREAK = "break"
    COMPLETED = "completed"


COUNTING_PHASES = (TimerPhase.RUNNING, TimerPhase.BREAK)


class EventKind(Enum):
    """Kind of completion event."""
    TASK = "task"
    FOCUS_SESSION = "focus_session"


@dataclass
class TimerSnapshot:
    """Persisted state of the focus timer.

    While the phase is RUNNING or BREAK the deadline is authoritative; in
    every other phase remaining_seconds is. A paused countdown keeps its
    fractional second so that pausing never loses time. completed_at is the
    deadline of the cycle that put the timer in COMPLETED.
    """
    phase: TimerPhase = TimerPhase.IDLE
    deadline: Optional[datetime] = None
    remaining_seconds: float = FOCUS_SECONDS
    is_break: bool = False
    completed_cycles: int = 0
    completed_at: Optional[datetime] = None

    @property
    def counting(self) -> bool:
        return self.phase in COUNTING_PHASES

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "phase": self.phase.value,
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "remaining_seconds": self.remaining_seconds,
            "is_break": self.is_break,
            "completed_cycles": self.completed_cycles,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TimerSnapshot":
        """Create TimerSnapshot from dictionary.

        Raises:
            ValueError, KeyError or TypeError if the data is malformed
        """
        phase = TimerPhase(data["phase"])
        deadline = _aware_timestamp(data.get("deadline"))

        if phase in COUNTING_PHASES and deadline is None:
            raise ValueError(f"phase {phase.value} requires a deadline")

        remaining = float(data.get("remaining_seconds", FOCUS_SECONDS))
        if remaining < 0:
            raise ValueError("remaining_seconds must not be negative")

        completed_at = None
        if phase == TimerPhase.COMPLETED:
            completed_at = _aware_timestamp(data.get("completed_at"))

        return cls(
            phase=phase,
            deadline=deadline if phase in COUNTING_PHASES else None,
            remaining_seconds=remaining,
            is_break=bool(data.get("is_break", False)),
            completed_cycles=int(data.get("completed_cycles", 0)),
            completed_at=completed_at,
        )


def _aware_timestamp(value: Optional[str]) -> Optional[datetime]:
    # Naive timestamps in old state files are read as local time
    if not value:
        return None
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.astimezone()
    return moment


@dataclass
class CompletionEvent:
    """A completed task or focus session, input to streak computation."""
    occurred_at: Union[datetime, str, None]
    kind: EventKind = EventKind.TASK


@dataclass
class StreakState:
    """Streak tracking data."""
    count: int = 0
    is_broken: bool = False
    last_activity_date: Optional[date] = None


@dataclass
class StreakResult:
    """Streak derived from completion dates."""
    count: int = 0
    completed_today: bool = False
    completed_yesterday: bool = False


@dataclass
class HeatmapDay:
    """Activity for a single calendar day."""
    date: date
    active: bool = False
    had_task: bool = False
    had_focus_session: bool = False

    @property
    def activity_count(self) -> int:
        return int(self.had_task) + int(self.had_focus_session)


def _parse_date(value) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        logger.warning(f"Ignoring malformed stored date {value!r}")
        return None


def _parse_datetime(value) -> Optional[datetime]:
    """Stored timestamp as a datetime, or None if it cannot be read."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Ignoring malformed stored timestamp {value!r}")
        return None


@dataclass
class Profile:
    """A user's profile row."""
    id: str = ""
    current_streak: int = 0
    longest_streak: int = 0
    last_activity_date: Optional[date] = None
    pomodoro_sessions: int = 0

    @classmethod
    def from_row(cls, row: tuple) -> "Profile":
        """Create Profile from database row."""
        return cls(
            id=row[0],
            current_streak=row[1] or 0,
            longest_streak=row[2] or 0,
            last_activity_date=_parse_date(row[3]),
            pomodoro_sessions=row[4] or 0,
        )

    def streak_state(self) -> StreakState:
        return StreakState(
            count=self.current_streak,
            last_activity_date=self.last_activity_date,
        )


@dataclass
class Task:
    """A task owned by a user."""
    id: Optional[int] = None
    user_id: str = ""
    title: str = ""
    status: str = "todo"
    created_at: datetime = field(default_factory=lambda: datetime.now().astimezone())
    updated_at: Optional[datetime] = None

    @property
    def completed(self) -> bool:
        return self.status == TASK_DONE_STATUS

    @classmethod
    def from_row(cls, row: tuple) -> "Task":
        """Create Task from database row."""
        return cls(
            id=row[0],
            user_id=row[1],
            title=row[2],
            status=row[3],
            created_at=_parse_datetime(row[4]) or datetime.now().astimezone(),
            updated_at=_parse_datetime(row[5]),
        )


@dataclass
class FocusSession:
    """A completed focus session."""
    id: Optional[int] = None
    user_id: str = ""
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration_minutes: int = 25

    @classmethod
    def from_row(cls, row: tuple) -> "FocusSession":
        """Create FocusSession from database row."""
        return cls(
            id=row[0],
            user_id=row[1],
            started_at=_parse_datetime(row[2]),
            ended_at=_parse_datetime(row[3]),
            duration_minutes=row[4] or 0,
        )


@dataclass
class Achievement:
    """A badge unlocked by reaching a streak length."""
    id: str
    title: str
    description: str = ""
    icon: str = "🏆"
    required_value: int = 1

    @classmethod
    def from_row(cls, row: tuple) -> "Achievement":
        return cls(
            id=row[0],
            title=row[1],
            description=row[2] or "",
            icon=row[3] or "🏆",
            required_value=row[4],
        )
