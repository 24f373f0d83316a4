"""SQLite database operations for Zenit."""

import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Optional, Iterator

from .achievements import DEFAULT_ACHIEVEMENTS
from .models import Achievement, FocusSession, Profile, StreakState, Task, TASK_DONE_STATUS
from .timeutil import local_now, to_local_date


SCHEMA = """
-- One row per user
CREATE TABLE IF NOT EXISTS profiles (
    id TEXT PRIMARY KEY,
    current_streak INTEGER DEFAULT 0,
    longest_streak INTEGER DEFAULT 0,
    last_activity_date TEXT,
    pomodoro_sessions INTEGER DEFAULT 0
);

-- Tasks; status 'done' marks completion, updated_at is the completion time
CREATE TABLE IF NOT EXISTS tasks (
    id INTEGER PRIMARY KEY,
    user_id TEXT REFERENCES profiles(id),
    title TEXT NOT NULL,
    status TEXT DEFAULT 'todo',
    created_at TEXT,
    updated_at TEXT
);

-- Finished focus cycles
CREATE TABLE IF NOT EXISTS focus_sessions (
    id INTEGER PRIMARY KEY,
    user_id TEXT REFERENCES profiles(id),
    started_at TEXT NOT NULL,
    ended_at TEXT,
    duration_minutes INTEGER DEFAULT 25
);

-- Badges for streak lengths, seeded from DEFAULT_ACHIEVEMENTS
CREATE TABLE IF NOT EXISTS achievements (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT,
    icon TEXT,
    required_value INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS user_achievements (
    user_id TEXT REFERENCES profiles(id),
    achievement_id TEXT REFERENCES achievements(id),
    unlocked_at TEXT NOT NULL,
    PRIMARY KEY (user_id, achievement_id)
);

CREATE INDEX IF NOT EXISTS idx_tasks_user_id ON tasks(user_id);
CREATE INDEX IF NOT EXISTS idx_focus_sessions_user_started ON focus_sessions(user_id, started_at);
"""


class StorageError(Exception):
    """Raised when the data store cannot complete a request."""


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _within(value: Optional[datetime], from_date: Optional[date], to_date: Optional[date]) -> bool:
    # Compared on the local day since stored offsets may differ
    day = to_local_date(value)
    if day is None:
        return from_date is None and to_date is None
    if from_date and day < from_date:
        return False
    if to_date and day > to_date:
        return False
    return True


class Storage:
    """SQLite database operations."""

    def __init__(self, db_path: Path):
        """Initialize storage with database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self._init_db()

    def _init_db(self) -> None:
        """Initialize database schema."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create {self.db_path.parent}: {e}") from e
        with self._connection() as conn:
            conn.executescript(SCHEMA)
        self.seed_achievements(DEFAULT_ACHIEVEMENTS)

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Get database connection context manager."""
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            raise StorageError(str(e)) from e
        finally:
            conn.close()

    # Profile operations

    def get_profile(self, user_id: str) -> Optional[Profile]:
        """Get profile by ID.

        Args:
            user_id: Profile ID

        Returns:
            Profile if found, None otherwise
        """
        with self._connection() as conn:
            cursor = conn.execute(
                "SELECT id, current_streak, longest_streak, last_activity_date, pomodoro_sessions "
                "FROM profiles WHERE id = ?",
                (user_id,),
            )
            row = cursor.fetchone()
            if row:
                return Profile.from_row(tuple(row))
            return None

    def get_or_create_profile(self, user_id: str) -> Profile:
        """Get a profile, creating an empty one if needed."""
        with self._connection() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO profiles (id, current_streak, longest_streak, pomodoro_sessions) "
                "VALUES (?, 0, 0, 0)",
                (user_id,),
            )
        profile = self.get_profile(user_id)
        if profile is None:
            raise StorageError(f"Profile {user_id} vanished after creation")
        return profile

    def update_profile_streak(self, user_id: str, state: StreakState) -> None:
        """Store a new streak count and last activity date.

        The longest streak is raised when the new count exceeds it.

        Args:
            user_id: Profile ID
            state: New streak state
        """
        with self._connection() as conn:
            conn.execute(
                """
                UPDATE profiles SET
                    current_streak = ?,
                    longest_streak = MAX(COALESCE(longest_streak, 0), ?),
                    last_activity_date = ?
                WHERE id = ?
                """,
                (
                    state.count,
                    state.count,
                    state.last_activity_date.isoformat() if state.last_activity_date else None,
                    user_id,
                ),
            )

    def reset_streak(self, user_id: str) -> None:
        """Set the current streak to zero, keeping the last activity date."""
        with self._connection() as conn:
            conn.execute(
                "UPDATE profiles SET current_streak = 0 WHERE id = ?", (user_id,)
            )

    def increment_pomodoro_sessions(self, user_id: str) -> int:
        """Add one finished pomodoro to the profile.

        Returns:
            The new session count
        """
        with self._connection() as conn:
            conn.execute(
                "UPDATE profiles SET pomodoro_sessions = COALESCE(pomodoro_sessions, 0) + 1 "
                "WHERE id = ?",
                (user_id,),
            )
            cursor = conn.execute(
                "SELECT pomodoro_sessions FROM profiles WHERE id = ?", (user_id,)
            )
            row = cursor.fetchone()
            return row[0] if row else 0

    # Task operations

    def create_task(self, task: Task) -> Task:
        """Create a new task.

        Args:
            task: Task to create

        Returns:
            Task with assigned ID
        """
        with self._connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO tasks (user_id, title, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    task.user_id,
                    task.title,
                    task.status,
                    task.created_at.isoformat(),
                    _iso(task.updated_at),
                ),
            )
            task.id = cursor.lastrowid
            return task

    def get_task(self, task_id: int) -> Optional[Task]:
        """Get task by ID."""
        with self._connection() as conn:
            cursor = conn.execute(
                "SELECT id, user_id, title, status, created_at, updated_at FROM tasks WHERE id = ?",
                (task_id,),
            )
            row = cursor.fetchone()
            if row:
                return Task.from_row(tuple(row))
            return None

    def get_tasks(self, user_id: str) -> list[Task]:
        """Get all tasks for a user, oldest first."""
        with self._connection() as conn:
            cursor = conn.execute(
                "SELECT id, user_id, title, status, created_at, updated_at FROM tasks "
                "WHERE user_id = ? ORDER BY id",
                (user_id,),
            )
            return [Task.from_row(tuple(row)) for row in cursor.fetchall()]

    def complete_task(self, task_id: int, completed_at: Optional[datetime] = None) -> None:
        """Mark task as done.

        Args:
            task_id: Task ID
            completed_at: Completion time (defaults to now)
        """
        if completed_at is None:
            completed_at = local_now()
        with self._connection() as conn:
            conn.execute(
                "UPDATE tasks SET status = ?, updated_at = ? WHERE id = ?",
                (TASK_DONE_STATUS, completed_at.isoformat(), task_id),
            )

    def get_completed_tasks(
        self,
        user_id: str,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> list[Task]:
        """Get tasks marked done, most recently completed first.

        Args:
            user_id: Profile ID
            from_date: Only tasks completed on or after this day
            to_date: Only tasks completed on or before this day
        """
        with self._connection() as conn:
            cursor = conn.execute(
                "SELECT id, user_id, title, status, created_at, updated_at FROM tasks "
                "WHERE user_id = ? AND status = ? AND updated_at IS NOT NULL "
                "ORDER BY updated_at DESC",
                (user_id, TASK_DONE_STATUS),
            )
            tasks = [Task.from_row(tuple(row)) for row in cursor.fetchall()]
        return [t for t in tasks if _within(t.updated_at, from_date, to_date)]

    # Focus session operations

    def create_focus_session(self, session: FocusSession) -> FocusSession:
        """Create a focus session record.

        Returns:
            FocusSession with assigned ID
        """
        with self._connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO focus_sessions (user_id, started_at, ended_at, duration_minutes)
                VALUES (?, ?, ?, ?)
                """,
                (
                    session.user_id,
                    _iso(session.started_at),
                    _iso(session.ended_at),
                    session.duration_minutes,
                ),
            )
            session.id = cursor.lastrowid
            return session

    def get_focus_sessions(
        self,
        user_id: str,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> list[FocusSession]:
        """Get focus sessions, newest first.

        Args:
            user_id: Profile ID
            from_date: Only sessions started on or after this day
            to_date: Only sessions started on or before this day

        Returns:
            List of focus sessions
        """
        with self._connection() as conn:
            cursor = conn.execute(
                "SELECT id, user_id, started_at, ended_at, duration_minutes "
                "FROM focus_sessions WHERE user_id = ? ORDER BY started_at DESC",
                (user_id,),
            )
            sessions = [FocusSession.from_row(tuple(row)) for row in cursor.fetchall()]
        return [s for s in sessions if _within(s.started_at, from_date, to_date)]

    # Statistics

    def get_total_focus_minutes(self, user_id: str) -> int:
        """Sum of focus session durations."""
        with self._connection() as conn:
            cursor = conn.execute(
                "SELECT COALESCE(SUM(duration_minutes), 0) FROM focus_sessions WHERE user_id = ?",
                (user_id,),
            )
            return cursor.fetchone()[0]

    # Achievement operations

    def seed_achievements(self, achievements: list[Achievement]) -> None:
        """Insert catalog entries that are not stored yet."""
        with self._connection() as conn:
            conn.executemany(
                "INSERT OR IGNORE INTO achievements (id, title, description, icon, required_value) "
                "VALUES (?, ?, ?, ?, ?)",
                [(a.id, a.title, a.description, a.icon, a.required_value) for a in achievements],
            )

    def get_achievements(self) -> list[Achievement]:
        """Get the achievement catalog, easiest first."""
        with self._connection() as conn:
            cursor = conn.execute(
                "SELECT id, title, description, icon, required_value FROM achievements "
                "ORDER BY required_value, id"
            )
            return [Achievement.from_row(tuple(row)) for row in cursor.fetchall()]

    def get_unlocked_achievement_ids(self, user_id: str) -> set[str]:
        with self._connection() as conn:
            cursor = conn.execute(
                "SELECT achievement_id FROM user_achievements WHERE user_id = ?",
                (user_id,),
            )
            return {row[0] for row in cursor.fetchall()}

    def unlock_achievement(
        self,
        user_id: str,
        achievement_id: str,
        unlocked_at: Optional[datetime] = None,
    ) -> bool:
        """Record an unlocked achievement.

        Returns:
            True if it was newly unlocked, False if the user already had it
        """
        if unlocked_at is None:
            unlocked_at = local_now()
        with self._connection() as conn:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO user_achievements (user_id, achievement_id, unlocked_at) "
                "VALUES (?, ?, ?)",
                (user_id, achievement_id, unlocked_at.isoformat()),
            )
            return cursor.rowcount == 1
