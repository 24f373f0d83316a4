"""Focus timer engine - Pomodoro countdown that survives restarts.

The timer stores an absolute deadline rather than a decrementing counter, so
any process can rebuild the countdown from the persisted snapshot and the
wall clock. Completion is a phase of its own: once a cycle reaches zero the
timer moves to COMPLETED, and ticks in that phase are not in the transition
table, so the completion signal cannot fire twice for one cycle.
"""

import logging
import threading
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from .models import (
    BREAK_SECONDS,
    COUNTING_PHASES,
    FOCUS_SECONDS,
    TimerPhase,
    TimerSnapshot,
)
from .snapshot_store import SnapshotStore
from .timeutil import exact_seconds_until, format_time, local_now, seconds_until, whole_seconds

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
Listener = Callable[[str, TimerSnapshot], None]

# Events delivered to listeners
CHANGED = "changed"
FOCUS_COMPLETED = "focus_completed"
BREAK_COMPLETED = "break_completed"

# Intents
START = "start"
PAUSE = "pause"
RESUME = "resume"
TICK = "tick"

# (phase, intent) -> handler. Anything missing is ignored. Reset is accepted
# from every phase and handled separately.
TRANSITIONS = {
    (TimerPhase.IDLE, START): "_start",
    (TimerPhase.COMPLETED, START): "_start",
    (TimerPhase.RUNNING, PAUSE): "_pause",
    (TimerPhase.BREAK, PAUSE): "_pause",
    (TimerPhase.PAUSED, RESUME): "_resume",
    (TimerPhase.RUNNING, TICK): "_tick",
    (TimerPhase.BREAK, TICK): "_tick",
}


class FocusTimer:
    """Owned timer state with a subscribe/notify interface.

    Observers never touch the snapshot; they call start/pause/resume/reset
    and receive (event, snapshot) callbacks after each persisted change.
    """

    def __init__(
        self,
        store: SnapshotStore,
        clock: Clock = local_now,
        focus_seconds: int = FOCUS_SECONDS,
        break_seconds: int = BREAK_SECONDS,
    ):
        self.store = store
        self.clock = clock
        self.focus_seconds = focus_seconds
        self.break_seconds = break_seconds
        self._lock = threading.RLock()
        self._listeners: list[Listener] = []
        self._snapshot = self._load_snapshot()

    @classmethod
    def rehydrate(
        cls,
        store: SnapshotStore,
        listeners: Iterable[Listener] = (),
        **kwargs,
    ) -> "FocusTimer":
        """Build a timer from the store and reconcile elapsed time.

        Listeners are attached before the first tick so that a cycle which
        expired while nothing was running is completed, and reported, once.
        """
        timer = cls(store, **kwargs)
        for listener in listeners:
            timer.subscribe(listener)
        timer.tick()
        return timer

    def _load_snapshot(self) -> TimerSnapshot:
        try:
            snapshot = self.store.load()
        except Exception as e:
            logger.error(f"Failed to load timer state: {e}")
            snapshot = None
        if snapshot is None:
            return self._idle_snapshot()
        return snapshot

    def _idle_snapshot(self, completed_cycles: int = 0) -> TimerSnapshot:
        return TimerSnapshot(
            phase=TimerPhase.IDLE,
            remaining_seconds=self.focus_seconds,
            is_break=False,
            completed_cycles=completed_cycles,
        )

    # Observers

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, events: list[str], snapshot: TimerSnapshot) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for event in events:
            for listener in listeners:
                try:
                    listener(event, snapshot)
                except Exception:
                    logger.exception(f"Timer listener failed on {event}")

    # Derived values

    @property
    def snapshot(self) -> TimerSnapshot:
        with self._lock:
            return replace(self._snapshot)

    @property
    def phase(self) -> TimerPhase:
        return self._snapshot.phase

    @property
    def is_break(self) -> bool:
        return self._snapshot.is_break

    @property
    def counting(self) -> bool:
        return self._snapshot.phase in COUNTING_PHASES

    @property
    def completed_cycles(self) -> int:
        return self._snapshot.completed_cycles

    @property
    def total_seconds(self) -> int:
        """Length of the current cycle, or of the one just finished."""
        snapshot = self._snapshot
        if snapshot.phase == TimerPhase.COMPLETED:
            return self._duration(not snapshot.is_break)
        return self._duration(snapshot.is_break)

    @property
    def remaining_seconds(self) -> int:
        with self._lock:
            snapshot = self._snapshot
            if snapshot.phase in COUNTING_PHASES:
                return seconds_until(snapshot.deadline, self.clock())
            if snapshot.phase == TimerPhase.COMPLETED:
                return 0
            return whole_seconds(snapshot.remaining_seconds)

    @property
    def next_cycle_seconds(self) -> int:
        """Length of the cycle that start() would launch."""
        return self._duration(self._snapshot.is_break)

    @property
    def progress(self) -> float:
        total = self.total_seconds
        if total <= 0:
            return 0.0
        elapsed = total - self.remaining_seconds
        return min(1.0, max(0.0, elapsed / total))

    @property
    def formatted(self) -> str:
        return format_time(self.remaining_seconds)

    def _duration(self, is_break: bool) -> int:
        return self.break_seconds if is_break else self.focus_seconds

    # Intents

    def start(self) -> bool:
        return self._dispatch(START)

    def pause(self) -> bool:
        return self._dispatch(PAUSE)

    def resume(self) -> bool:
        return self._dispatch(RESUME)

    def tick(self) -> bool:
        return self._dispatch(TICK)

    def reset(self) -> None:
        """Return to an idle focus cycle from any phase."""
        with self._lock:
            self._snapshot = self._idle_snapshot(self._snapshot.completed_cycles)
            self._persist()
            snapshot = replace(self._snapshot)
        self._notify([CHANGED], snapshot)

    def _dispatch(self, intent: str) -> bool:
        """Apply an intent through the transition table.

        Returns:
            True if the intent changed the timer, False if it was ignored
        """
        events: list[str] = []
        with self._lock:
            now = self.clock()
            # A countdown that ran out unobserved completes before anything
            # else is applied to it.
            if intent != TICK and self._expired(now):
                events.extend(self._complete())

            handler = TRANSITIONS.get((self._snapshot.phase, intent))
            if handler is None:
                logger.debug(f"Ignoring {intent} in phase {self._snapshot.phase.value}")
                changed = bool(events)
            else:
                changed = getattr(self, handler)(now, events)

            if changed:
                self._persist()
            snapshot = replace(self._snapshot)

        if changed:
            self._notify(events + [CHANGED], snapshot)
        return changed

    def _expired(self, now: datetime) -> bool:
        snapshot = self._snapshot
        return (
            snapshot.phase in COUNTING_PHASES
            and seconds_until(snapshot.deadline, now) == 0
        )

    def _start(self, now: datetime, events: list[str]) -> bool:
        snapshot = self._snapshot
        duration = self._duration(snapshot.is_break)
        self._snapshot = replace(
            snapshot,
            phase=TimerPhase.BREAK if snapshot.is_break else TimerPhase.RUNNING,
            deadline=now + timedelta(seconds=duration),
            remaining_seconds=duration,
            completed_at=None,
        )
        return True

    def _pause(self, now: datetime, events: list[str]) -> bool:
        snapshot = self._snapshot
        self._snapshot = replace(
            snapshot,
            phase=TimerPhase.PAUSED,
            deadline=None,
            remaining_seconds=exact_seconds_until(snapshot.deadline, now),
        )
        return True

    def _resume(self, now: datetime, events: list[str]) -> bool:
        snapshot = self._snapshot
        self._snapshot = replace(
            snapshot,
            phase=TimerPhase.BREAK if snapshot.is_break else TimerPhase.RUNNING,
            deadline=now + timedelta(seconds=snapshot.remaining_seconds),
        )
        return True

    def _tick(self, now: datetime, events: list[str]) -> bool:
        snapshot = self._snapshot
        remaining = seconds_until(snapshot.deadline, now)
        if remaining > 0:
            # The deadline stays authoritative; nothing to persist.
            snapshot.remaining_seconds = remaining
            return False
        events.extend(self._complete())
        return True

    def _complete(self) -> list[str]:
        """Finish the current cycle and arm the next one."""
        snapshot = self._snapshot
        finished_break = snapshot.is_break
        next_is_break = not finished_break
        self._snapshot = TimerSnapshot(
            phase=TimerPhase.COMPLETED,
            deadline=None,
            remaining_seconds=self._duration(next_is_break),
            is_break=next_is_break,
            completed_cycles=snapshot.completed_cycles + (0 if finished_break else 1),
            completed_at=snapshot.deadline,
        )
        if finished_break:
            logger.info("Break cycle completed")
            return [BREAK_COMPLETED]
        logger.info(f"Focus cycle {self._snapshot.completed_cycles} completed")
        return [FOCUS_COMPLETED]

    def _persist(self) -> None:
        try:
            self.store.save(self._snapshot)
        except Exception as e:
            logger.error(f"Failed to save timer state: {e}")


class Ticker:
    """Calls FocusTimer.tick on a fixed interval from a background thread.

    The thread exits on its own once the timer stops counting down, or
    when stop() is called.
    """

    def __init__(
        self,
        timer: FocusTimer,
        interval: float = 1.0,
        on_tick: Optional[Callable[[FocusTimer], None]] = None,
    ):
        self.timer = timer
        self.interval = interval
        self.on_tick = on_tick
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="zenit-ticker", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join()
        self._thread = None

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            self.timer.tick()
            if self.on_tick is not None:
                try:
                    self.on_tick(self.timer)
                except Exception:
                    logger.exception("Tick callback failed")
            if not self.timer.counting:
                break
