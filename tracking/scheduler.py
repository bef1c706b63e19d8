"""
Scheduling primitives for periodic work.

ThreadScheduler runs repeating tasks on daemon threads. ManualScheduler
runs them against a virtual clock that tests advance explicitly.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Protocol

logger = logging.getLogger(__name__)

Callback = Callable[[], None]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TaskHandle(Protocol):
    def cancel(self) -> None:
        ...

    @property
    def cancelled(self) -> bool:
        ...


class Scheduler(Protocol):
    def schedule_repeating(self, interval: float, callback: Callback, name: str = "task") -> TaskHandle:
        ...

    def submit(self, callback: Callback, name: str = "job") -> None:
        ...


def _run_safely(callback: Callback, name: str) -> None:
    try:
        callback()
    except Exception as e:
        logger.error(f"Scheduled {name} failed: {e}", exc_info=True)


# ============================================
# Thread-backed scheduler
# ============================================

class RepeatingTask:
    """Runs a callback every interval seconds on a daemon thread until cancelled."""

    def __init__(self, interval: float, callback: Callback, name: str = "task"):
        self.interval = interval
        self.callback = callback
        self.name = name
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._loop, name=name, daemon=True)

    def start(self) -> "RepeatingTask":
        self._thread.start()
        return self

    def _loop(self):
        while not self._stop.wait(self.interval):
            _run_safely(self.callback, self.name)

    def cancel(self) -> None:
        self._stop.set()
        if self._thread.is_alive() and threading.current_thread() is not self._thread:
            self._thread.join(timeout=5.0)

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()


class ThreadScheduler:
    """Wall-clock scheduler; each repeating task gets its own thread."""

    def schedule_repeating(self, interval: float, callback: Callback, name: str = "task") -> RepeatingTask:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        logger.debug(f"Scheduling {name} every {interval}s")
        return RepeatingTask(interval, callback, name).start()

    def submit(self, callback: Callback, name: str = "job") -> None:
        """Fire-and-forget on a daemon thread."""
        threading.Thread(target=_run_safely, args=(callback, name), name=name, daemon=True).start()


# ============================================
# Virtual-clock scheduler
# ============================================

class ManualClock:
    """Injectable clock that only moves when advanced."""

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or utc_now()
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        with self._lock:
            return self._now

    def timestamp(self) -> float:
        return self().timestamp()

    def advance(self, seconds: float) -> datetime:
        with self._lock:
            self._now += timedelta(seconds=seconds)
            return self._now


class ManualTask:
    def __init__(self, interval: float, callback: Callback, name: str, next_due: datetime):
        self.interval = interval
        self.callback = callback
        self.name = name
        self.next_due = next_due
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler:
    """
    Scheduler driven by a ManualClock.

    Repeating tasks fire from advance(); submitted jobs run synchronously
    unless defer_submissions is set, in which case run_submitted() runs them.
    """

    def __init__(self, clock: Optional[ManualClock] = None, defer_submissions: bool = False):
        self.clock = clock or ManualClock()
        self.defer_submissions = defer_submissions
        self.tasks: List[ManualTask] = []
        self.pending: List[Callback] = []

    def schedule_repeating(self, interval: float, callback: Callback, name: str = "task") -> ManualTask:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        task = ManualTask(interval, callback, name, self.clock() + timedelta(seconds=interval))
        self.tasks.append(task)
        return task

    def submit(self, callback: Callback, name: str = "job") -> None:
        if self.defer_submissions:
            self.pending.append(callback)
        else:
            _run_safely(callback, name)

    def run_submitted(self) -> int:
        """Run deferred jobs; returns how many ran."""
        jobs, self.pending = self.pending, []
        for job in jobs:
            _run_safely(job, "job")
        return len(jobs)

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due tasks in time order."""
        target = self.clock() + timedelta(seconds=seconds)
        while True:
            live = [t for t in self.tasks if not t.cancelled and t.next_due <= target]
            if not live:
                break
            task = min(live, key=lambda t: t.next_due)
            now = self.clock()
            if task.next_due > now:
                self.clock.advance((task.next_due - now).total_seconds())
            task.next_due += timedelta(seconds=task.interval)
            _run_safely(task.callback, task.name)
        self.tasks = [t for t in self.tasks if not t.cancelled]
        remaining = (target - self.clock()).total_seconds()
        if remaining > 0:
            self.clock.advance(remaining)
