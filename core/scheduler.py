"""
Clock and scheduling primitives for fire-and-forget injection.

Injections and their delayed continuations (the second tap of a double tap,
the status reset after an action) run through a scheduler so the dispatcher
never blocks a detector and composite actions stay ordered and cancellable.

Two implementations share the same interface:
    ThreadScheduler  - real time, single worker thread + threading.Timer
    ManualScheduler  - deterministic, driven by advance(); for tests/replays
"""

import heapq
import itertools
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

logger = logging.getLogger(__name__)


def monotonic_ms() -> int:
    """Current monotonic time in integer milliseconds."""
    return int(time.monotonic() * 1000)


class ScheduledTask:
    """A unit of scheduled work that can be cancelled until it starts."""

    __slots__ = ("name", "due_ms", "_fn", "_args", "_lock", "_cancelled", "_started", "_done")

    def __init__(self, fn: Callable, args: tuple = (), due_ms: int = 0, name: str = ""):
        self.name = name or getattr(fn, "__name__", "task")
        self.due_ms = due_ms
        self._fn = fn
        self._args = args
        self._lock = threading.Lock()
        self._cancelled = False
        self._started = False
        self._done = False

    def cancel(self) -> bool:
        """Cancel the task. Returns False if it already started running."""
        with self._lock:
            if self._started:
                return False
            self._cancelled = True
            return True

    def run(self):
        with self._lock:
            if self._cancelled or self._started:
                return
            self._started = True
        try:
            self._fn(*self._args)
        except Exception:
            logger.exception("Scheduled task '%s' failed", self.name)
        finally:
            self._done = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        return self._done

    def __repr__(self):
        state = "cancelled" if self._cancelled else ("done" if self._done else "pending")
        return f"ScheduledTask({self.name}, due={self.due_ms}, {state})"


class ThreadScheduler:
    """Runs tasks on one worker thread, preserving submission order.

    Delayed tasks wait on a threading.Timer and are then queued on the same
    worker, so a continuation never overtakes work submitted before it fired.
    """

    def __init__(self, name: str = "injector"):
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)
        self._timers = {}
        self._lock = threading.Lock()
        self._closed = False

    def now_ms(self) -> int:
        return monotonic_ms()

    def submit(self, fn: Callable, *args, name: str = "") -> ScheduledTask:
        """Run fn(*args) on the worker as soon as possible."""
        task = ScheduledTask(fn, args, self.now_ms(), name)
        with self._lock:
            if self._closed:
                task.cancel()
                return task
            self._executor.submit(task.run)
        return task

    def call_later(self, delay_ms: int, fn: Callable, *args, name: str = "") -> ScheduledTask:
        """Run fn(*args) on the worker after delay_ms."""
        task = ScheduledTask(fn, args, self.now_ms() + delay_ms, name)
        timer = threading.Timer(max(delay_ms, 0) / 1000.0, self._fire, args=(task,))
        timer.daemon = True
        with self._lock:
            if self._closed:
                task.cancel()
                return task
            self._timers[id(task)] = timer
        timer.start()
        return task

    def _fire(self, task: ScheduledTask):
        with self._lock:
            self._timers.pop(id(task), None)
            if self._closed:
                return
            self._executor.submit(task.run)

    def shutdown(self, wait: bool = False):
        """Cancel pending timers and stop the worker."""
        with self._lock:
            self._closed = True
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()
        self._executor.shutdown(wait=wait, cancel_futures=True)
        logger.debug("ThreadScheduler shut down (%d timers cancelled)", len(timers))


class ManualScheduler:
    """Deterministic scheduler driven by an explicit clock.

    submit() runs inline; call_later() queues until advance()/advance_to()
    moves the clock past the due time. Tasks due at the same instant run in
    scheduling order.
    """

    def __init__(self, start_ms: int = 0):
        self._now_ms = start_ms
        self._queue = []
        self._seq = itertools.count()

    def now_ms(self) -> int:
        return self._now_ms

    def submit(self, fn: Callable, *args, name: str = "") -> ScheduledTask:
        task = ScheduledTask(fn, args, self._now_ms, name)
        task.run()
        return task

    def call_later(self, delay_ms: int, fn: Callable, *args, name: str = "") -> ScheduledTask:
        task = ScheduledTask(fn, args, self._now_ms + max(delay_ms, 0), name)
        heapq.heappush(self._queue, (task.due_ms, next(self._seq), task))
        return task

    def advance(self, delta_ms: int):
        self.advance_to(self._now_ms + delta_ms)

    def advance_to(self, target_ms: int):
        """Move the clock forward, running every task that falls due."""
        while self._queue and self._queue[0][0] <= target_ms:
            due_ms, _, task = heapq.heappop(self._queue)
            self._now_ms = max(self._now_ms, due_ms)
            task.run()
        self._now_ms = max(self._now_ms, target_ms)

    @property
    def pending(self) -> int:
        return sum(1 for _, _, task in self._queue if not task.cancelled)

    def shutdown(self, wait: bool = False):
        for _, _, task in self._queue:
            task.cancel()
        self._queue.clear()
