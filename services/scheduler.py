"""
Deferred execution for background I/O.

``Scheduler`` provides delayed callbacks (timers) and a dedicated I/O
executor. ``ThreadScheduler`` is the production implementation;
``ManualScheduler`` runs on a virtual clock so batching thresholds are
testable without sleeping.
"""
from __future__ import annotations

import heapq
import itertools
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List, Tuple

from loguru import logger


class TimerHandle(ABC):
    """A scheduled-but-not-started callback."""

    @abstractmethod
    def cancel(self) -> bool:
        """Cancel the callback if it has not started. Returns True if cancelled."""


class Scheduler(ABC):
    """Injectable clock plus I/O executor."""

    @abstractmethod
    def call_later(self, delay_s: float, fn: Callable[[], None]) -> TimerHandle:
        ...

    @abstractmethod
    def submit(self, fn: Callable, *args, **kwargs) -> Future:
        """Run fn on the I/O context."""

    @abstractmethod
    def shutdown(self, wait: bool = True) -> None:
        ...


class _ThreadTimerHandle(TimerHandle):
    def __init__(self, timer: threading.Timer):
        self._timer = timer

    def cancel(self) -> bool:
        if self._timer.finished.is_set():
            return False
        self._timer.cancel()
        return True


class ThreadScheduler(Scheduler):
    """Timers on ``threading.Timer``; I/O on a single-worker thread pool."""

    def __init__(self, io_workers: int = 1, thread_name_prefix: str = "alias-io"):
        self._executor = ThreadPoolExecutor(max_workers=io_workers, thread_name_prefix=thread_name_prefix)
        self._closed = False

    def call_later(self, delay_s: float, fn: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay_s, fn)
        timer.daemon = True
        timer.name = "alias-timer"
        timer.start()
        return _ThreadTimerHandle(timer)

    def submit(self, fn: Callable, *args, **kwargs) -> Future:
        return self._executor.submit(fn, *args, **kwargs)

    def shutdown(self, wait: bool = True) -> None:
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=wait)
        logger.debug("I/O executor shut down")


class _ManualTimerHandle(TimerHandle):
    def __init__(self):
        self.cancelled = False
        self.fired = False

    def cancel(self) -> bool:
        if self.fired or self.cancelled:
            return False
        self.cancelled = True
        return True


class ManualScheduler(Scheduler):
    """
    Deterministic scheduler driven by ``advance()``.

    Submitted tasks run inline on the calling thread; timers fire in due-time
    order when the virtual clock passes their deadline.
    """

    def __init__(self):
        self.now = 0.0
        self._timers: List[Tuple[float, int, _ManualTimerHandle, Callable[[], None]]] = []
        self._sequence = itertools.count()
        self.submitted = 0

    def call_later(self, delay_s: float, fn: Callable[[], None]) -> TimerHandle:
        handle = _ManualTimerHandle()
        heapq.heappush(self._timers, (self.now + delay_s, next(self._sequence), handle, fn))
        return handle

    def submit(self, fn: Callable, *args, **kwargs) -> Future:
        self.submitted += 1
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing due timers. Returns the number fired."""
        deadline = self.now + seconds
        fired = 0
        while self._timers and self._timers[0][0] <= deadline:
            due, _, handle, fn = heapq.heappop(self._timers)
            self.now = due
            if handle.cancelled:
                continue
            handle.fired = True
            fn()
            fired += 1
        self.now = deadline
        return fired

    def pending_timers(self) -> int:
        return sum(1 for _, _, handle, _ in self._timers if not handle.cancelled)

    def shutdown(self, wait: bool = True) -> None:
        self._timers.clear()
