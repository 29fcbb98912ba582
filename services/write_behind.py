"""
Write-behind persistence of field-trained aliases.

Aliases are buffered (keyed ``speciesId||norm``) and merged into the alias
master in batches: immediately once the buffer reaches the size threshold,
otherwise when the time threshold elapses. Exactly one flush runs at a time
and a failed flush keeps its batch for the next attempt.
"""
from __future__ import annotations

import threading
from typing import Dict, List, Optional

from loguru import logger

from core.result import Failure, Result, Success
from index.models import PendingAlias
from services.scheduler import Scheduler, TimerHandle
from storage.persistent_store import PersistentStore

DEFAULT_SIZE_THRESHOLD = 5
DEFAULT_TIME_THRESHOLD_S = 30.0


class WriteBehindQueue:
    """Buffers ``PendingAlias`` entries and flushes them into a ``PersistentStore``."""

    def __init__(
        self,
        store: PersistentStore,
        scheduler: Scheduler,
        size_threshold: int = DEFAULT_SIZE_THRESHOLD,
        time_threshold_s: float = DEFAULT_TIME_THRESHOLD_S,
    ) -> None:
        self.store = store
        self.scheduler = scheduler
        self.size_threshold = size_threshold
        self.time_threshold_s = time_threshold_s

        self._buffer: Dict[str, PendingAlias] = {}
        # Guards _buffer, _timer and _flush_requested; never held during I/O.
        self._lock = threading.Lock()
        # Serializes flushes.
        self._flush_lock = threading.Lock()
        self._timer: Optional[TimerHandle] = None
        self._flush_requested = False
        self.flush_count = 0

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._buffer)

    def pending(self) -> List[PendingAlias]:
        with self._lock:
            return list(self._buffer.values())

    def enqueue(self, alias: PendingAlias) -> None:
        """Buffer an alias and schedule a flush."""
        with self._lock:
            self._buffer.setdefault(alias.key, alias)
            submit_now = self._plan_locked()
        if submit_now:
            self._submit_flush()

    def flush(self) -> Result[int, Exception]:
        """
        Merge the current buffer into the store.

        On success exactly the flushed entries leave the buffer (entries added
        meanwhile stay); on failure the buffer is untouched.

        Returns:
            Success with the number of aliases written, or the store Failure
        """
        with self._flush_lock:
            with self._lock:
                batch = list(self._buffer.values())
            if not batch:
                return Success(0)

            result = self.store.merge_pending(batch)
            if isinstance(result, Failure):
                logger.warning(f"Alias flush failed, keeping {len(batch)} pending: {result.error}")
                return result

            with self._lock:
                for alias in batch:
                    if self._buffer.get(alias.key) is alias:
                        del self._buffer[alias.key]
            self.flush_count += 1
            logger.debug(f"Flushed {len(batch)} pending aliases")
            return result

    def force_flush(self) -> Result[int, Exception]:
        """Cancel a scheduled-but-not-started timer and flush synchronously.

        A flush already in progress is waited for, never aborted.
        """
        with self._lock:
            self._cancel_timer_locked()
        try:
            future = self.scheduler.submit(self.flush)
        except RuntimeError as e:
            logger.warning(f"I/O executor unavailable, flushing on the calling thread: {e}")
            return self.flush()
        return future.result()

    def close(self) -> Result[int, Exception]:
        result = self.force_flush()
        remaining = self.pending_count
        if remaining:
            logger.error(f"{remaining} aliases could not be persisted before shutdown")
        return result

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _plan_locked(self) -> bool:
        """Decide the next flush. Returns True when a flush must be submitted now."""
        if not self._buffer:
            return False
        if len(self._buffer) >= self.size_threshold:
            self._cancel_timer_locked()
            if self._flush_requested:
                return False
            self._flush_requested = True
            return True
        if self._timer is None and not self._flush_requested:
            self._timer = self.scheduler.call_later(self.time_threshold_s, self._on_timer)
        return False

    def _cancel_timer_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        with self._lock:
            self._timer = None
            if self._flush_requested or not self._buffer:
                return
            self._flush_requested = True
        self._submit_flush()

    def _submit_flush(self) -> None:
        try:
            self.scheduler.submit(self._run_scheduled_flush)
        except RuntimeError as e:
            # Executor already shut down; force_flush on close persists the batch.
            with self._lock:
                self._flush_requested = False
            logger.warning(f"Could not schedule alias flush: {e}")

    def _run_scheduled_flush(self) -> None:
        with self._lock:
            self._flush_requested = False
        try:
            succeeded = isinstance(self.flush(), Success)
        except Exception as e:
            logger.exception(f"Unexpected error during alias flush: {e}")
            succeeded = False

        with self._lock:
            if succeeded:
                submit_now = self._plan_locked()
            else:
                # A failed batch retries after the time threshold.
                submit_now = False
                if self._buffer and self._timer is None:
                    self._timer = self.scheduler.call_later(self.time_threshold_s, self._on_timer)
        if submit_now:
            self._submit_flush()

