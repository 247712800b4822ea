"""One-shot in-process timer queue.

Entries are kept in a heap ordered by due time, ties broken by submission
order.  :meth:`TimerQueue.run_pending` fires whatever is due synchronously, and
:meth:`TimerQueue.start` runs the same loop on a daemon thread that sleeps on a
condition variable until the earliest entry becomes due.
"""
from __future__ import annotations

import heapq
import itertools
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Union

from cadence.config import TimerQueueConfig
from cadence.timestamps import TimestampLike, format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], Any]
Clock = Callable[[], datetime]


@dataclass(slots=True, frozen=True)
class TimerHandle:
    """Opaque identifier of a pending firing."""

    id: int
    due_at: datetime


@dataclass(slots=True, order=True)
class _Entry:
    due_at: datetime
    sequence: int
    callback: TimerCallback = field(compare=False)
    handle: TimerHandle = field(compare=False)
    cancelled: bool = field(default=False, compare=False)


class TimerQueue:
    """Run callbacks once, at or after a given wall-clock instant."""

    def __init__(self, config: Optional[TimerQueueConfig] = None, clock: Optional[Clock] = None) -> None:
        self._config = config or TimerQueueConfig()
        self._clock = clock or datetime.now
        self._heap: List[_Entry] = []
        self._entries: Dict[int, _Entry] = {}
        self._sequence = itertools.count(1)
        self._lock = threading.Lock()
        self._wakeup = threading.Condition(self._lock)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._cancelled = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __enter__(self) -> "TimerQueue":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # ------------------------------------------------------------------
    def now(self) -> datetime:
        return self._clock()

    def add_for_time(self, callback: TimerCallback, due_at: TimestampLike) -> TimerHandle:
        """Queue ``callback`` to run with no arguments at or after ``due_at``."""

        if not callable(callback):
            raise TypeError("callback must be callable")
        due = parse_timestamp(due_at)
        with self._wakeup:
            sequence = next(self._sequence)
            handle = TimerHandle(id=sequence, due_at=due)
            entry = _Entry(due_at=due, sequence=sequence, callback=callback, handle=handle)
            heapq.heappush(self._heap, entry)
            self._entries[sequence] = entry
            self._wakeup.notify()
        logger.debug("Queued timer %d for %s", handle.id, format_timestamp(due))
        return handle

    def add_for_delay(self, callback: TimerCallback, delay: Union[timedelta, float]) -> TimerHandle:
        """Queue ``callback`` to run ``delay`` after the current clock reading."""

        if not isinstance(delay, timedelta):
            delay = timedelta(seconds=float(delay))
        return self.add_for_time(callback, self.now() + delay)

    def cancel(self, handle: TimerHandle) -> bool:
        """Drop a pending firing; returns ``False`` if it already ran or was cancelled."""

        with self._wakeup:
            entry = self._entries.pop(handle.id, None)
            if entry is None:
                return False
            entry.cancelled = True
            self._cancelled += 1
            if self._cancelled > len(self._heap) // 2:
                self._compact_locked()
            self._wakeup.notify()
        logger.debug("Cancelled timer %d", handle.id)
        return True

    def next_due(self) -> Optional[datetime]:
        with self._lock:
            entry = self._peek_locked()
            return entry.due_at if entry else None

    def run_pending(self, now: Optional[TimestampLike] = None) -> int:
        """Fire every entry due at ``now`` and return how many ran.

        Callbacks run without the queue lock held, so they may add or cancel
        entries.  An exception raised by a callback propagates to the caller;
        entries that have not fired yet stay queued.
        """

        instant = self.now() if now is None else parse_timestamp(now)
        fired = 0
        while True:
            with self._lock:
                entry = self._pop_due_locked(instant)
            if entry is None:
                return fired
            fired += 1
            logger.debug("Firing timer %d due %s", entry.handle.id, format_timestamp(entry.due_at))
            entry.callback()

    # ------------------------------------------------------------------
    def start(self) -> None:
        """Start the worker thread that fires entries as they become due.

        Each worker gets its own stop event, and a worker that outlived
        :meth:`stop` still counts as running until its callback returns.
        """

        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                logger.warning("TimerQueue already started")
                return
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run, args=(self._stop_event,), name=self._config.thread_name, daemon=True
            )
            self._thread.start()

    def stop(self) -> None:
        """Stop the worker thread; pending entries are kept."""

        with self._wakeup:
            thread = self._thread
            self._stop_event.set()
            self._wakeup.notify_all()
        if thread is None or thread is threading.current_thread():
            return
        thread.join(timeout=self._config.stop_timeout.total_seconds())
        if thread.is_alive():
            logger.warning("TimerQueue worker did not stop cleanly")
            return
        with self._lock:
            if self._thread is thread:
                self._thread = None

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    # ------------------------------------------------------------------
    def _run(self, stop_event: threading.Event) -> None:
        logger.info("TimerQueue worker started")
        while not stop_event.is_set():
            try:
                self.run_pending()
            except Exception:
                logger.exception("Timer callback failed")
                continue
            with self._wakeup:
                if stop_event.is_set():
                    break
                self._wakeup.wait(timeout=self._wait_seconds_locked())
        logger.info("TimerQueue worker stopped")

    def _wait_seconds_locked(self) -> float:
        idle = self._config.max_idle_wait.total_seconds()
        entry = self._peek_locked()
        if entry is None:
            return idle
        remaining = (entry.due_at - self.now()).total_seconds()
        return max(0.0, min(idle, remaining))

    def _peek_locked(self) -> Optional[_Entry]:
        while self._heap and self._heap[0].cancelled:
            heapq.heappop(self._heap)
            self._cancelled -= 1
        return self._heap[0] if self._heap else None

    def _pop_due_locked(self, instant: datetime) -> Optional[_Entry]:
        entry = self._peek_locked()
        if entry is None or entry.due_at > instant:
            return None
        heapq.heappop(self._heap)
        self._entries.pop(entry.sequence, None)
        return entry

    def _compact_locked(self) -> None:
        self._heap = [entry for entry in self._heap if not entry.cancelled]
        heapq.heapify(self._heap)
        self._cancelled = 0


__all__ = ["TimerCallback", "TimerHandle", "TimerQueue"]
