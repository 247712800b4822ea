"""Recurring task scheduling on top of :class:`~cadence.services.timer_queue.TimerQueue`.

The timer queue only knows how to run a callback once.  Periodicity comes from
the closure submitted for each occurrence: when it fires it first re-enqueues
the task for the following occurrence and only then invokes the user callback.
The next occurrence is anchored at the firing instant, so each cycle drifts by
the queue's latency.
"""
from __future__ import annotations

import dataclasses
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional, Union

from dateutil.relativedelta import relativedelta

from cadence.config import SchedulerConfig
from cadence.services.timer_queue import TimerHandle, TimerQueue
from cadence.timestamps import TimestampLike, format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

TaskCallback = Callable[[Any], Any]

FREQUENCY_OFFSETS: Mapping[str, relativedelta] = {
    "deciminute": relativedelta(seconds=10),
    "minute": relativedelta(minutes=1),
    "hourly": relativedelta(hours=1),
    "daily": relativedelta(days=1),
    "weekly": relativedelta(days=7),
    "monthly": relativedelta(months=1),
}

_REQUIRED_FIELDS = ("name", "frequency", "callback")


class SchedulerError(RuntimeError):
    """Base class for scheduler errors."""


class InvalidArguments(SchedulerError, TypeError):
    """Raised when a task registration omits a mandatory field."""


class UnknownFrequency(SchedulerError, ValueError):
    """Raised for a frequency name outside :data:`FREQUENCY_OFFSETS`."""

    def __init__(self, frequency: Any) -> None:
        super().__init__(f"unknown frequency: {frequency!r}")
        self.frequency = frequency


@dataclass(slots=True)
class TaskDefinition:
    """A named task, its cadence and the callback fired on every occurrence."""

    name: str
    frequency: str
    callback: TaskCallback
    context: Any = None
    begin_at: Optional[TimestampLike] = None

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> "TaskDefinition":
        missing = [key for key in _REQUIRED_FIELDS if options.get(key) is None]
        if missing:
            raise InvalidArguments(f"missing task options: {', '.join(missing)}")
        return cls(
            name=options["name"],
            frequency=options["frequency"],
            callback=options["callback"],
            context=options.get("context"),
            begin_at=options.get("begin_at"),
        )


def get_next(frequency: str, anchor: Optional[TimestampLike] = None, *, now: Optional[datetime] = None) -> str:
    """Return ``anchor`` shifted by the offset of ``frequency``.

    An absent or empty ``anchor`` means ``now`` (or the wall clock when ``now``
    is not given either).  The result is formatted as ``YYYY-MM-DD HH:MM:SS``.
    """

    try:
        offset = FREQUENCY_OFFSETS[frequency]
    except (KeyError, TypeError):
        raise UnknownFrequency(frequency) from None
    if anchor is None or anchor == "":
        base = now if now is not None else datetime.now()
    else:
        base = parse_timestamp(anchor)
    return format_timestamp(base + offset)


class Scheduler:
    """Keep a table of named tasks and drive a timer queue to repeat them."""

    def __init__(
        self,
        config: Optional[SchedulerConfig] = None,
        queue: Optional[TimerQueue] = None,
        context: Any = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._config = config or SchedulerConfig()
        self._queue = queue if queue is not None else TimerQueue()
        self._clock = clock or self._queue.now
        self._context = context if context is not None else self._config.default_context
        self._tasks: Dict[str, TaskDefinition] = {}
        self._lock = threading.RLock()

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._tasks

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    @property
    def queue(self) -> TimerQueue:
        return self._queue

    @property
    def context(self) -> Any:
        return self._context

    @property
    def tasks(self) -> Dict[str, TaskDefinition]:
        """Snapshot of the task table."""

        with self._lock:
            return dict(self._tasks)

    def get_task(self, name: str) -> Optional[TaskDefinition]:
        with self._lock:
            return self._tasks.get(name)

    # ------------------------------------------------------------------
    def get_next(self, frequency: str, anchor: Optional[TimestampLike] = None) -> str:
        """Next due time for ``frequency`` from ``anchor`` (default: now)."""

        return get_next(frequency, anchor, now=self._clock())

    def set_context(self, context: Any) -> "Scheduler":
        """Replace the context given to tasks registered from now on."""

        with self._lock:
            self._context = context
        return self

    def schedule(self, task: Union[TaskDefinition, Mapping[str, Any], None]) -> "Scheduler":
        """Register ``task`` (replacing any task of the same name) and queue its first run.

        ``begin_at`` anchors the first occurrence only and is not stored.
        Validation happens before the task table is touched, so a rejected
        task leaves any previous registration in place.
        """

        definition = self._coerce(task)
        if not isinstance(definition.frequency, str) or definition.frequency not in FREQUENCY_OFFSETS:
            raise UnknownFrequency(definition.frequency)
        begin_at = definition.begin_at
        if begin_at == "":
            begin_at = None
        elif begin_at is not None:
            begin_at = parse_timestamp(begin_at)

        with self._lock:
            context = definition.context if definition.context is not None else self._context
            stored = dataclasses.replace(definition, context=context, begin_at=None)
            replaced = stored.name in self._tasks
            self._tasks[stored.name] = stored
            logger.info(
                "%s task %r (%s)", "Replaced" if replaced else "Scheduled", stored.name, stored.frequency
            )
            self.enqueue(stored.name, begin_at)
        return self

    def unschedule(self, name: str) -> "Scheduler":
        """Stop future occurrences of ``name``.

        A firing already handed to the queue still runs once; it simply finds
        no task to re-enqueue.
        """

        with self._lock:
            removed = self._tasks.pop(name, None)
        if removed is not None:
            logger.info("Unscheduled task %r", name)
        return self

    def enqueue(self, name: str, anchor: Optional[TimestampLike] = None) -> Optional[TimerHandle]:
        """Queue the next occurrence of ``name``; ``None`` if it is not scheduled."""

        with self._lock:
            definition = self._tasks.get(name)
            if definition is None:
                logger.debug("Task %r not scheduled, not re-arming", name)
                return None

            def fire() -> None:
                self.enqueue(name)
                definition.callback(definition.context)

            due_at = self.get_next(definition.frequency, anchor)
            handle = self._queue.add_for_time(fire, due_at)
        logger.debug("Task %r due at %s", name, due_at)
        return handle

    # ------------------------------------------------------------------
    @staticmethod
    def _coerce(task: Union[TaskDefinition, Mapping[str, Any], None]) -> TaskDefinition:
        if task is None:
            raise InvalidArguments("task options are required")
        if isinstance(task, Mapping):
            definition = TaskDefinition.from_mapping(task)
        elif isinstance(task, TaskDefinition):
            missing = [key for key in _REQUIRED_FIELDS if getattr(task, key) is None]
            if missing:
                raise InvalidArguments(f"missing task options: {', '.join(missing)}")
            definition = task
        else:
            raise InvalidArguments(f"unsupported task options: {type(task).__name__}")
        if not callable(definition.callback):
            raise InvalidArguments(f"callback for task {definition.name!r} is not callable")
        return definition


__all__ = [
    "FREQUENCY_OFFSETS",
    "InvalidArguments",
    "Scheduler",
    "SchedulerError",
    "TaskCallback",
    "TaskDefinition",
    "UnknownFrequency",
    "get_next",
]
