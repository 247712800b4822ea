"""Scheduling services."""

from .scheduler import (
    FREQUENCY_OFFSETS,
    InvalidArguments,
    Scheduler,
    SchedulerError,
    TaskDefinition,
    UnknownFrequency,
    get_next,
)
from .timer_queue import TimerHandle, TimerQueue

__all__ = [
    "FREQUENCY_OFFSETS",
    "InvalidArguments",
    "Scheduler",
    "SchedulerError",
    "TaskDefinition",
    "TimerHandle",
    "TimerQueue",
    "UnknownFrequency",
    "get_next",
]
