"""Configuration schema for a Cadence scheduler process.

These dataclasses describe how the timer queue worker behaves and which tasks a
hosting process registers on start-up.  They are populated from YAML by
:mod:`cadence.config_loader` but can equally be built in code.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Optional, Sequence

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


@dataclass(slots=True)
class TimerQueueConfig:
    """Timing knobs for the timer queue worker thread."""

    max_idle_wait: timedelta = timedelta(seconds=1)
    stop_timeout: timedelta = timedelta(seconds=5)
    thread_name: str = "cadence-timer"


@dataclass(slots=True)
class SchedulerConfig:
    """Scheduler defaults."""

    default_context: Any = None


@dataclass(slots=True)
class TaskConfig:
    """A task registered by the hosting process."""

    name: str
    frequency: str
    begin_at: Optional[str] = None
    context: Any = None


@dataclass(slots=True)
class CadenceConfig:
    """Top-level configuration bundle."""

    timer_queue: TimerQueueConfig = field(default_factory=TimerQueueConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    tasks: Sequence[TaskConfig] = field(default_factory=tuple)
    log_level: str = "INFO"
