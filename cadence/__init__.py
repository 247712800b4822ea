"""Cadence: recurring named tasks on top of a one-shot timer queue."""

from .cli import main as cli_main
from .config_loader import load_config
from .services import (
    InvalidArguments,
    Scheduler,
    TaskDefinition,
    TimerQueue,
    UnknownFrequency,
)

__all__ = [
    "cli_main",
    "load_config",
    "InvalidArguments",
    "Scheduler",
    "TaskDefinition",
    "TimerQueue",
    "UnknownFrequency",
    "config",
    "services",
    "timestamps",
]
