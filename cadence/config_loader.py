"""Utilities to load :mod:`cadence.config` structures from YAML files."""
from __future__ import annotations

import datetime as _dt
from pathlib import Path
from typing import Any, Mapping

import yaml

from .config import LOG_LEVELS, CadenceConfig, SchedulerConfig, TaskConfig, TimerQueueConfig

_DURATION_UNITS = {
    "s": _dt.timedelta(seconds=1),
    "m": _dt.timedelta(minutes=1),
    "h": _dt.timedelta(hours=1),
    "d": _dt.timedelta(days=1),
}


def load_config(path: Path) -> CadenceConfig:
    """Load a configuration file into :class:`CadenceConfig`.

    Durations accept human friendly values such as ``"30s"`` or ``"5m"`` as
    well as plain seconds.  ``begin_at`` values may be
    written as quoted ``YYYY-MM-DD HH:MM:SS`` strings or as YAML timestamps.
    Fields omitted in the file fall back to the defaults declared in
    :mod:`cadence.config`.
    """

    raw = _load_yaml(path)
    defaults = TimerQueueConfig()

    queue_section = raw.get("timer_queue") or {}
    timer_queue = TimerQueueConfig(
        max_idle_wait=parse_duration(queue_section.get("max_idle_wait", defaults.max_idle_wait)),
        stop_timeout=parse_duration(queue_section.get("stop_timeout", defaults.stop_timeout)),
        thread_name=str(queue_section.get("thread_name", defaults.thread_name)),
    )

    scheduler_section = raw.get("scheduler") or {}
    scheduler = SchedulerConfig(default_context=scheduler_section.get("default_context"))

    tasks = []
    for item in raw.get("tasks") or []:
        if not isinstance(item, Mapping):
            raise ValueError(f"task entry must be a mapping: {item!r}")
        if "name" not in item or "frequency" not in item:
            raise ValueError(f"task entry requires name and frequency: {item!r}")
        begin_at = item.get("begin_at")
        tasks.append(
            TaskConfig(
                name=str(item["name"]),
                frequency=str(item["frequency"]),
                begin_at=str(begin_at) if begin_at is not None else None,
                context=item.get("context"),
            )
        )

    log_level = str(raw.get("log_level", "INFO")).upper()
    if log_level not in LOG_LEVELS:
        raise ValueError(f"unknown log level: {log_level}")

    return CadenceConfig(
        timer_queue=timer_queue,
        scheduler=scheduler,
        tasks=tuple(tasks),
        log_level=log_level,
    )


def _load_yaml(path: Path) -> Mapping[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle)
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValueError("configuration root must be a mapping")
    return data


def parse_duration(value: Any) -> _dt.timedelta:
    """Convert ``"30s"``, ``"5m"``, ``"1.5h"``, ``"2d"`` or plain seconds to a timedelta."""

    if isinstance(value, _dt.timedelta):
        return value
    if isinstance(value, (int, float)):
        return _dt.timedelta(seconds=float(value))
    if not isinstance(value, str):
        raise ValueError(f"unsupported duration value: {value!r}")
    value = value.strip()
    if value.isdigit():
        return _dt.timedelta(seconds=int(value))
    unit = value[-1:].lower()
    if unit not in _DURATION_UNITS:
        raise ValueError(f"unknown duration unit: {value}")
    amount = float(value[:-1])
    base = _DURATION_UNITS[unit]
    return _dt.timedelta(seconds=base.total_seconds() * amount)
