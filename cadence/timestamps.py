"""Second-precision wall-clock timestamps shared by the scheduler and timer queue."""
from __future__ import annotations

from datetime import datetime
from typing import Union

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

TimestampLike = Union[str, datetime]


def format_timestamp(value: datetime) -> str:
    """Render ``value`` as ``YYYY-MM-DD HH:MM:SS`` (sub-second part dropped)."""

    return _to_local_naive(value).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: TimestampLike) -> datetime:
    """Convert a timestamp string or :class:`datetime` to a naive local datetime.

    Strings in the canonical ``YYYY-MM-DD HH:MM:SS`` form are preferred, but any
    ISO 8601 value accepted by :meth:`datetime.fromisoformat` is tolerated.
    Aware datetimes are converted to local time before the zone is dropped.
    """

    if isinstance(value, datetime):
        return _to_local_naive(value)
    if not isinstance(value, str):
        raise ValueError(f"unsupported timestamp value: {value!r}")
    text = value.strip()
    try:
        return datetime.strptime(text, TIMESTAMP_FORMAT)
    except ValueError:
        pass
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValueError(f"invalid timestamp: {value!r}") from None
    return _to_local_naive(parsed)


def _to_local_naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value


__all__ = ["TIMESTAMP_FORMAT", "TimestampLike", "format_timestamp", "parse_timestamp"]
