"""Command line entry point for running Cadence schedules."""
from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
from pathlib import Path
from typing import Any, Dict, Sequence

from .config import LOG_LEVELS
from .config_loader import load_config, parse_duration
from .services import Scheduler, SchedulerError, TaskDefinition, TimerQueue, get_next
from .timestamps import format_timestamp

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Cadence recurring task scheduler")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="Logging level (overrides the log_level configuration key)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    next_time = sub.add_parser(
        "next-time",
        help="Print the next due time for a frequency",
    )
    next_time.add_argument(
        "--frequency",
        required=True,
        help="One of deciminute, minute, hourly, daily, weekly, monthly",
    )
    next_time.add_argument(
        "--anchor",
        default=None,
        help="Base timestamp (YYYY-MM-DD HH:MM:SS), defaults to now",
    )

    run = sub.add_parser(
        "run",
        help="Register the configured tasks and run them for a while",
    )
    run.add_argument(
        "--config",
        type=Path,
        required=True,
        help="Path to the YAML configuration file",
    )
    run.add_argument(
        "--duration",
        type=parse_duration,
        default="60s",
        help="How long to keep the scheduler running, e.g. 90, 30s or 5m (default: 60s)",
    )

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "next-time":
        return _command_next_time(args)
    if args.command == "run":
        return _command_run(args)

    parser.error("unknown command")
    return 1


def _command_next_time(args: argparse.Namespace) -> int:
    logging.basicConfig(level=args.log_level or "WARNING", format=LOG_FORMAT)
    try:
        print(get_next(args.frequency, args.anchor))
    except (SchedulerError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    return 0


def _command_run(args: argparse.Namespace) -> int:
    try:
        config = load_config(args.config)
    except (OSError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    logging.basicConfig(level=args.log_level or config.log_level, format=LOG_FORMAT)

    queue = TimerQueue(config.timer_queue)
    scheduler = Scheduler(config.scheduler, queue=queue)
    fired: Dict[str, int] = {}

    try:
        for task in config.tasks:
            fired[task.name] = 0
            scheduler.schedule(
                TaskDefinition(
                    name=task.name,
                    frequency=task.frequency,
                    callback=_task_logger(task.name, fired),
                    context=task.context,
                    begin_at=task.begin_at,
                )
            )
    except (SchedulerError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    stop_event = threading.Event()
    with queue:
        try:
            stop_event.wait(max(1.0, args.duration.total_seconds()))
        except KeyboardInterrupt:  # pragma: no cover - interactive use
            print("Interrupted, stopping scheduler...", file=sys.stderr)

    next_due = queue.next_due()
    output = {
        "fired": fired,
        "pending": len(queue),
        "next_due": format_timestamp(next_due) if next_due else None,
    }
    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0


def _task_logger(name: str, fired: Dict[str, int]):
    def callback(context: Any) -> None:
        fired[name] += 1
        logger.info("Task %s fired (run %d) context=%r", name, fired[name], context)

    return callback


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
