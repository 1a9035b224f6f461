"""
Command-line entry point.

Usage:
    python -m bynger.main schedule 1396 --start-date 2024-01-01 --start-time 20:00 \
        --end-date 2024-01-31 --end-time 23:00 --per-day 2 --days 0,1,2,3,4
    python -m bynger.main schedule-movie 603 --at 2024-01-06T19:30
    python -m bynger.main day 2024-01-01
    python -m bynger.main watched 5d0c...
    python -m bynger.main export --format ics
"""

import argparse
import asyncio
import logging
import sys
from datetime import date
from datetime import datetime
from datetime import time
from pathlib import Path
from typing import List
from typing import Optional
from typing import Sequence

from bynger.catalog import TmdbCatalog
from bynger.catalog import resolve_api_key
from bynger.distribution import distribute
from bynger.distribution import schedule_movie
from bynger.event_store import EventStore
from bynger.exceptions import ByngerError
from bynger.export import CalendarExporter
from bynger.export import ExportFormat
from bynger.models import ScheduledEvent
from bynger.models import SchedulingBoundaries
from bynger.models import SchedulingOptions
from bynger.settings import get_settings

logger = logging.getLogger(__name__)


def _int_list(value: str) -> List[int]:
    try:
        return [int(part) for part in value.split(",") if part.strip()]
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected comma-separated integers, got {value!r}") from exc


def _weekdays(value: str) -> List[int]:
    days = _int_list(value)
    if any(day < 0 or day > 6 for day in days):
        raise argparse.ArgumentTypeError("weekdays must be between 0 (Monday) and 6 (Sunday)")
    return days


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bynger", description="Plan when to watch your shows.")
    parser.add_argument("--db", type=Path, default=None, help="Event store database path")
    commands = parser.add_subparsers(dest="command", required=True)

    schedule = commands.add_parser("schedule", help="Distribute a show's episodes over a window")
    schedule.add_argument("show_id", type=int)
    schedule.add_argument("--seasons", type=_int_list, default=None, help="e.g. 1,2")
    schedule.add_argument("--start-date", type=date.fromisoformat, required=True)
    schedule.add_argument("--start-time", type=time.fromisoformat, required=True)
    schedule.add_argument("--end-date", type=date.fromisoformat, required=True)
    schedule.add_argument("--end-time", type=time.fromisoformat, required=True)
    schedule.add_argument("--per-day", type=int, default=0, help="0 fills each day")
    schedule.add_argument("--days", type=_weekdays, default=list(range(7)),
                          help="Available weekdays, Monday=0 (default: all)")
    schedule.add_argument("--use-end-date", action="store_true")
    schedule.add_argument("--strict", action="store_true",
                          help="Fail instead of warning when the window overflows")

    movie = commands.add_parser("schedule-movie", help="Schedule a movie at a date-time")
    movie.add_argument("movie_id", type=int)
    movie.add_argument("--at", type=datetime.fromisoformat, required=True)

    day = commands.add_parser("day", help="List the events on a date")
    day.add_argument("date", type=date.fromisoformat)

    watched = commands.add_parser("watched", help="Mark an event watched")
    watched.add_argument("event_id")
    watched.add_argument("--unwatch", action="store_true")

    remove = commands.add_parser("remove", help="Remove an event")
    remove.add_argument("event_id")

    reschedule = commands.add_parser("reschedule", help="Move an event")
    reschedule.add_argument("event_id")
    reschedule.add_argument("at", type=datetime.fromisoformat)

    export = commands.add_parser("export", help="Export the schedule to a file")
    export.add_argument("--format", default=ExportFormat.GCAL_CSV.value,
                        help="gcal (CSV) or ics")
    export.add_argument("--output", type=Path, default=None, help="Output directory")

    commands.add_parser("purge", help="Delete every scheduled event")

    api_key = commands.add_parser("set-api-key", help="Save the TMDB API key")
    api_key.add_argument("api_key")

    return parser


def _describe(event: ScheduledEvent) -> str:
    mark = "x" if event.watched else " "
    return f"[{mark}] {event.scheduled_date:%Y-%m-%d %H:%M} {event.subject}  ({event.id})"


async def _schedule_show(store: EventStore, args: argparse.Namespace) -> int:
    boundaries = SchedulingBoundaries(
        start_date=args.start_date,
        start_time=args.start_time,
        end_date=args.end_date,
        end_time=args.end_time,
    )
    options = SchedulingOptions(
        days_of_week={day: day in args.days for day in range(7)},
        eps_per_day=args.per_day,
        use_end_date=args.use_end_date,
        on_overflow="error" if args.strict else "warn",
    )

    async with TmdbCatalog(await resolve_api_key(store)) as catalog:
        episodes = await catalog.get_episodes(args.show_id, args.seasons)

    result = distribute(episodes, boundaries, options)
    await store.add(result.events)
    for warning in result.warnings:
        print(f"warning: {warning}", file=sys.stderr)
    print(f"Scheduled {len(result.events)} episodes")
    return 0


async def _schedule_movie(store: EventStore, args: argparse.Namespace) -> int:
    async with TmdbCatalog(await resolve_api_key(store)) as catalog:
        movie = await catalog.get_movie(args.movie_id)

    event = schedule_movie(movie, args.at)
    await store.add([event])
    print(_describe(event))
    return 0


async def _run(args: argparse.Namespace) -> int:
    async with EventStore(args.db) as store:
        if args.command == "schedule":
            return await _schedule_show(store, args)

        if args.command == "schedule-movie":
            return await _schedule_movie(store, args)

        if args.command == "day":
            for event in await store.events_on(args.date):
                print(_describe(event))
            return 0

        if args.command == "watched":
            found = await store.set_watched(args.event_id, watched=not args.unwatch)
        elif args.command == "remove":
            found = await store.remove(args.event_id)
        elif args.command == "reschedule":
            found = await store.reschedule(args.event_id, args.at)
        elif args.command == "export":
            path = await CalendarExporter(store).export_to_file(args.format, args.output)
            print(path)
            return 0
        elif args.command == "purge":
            await store.purge()
            return 0
        elif args.command == "set-api-key":
            await store.set_api_key(args.api_key)
            return 0
        else:
            raise ValueError(f"Unknown command {args.command}")

        if not found:
            print(f"No event with id {args.event_id}", file=sys.stderr)
        return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run one command; returns the process exit code."""
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(_run(args))
    except (ByngerError, ValueError) as exc:
        logger.error(f"{args.command} failed: {exc}")
        print(f"error: {exc}", file=sys.stderr)
        return 1


def run() -> int:
    """Console entry point: configure logging, then run."""
    get_settings().setup_logging()
    return main()


if __name__ == "__main__":
    sys.exit(run())
