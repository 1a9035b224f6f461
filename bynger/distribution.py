"""
Distribution engine: assigns watch date-times to an ordered list of items.

A single greedy pass moves a cursor through the scheduling window. Each item
lands at the cursor, the cursor advances by the item's runtime, and the day
rolls over once the per-day quota is met or the daily end time has passed.
Item order is caller intent and is never changed; no item is ever dropped.
"""

import logging
from datetime import date
from datetime import datetime
from datetime import timedelta
from typing import Optional
from typing import Sequence
from typing import Tuple

from bynger.exceptions import CapacityExceededError
from bynger.exceptions import SchedulingError
from bynger.models import DistributionResult
from bynger.models import Episode
from bynger.models import Movie
from bynger.models import Schedulable
from bynger.models import ScheduledEvent
from bynger.models import SchedulingBoundaries
from bynger.models import SchedulingOptions
from bynger.models import ensure_utc
from bynger.models import wrap_item

logger = logging.getLogger(__name__)

# A valid weekday map has an available day within any seven consecutive days
MAX_WEEKDAY_SKIPS = 7


def _next_available_day(day: date, options: SchedulingOptions) -> date:
    """Return ``day`` or the first following day enabled in ``days_of_week``."""
    skips = 0
    while not options.is_available(day):
        skips += 1
        if skips > MAX_WEEKDAY_SKIPS:
            raise SchedulingError(
                f"No available weekday found within {MAX_WEEKDAY_SKIPS} days of {day}"
            )
        day += timedelta(days=1)
    return day


def _rollover(day: date, cursor: datetime, boundaries: SchedulingBoundaries) -> Tuple[date, datetime]:
    """
    Next schedule day and the cursor position on it.

    If the cursor already sits inside the following day's window (possible
    when the daily window spans 24 hours), scheduling continues from the
    cursor instead of skipping that day.
    """
    day += timedelta(days=1)
    while boundaries.day_start(day) < cursor:
        if cursor < boundaries.day_end(day):
            return day, cursor
        day += timedelta(days=1)
    return day, boundaries.day_start(day)


def distribute(
    items: Sequence[Schedulable],
    boundaries: SchedulingBoundaries,
    options: SchedulingOptions,
) -> DistributionResult:
    """
    Schedule every item into the window described by boundaries and options.

    Args:
        items: Episodes and/or movies in the order they should be watched
        boundaries: Start/end dates and daily start/end times (UTC)
        options: Weekday allow-list, per-day quota and end-boundary policy

    Returns:
        DistributionResult with one event per item, in input order, plus any
        window-overflow warnings

    Raises:
        SchedulingError: No weekday is enabled
        CapacityExceededError: The window was exceeded and
            ``options.on_overflow`` is ``"error"``
    """
    result = DistributionResult()
    if not items:
        return result

    if not options.any_day_available:
        raise SchedulingError("days_of_week enables no weekday; nothing can be scheduled")

    window_end = boundaries.end
    first_overflow: Optional[int] = None

    day = boundaries.start_date
    cursor = boundaries.day_start(day)
    scheduled_today = 0

    for index, item in enumerate(items):
        available = _next_available_day(day, options)
        if available != day:
            day = available
            cursor = boundaries.day_start(day)
            scheduled_today = 0

        # Overnight windows cross into the next calendar date, which may be disabled
        if not options.is_available(cursor.date()):
            day = _next_available_day(cursor.date() + timedelta(days=1), options)
            cursor = boundaries.day_start(day)
            scheduled_today = 0

        if options.use_end_date and cursor > window_end:
            if options.on_overflow == "error":
                raise CapacityExceededError(
                    f"Only {index} of {len(items)} items fit before {window_end.isoformat()}",
                    scheduled=index,
                    total=len(items),
                )
            if first_overflow is None:
                first_overflow = index
            result.overflow_count += 1

        result.events.append(ScheduledEvent(scheduled_date=cursor, media=wrap_item(item)))

        cursor += timedelta(minutes=item.runtime)
        scheduled_today += 1

        quota_met = options.eps_per_day > 0 and scheduled_today >= options.eps_per_day
        next_day_opened = cursor >= boundaries.day_start(day + timedelta(days=1))
        if quota_met or next_day_opened or cursor > boundaries.day_end(day):
            day, cursor = _rollover(day, cursor, boundaries)
            scheduled_today = 0

    if result.overflow_count:
        warning = (
            f"{result.overflow_count} of {len(items)} items scheduled past the end "
            f"boundary {window_end.isoformat()} (first overflow: item {first_overflow + 1})"
        )
        logger.warning(warning)
        result.add_warning(warning)

    logger.info(
        f"Distributed {len(result.events)} items between "
        f"{result.events[0].scheduled_date.isoformat()} and "
        f"{result.events[-1].scheduled_date.isoformat()}"
    )
    return result


def schedule_movie(movie: Movie, scheduled_date: datetime) -> ScheduledEvent:
    """Schedule a single movie at a user-chosen date-time."""
    if not isinstance(movie, Movie):
        raise TypeError(f"schedule_movie expects a Movie, got {type(movie).__name__}")
    return ScheduledEvent(scheduled_date=ensure_utc(scheduled_date), media=wrap_item(movie))


def schedule_episode(episode: Episode, scheduled_date: datetime) -> ScheduledEvent:
    """Schedule a single episode at a user-chosen date-time."""
    if not isinstance(episode, Episode):
        raise TypeError(f"schedule_episode expects an Episode, got {type(episode).__name__}")
    return ScheduledEvent(scheduled_date=ensure_utc(scheduled_date), media=wrap_item(episode))
