"""
Calendar export module.

Serializes scheduled events into calendar-import formats: a Google Calendar
style CSV table and an RFC 5545 ICS calendar. Output is deterministic: the
same events yield identical text regardless of the order they are passed in.
"""

from __future__ import annotations

import csv
import io
import logging
from datetime import datetime
from datetime import timezone
from enum import Enum
from pathlib import Path
from typing import Iterable
from typing import List

from icalendar import Calendar
from icalendar import Event

from bynger.event_store import EventStore
from bynger.exceptions import UnsupportedExportFormatError
from bynger.models import ScheduledEvent
from bynger.settings import get_settings

logger = logging.getLogger(__name__)

GCAL_HEADER = [
    "Subject",
    "Start Date",
    "Start Time",
    "End Date",
    "End Time",
    "All Day Event",
    "Description",
    "Location",
    "Private",
]

DATE_FORMAT = "%m/%d/%y"
TIME_FORMAT = "%I:%M %p"


class ExportFormat(str, Enum):
    """Supported export formats."""

    GCAL_CSV = "gcal"
    ICS = "ics"

    @property
    def extension(self) -> str:
        return "csv" if self is ExportFormat.GCAL_CSV else "ics"

    @property
    def mime_type(self) -> str:
        return "text/csv" if self is ExportFormat.GCAL_CSV else "text/calendar"


def resolve_format(fmt: ExportFormat | str) -> ExportFormat:
    """Map a format name to ExportFormat, failing loudly on unknown names."""
    if isinstance(fmt, ExportFormat):
        return fmt
    try:
        return ExportFormat(str(fmt).strip().lower())
    except ValueError as exc:
        supported = ", ".join(f.value for f in ExportFormat)
        raise UnsupportedExportFormatError(
            f"Export format '{fmt}' is not implemented (supported: {supported})"
        ) from exc


def export_filename(fmt: ExportFormat | str, now: datetime | None = None) -> str:
    """File name for an export, stamped with the current UTC time."""
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%d_%H%M%S")
    return f"bynger_event_export_{stamp}.{resolve_format(fmt).extension}"


def _gcal_row(event: ScheduledEvent) -> List[str]:
    start = event.scheduled_date
    end = event.end_date
    return [
        event.subject,
        start.strftime(DATE_FORMAT),
        start.strftime(TIME_FORMAT),
        # Events never span midnight in this format
        start.strftime(DATE_FORMAT),
        end.strftime(TIME_FORMAT),
        "False",
        event.description,
        "",
        "True",
    ]


def _to_gcal_csv(events: List[ScheduledEvent]) -> str:
    buffer = io.StringIO()
    # Header text is fixed, including the space after each comma
    buffer.write(", ".join(GCAL_HEADER) + "\n")
    writer = csv.writer(buffer, lineterminator="\n")
    for event in events:
        writer.writerow(_gcal_row(event))
    return buffer.getvalue()


def _to_ics(events: List[ScheduledEvent], generated_at: datetime | None) -> str:
    settings = get_settings()
    stamp = generated_at or datetime.now(timezone.utc)

    cal = Calendar()
    cal.add('prodid', '-//Bynger//watch-schedule//EN')
    cal.add('version', '2.0')
    cal.add('calscale', 'GREGORIAN')
    cal.add('method', 'PUBLISH')
    cal.add('x-wr-calname', settings.calendar_name)

    for event in events:
        ev = Event()
        ev.add('uid', f"{event.id}@bynger")
        ev.add('dtstart', event.scheduled_date)
        ev.add('dtend', event.end_date)
        ev.add('dtstamp', stamp)
        ev.add('summary', event.subject)
        if event.description:
            ev.add('description', event.description)
        ev.add('categories', [event.media_type.value])
        ev.add('class', 'PRIVATE')
        cal.add_component(ev)

    return cal.to_ical().decode("utf-8")


def export(
    events: Iterable[ScheduledEvent],
    fmt: ExportFormat | str = ExportFormat.GCAL_CSV,
    generated_at: datetime | None = None,
) -> str:
    """
    Serialize events into the requested calendar format.

    Args:
        events: Events to export, in any order
        fmt: ExportFormat or its name ("gcal", "ics")
        generated_at: ICS DTSTAMP; defaults to now

    Returns:
        The export as text

    Raises:
        UnsupportedExportFormatError: ``fmt`` is not implemented
    """
    export_format = resolve_format(fmt)
    ordered = sorted(events, key=lambda event: event.scheduled_date)

    if export_format is ExportFormat.GCAL_CSV:
        return _to_gcal_csv(ordered)
    if export_format is ExportFormat.ICS:
        return _to_ics(ordered, generated_at)

    raise UnsupportedExportFormatError(f"Export format '{export_format.value}' is not implemented")


class CalendarExporter:
    """Export the stored schedule to text or to a timestamped file."""

    def __init__(self, store: EventStore | None = None):
        self.store = store or EventStore()
        self.settings = get_settings()

    async def export(self, fmt: ExportFormat | str = ExportFormat.GCAL_CSV) -> str:
        """Export every stored event."""
        events = await self.store.load()
        return export(events, fmt)

    async def export_to_file(
        self,
        fmt: ExportFormat | str = ExportFormat.GCAL_CSV,
        directory: Path | None = None,
        now: datetime | None = None,
    ) -> Path:
        """Write the export under ``directory`` (default: settings.export_dir)."""
        content = await self.export(fmt)

        target_dir = directory or self.settings.export_dir
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / export_filename(fmt, now)
        path.write_text(content, encoding="utf-8")

        logger.info(f"Exported schedule to {path}")
        return path
