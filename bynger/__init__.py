"""
Bynger: binge-watch scheduling core.

Turns a picked set of episodes (or a single movie) into dated watch events,
keeps them in a durable store, and exports them for calendar import.

Main Components:
- Models: Episode, Movie, ScheduledEvent and the scheduling constraints
- Distribution: greedy placement of items under a window, quota and weekday allow-list
- Event Store: SQLite-backed whole-collection store with atomic writes
- Export: Google Calendar CSV and ICS generation
- Catalog: TMDB client supplying episodes and movies

Usage:
    from bynger import EventStore, SchedulingBoundaries, SchedulingOptions, distribute

    result = distribute(episodes, boundaries, SchedulingOptions(eps_per_day=2))
    async with EventStore() as store:
        await store.add(result.events)
        csv_text = export(await store.load(), ExportFormat.GCAL_CSV)
"""

__version__ = "1.0.0"
__license__ = "MIT"

# Public API for external usage
from bynger.catalog import TmdbCatalog
from bynger.distribution import distribute
from bynger.distribution import schedule_episode
from bynger.distribution import schedule_movie
from bynger.event_store import EventStore
from bynger.exceptions import ByngerError
from bynger.exceptions import CapacityExceededError
from bynger.exceptions import CatalogError
from bynger.exceptions import PersistenceError
from bynger.exceptions import SchedulingError
from bynger.exceptions import StaleStoreError
from bynger.exceptions import UnsupportedExportFormatError
from bynger.export import CalendarExporter
from bynger.export import ExportFormat
from bynger.export import export
from bynger.models import DistributionResult
from bynger.models import Episode
from bynger.models import MediaType
from bynger.models import Movie
from bynger.models import ScheduledEvent
from bynger.models import SchedulingBoundaries
from bynger.models import SchedulingOptions

__all__ = [
    "ByngerError",
    "CalendarExporter",
    "CapacityExceededError",
    "CatalogError",
    "DistributionResult",
    "Episode",
    "EventStore",
    "ExportFormat",
    "MediaType",
    "Movie",
    "PersistenceError",
    "ScheduledEvent",
    "SchedulingBoundaries",
    "SchedulingError",
    "SchedulingOptions",
    "StaleStoreError",
    "TmdbCatalog",
    "UnsupportedExportFormatError",
    "distribute",
    "export",
    "schedule_episode",
    "schedule_movie",
]
