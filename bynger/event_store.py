"""
Event store for scheduled watch events.

The whole schedule lives under one key of a small SQLite key/value table,
mirroring the browser local-storage layout the schedule was first kept in.
Every mutation reads the full collection, applies one change and writes the
full collection back in a single statement: either the new collection is
committed or the previous one stays intact.

Writes are serialized within a process by an asyncio lock. Across processes
each stored blob carries a version number and a write only succeeds if the
version it read is still current (compare-and-swap).
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import date
from datetime import datetime
from pathlib import Path
from typing import AsyncGenerator
from typing import Callable
from typing import Iterable
from typing import List
from typing import Optional
from typing import Tuple
from typing import Union
from uuid import UUID

import aiosqlite
from pydantic import TypeAdapter
from pydantic import ValidationError

from bynger.exceptions import PersistenceError
from bynger.exceptions import StaleStoreError
from bynger.models import ScheduledEvent
from bynger.models import ensure_utc
from bynger.settings import get_settings

logger = logging.getLogger(__name__)

_EVENTS = TypeAdapter(List[ScheduledEvent])

EventId = Union[UUID, str]


def _as_uuid(event_id: EventId) -> UUID:
    return event_id if isinstance(event_id, UUID) else UUID(str(event_id))


def _sort_by_date(events: Iterable[ScheduledEvent]) -> List[ScheduledEvent]:
    """Ascending by scheduled date; stable, so ties keep insertion order."""
    return sorted(events, key=lambda event: event.scheduled_date)


class EventStore:
    """
    Async SQLite-backed store for the collection of scheduled events.

    Handles schema creation, loading with graceful degradation, and the
    whole-collection read-modify-write mutations used by the UI layer
    (add, remove, mark watched, reschedule, purge).
    """

    def __init__(self, db_path: Optional[Path] = None) -> None:
        """Initialize the store with an optional custom database path."""
        settings = get_settings()
        self.db_path = db_path or settings.db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.schedule_key = settings.schedule_key
        self.api_key_key = settings.api_key_key
        self.events: List[ScheduledEvent] = []
        self._connection: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Create the key/value table if needed."""
        await self._ensure_schema()
        logger.info(f"Event store initialized at {self.db_path}")

    async def close(self) -> None:
        """Close database connection cleanly."""
        async with self._lock:
            if self._connection:
                await self._connection.close()
                self._connection = None

    @asynccontextmanager
    async def _get_connection(self) -> AsyncGenerator[aiosqlite.Connection, None]:
        """Get database connection with proper lifecycle management."""
        async with self._lock:
            if not self._connection:
                self._connection = await aiosqlite.connect(
                    self.db_path,
                    timeout=30.0,
                    isolation_level=None,  # Autocommit mode
                )
                await self._connection.execute("PRAGMA journal_mode = WAL")
                await self._connection.execute("PRAGMA synchronous = NORMAL")

            yield self._connection

    async def _ensure_schema(self) -> None:
        """Create the key/value table if it doesn't exist."""
        schema_sql = """
        CREATE TABLE IF NOT EXISTS store (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            version INTEGER NOT NULL DEFAULT 1,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );
        """

        async with self._get_connection() as conn:
            await conn.executescript(schema_sql)
            await conn.commit()

    async def _read(self) -> Tuple[List[ScheduledEvent], Optional[int]]:
        """
        Read the stored collection and its version.

        Returns:
            (events, version); version is None when nothing is stored yet.
            A blob that fails validation reads as empty at its version so
            the next write replaces it.
        """
        try:
            async with self._get_connection() as conn:
                cursor = await conn.execute(
                    "SELECT value, version FROM store WHERE key = ?",
                    (self.schedule_key,)
                )
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise PersistenceError(f"Failed to read {self.schedule_key}: {exc}") from exc

        if row is None:
            return [], None

        try:
            events = _EVENTS.validate_json(row[0])
        except ValidationError as exc:
            logger.error(
                f"Stored schedule under {self.schedule_key} is corrupt, treating as empty: "
                f"{exc.error_count()} validation errors"
            )
            return [], row[1]

        return events, row[1]

    async def _write(self, events: List[ScheduledEvent], expected_version: Optional[int]) -> int:
        """
        Replace the stored collection if its version is still ``expected_version``.

        Returns:
            The new version number
        """
        payload = _EVENTS.dump_json(events).decode("utf-8")
        now = datetime.now().isoformat()

        try:
            async with self._get_connection() as conn:
                if expected_version is None:
                    cursor = await conn.execute(
                        """
                        INSERT OR IGNORE INTO store (key, value, version, updated_at)
                        VALUES (?, ?, 1, ?)
                        """,
                        (self.schedule_key, payload, now)
                    )
                else:
                    cursor = await conn.execute(
                        """
                        UPDATE store SET value = ?, version = version + 1, updated_at = ?
                        WHERE key = ? AND version = ?
                        """,
                        (payload, now, self.schedule_key, expected_version)
                    )
                await conn.commit()
        except aiosqlite.Error as exc:
            raise PersistenceError(f"Failed to persist {len(events)} events: {exc}") from exc

        if cursor.rowcount == 0:
            raise StaleStoreError(
                f"{self.schedule_key} changed since it was read (expected version {expected_version})",
                expected_version=expected_version,
            )

        new_version = (expected_version or 0) + 1
        logger.debug(f"Persisted {len(events)} events as version {new_version}")
        return new_version

    async def _mutate(
        self,
        change: Callable[[List[ScheduledEvent]], Optional[List[ScheduledEvent]]],
    ) -> bool:
        """
        Read-modify-write the whole collection.

        ``change`` returns the new collection, or None for a no-op, in which
        case nothing is written.
        """
        async with self._write_lock:
            current, version = await self._read()
            updated = change(list(current))
            if updated is None:
                self.events = current
                return False

            await self._write(updated, version)
            self.events = updated
            return True

    async def load(self) -> List[ScheduledEvent]:
        """
        Load the persisted collection.

        Never raises: a missing, unreadable or corrupt store loads as empty.
        """
        try:
            events, _ = await self._read()
        except PersistenceError as exc:
            logger.error(f"Could not load schedule, treating as empty: {exc}")
            events = []

        self.events = events
        return list(events)

    async def add(self, events: Iterable[ScheduledEvent]) -> List[ScheduledEvent]:
        """
        Merge new events into the stored collection.

        Args:
            events: Events to append

        Returns:
            The full collection, sorted by scheduled date
        """
        new_events = list(events)
        if not new_events:
            return await self.load()

        await self._mutate(lambda current: _sort_by_date(current + new_events))
        logger.info(f"Added {len(new_events)} events; store now holds {len(self.events)}")
        return list(self.events)

    async def get(self, event_id: EventId) -> Optional[ScheduledEvent]:
        """Get a single event by id, or None."""
        target = _as_uuid(event_id)
        for event in await self.load():
            if event.id == target:
                return event
        return None

    async def _update_one(
        self,
        event_id: EventId,
        update: Callable[[ScheduledEvent], Optional[ScheduledEvent]],
    ) -> bool:
        """Apply ``update`` to the matching event; None from ``update`` removes it."""
        target = _as_uuid(event_id)

        def change(current: List[ScheduledEvent]) -> Optional[List[ScheduledEvent]]:
            for index, event in enumerate(current):
                if event.id == target:
                    replacement = update(event)
                    if replacement is None:
                        del current[index]
                    else:
                        current[index] = replacement
                    return current
            return None

        changed = await self._mutate(change)
        if not changed:
            logger.debug(f"No event with id {target}; nothing to update")
        return changed

    async def remove(self, event_id: EventId) -> bool:
        """Delete an event. Returns False if no event has that id."""
        removed = await self._update_one(event_id, lambda event: None)
        if removed:
            logger.info(f"Removed event {event_id}")
        return removed

    async def set_watched(self, event_id: EventId, watched: bool = True) -> bool:
        """Mark an event watched (or unwatched). Returns False if no event has that id."""
        return await self._update_one(
            event_id, lambda event: event.model_copy(update={"watched": watched})
        )

    async def reschedule(self, event_id: EventId, new_date: datetime) -> bool:
        """
        Move an event to a new date-time.

        The collection is not re-sorted; readers that need order sort on
        read (see events_on and the export engine).
        """
        scheduled_date = ensure_utc(new_date)
        rescheduled = await self._update_one(
            event_id, lambda event: event.model_copy(update={"scheduled_date": scheduled_date})
        )
        if rescheduled:
            logger.info(f"Rescheduled event {event_id} to {scheduled_date.isoformat()}")
        return rescheduled

    async def purge(self) -> None:
        """Delete every scheduled event."""
        await self._mutate(lambda current: [])
        logger.info("Purged all scheduled events")

    async def events_on(self, day: date) -> List[ScheduledEvent]:
        """Events whose UTC date is ``day``, ordered by scheduled time."""
        return _sort_by_date(event for event in await self.load() if event.date_only == day)

    async def get_api_key(self) -> Optional[str]:
        """Get the saved catalog API key, if any."""
        try:
            async with self._get_connection() as conn:
                cursor = await conn.execute(
                    "SELECT value FROM store WHERE key = ?",
                    (self.api_key_key,)
                )
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            logger.error(f"Could not read API key: {exc}")
            return None

        return row[0] if row and row[0] else None

    async def set_api_key(self, api_key: str) -> None:
        """Save the catalog API key."""
        try:
            async with self._get_connection() as conn:
                await conn.execute(
                    """
                    INSERT OR REPLACE INTO store (key, value, version, updated_at)
                    VALUES (?, ?, 1, ?)
                    """,
                    (self.api_key_key, api_key.strip(), datetime.now().isoformat())
                )
                await conn.commit()
        except aiosqlite.Error as exc:
            raise PersistenceError(f"Failed to save API key: {exc}") from exc

    async def __aenter__(self) -> "EventStore":
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
