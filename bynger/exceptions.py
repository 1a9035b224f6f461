"""
Error types raised by the scheduling core.

Every failure the core reports derives from ``ByngerError`` so callers
(the CLI, a UI layer) can catch one type and turn it into a message.
"""

from typing import Optional


class ByngerError(Exception):
    """Base class for all scheduling core errors."""


class SchedulingError(ByngerError, ValueError):
    """A distribution precondition was violated (e.g. no weekday enabled)."""


class CapacityExceededError(SchedulingError):
    """
    Items did not fit into the requested window.

    Only raised when the caller asked for ``on_overflow="error"``; the
    default behaviour keeps scheduling and reports a warning instead.
    """

    def __init__(self, message: str, scheduled: int, total: int) -> None:
        super().__init__(message)
        self.scheduled = scheduled
        self.total = total


class PersistenceError(ByngerError):
    """The event store could not commit a write. Prior state is intact."""


class StaleStoreError(PersistenceError):
    """The stored collection changed between read and write."""

    def __init__(self, message: str, expected_version: Optional[int] = None) -> None:
        super().__init__(message)
        self.expected_version = expected_version


class UnsupportedExportFormatError(ByngerError, ValueError):
    """The requested export format is not implemented."""


class CatalogError(ByngerError):
    """The metadata catalog returned an error or an unusable payload."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status
