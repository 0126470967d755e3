"""
Shared plumbing for the ledger services.

DESIGN DECISION: The service boundary is the only place exceptions are turned
into results. Inside a service method, refusals are raised as LedgerError
(usually inside a unit of work, so raising also rolls back); `_guard` catches
them and storage failures on the way out:

    LedgerError   -> OperationResult.fail(kind, message, issues)
    StorageError  -> logged with traceback, OperationResult.fail(STORAGE_FAILURE)

Anything else is a bug and propagates.
"""

from typing import Awaitable, Callable, Optional

from mitsitsy.config import LedgerSettings, get_settings
from mitsitsy.events import EventLogger
from mitsitsy.models.results import ErrorKind, OperationResult
from mitsitsy.services.errors import LedgerError
from mitsitsy.services.storage import StorageError
from mitsitsy.services.storage.sqlite import LedgerDatabase


STORAGE_FAILURE_MESSAGE = "Could not save your changes. Please try again."


class LedgerService:
    """
    Base class holding the database, settings and event logger.

    Args:
        db: Connected and migrated database
        settings: Ledger settings (defaults to environment configuration)
        event_logger: Structured event logger
    """

    def __init__(
        self,
        db: LedgerDatabase,
        settings: Optional[LedgerSettings] = None,
        event_logger: Optional[EventLogger] = None,
    ):
        self._db = db
        self._settings = settings or get_settings().ledger
        self._events = event_logger or EventLogger()

    async def _guard(
        self,
        operation: str,
        action: Callable[[], Awaitable[OperationResult]],
        details: Optional[dict] = None,
    ) -> OperationResult:
        """Run one mutating operation and convert expected failures into results."""
        try:
            return await action()
        except LedgerError as e:
            return OperationResult.fail(e.kind, e.message, e.issues)
        except StorageError as e:
            await self._events.log_storage_error(operation, e, details)
            return OperationResult.fail(ErrorKind.STORAGE_FAILURE, STORAGE_FAILURE_MESSAGE)
