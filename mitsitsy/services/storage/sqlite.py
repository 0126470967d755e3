"""
SQLite Ledger Store

DESIGN DECISION: One aiosqlite connection per store, in autocommit mode, with
explicit units of work:

    async with db.transaction():
        await db.execute("INSERT ...")
        await db.execute("UPDATE ...")

A unit runs inside BEGIN IMMEDIATE ... COMMIT and rolls back on any
exception. Units are serialized by an asyncio.Lock, and reads issued by other
tasks wait for an open unit to finish, so no caller can observe half of a
multi-row write (one transfer leg, part of a currency sweep).

Writes outside a unit are refused.
"""

import asyncio
import sqlite3
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Optional, Sequence

import aiosqlite
import structlog
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from mitsitsy.config import DatabaseSettings, get_settings
from mitsitsy.services.storage.interface import (
    IntegrityViolationError,
    SchemaError,
    StorageError,
    StoreConnectionError,
)
from mitsitsy.services.storage.schema import MIGRATIONS, SCHEMA_VERSION

logger = structlog.get_logger(__name__)


def _wrap_sqlite_error(error: sqlite3.Error) -> StorageError:
    if isinstance(error, sqlite3.IntegrityError):
        return IntegrityViolationError(f"Constraint violation: {error}")
    return StorageError(f"SQLite error: {error}")


class LedgerDatabase:
    """
    Async SQLite store holding the six ledger tables.

    Args:
        path: Database file path, or ":memory:"
        settings: Database settings (defaults to environment configuration)
    """

    def __init__(
        self,
        path: Optional[str | Path] = None,
        settings: Optional[DatabaseSettings] = None,
    ):
        self._settings = settings or get_settings().database
        self.path = str(path) if path is not None else self._settings.path
        self._conn: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()
        self._owner: Optional[asyncio.Task] = None

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    # -------------------------------------------------------------------------
    # Connection lifecycle
    # -------------------------------------------------------------------------

    async def _open(self) -> aiosqlite.Connection:
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(self.path, isolation_level=None)
        try:
            conn.row_factory = aiosqlite.Row
            await conn.execute("PRAGMA journal_mode=WAL")
            await conn.execute(f"PRAGMA busy_timeout={int(self._settings.busy_timeout_ms)}")
            await conn.execute("PRAGMA foreign_keys=ON")
        except sqlite3.Error:
            await conn.close()
            raise
        return conn

    async def connect(self) -> None:
        """Open the connection (no-op when already open)."""
        if self._conn is not None:
            return
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(sqlite3.OperationalError),
            stop=stop_after_attempt(self._settings.connect_attempts),
            wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
            reraise=True,
        )
        try:
            self._conn = await retrying(self._open)
        except (sqlite3.Error, OSError, RetryError) as e:
            raise StoreConnectionError(f"Could not open ledger database {self.path}: {e}") from e
        logger.info("ledger_db_connected", db_path=self.path)

    async def close(self) -> None:
        """Close the connection."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.info("ledger_db_closed", db_path=self.path)

    async def initialize(self) -> int:
        """
        Connect and bring the schema up to date.

        Returns:
            The schema version after migration
        """
        await self.connect()
        current = await self.schema_version()

        if current > SCHEMA_VERSION:
            raise SchemaError(
                f"Database schema v{current} is newer than supported v{SCHEMA_VERSION}"
            )

        if current < SCHEMA_VERSION:
            async with self.transaction() as conn:
                for version in range(current + 1, SCHEMA_VERSION + 1):
                    await MIGRATIONS[version - 1](conn)
                    logger.info("ledger_schema_migrated", version=version)
                await conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")

        return SCHEMA_VERSION

    async def schema_version(self) -> int:
        row = await self.fetchone("PRAGMA user_version")
        return int(row[0]) if row else 0

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise StoreConnectionError("Not connected to database")
        return self._conn

    # -------------------------------------------------------------------------
    # Units of work
    # -------------------------------------------------------------------------

    def _owns_unit(self) -> bool:
        return self._owner is not None and self._owner is asyncio.current_task()

    @property
    def in_transaction(self) -> bool:
        """True when the calling task is inside a unit of work."""
        return self._owns_unit()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Run the body as one atomic unit.

        Commits on success, rolls back on any exception and re-raises it.
        sqlite3 errors are re-raised as StorageError subclasses. Nested calls
        from the same task join the outer unit.
        """
        conn = self._require_conn()

        if self._owns_unit():
            yield conn
            return

        async with self._lock:
            self._owner = asyncio.current_task()
            try:
                await conn.execute("BEGIN IMMEDIATE")
                try:
                    yield conn
                except BaseException as e:
                    await conn.execute("ROLLBACK")
                    if isinstance(e, sqlite3.Error):
                        raise _wrap_sqlite_error(e) from e
                    raise
                else:
                    try:
                        await conn.execute("COMMIT")
                    except sqlite3.Error as e:
                        await conn.execute("ROLLBACK")
                        raise _wrap_sqlite_error(e) from e
            except sqlite3.Error as e:
                raise _wrap_sqlite_error(e) from e
            finally:
                self._owner = None

    @asynccontextmanager
    async def _reading(self) -> AsyncIterator[aiosqlite.Connection]:
        conn = self._require_conn()
        if self._owns_unit():
            yield conn
        else:
            async with self._lock:
                yield conn

    # -------------------------------------------------------------------------
    # Statement helpers
    # -------------------------------------------------------------------------

    async def execute(self, sql: str, parameters: Sequence[Any] = ()) -> int:
        """
        Run a write statement inside the current unit of work.

        Returns:
            Number of rows affected
        """
        if not self._owns_unit():
            raise RuntimeError("Writes must run inside LedgerDatabase.transaction()")
        conn = self._require_conn()
        cursor = await conn.execute(sql, tuple(parameters))
        count = cursor.rowcount
        await cursor.close()
        return count

    async def executemany(self, sql: str, parameters: list[Sequence[Any]]) -> None:
        """Run a write statement once per parameter tuple inside the current unit."""
        if not self._owns_unit():
            raise RuntimeError("Writes must run inside LedgerDatabase.transaction()")
        conn = self._require_conn()
        await conn.executemany(sql, [tuple(p) for p in parameters])

    async def fetchone(self, sql: str, parameters: Sequence[Any] = ()) -> Optional[aiosqlite.Row]:
        """Single row query."""
        async with self._reading() as conn:
            try:
                cursor = await conn.execute(sql, tuple(parameters))
                row = await cursor.fetchone()
                await cursor.close()
            except sqlite3.Error as e:
                raise _wrap_sqlite_error(e) from e
        return row

    async def fetchall(self, sql: str, parameters: Sequence[Any] = ()) -> list[aiosqlite.Row]:
        """Multi row query."""
        async with self._reading() as conn:
            try:
                cursor = await conn.execute(sql, tuple(parameters))
                rows = await cursor.fetchall()
                await cursor.close()
            except sqlite3.Error as e:
                raise _wrap_sqlite_error(e) from e
        return list(rows)

    async def table_exists(self, table_name: str) -> bool:
        row = await self.fetchone(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
            (table_name,),
        )
        return row is not None

    # -------------------------------------------------------------------------
    # Context manager
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> "LedgerDatabase":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
