"""
Tests for the SQLite store: migrations, units of work, error mapping.
"""

import asyncio

import pytest
import pytest_asyncio

from mitsitsy.config import DatabaseSettings
from mitsitsy.ledger import Ledger
from mitsitsy.models.ledger import (
    SYSTEM_CATEGORY_INCOME_ID,
    SYSTEM_CATEGORY_TRANSFER_ID,
    utc_now,
)
from mitsitsy.services.storage import (
    LEDGER_TABLES,
    SCHEMA_VERSION,
    AccountRepository,
    CategoryRepository,
    IntegrityViolationError,
    LedgerDatabase,
    SchemaError,
    SettingsRepository,
)
from mitsitsy.services.storage.schema import MIGRATIONS, to_db_timestamp


@pytest.fixture
def db_settings() -> DatabaseSettings:
    return DatabaseSettings(_env_file=None, busy_timeout_ms=1000, connect_attempts=1)


@pytest_asyncio.fixture
async def db(tmp_path, db_settings):
    database = LedgerDatabase(tmp_path / "ledger.db", settings=db_settings)
    await database.initialize()
    yield database
    await database.close()


async def _count(db: LedgerDatabase, table: str) -> int:
    row = await db.fetchone(f"SELECT COUNT(*) FROM {table}")
    return int(row[0])


class TestMigrations:
    """Tests for schema creation and upgrades."""

    @pytest.mark.asyncio
    async def test_fresh_file_reaches_current_version(self, db):
        """Test that every table exists after initialize()."""
        assert await db.schema_version() == SCHEMA_VERSION
        for table in LEDGER_TABLES:
            assert await db.table_exists(table), table

    @pytest.mark.asyncio
    async def test_system_categories_are_seeded(self, db):
        """Test that the income and transfer categories exist."""
        categories = CategoryRepository(db)
        income = await categories.get(SYSTEM_CATEGORY_INCOME_ID)
        transfer = await categories.get(SYSTEM_CATEGORY_TRANSFER_ID)
        assert income is not None and income.is_default
        assert transfer is not None and transfer.category_type.value == "transfer"

    @pytest.mark.asyncio
    async def test_default_settings_are_seeded(self, db):
        """Test the settings written by the last migration."""
        settings = await SettingsRepository(db).all()
        assert settings["theme_id"] == "turquoise"
        assert settings["reminder_frequency"] == "1h"
        assert settings["balance_hidden"] == "0"

    @pytest.mark.asyncio
    async def test_reopening_is_idempotent(self, tmp_path, db_settings):
        """Test that a second initialize() changes nothing."""
        path = tmp_path / "ledger.db"
        async with LedgerDatabase(path, settings=db_settings) as first:
            categories = await _count(first, "categories")
        async with LedgerDatabase(path, settings=db_settings) as second:
            assert await second.schema_version() == SCHEMA_VERSION
            assert await _count(second, "categories") == categories

    @pytest.mark.asyncio
    async def test_newer_schema_is_refused(self, tmp_path, db_settings):
        """Test that a file written by a newer version is not touched."""
        path = tmp_path / "ledger.db"
        async with LedgerDatabase(path, settings=db_settings) as database:
            async with database.transaction() as conn:
                await conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION + 1}")

        database = LedgerDatabase(path, settings=db_settings)
        with pytest.raises(SchemaError):
            await database.initialize()
        await database.close()

    @pytest.mark.asyncio
    async def test_failed_open_closes_the_connection(self, tmp_path, db_settings, monkeypatch):
        """Test that Ledger.open does not leak a connection when migration fails."""
        path = tmp_path / "ledger.db"
        async with LedgerDatabase(path, settings=db_settings) as database:
            async with database.transaction() as conn:
                await conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION + 1}")

        opened = []
        real_initialize = LedgerDatabase.initialize

        async def tracking_initialize(self):
            opened.append(self)
            return await real_initialize(self)

        monkeypatch.setattr(LedgerDatabase, "initialize", tracking_initialize)

        with pytest.raises(SchemaError):
            await Ledger.open(path)

        assert len(opened) == 1
        assert not opened[0].is_connected

    @pytest.mark.asyncio
    async def test_legacy_accounts_become_defaults(self, tmp_path, db_settings):
        """Test that upgrading a v3 file flags its first two accounts as defaults."""
        path = tmp_path / "legacy.db"
        database = LedgerDatabase(path, settings=db_settings)
        await database.connect()
        async with database.transaction() as conn:
            for migration in MIGRATIONS[:3]:
                await migration(conn)
            for index, name in enumerate(["Bank", "Cash", "Savings"]):
                stamp = f"2024-01-0{index + 1}T08:00:00.000000+00:00"
                await conn.execute(
                    "INSERT INTO accounts (id, name, type, initial_balance, created_at, updated_at) "
                    "VALUES (?, ?, 'bank', 0, ?, ?)",
                    (f"a{index}", name, stamp, stamp),
                )
            await conn.execute("PRAGMA user_version = 3")

        assert await database.initialize() == SCHEMA_VERSION
        accounts = await AccountRepository(database).list_all()
        assert [a.is_default for a in accounts] == [True, True, False]
        assert await AccountRepository(database).count_custom() == 1
        await database.close()


class TestUnitsOfWork:
    """Tests for atomic units and their isolation."""

    @pytest.mark.asyncio
    async def test_writes_outside_a_unit_are_refused(self, db):
        """Test that a bare write raises."""
        with pytest.raises(RuntimeError):
            await db.execute("DELETE FROM settings")

    @pytest.mark.asyncio
    async def test_exception_rolls_back_every_statement(self, db):
        """Test that a failing unit leaves no trace."""
        now = to_db_timestamp(utc_now())
        with pytest.raises(ValueError):
            async with db.transaction():
                await db.execute(
                    "INSERT INTO settings (key, value, updated_at) VALUES (?, ?, ?)",
                    ("k1", "v1", now),
                )
                await db.execute(
                    "INSERT INTO settings (key, value, updated_at) VALUES (?, ?, ?)",
                    ("k2", "v2", now),
                )
                raise ValueError("boom")

        assert await SettingsRepository(db).get("k1") is None
        assert await SettingsRepository(db).get("k2") is None

    @pytest.mark.asyncio
    async def test_nested_units_join_the_outer_one(self, db):
        """Test that an inner unit commits with, and rolls back with, the outer."""
        now = to_db_timestamp(utc_now())
        with pytest.raises(ValueError):
            async with db.transaction():
                async with db.transaction():
                    await db.execute(
                        "INSERT INTO settings (key, value, updated_at) VALUES (?, ?, ?)",
                        ("inner", "1", now),
                    )
                assert db.in_transaction
                raise ValueError("outer failed")

        assert await SettingsRepository(db).get("inner") is None

    @pytest.mark.asyncio
    async def test_constraint_violation_is_wrapped(self, db):
        """Test that sqlite integrity errors surface as IntegrityViolationError."""
        now = to_db_timestamp(utc_now())
        with pytest.raises(IntegrityViolationError):
            async with db.transaction():
                await db.execute(
                    "INSERT INTO transactions (id, type, amount, created_at, updated_at) "
                    "VALUES ('t1', 'expense', -5, ?, ?)",
                    (now, now),
                )
        assert await _count(db, "transactions") == 0

    @pytest.mark.asyncio
    async def test_foreign_keys_are_enforced(self, db):
        """Test that a dangling category reference is rejected."""
        now = to_db_timestamp(utc_now())
        with pytest.raises(IntegrityViolationError):
            async with db.transaction():
                await db.execute(
                    "INSERT INTO transactions (id, type, amount, category_id, created_at, updated_at) "
                    "VALUES ('t1', 'expense', 5, 'missing', ?, ?)",
                    (now, now),
                )

    @pytest.mark.asyncio
    async def test_readers_never_see_half_a_unit(self, db):
        """Test that a read from another task waits for the open unit."""
        now = to_db_timestamp(utc_now())
        proceed = asyncio.Event()
        first_written = asyncio.Event()

        async def writer():
            async with db.transaction():
                await db.execute(
                    "INSERT INTO settings (key, value, updated_at) VALUES ('leg1', '1', ?)", (now,),
                )
                first_written.set()
                await proceed.wait()
                await db.execute(
                    "INSERT INTO settings (key, value, updated_at) VALUES ('leg2', '1', ?)", (now,),
                )

        async def reader():
            rows = await db.fetchall("SELECT key FROM settings WHERE key LIKE 'leg%'")
            return {row["key"] for row in rows}

        writing = asyncio.create_task(writer())
        await first_written.wait()
        reading = asyncio.create_task(reader())
        for _ in range(5):
            await asyncio.sleep(0)
        assert not reading.done()

        proceed.set()
        await writing
        assert await reading == {"leg1", "leg2"}
