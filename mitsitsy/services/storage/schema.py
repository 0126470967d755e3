"""
Ledger schema and migrations.

The schema version lives in PRAGMA user_version. Migrations are applied in
order, each one exactly once, and every ALTER TABLE checks PRAGMA table_info
first so a partially migrated file can be re-run safely.

Money columns are INTEGER cents, timestamps are ISO-8601 TEXT, booleans are
0/1 INTEGER.
"""

from typing import Awaitable, Callable

import aiosqlite

from mitsitsy.models.ledger import (
    SYSTEM_CATEGORY_INCOME_ID,
    SYSTEM_CATEGORY_TRANSFER_ID,
    utc_now,
)


def to_db_timestamp(value) -> str:
    """Serialize an aware datetime with a fixed width so strings sort by time."""
    return value.isoformat(timespec="microseconds")


CREATE_CATEGORIES_TABLE = """
CREATE TABLE IF NOT EXISTS categories (
    id           TEXT PRIMARY KEY,
    name         TEXT NOT NULL,
    icon         TEXT,
    color        TEXT,
    is_default   INTEGER NOT NULL DEFAULT 0,
    created_at   TEXT NOT NULL,
    sync_status  TEXT NOT NULL DEFAULT 'pending'
                 CHECK (sync_status IN ('pending', 'synced'))
)
"""

CREATE_TRANSACTIONS_TABLE = """
CREATE TABLE IF NOT EXISTS transactions (
    id           TEXT PRIMARY KEY,
    type         TEXT NOT NULL CHECK (type IN ('expense', 'income')),
    amount       INTEGER NOT NULL CHECK (amount >= 0),
    category_id  TEXT REFERENCES categories(id),
    note         TEXT,
    created_at   TEXT NOT NULL,
    updated_at   TEXT NOT NULL,
    sync_status  TEXT NOT NULL DEFAULT 'pending'
                 CHECK (sync_status IN ('pending', 'synced')),
    deleted_at   TEXT
)
"""

CREATE_SETTINGS_TABLE = """
CREATE TABLE IF NOT EXISTS settings (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    updated_at  TEXT NOT NULL
)
"""

CREATE_PLANIFICATIONS_TABLE = """
CREATE TABLE IF NOT EXISTS planifications (
    id          TEXT PRIMARY KEY,
    title       TEXT NOT NULL,
    status      TEXT NOT NULL DEFAULT 'pending'
                CHECK (status IN ('pending', 'completed')),
    deadline    TEXT,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL,
    deleted_at  TEXT
)
"""

CREATE_PLANIFICATION_ITEMS_TABLE = """
CREATE TABLE IF NOT EXISTS planification_items (
    id                TEXT PRIMARY KEY,
    planification_id  TEXT NOT NULL REFERENCES planifications(id) ON DELETE CASCADE,
    amount            INTEGER NOT NULL CHECK (amount >= 0),
    type              TEXT NOT NULL DEFAULT 'expense'
                      CHECK (type IN ('expense', 'income')),
    category_id       TEXT REFERENCES categories(id),
    note              TEXT,
    created_at        TEXT NOT NULL
)
"""

CREATE_ACCOUNTS_TABLE = """
CREATE TABLE IF NOT EXISTS accounts (
    id               TEXT PRIMARY KEY,
    name             TEXT NOT NULL,
    type             TEXT NOT NULL CHECK (type IN ('bank', 'cash')),
    initial_balance  INTEGER NOT NULL DEFAULT 0,
    icon             TEXT,
    created_at       TEXT NOT NULL,
    updated_at       TEXT NOT NULL,
    deleted_at       TEXT
)
"""

INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_transactions_created_at ON transactions(created_at)",
    "CREATE INDEX IF NOT EXISTS idx_transactions_deleted_at ON transactions(deleted_at)",
    "CREATE INDEX IF NOT EXISTS idx_transactions_sync_status ON transactions(sync_status)",
    "CREATE INDEX IF NOT EXISTS idx_planification_items_parent ON planification_items(planification_id)",
]

ACCOUNT_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_transactions_account_id ON transactions(account_id)",
    "CREATE INDEX IF NOT EXISTS idx_transactions_transfer_id ON transactions(transfer_id)",
]

DEFAULT_SETTINGS = [
    ("reminder_frequency", "1h"),
    ("theme_id", "turquoise"),
    ("balance_hidden", "0"),
]


async def _columns(conn: aiosqlite.Connection, table: str) -> set[str]:
    cursor = await conn.execute(f"PRAGMA table_info({table})")
    rows = await cursor.fetchall()
    await cursor.close()
    return {row[1] for row in rows}


async def _add_column(conn: aiosqlite.Connection, table: str, column: str, ddl: str) -> None:
    if column not in await _columns(conn, table):
        await conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {ddl}")


async def _migrate_to_v1(conn: aiosqlite.Connection) -> None:
    """Categories, transactions, settings."""
    await conn.execute(CREATE_CATEGORIES_TABLE)
    await conn.execute(CREATE_TRANSACTIONS_TABLE)
    await conn.execute(CREATE_SETTINGS_TABLE)
    for statement in INDEXES[:3]:
        await conn.execute(statement)


async def _migrate_to_v2(conn: aiosqlite.Connection) -> None:
    """Planifications and their items."""
    await conn.execute(CREATE_PLANIFICATIONS_TABLE)
    await conn.execute(CREATE_PLANIFICATION_ITEMS_TABLE)
    await conn.execute(INDEXES[3])


async def _migrate_to_v3(conn: aiosqlite.Connection) -> None:
    """Accounts, plus account and transfer references on transactions."""
    await conn.execute(CREATE_ACCOUNTS_TABLE)
    await _add_column(conn, "transactions", "account_id", "TEXT REFERENCES accounts(id)")
    await _add_column(conn, "transactions", "transfer_id", "TEXT")
    for statement in ACCOUNT_INDEXES:
        await conn.execute(statement)


async def _migrate_to_v4(conn: aiosqlite.Connection) -> None:
    """Category types, category soft delete and the two system categories."""
    await _add_column(
        conn, "categories", "category_type",
        "TEXT NOT NULL DEFAULT 'expense' "
        "CHECK (category_type IN ('expense', 'income', 'transfer', 'system'))",
    )
    await _add_column(conn, "categories", "deleted_at", "TEXT")

    now = to_db_timestamp(utc_now())
    system_rows = [
        (SYSTEM_CATEGORY_TRANSFER_ID, "Transfer", "swap-horizontal", "#6366F1", "transfer"),
        (SYSTEM_CATEGORY_INCOME_ID, "Income", "trending-up", "#22C55E", "income"),
    ]
    for category_id, name, icon, color, category_type in system_rows:
        await conn.execute(
            """INSERT OR IGNORE INTO categories
               (id, name, icon, color, is_default, category_type, created_at, sync_status)
               VALUES (?, ?, ?, ?, 1, ?, ?, 'synced')""",
            (category_id, name, icon, color, category_type, now),
        )


async def _migrate_to_v5(conn: aiosqlite.Connection) -> None:
    """Default-account flag, expiry notification marker, default settings."""
    await _add_column(conn, "accounts", "is_default", "INTEGER NOT NULL DEFAULT 0")
    await _add_column(conn, "planifications", "expiry_notified_at", "TEXT")

    # Files created before the flag existed: the first two accounts are the
    # onboarding bank and cash accounts.
    await conn.execute(
        """UPDATE accounts SET is_default = 1
           WHERE id IN (
               SELECT id FROM accounts
               WHERE deleted_at IS NULL
               ORDER BY created_at ASC
               LIMIT 2
           )"""
    )

    now = to_db_timestamp(utc_now())
    for key, value in DEFAULT_SETTINGS:
        await conn.execute(
            "INSERT OR IGNORE INTO settings (key, value, updated_at) VALUES (?, ?, ?)",
            (key, value, now),
        )


Migration = Callable[[aiosqlite.Connection], Awaitable[None]]

MIGRATIONS: list[Migration] = [
    _migrate_to_v1,
    _migrate_to_v2,
    _migrate_to_v3,
    _migrate_to_v4,
    _migrate_to_v5,
]

SCHEMA_VERSION = len(MIGRATIONS)

LEDGER_TABLES = (
    "accounts",
    "categories",
    "transactions",
    "planifications",
    "planification_items",
    "settings",
)
