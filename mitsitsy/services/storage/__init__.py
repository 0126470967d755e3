"""
Storage Services Package

Local SQLite persistence for the ledger: the connection wrapper with atomic
units of work, the versioned schema and one repository per table.
"""

from mitsitsy.services.storage.interface import (
    IntegrityViolationError,
    SchemaError,
    StorageError,
    StoreConnectionError,
)
from mitsitsy.services.storage.repositories import (
    AccountRepository,
    CategoryRepository,
    PlanificationItemRepository,
    PlanificationRepository,
    SettingsRepository,
    TransactionRepository,
)
from mitsitsy.services.storage.schema import LEDGER_TABLES, SCHEMA_VERSION
from mitsitsy.services.storage.sqlite import LedgerDatabase

__all__ = [
    # Exceptions
    "IntegrityViolationError",
    "SchemaError",
    "StorageError",
    "StoreConnectionError",
    # SQLite implementation
    "LedgerDatabase",
    "LEDGER_TABLES",
    "SCHEMA_VERSION",
    # Repositories
    "AccountRepository",
    "CategoryRepository",
    "PlanificationItemRepository",
    "PlanificationRepository",
    "SettingsRepository",
    "TransactionRepository",
]
