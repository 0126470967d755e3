"""
Storage exceptions.

Every failure coming out of the SQLite driver is re-raised as one of these, so
services can tell an expected ledger refusal (a LedgerError) apart from an
unexpected storage failure without importing sqlite3.
"""


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class IntegrityViolationError(StorageError):
    """A constraint (foreign key, check, uniqueness) rejected the write."""
    pass


class StoreConnectionError(StorageError):
    """Could not open the local database."""
    pass


class SchemaError(StorageError):
    """The database schema is newer than this code or a migration failed."""
    pass
