"""Services package."""

from mitsitsy.services.errors import (
    AlreadyValidatedError,
    InsufficientBalanceError,
    InvalidTransferError,
    LedgerError,
    LedgerValidationError,
    LimitReachedError,
    NotFoundError,
    PlanificationLockedError,
)
from mitsitsy.services.storage import (
    IntegrityViolationError,
    LedgerDatabase,
    SchemaError,
    StorageError,
    StoreConnectionError,
)

__all__ = [
    # Ledger errors
    "AlreadyValidatedError",
    "InsufficientBalanceError",
    "InvalidTransferError",
    "LedgerError",
    "LedgerValidationError",
    "LimitReachedError",
    "NotFoundError",
    "PlanificationLockedError",
    # Storage
    "IntegrityViolationError",
    "LedgerDatabase",
    "SchemaError",
    "StorageError",
    "StoreConnectionError",
]
