"""
Data Models Package

This package contains all Pydantic models used by the Mitsitsy ledger.
All data flowing between the store and the services conforms to these schemas.
"""

from mitsitsy.models.ledger import (
    DEFAULT_CATEGORIES,
    SYSTEM_CATEGORY_IDS,
    SYSTEM_CATEGORY_INCOME_ID,
    SYSTEM_CATEGORY_TRANSFER_ID,
    Account,
    AccountType,
    AccountWithBalance,
    CandidateTransaction,
    Category,
    CategoryExpense,
    CategoryType,
    DefaultCategory,
    LedgerTotals,
    Planification,
    PlanificationItem,
    PlanificationItemWithCategory,
    PlanificationStatus,
    PlanificationWithTotals,
    SyncStatus,
    Transaction,
    TransactionType,
    TransactionWithDetails,
    ensure_utc,
    utc_now,
)
from mitsitsy.models.results import (
    ErrorKind,
    OperationResult,
    ValidationIssue,
    ValidationResult,
)
from mitsitsy.models.events import (
    EventSeverity,
    LedgerEvent,
    LedgerEventBuilder,
    LedgerEventType,
)

__all__ = [
    # Ledger models
    "DEFAULT_CATEGORIES",
    "SYSTEM_CATEGORY_IDS",
    "SYSTEM_CATEGORY_INCOME_ID",
    "SYSTEM_CATEGORY_TRANSFER_ID",
    "Account",
    "AccountType",
    "AccountWithBalance",
    "CandidateTransaction",
    "Category",
    "CategoryExpense",
    "CategoryType",
    "DefaultCategory",
    "LedgerTotals",
    "Planification",
    "PlanificationItem",
    "PlanificationItemWithCategory",
    "PlanificationStatus",
    "PlanificationWithTotals",
    "SyncStatus",
    "Transaction",
    "TransactionType",
    "TransactionWithDetails",
    "ensure_utc",
    "utc_now",
    # Result models
    "ErrorKind",
    "OperationResult",
    "ValidationIssue",
    "ValidationResult",
    # Event models
    "EventSeverity",
    "LedgerEvent",
    "LedgerEventBuilder",
    "LedgerEventType",
]
