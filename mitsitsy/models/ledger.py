"""
Core Data Models for the Mitsitsy ledger

These models define the schemas for every row flowing between the store and
the services. They are designed to:
1. Enforce type safety at runtime
2. Keep money as integer cents (no floats anywhere in stored amounts)
3. Carry soft-delete and sync markers uniformly

DESIGN DECISION: Balances are never a model field on Account. They only exist
on the derived AccountWithBalance read model, which the balance engine
recomputes from transactions on every read.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class AccountType(str, Enum):
    """Kind of money store."""
    BANK = "bank"
    CASH = "cash"


class CategoryType(str, Enum):
    """
    Category classification.

    Custom categories are always EXPENSE. INCOME and TRANSFER are used by the
    two system rows only.
    """
    EXPENSE = "expense"
    INCOME = "income"
    TRANSFER = "transfer"
    SYSTEM = "system"


class TransactionType(str, Enum):
    """Direction of a movement relative to its account."""
    EXPENSE = "expense"
    INCOME = "income"


class SyncStatus(str, Enum):
    """Sync marker. Conflict resolution is not implemented."""
    PENDING = "pending"
    SYNCED = "synced"


class PlanificationStatus(str, Enum):
    """
    Planification lifecycle.

    CRITICAL: the only transition is PENDING -> COMPLETED, and it happens
    solely through validation. COMPLETED is terminal.
    """
    PENDING = "pending"
    COMPLETED = "completed"


# =============================================================================
# WELL-KNOWN ROWS
# =============================================================================

SYSTEM_CATEGORY_INCOME_ID = "system-income"
SYSTEM_CATEGORY_TRANSFER_ID = "system-transfer"
SYSTEM_CATEGORY_IDS = frozenset({SYSTEM_CATEGORY_INCOME_ID, SYSTEM_CATEGORY_TRANSFER_ID})


class DefaultCategory(BaseModel):
    """Entry of the onboarding category catalog."""

    id: str
    name: str
    icon: str
    color: str


DEFAULT_CATEGORIES: list[DefaultCategory] = [
    DefaultCategory(id="food", name="Food", icon="fast-food", color="#FF6B6B"),
    DefaultCategory(id="transport", name="Transport", icon="car", color="#4ECDC4"),
    DefaultCategory(id="shopping", name="Shopping", icon="bag", color="#9B59B6"),
    DefaultCategory(id="bills", name="Bills", icon="document-text", color="#3498DB"),
    DefaultCategory(id="health", name="Health", icon="medical", color="#2ECC71"),
    DefaultCategory(id="entertainment", name="Entertainment", icon="game-controller", color="#F39C12"),
    DefaultCategory(id="education", name="Education", icon="school", color="#1ABC9C"),
    DefaultCategory(id="other", name="Other", icon="cube", color="#95A5A6"),
]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class _Row(BaseModel):
    """Shared config for persisted rows."""

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator('*', mode='after')
    @classmethod
    def normalize_datetimes(cls, v):
        if isinstance(v, datetime):
            return ensure_utc(v)
        return v


# =============================================================================
# ACCOUNTS
# =============================================================================

class Account(_Row):
    """
    A named store of money.

    current_balance = initial_balance + income - expense, summed over the
    non-deleted transactions of this account. See services.balance.
    """

    id: str
    name: str = Field(..., min_length=1, max_length=100)
    type: AccountType
    initial_balance: int = Field(
        default=0,
        description="Opening balance in cents (may be negative)"
    )
    icon: Optional[str] = None
    is_default: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    deleted_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class AccountWithBalance(Account):
    """Account plus its derived totals. Never persisted."""

    total_income: int = 0
    total_expense: int = 0
    current_balance: int = 0


# =============================================================================
# CATEGORIES
# =============================================================================

class Category(_Row):
    """A label for transactions and planification items."""

    id: str
    name: str = Field(..., min_length=1, max_length=100)
    icon: Optional[str] = None
    color: Optional[str] = None
    is_default: bool = False
    category_type: CategoryType = CategoryType.EXPENSE
    created_at: datetime = Field(default_factory=utc_now)
    sync_status: SyncStatus = SyncStatus.PENDING
    deleted_at: Optional[datetime] = None

    @property
    def is_system(self) -> bool:
        return self.id in SYSTEM_CATEGORY_IDS


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(_Row):
    """
    A single monetary movement.

    A transfer is exactly two rows sharing transfer_id: an EXPENSE leg on the
    source account and an INCOME leg on the destination, same amount, both in
    the system transfer category.
    """

    id: str
    type: TransactionType
    amount: int = Field(..., ge=0, description="Amount in cents")
    category_id: Optional[str] = None
    account_id: Optional[str] = None
    transfer_id: Optional[str] = None
    note: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    sync_status: SyncStatus = SyncStatus.PENDING
    deleted_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_transfer(self) -> bool:
        return self.transfer_id is not None

    @property
    def signed_amount(self) -> int:
        """Amount as it affects its account: income positive, expense negative."""
        return self.amount if self.type == TransactionType.INCOME else -self.amount


class TransactionWithDetails(Transaction):
    """Feed row: a transaction joined with its category and account names."""

    category_name: Optional[str] = None
    category_icon: Optional[str] = None
    category_color: Optional[str] = None
    account_name: Optional[str] = None
    account_type: Optional[AccountType] = None
    linked_account_name: Optional[str] = None

    @property
    def label(self) -> Optional[str]:
        """'From → To' for either leg of a transfer, else the category name."""
        if self.is_transfer:
            source, destination = self.account_name, self.linked_account_name
            if self.type == TransactionType.INCOME:
                source, destination = destination, source
            return f"{source or '?'} → {destination or '?'}"
        return self.category_name


class CandidateTransaction(BaseModel):
    """
    A transaction proposed by the receipt or voice parsers.

    CRITICAL: this is PROPOSED data. It only reaches the ledger through
    TransactionService.record_transaction, with the same checks as manual input.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: int
    type: TransactionType = TransactionType.EXPENSE
    category_id: Optional[str] = None
    note: Optional[str] = Field(default=None, max_length=500)


class LedgerTotals(BaseModel):
    """Aggregate totals over non-deleted, non-transfer transactions."""

    total_income: int = 0
    total_expense: int = 0
    balance: int = Field(
        default=0,
        description="Net worth: sum of current balances of live accounts"
    )


class CategoryExpense(BaseModel):
    """Expense total for one category (transfers excluded)."""

    category_id: Optional[str] = None
    name: str = ""
    color: str = "#95A5A6"
    amount: int = 0


# =============================================================================
# PLANIFICATIONS
# =============================================================================

class Planification(_Row):
    """A named draft plan of future expenses and income."""

    id: str
    title: str = Field(..., min_length=1, max_length=200)
    status: PlanificationStatus = PlanificationStatus.PENDING
    deadline: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    deleted_at: Optional[datetime] = None
    expiry_notified_at: Optional[datetime] = None

    @property
    def is_locked(self) -> bool:
        return self.status == PlanificationStatus.COMPLETED

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """
        Derived state: pending with a deadline in the past.

        Expired plans stay actionable until validated or deleted.
        """
        if self.status != PlanificationStatus.PENDING or self.deadline is None:
            return False
        return self.deadline < (ensure_utc(now) or utc_now())


class PlanificationItem(_Row):
    """One line of a planification. Hard-deleted, never soft-deleted."""

    id: str
    planification_id: str
    amount: int = Field(..., ge=0, description="Amount in cents")
    type: TransactionType = TransactionType.EXPENSE
    category_id: Optional[str] = None
    note: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=utc_now)


class PlanificationItemWithCategory(PlanificationItem):
    """Item joined with its category for display."""

    category_name: Optional[str] = None
    category_icon: Optional[str] = None
    category_color: Optional[str] = None


class PlanificationWithTotals(Planification):
    """
    Planification plus item aggregates. Never persisted.

    total = total_expenses - total_income is the net amount validation
    deducts; negative means the plan is net income.
    """

    total_expenses: int = 0
    total_income: int = 0
    item_count: int = 0

    @property
    def total(self) -> int:
        return self.total_expenses - self.total_income

