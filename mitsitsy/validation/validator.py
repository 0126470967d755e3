"""
Two-Stage Input Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - INPUT VALIDATION:
- Amounts are positive integer cents
- Enum values parse
- Text lengths, exchange rates and currency codes are sane
- Runs without touching the store

STAGE 2 - REFERENCE VALIDATION:
- Referenced accounts and categories exist and are not soft-deleted
- Needs the repositories

IMPORTANT: Validation NEVER silently fixes input (an amount of 10.5 is
rejected, not truncated). Services run stage 1 before opening a unit of work
and stage 2 inside it.
"""

import math
from datetime import datetime
from decimal import Decimal
from numbers import Real
from typing import Any, Optional

from mitsitsy.config import SUPPORTED_CURRENCIES
from mitsitsy.models.ledger import Account, Category, TransactionType
from mitsitsy.models.results import ValidationIssue, ValidationResult
from mitsitsy.services.errors import LedgerValidationError
from mitsitsy.services.storage import AccountRepository, CategoryRepository


MAX_NOTE_LENGTH = 500
MAX_NAME_LENGTH = 100
MAX_TITLE_LENGTH = 200

# Largest value a SQLite INTEGER column can hold
MAX_STORED_AMOUNT = 2**63 - 1


def ensure_valid(issues: list[ValidationIssue]) -> None:
    """Raise LedgerValidationError when any error-level issue is present."""
    result = ValidationResult(issues=issues)
    if result.has_errors:
        raise LedgerValidationError(result.summary(), issues)


class LedgerValidator:
    """
    Validates service input.

    Stage 1 methods are synchronous and return issue lists.
    Stage 2 methods are async and return the loaded row with its issues.
    """

    def __init__(
        self,
        accounts: Optional[AccountRepository] = None,
        categories: Optional[CategoryRepository] = None,
    ):
        self._accounts = accounts
        self._categories = categories

    # -------------------------------------------------------------------------
    # Stage 1: input
    # -------------------------------------------------------------------------

    def check_amount(self, amount: Any, field: str = "amount") -> list[ValidationIssue]:
        """Amounts are integer cents strictly greater than zero."""
        if amount is None:
            return [ValidationIssue(
                field=field,
                issue_type="missing",
                message="Amount is required",
            )]
        if isinstance(amount, bool) or not isinstance(amount, int):
            return [ValidationIssue(
                field=field,
                issue_type="invalid_type",
                message=f"Amount must be an integer number of cents, got {amount!r}",
            )]
        if amount <= 0:
            return [ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message="Amount must be greater than zero",
            )]
        if amount > MAX_STORED_AMOUNT:
            return [ValidationIssue(
                field=field,
                issue_type="out_of_range",
                message=f"Amount must be at most {MAX_STORED_AMOUNT}",
            )]
        return []

    def check_initial_balance(self, amount: Any) -> list[ValidationIssue]:
        """Opening balances may be zero or negative but must be integer cents."""
        if isinstance(amount, bool) or not isinstance(amount, int):
            return [ValidationIssue(
                field="initial_balance",
                issue_type="invalid_type",
                message=f"Initial balance must be an integer number of cents, got {amount!r}",
            )]
        if abs(amount) > MAX_STORED_AMOUNT:
            return [ValidationIssue(
                field="initial_balance",
                issue_type="out_of_range",
                message=f"Initial balance must be at most {MAX_STORED_AMOUNT} in absolute value",
            )]
        return []

    def parse_transaction_type(
        self,
        value: Any,
    ) -> tuple[Optional[TransactionType], list[ValidationIssue]]:
        try:
            return TransactionType(value), []
        except ValueError:
            return None, [ValidationIssue(
                field="type",
                issue_type="invalid_value",
                message=f"Type must be 'expense' or 'income', got {value!r}",
            )]

    def check_note(self, note: Optional[str]) -> list[ValidationIssue]:
        if note is not None and len(note) > MAX_NOTE_LENGTH:
            return [ValidationIssue(
                field="note",
                issue_type="too_long",
                message=f"Note must be at most {MAX_NOTE_LENGTH} characters",
            )]
        return []

    def check_text(
        self,
        value: Optional[str],
        field: str,
        max_length: int = MAX_NAME_LENGTH,
    ) -> list[ValidationIssue]:
        """Required free text: non-blank and bounded."""
        if not isinstance(value, str) or not value.strip():
            return [ValidationIssue(
                field=field,
                issue_type="missing",
                message=f"{field.capitalize()} is required",
            )]
        if len(value.strip()) > max_length:
            return [ValidationIssue(
                field=field,
                issue_type="too_long",
                message=f"{field.capitalize()} must be at most {max_length} characters",
            )]
        return []

    def check_rate(self, rate: Any) -> list[ValidationIssue]:
        """Exchange rates are finite reals strictly greater than zero."""
        if isinstance(rate, bool) or not isinstance(rate, (Real, Decimal)):
            return [ValidationIssue(
                field="rate",
                issue_type="invalid_type",
                message=f"Rate must be a number, got {rate!r}",
            )]
        if not math.isfinite(rate) or rate <= 0:
            return [ValidationIssue(
                field="rate",
                issue_type="invalid_value",
                message=f"Rate must be a positive finite number, got {rate!r}",
            )]
        return []

    def check_currency(self, code: Any) -> list[ValidationIssue]:
        if not isinstance(code, str) or code.strip().upper() not in SUPPORTED_CURRENCIES:
            return [ValidationIssue(
                field="currency",
                issue_type="unsupported",
                message=(
                    f"Unsupported currency: {code!r}. "
                    f"Supported: {', '.join(SUPPORTED_CURRENCIES)}"
                ),
            )]
        return []

    def check_deadline(self, deadline: Any) -> list[ValidationIssue]:
        """Deadlines are optional datetimes; strings are not parsed."""
        if deadline is not None and not isinstance(deadline, datetime):
            return [ValidationIssue(
                field="deadline",
                issue_type="invalid_type",
                message=f"Deadline must be a datetime, got {deadline!r}",
            )]
        return []

    # -------------------------------------------------------------------------
    # Stage 2: references
    # -------------------------------------------------------------------------

    async def load_account(
        self,
        account_id: Optional[str],
        field: str = "account_id",
    ) -> tuple[Optional[Account], list[ValidationIssue]]:
        """Load a live account or report why it cannot be used."""
        if not account_id:
            return None, [ValidationIssue(
                field=field,
                issue_type="missing",
                message="Account is required",
            )]
        account = await self._accounts.get(account_id)
        if account is None:
            return None, [ValidationIssue(
                field=field,
                issue_type="not_found",
                message=f"Account {account_id} does not exist",
            )]
        return account, []

    async def load_category(
        self,
        category_id: Optional[str],
    ) -> tuple[Optional[Category], list[ValidationIssue]]:
        """A null category is allowed; a dangling one is not."""
        if category_id is None:
            return None, []
        category = await self._categories.get(category_id)
        if category is None:
            return None, [ValidationIssue(
                field="category_id",
                issue_type="not_found",
                message=f"Category {category_id} does not exist",
            )]
        return category, []
