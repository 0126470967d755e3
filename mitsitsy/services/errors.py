"""
Ledger exceptions.

Raised inside service methods, usually from within a unit of work so the
raise itself rolls the unit back. The public service methods catch them and
turn them into OperationResult.fail(kind, message); they never reach callers.
"""

from typing import Optional

from mitsitsy.models.results import ErrorKind, ValidationIssue


class LedgerError(Exception):
    """Base class for expected ledger refusals."""

    kind: ErrorKind = ErrorKind.VALIDATION_ERROR

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        super().__init__(message)
        self.message = message
        self.issues = issues or []


class LedgerValidationError(LedgerError):
    """Malformed input or a missing reference."""
    kind = ErrorKind.VALIDATION_ERROR


class NotFoundError(LedgerValidationError):
    """The referenced record does not exist or is soft-deleted."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(
            f"{entity.capitalize()} not found: {entity_id}",
            [ValidationIssue(
                field=f"{entity}_id",
                issue_type="not_found",
                message=f"{entity.capitalize()} {entity_id} does not exist",
            )],
        )
        self.entity = entity
        self.entity_id = entity_id


class InsufficientBalanceError(LedgerError):
    """An expense would take the account below zero."""
    kind = ErrorKind.INSUFFICIENT_BALANCE

    def __init__(self, account_id: str, balance: int, amount: int):
        super().__init__(
            f"Insufficient balance: account has {balance}, expense needs {amount}"
        )
        self.account_id = account_id
        self.balance = balance
        self.amount = amount


class PlanificationLockedError(LedgerError):
    """Mutation attempted on a completed planification."""
    kind = ErrorKind.PLANIFICATION_LOCKED


class AlreadyValidatedError(LedgerError):
    """validate() called on a planification that is not pending."""
    kind = ErrorKind.ALREADY_VALIDATED


class InvalidTransferError(LedgerError):
    """Transfer with identical source and destination."""
    kind = ErrorKind.INVALID_TRANSFER


class LimitReachedError(LedgerError):
    """Custom account or category cap reached."""
    kind = ErrorKind.LIMIT_REACHED
