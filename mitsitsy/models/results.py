"""
Service result models.

Services never let ledger or storage exceptions cross their boundary. Every
mutating call returns an OperationResult naming the error kind, so callers can
render a field-level or toast-level message without crashing.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class ErrorKind(str, Enum):
    """Failure categories surfaced to callers."""
    VALIDATION_ERROR = "validation_error"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    PLANIFICATION_LOCKED = "planification_locked"
    ALREADY_VALIDATED = "already_validated"
    INVALID_TRANSFER = "invalid_transfer"
    LIMIT_REACHED = "limit_reached"
    STORAGE_FAILURE = "storage_failure"


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'not_found')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Outcome of validating one service input."""

    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    def summary(self) -> str:
        """Error messages joined for logs and generic toasts."""
        return "; ".join(i.message for i in self.issues if i.severity == "error")


class OperationResult(BaseModel):
    """
    Result of a mutating service call.

    On success `id` holds the key of the created or affected record (the
    shared transfer_id for transfers). On failure `error` names the kind and
    `message` is safe to show to the user.
    """

    success: bool
    id: Optional[str] = None
    error: Optional[ErrorKind] = None
    message: Optional[str] = None
    issues: list[ValidationIssue] = Field(default_factory=list)
    data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def ok(cls, id: Optional[str] = None, **data: Any) -> "OperationResult":
        return cls(success=True, id=id, data=data)

    @classmethod
    def fail(
        cls,
        error: ErrorKind,
        message: str,
        issues: Optional[list[ValidationIssue]] = None,
    ) -> "OperationResult":
        return cls(success=False, error=error, message=message, issues=issues or [])
