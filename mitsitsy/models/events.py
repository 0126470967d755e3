"""
Ledger Event Models

Every significant ledger mutation is described by a LedgerEvent and written to
the structured log. This provides:
1. Traceability of balance-affecting operations while debugging
2. A record of failed writes next to their error kind

DESIGN DECISION: Events are log records only. They are not persisted and
there is no replay or undo built on them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from mitsitsy.models.ledger import utc_now


class LedgerEventType(str, Enum):
    """
    Types of events we log.

    Every mutating service operation has its own event type.
    """
    # Accounts
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_DELETED = "account_deleted"

    # Categories
    CATEGORY_CREATED = "category_created"
    CATEGORY_DELETED = "category_deleted"

    # Transactions
    TRANSACTION_RECORDED = "transaction_recorded"
    TRANSACTION_DELETED = "transaction_deleted"
    TRANSACTION_REJECTED = "transaction_rejected"

    # Transfers
    TRANSFER_RECORDED = "transfer_recorded"
    TRANSFER_DELETED = "transfer_deleted"

    # Planifications
    PLANIFICATION_CREATED = "planification_created"
    PLANIFICATION_UPDATED = "planification_updated"
    PLANIFICATION_DELETED = "planification_deleted"
    PLANIFICATION_VALIDATED = "planification_validated"
    PLANIFICATION_EXPIRED = "planification_expired"

    # Currency
    CURRENCY_CONVERTED = "currency_converted"

    # Onboarding / settings
    ONBOARDING_COMPLETED = "onboarding_completed"
    SETTING_CHANGED = "setting_changed"

    # System events
    STORAGE_ERROR = "storage_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class EventSeverity(str, Enum):
    """Severity level for ledger events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LedgerEvent(BaseModel):
    """A single ledger event."""

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    event_type: LedgerEventType
    severity: EventSeverity = EventSeverity.INFO

    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'planification')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Id of the entity this event relates to"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_kind: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_kind": self.error_kind,
            "error_message": self.error_message,
        }


class LedgerEventBuilder:
    """
    Helper class to build ledger events with common patterns.

    Usage:
        event = LedgerEventBuilder.transaction_recorded(tx_id, "expense", 3000, account_id)
    """

    @staticmethod
    def account_created(account_id: str, name: str, account_type: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.ACCOUNT_CREATED,
            entity_type="account",
            entity_id=account_id,
            description=f"Account created: {name}",
            details={"name": name, "type": account_type},
        )

    @staticmethod
    def account_deleted(account_id: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.ACCOUNT_DELETED,
            entity_type="account",
            entity_id=account_id,
            description="Account soft-deleted",
        )

    @staticmethod
    def category_created(category_id: str, name: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.CATEGORY_CREATED,
            entity_type="category",
            entity_id=category_id,
            description=f"Category created: {name}",
            details={"name": name},
        )

    @staticmethod
    def category_deleted(category_id: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.CATEGORY_DELETED,
            entity_type="category",
            entity_id=category_id,
            description="Category soft-deleted",
        )

    @staticmethod
    def transaction_recorded(
        transaction_id: str,
        transaction_type: str,
        amount: int,
        account_id: Optional[str],
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TRANSACTION_RECORDED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"{transaction_type.capitalize()} of {amount} cents recorded",
            details={
                "type": transaction_type,
                "amount": amount,
                "account_id": account_id,
            },
        )

    @staticmethod
    def transaction_rejected(
        error_kind: str,
        message: str,
        details: Optional[dict] = None,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TRANSACTION_REJECTED,
            severity=EventSeverity.WARNING,
            entity_type="transaction",
            description="Transaction rejected",
            details=details or {},
            error_kind=error_kind,
            error_message=message,
        )

    @staticmethod
    def transaction_deleted(transaction_ids: list[str]) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_ids[0] if transaction_ids else None,
            description=f"{len(transaction_ids)} transaction row(s) soft-deleted",
            details={"transaction_ids": transaction_ids},
        )

    @staticmethod
    def transfer_recorded(
        transfer_id: str,
        from_account_id: str,
        to_account_id: str,
        amount: int,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TRANSFER_RECORDED,
            entity_type="transfer",
            entity_id=transfer_id,
            description=f"Transfer of {amount} cents recorded",
            details={
                "from_account_id": from_account_id,
                "to_account_id": to_account_id,
                "amount": amount,
            },
        )

    @staticmethod
    def transfer_deleted(transfer_id: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TRANSFER_DELETED,
            entity_type="transfer",
            entity_id=transfer_id,
            description="Transfer legs soft-deleted",
        )

    @staticmethod
    def planification_changed(
        event_type: LedgerEventType,
        planification_id: str,
        description: str,
        details: Optional[dict] = None,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=event_type,
            entity_type="planification",
            entity_id=planification_id,
            description=description,
            details=details or {},
        )

    @staticmethod
    def planification_validated(
        planification_id: str,
        account_id: str,
        item_count: int,
        total: int,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.PLANIFICATION_VALIDATED,
            entity_type="planification",
            entity_id=planification_id,
            description=f"Planification settled into {item_count} transaction(s)",
            details={
                "account_id": account_id,
                "item_count": item_count,
                "net_total": total,
            },
        )

    @staticmethod
    def currency_converted(
        rate: float,
        counts: dict[str, int],
        currency: Optional[str] = None,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.CURRENCY_CONVERTED,
            entity_type="ledger",
            description=f"All amounts rescaled by {rate}",
            details={"rate": rate, "rows": counts, "currency": currency},
        )

    @staticmethod
    def onboarding_completed(account_ids: list[str], category_ids: list[str]) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.ONBOARDING_COMPLETED,
            entity_type="ledger",
            description="Onboarding data saved",
            details={"account_ids": account_ids, "category_ids": category_ids},
        )

    @staticmethod
    def setting_changed(key: str, value: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SETTING_CHANGED,
            entity_type="setting",
            entity_id=key,
            description=f"Setting '{key}' changed",
            details={"value": value},
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.STORAGE_ERROR,
            severity=EventSeverity.ERROR,
            description=f"Storage failure during {operation}",
            error_kind="storage_failure",
            error_message=error_message,
            details=details or {},
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.EXTERNAL_SERVICE_ERROR,
            severity=EventSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service, **(details or {})},
        )
