"""
Ledger Event Logger

Every balance-affecting action is written to the structured log. The logger:
- Is async so services can await it the same way on every path
- Never raises into the calling service
- Routes severity to the matching log level
"""

from typing import Any, Optional

import structlog

from mitsitsy.models.events import (
    EventSeverity,
    LedgerEvent,
    LedgerEventBuilder,
    LedgerEventType,
)


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class EventLogger:
    """
    Central ledger event logging service.

    Args:
        logger: structlog logger to write to. Defaults to the module logger;
                tests pass a recording logger.
    """

    def __init__(self, logger: Optional[Any] = None):
        self._logger = logger or structlog.get_logger("mitsitsy.ledger")

    async def log(self, event: LedgerEvent) -> None:
        """Write one event at the level matching its severity."""
        log_dict = event.to_log_dict()

        if event.severity == EventSeverity.ERROR:
            self._logger.error("ledger_event", **log_dict)
        elif event.severity == EventSeverity.WARNING:
            self._logger.warning("ledger_event", **log_dict)
        elif event.severity == EventSeverity.DEBUG:
            self._logger.debug("ledger_event", **log_dict)
        else:
            self._logger.info("ledger_event", **log_dict)

    async def log_transaction_recorded(
        self,
        transaction_id: str,
        transaction_type: str,
        amount: int,
        account_id: Optional[str],
    ) -> None:
        await self.log(LedgerEventBuilder.transaction_recorded(
            transaction_id=transaction_id,
            transaction_type=transaction_type,
            amount=amount,
            account_id=account_id,
        ))

    async def log_transaction_rejected(
        self,
        error_kind: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        await self.log(LedgerEventBuilder.transaction_rejected(
            error_kind=error_kind,
            message=message,
            details=details,
        ))

    async def log_transfer_recorded(
        self,
        transfer_id: str,
        from_account_id: str,
        to_account_id: str,
        amount: int,
    ) -> None:
        await self.log(LedgerEventBuilder.transfer_recorded(
            transfer_id=transfer_id,
            from_account_id=from_account_id,
            to_account_id=to_account_id,
            amount=amount,
        ))

    async def log_planification(
        self,
        event_type: LedgerEventType,
        planification_id: str,
        description: str,
        details: Optional[dict] = None,
    ) -> None:
        await self.log(LedgerEventBuilder.planification_changed(
            event_type=event_type,
            planification_id=planification_id,
            description=description,
            details=details,
        ))

    async def log_storage_error(
        self,
        operation: str,
        error: Exception,
        details: Optional[dict] = None,
    ) -> None:
        """Log a storage failure with its traceback."""
        event = LedgerEventBuilder.storage_error(
            operation=operation,
            error_message=str(error),
            details=details,
        )
        self._logger.error("ledger_event", exc_info=error, **event.to_log_dict())

    async def log_external_service_error(
        self,
        service: str,
        error: Exception,
        details: Optional[dict] = None,
    ) -> None:
        await self.log(LedgerEventBuilder.external_service_error(
            service=service,
            error_message=str(error),
            details=details,
        ))
