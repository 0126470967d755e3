"""
Ledger facade

Ties every service to one LedgerDatabase so they share the same unit-of-work
lock:

    ledger = await Ledger.open("money-tracker.db")
    result = await ledger.transactions.record_transaction("expense", 3000, "food", bank_id)
    await ledger.close()

DESIGN DECISION: Services are plain objects built around the shared database;
the facade only wires them. Opening the ledger connects and runs pending
migrations, so every service sees the current schema.
"""

from pathlib import Path
from typing import Optional

import structlog

from mitsitsy.config import LedgerSettings, get_settings
from mitsitsy.events import EventLogger
from mitsitsy.services.accounts import AccountService
from mitsitsy.services.categories import CategoryService
from mitsitsy.services.currency import CurrencyService
from mitsitsy.services.notifications import LoggingNotificationScheduler, NotificationScheduler
from mitsitsy.services.onboarding import OnboardingService
from mitsitsy.services.planifications import PlanificationService
from mitsitsy.services.settings import SettingsService
from mitsitsy.services.storage import LedgerDatabase
from mitsitsy.services.transactions import TransactionService
from mitsitsy.services.transfers import TransferService

logger = structlog.get_logger(__name__)


class Ledger:
    """
    One local ledger and its services.

    Args:
        db: Connected and migrated database
        settings: Ledger settings shared by every service
        event_logger: Structured event logger shared by every service
        notifier: Reminder scheduler used by the planification service
    """

    def __init__(
        self,
        db: LedgerDatabase,
        settings: Optional[LedgerSettings] = None,
        event_logger: Optional[EventLogger] = None,
        notifier: Optional[NotificationScheduler] = None,
    ):
        self.db = db
        self.settings = settings or get_settings().ledger
        self.event_logger = event_logger or EventLogger()
        self.notifier = notifier or LoggingNotificationScheduler()

        shared = (db, self.settings, self.event_logger)
        self.accounts = AccountService(*shared)
        self.categories = CategoryService(*shared)
        self.transactions = TransactionService(*shared)
        self.transfers = TransferService(*shared)
        self.planifications = PlanificationService(*shared, notifier=self.notifier)
        self.currency = CurrencyService(*shared)
        self.preferences = SettingsService(*shared)
        self.onboarding = OnboardingService(*shared)

    @classmethod
    async def open(
        cls,
        path: Optional[str | Path] = None,
        settings: Optional[LedgerSettings] = None,
        event_logger: Optional[EventLogger] = None,
        notifier: Optional[NotificationScheduler] = None,
    ) -> "Ledger":
        """
        Open (creating if needed) and migrate the ledger at path.

        Args:
            path: Database file. Defaults to MITSITSY_DB_PATH.

        Returns:
            A ready-to-use Ledger
        """
        db = LedgerDatabase(path)
        try:
            version = await db.initialize()
        except Exception:
            await db.close()
            raise
        logger.info("ledger_opened", db_path=db.path, schema_version=version)
        return cls(db, settings=settings, event_logger=event_logger, notifier=notifier)

    async def close(self) -> None:
        await self.db.close()

    async def __aenter__(self) -> "Ledger":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
