"""
Shared fixtures.

Every test gets its own migrated ledger in a temporary file, wired to a
notification scheduler that records calls instead of delivering them.
"""

from datetime import datetime

import pytest
import pytest_asyncio

from mitsitsy.config import LedgerSettings
from mitsitsy.events import EventLogger
from mitsitsy.ledger import Ledger
from mitsitsy.services.notifications import NotificationScheduler


BANK_OPENING = 100000
CASH_OPENING = 5000


class RecordingScheduler(NotificationScheduler):
    """Keeps every scheduler call as a tuple."""

    def __init__(self):
        self.calls: list[tuple] = []

    async def schedule_deadline_reminder(self, planification_id: str, title: str, deadline: datetime) -> None:
        self.calls.append(("schedule", planification_id, title, deadline))

    async def cancel_reminders(self, planification_id: str) -> None:
        self.calls.append(("cancel", planification_id))

    async def notify_expired(self, planification_id: str, title: str) -> None:
        self.calls.append(("expired", planification_id, title))

    def of_kind(self, kind: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == kind]


class FailingScheduler(NotificationScheduler):
    """Raises on every call."""

    async def schedule_deadline_reminder(self, planification_id, title, deadline) -> None:
        raise RuntimeError("notification service unavailable")

    async def cancel_reminders(self, planification_id) -> None:
        raise RuntimeError("notification service unavailable")

    async def notify_expired(self, planification_id, title) -> None:
        raise RuntimeError("notification service unavailable")


class RecordingLogger:
    """Stands in for a structlog logger; keeps (level, event, fields)."""

    def __init__(self):
        self.records: list[tuple[str, str, dict]] = []

    def _record(self, level: str, event: str, **fields) -> None:
        self.records.append((level, event, fields))

    def debug(self, event, **fields):
        self._record("debug", event, **fields)

    def info(self, event, **fields):
        self._record("info", event, **fields)

    def warning(self, event, **fields):
        self._record("warning", event, **fields)

    def error(self, event, **fields):
        self._record("error", event, **fields)

    def event_types(self) -> list[str]:
        return [fields.get("event_type") for _, _, fields in self.records]


@pytest.fixture
def ledger_settings() -> LedgerSettings:
    return LedgerSettings(
        _env_file=None,
        max_custom_accounts=5,
        max_custom_categories=10,
        default_currency="MGA",
        transfer_note="Transfer",
        settle_income_items_as_income=True,
        require_transfer_funds=False,
    )


@pytest.fixture
def notifier() -> RecordingScheduler:
    return RecordingScheduler()


@pytest.fixture
def failing_notifier() -> FailingScheduler:
    return FailingScheduler()


@pytest.fixture
def recording_logger() -> RecordingLogger:
    return RecordingLogger()


@pytest_asyncio.fixture
async def ledger(tmp_path, ledger_settings, notifier, recording_logger):
    ledger = await Ledger.open(
        tmp_path / "ledger.db",
        settings=ledger_settings,
        event_logger=EventLogger(logger=recording_logger),
        notifier=notifier,
    )
    yield ledger
    await ledger.close()


@pytest_asyncio.fixture
async def accounts(ledger) -> dict[str, str]:
    """Onboard with a bank (100000) and a cash (5000) account."""
    result = await ledger.onboarding.complete_onboarding(
        bank_balance=BANK_OPENING,
        cash_balance=CASH_OPENING,
        selected_category_ids=["food", "transport", "bills"],
    )
    assert result.success, result.message
    bank_id, cash_id = result.data["account_ids"]
    return {"bank": bank_id, "cash": cash_id}
