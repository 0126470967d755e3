"""
Currency Re-denomination Service

Rescales every stored money amount by an exchange rate when the user switches
working currency. The rate comes from outside (no network I/O here).

    accounts.initial_balance      non-deleted rows
    transactions.amount           non-deleted rows
    planification_items.amount    every row, whatever the parent's status

DESIGN DECISION: The three sweeps run in ONE unit of work. Any failure, at any
row, rolls back every row already rewritten. Rounding is half-up on Decimal
arithmetic (the rate goes through str() so 0.1 means exactly 0.1).
"""

from decimal import Decimal
from typing import Optional

from mitsitsy.models.events import LedgerEventBuilder
from mitsitsy.models.ledger import utc_now
from mitsitsy.models.results import OperationResult, ValidationIssue
from mitsitsy.services.balance import round_half_up
from mitsitsy.services.base import LedgerService
from mitsitsy.services.errors import LedgerValidationError
from mitsitsy.services.settings import CURRENCY_KEY
from mitsitsy.services.storage import (
    AccountRepository,
    PlanificationItemRepository,
    SettingsRepository,
    TransactionRepository,
)
from mitsitsy.validation import MAX_STORED_AMOUNT, LedgerValidator, ensure_valid


class CurrencyService(LedgerService):
    """Ledger-wide rescaling of money amounts."""

    def __init__(self, db, settings=None, event_logger=None):
        super().__init__(db, settings, event_logger)
        self._accounts = AccountRepository(db)
        self._transactions = TransactionRepository(db)
        self._items = PlanificationItemRepository(db)
        self._settings_repo = SettingsRepository(db)
        self._validator = LedgerValidator()

    async def convert_all(self, rate: float) -> OperationResult:
        """
        Multiply every stored amount by rate.

        The caller writes the new currency setting only after success, or
        uses switch_currency() which does both in one unit.

        Returns:
            OperationResult with data["counts"] = rows rewritten per table
        """
        return await self._convert(rate, currency=None)

    async def switch_currency(self, currency: str, rate: float) -> OperationResult:
        """
        Convert every amount and store the new currency code, atomically.

        The setting changes only if the conversion succeeds.
        """
        return await self._convert(rate, currency=currency)

    async def _convert(self, rate: float, currency: Optional[str]) -> OperationResult:
        async def action() -> OperationResult:
            issues = self._validator.check_rate(rate)
            if currency is not None:
                issues += self._validator.check_currency(currency)
            ensure_valid(issues)

            factor = Decimal(str(rate))

            def convert(value: int) -> int:
                converted = round_half_up(value, factor)
                if abs(converted) > MAX_STORED_AMOUNT:
                    raise LedgerValidationError(
                        f"Rate {rate} turns {value} into {converted}, which cannot be stored",
                        [ValidationIssue(
                            field="rate",
                            issue_type="out_of_range",
                            message=f"Converted amounts must be at most {MAX_STORED_AMOUNT}",
                        )],
                    )
                return converted

            now = utc_now()
            code = currency.strip().upper() if currency is not None else None
            async with self._db.transaction():
                counts = {
                    "accounts": await self._accounts.rescale_initial_balances(convert, now),
                    "transactions": await self._transactions.rescale_amounts(convert, now),
                    "planification_items": await self._items.rescale_amounts(convert, now),
                }
                if code is not None:
                    await self._settings_repo.set(CURRENCY_KEY, code, now)

            await self._events.log(LedgerEventBuilder.currency_converted(rate, counts, code))
            return OperationResult.ok(counts=counts, currency=code)

        return await self._guard("convert_all", action, {"rate": rate, "currency": currency})
