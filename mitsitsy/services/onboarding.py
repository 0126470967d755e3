"""
Onboarding Service

First-run seeding, done once and atomically:
- the default bank and cash accounts with their opening balances
- the catalog categories the user picked
- the working currency and the onboarding_completed flag
"""

from typing import Iterable, Optional

from mitsitsy.identifiers import generate_id
from mitsitsy.models.events import LedgerEventBuilder
from mitsitsy.models.ledger import (
    DEFAULT_CATEGORIES,
    Account,
    AccountType,
    Category,
    CategoryType,
    SyncStatus,
    utc_now,
)
from mitsitsy.models.results import OperationResult
from mitsitsy.services.base import LedgerService
from mitsitsy.services.errors import LedgerValidationError
from mitsitsy.services.settings import CURRENCY_KEY, ONBOARDING_COMPLETED_KEY
from mitsitsy.services.storage import (
    AccountRepository,
    CategoryRepository,
    SettingsRepository,
)
from mitsitsy.validation import LedgerValidator, ensure_valid


DEFAULT_BANK_NAME = "Bank"
DEFAULT_CASH_NAME = "Cash"


class OnboardingService(LedgerService):
    """Creates the first-run data set."""

    def __init__(self, db, settings=None, event_logger=None):
        super().__init__(db, settings, event_logger)
        self._accounts = AccountRepository(db)
        self._categories = CategoryRepository(db)
        self._settings_repo = SettingsRepository(db)
        self._validator = LedgerValidator()

    async def complete_onboarding(
        self,
        bank_balance: int = 0,
        cash_balance: int = 0,
        selected_category_ids: Optional[Iterable[str]] = None,
        currency: Optional[str] = None,
    ) -> OperationResult:
        """
        Save the onboarding choices.

        Args:
            bank_balance: Opening balance of the bank account, in cents
            cash_balance: Opening balance of the cash account, in cents
            selected_category_ids: Catalog ids to seed (all of them when None)
            currency: Working currency (configured default when None)

        Returns:
            OperationResult with data["account_ids"] and data["category_ids"].
            Fails with VALIDATION_ERROR when onboarding already ran.
        """
        async def action() -> OperationResult:
            code = currency or self._settings.default_currency
            issues = self._validator.check_initial_balance(bank_balance)
            issues += self._validator.check_initial_balance(cash_balance)
            issues += self._validator.check_currency(code)

            catalog = {c.id: c for c in DEFAULT_CATEGORIES}
            wanted = list(catalog) if selected_category_ids is None else list(selected_category_ids)
            unknown = [cid for cid in wanted if cid not in catalog]
            if unknown:
                raise LedgerValidationError(f"Unknown catalog categories: {', '.join(unknown)}")
            ensure_valid(issues)

            now = utc_now()
            accounts = [
                Account(
                    id=generate_id(),
                    name=DEFAULT_BANK_NAME,
                    type=AccountType.BANK,
                    initial_balance=bank_balance,
                    icon="card",
                    is_default=True,
                    created_at=now,
                    updated_at=now,
                ),
                Account(
                    id=generate_id(),
                    name=DEFAULT_CASH_NAME,
                    type=AccountType.CASH,
                    initial_balance=cash_balance,
                    icon="cash",
                    is_default=True,
                    created_at=now,
                    updated_at=now,
                ),
            ]

            async with self._db.transaction():
                done = await self._settings_repo.get(ONBOARDING_COMPLETED_KEY)
                if done in ("true", "1"):
                    raise LedgerValidationError("Onboarding has already been completed")

                for account in accounts:
                    await self._accounts.insert(account)

                for category_id in dict.fromkeys(wanted):
                    entry = catalog[category_id]
                    await self._categories.insert(
                        Category(
                            id=entry.id,
                            name=entry.name,
                            icon=entry.icon,
                            color=entry.color,
                            is_default=True,
                            category_type=CategoryType.EXPENSE,
                            created_at=now,
                            sync_status=SyncStatus.PENDING,
                        ),
                        ignore_existing=True,
                    )

                await self._settings_repo.set(CURRENCY_KEY, code.strip().upper(), now)
                await self._settings_repo.set(ONBOARDING_COMPLETED_KEY, "true", now)

            account_ids = [a.id for a in accounts]
            category_ids = list(dict.fromkeys(wanted))
            await self._events.log(LedgerEventBuilder.onboarding_completed(account_ids, category_ids))
            return OperationResult.ok(account_ids=account_ids, category_ids=category_ids)

        return await self._guard("complete_onboarding", action)
