"""
Account Service

Creates and soft-deletes accounts and serves their derived balances.

DESIGN DECISION: The two onboarding accounts (bank and cash) are flagged
is_default and cannot be deleted. Only non-default accounts count towards the
custom account cap.
"""

from typing import Optional

from mitsitsy.identifiers import generate_id
from mitsitsy.models.events import LedgerEventBuilder
from mitsitsy.models.ledger import Account, AccountType, AccountWithBalance, utc_now
from mitsitsy.models.results import OperationResult
from mitsitsy.services.balance import compute_net_worth, with_balance
from mitsitsy.services.base import LedgerService
from mitsitsy.services.errors import LedgerValidationError, LimitReachedError, NotFoundError
from mitsitsy.services.storage import AccountRepository, TransactionRepository
from mitsitsy.validation import LedgerValidator, ensure_valid


class AccountService(LedgerService):
    """Account lifecycle and balance reads."""

    def __init__(self, db, settings=None, event_logger=None):
        super().__init__(db, settings, event_logger)
        self._accounts = AccountRepository(db)
        self._transactions = TransactionRepository(db)
        self._validator = LedgerValidator(accounts=self._accounts)

    async def create_account(
        self,
        name: str,
        type: AccountType | str,
        initial_balance: int = 0,
        icon: Optional[str] = None,
    ) -> OperationResult:
        """
        Create a custom (non-default) account.

        Returns:
            OperationResult with the new account id, LIMIT_REACHED when the
            custom account cap is hit
        """
        async def action() -> OperationResult:
            issues = self._validator.check_text(name, "name")
            issues += self._validator.check_initial_balance(initial_balance)
            try:
                account_type = AccountType(type)
            except ValueError:
                raise LedgerValidationError(f"Unknown account type: {type!r}")
            ensure_valid(issues)

            now = utc_now()
            account = Account(
                id=generate_id(),
                name=name,
                type=account_type,
                initial_balance=initial_balance,
                icon=icon,
                is_default=False,
                created_at=now,
                updated_at=now,
            )

            async with self._db.transaction():
                if await self._accounts.count_custom() >= self._settings.max_custom_accounts:
                    raise LimitReachedError(
                        f"You can create at most {self._settings.max_custom_accounts} custom accounts"
                    )
                await self._accounts.insert(account)

            await self._events.log(LedgerEventBuilder.account_created(
                account.id, account.name, account.type.value,
            ))
            return OperationResult.ok(account.id)

        return await self._guard("create_account", action, {"name": name})

    async def delete_account(self, account_id: str) -> OperationResult:
        """
        Soft-delete a custom account.

        Its transactions stay in the store; they leave every balance and
        net worth figure together with the account.
        """
        async def action() -> OperationResult:
            async with self._db.transaction():
                account = await self._accounts.get(account_id)
                if account is None:
                    raise NotFoundError("account", account_id)
                if account.is_default:
                    raise LedgerValidationError("Default accounts cannot be deleted")
                await self._accounts.soft_delete(account_id, utc_now())

            await self._events.log(LedgerEventBuilder.account_deleted(account_id))
            return OperationResult.ok(account_id)

        return await self._guard("delete_account", action, {"account_id": account_id})

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def list_accounts(self) -> list[AccountWithBalance]:
        """Live accounts in creation order, each with a freshly derived balance."""
        accounts = await self._accounts.list_all()
        transactions = await self._transactions.list_all()
        return [with_balance(account, transactions) for account in accounts]

    async def get_account(self, account_id: str) -> Optional[AccountWithBalance]:
        account = await self._accounts.get(account_id)
        if account is None:
            return None
        transactions = await self._transactions.list_all(account_id=account_id)
        return with_balance(account, transactions)

    async def get_balance(self, account_id: str) -> Optional[int]:
        """Current balance, or None for an unknown or deleted account."""
        account = await self.get_account(account_id)
        return account.current_balance if account else None

    async def get_net_worth(self) -> int:
        return compute_net_worth(await self.list_accounts())

    async def can_create_account(self) -> bool:
        return await self._accounts.count_custom() < self._settings.max_custom_accounts
