"""
Transfer Service

A transfer is two transaction rows written in one unit of work:

    expense leg  on the source account       --+
                                               +-- same transfer_id, amount,
    income leg   on the destination account  --+   note, system transfer category

Both legs exist or neither does. Net worth is unchanged by construction and
the ledger totals skip rows carrying a transfer_id.

DESIGN DECISION: Unlike expenses, transfers do not check the source balance
(a transfer may take the source account negative). Setting
require_transfer_funds switches the check on.
"""

from typing import Optional

from mitsitsy.identifiers import generate_id
from mitsitsy.models.events import LedgerEventBuilder
from mitsitsy.models.ledger import (
    SYSTEM_CATEGORY_TRANSFER_ID,
    SyncStatus,
    Transaction,
    TransactionType,
    utc_now,
)
from mitsitsy.models.results import OperationResult
from mitsitsy.services.balance import compute_account_balance
from mitsitsy.services.base import LedgerService
from mitsitsy.services.errors import (
    InsufficientBalanceError,
    InvalidTransferError,
    NotFoundError,
)
from mitsitsy.services.storage import AccountRepository, TransactionRepository
from mitsitsy.validation import LedgerValidator, ensure_valid


class TransferService(LedgerService):
    """Paired postings between two accounts."""

    def __init__(self, db, settings=None, event_logger=None):
        super().__init__(db, settings, event_logger)
        self._accounts = AccountRepository(db)
        self._transactions = TransactionRepository(db)
        self._validator = LedgerValidator(accounts=self._accounts)

    async def record_transfer(
        self,
        from_account_id: str,
        to_account_id: str,
        amount: int,
        note: Optional[str] = None,
    ) -> OperationResult:
        """
        Move money between two accounts.

        Returns:
            OperationResult whose id is the shared transfer_id and whose data
            holds expense_id and income_id
        """
        async def action() -> OperationResult:
            issues = self._validator.check_amount(amount)
            issues += self._validator.check_note(note)
            ensure_valid(issues)

            if from_account_id == to_account_id:
                raise InvalidTransferError("Source and destination accounts must differ")

            async with self._db.transaction():
                source, issues = await self._validator.load_account(
                    from_account_id, field="from_account_id",
                )
                _, destination_issues = await self._validator.load_account(
                    to_account_id, field="to_account_id",
                )
                ensure_valid(issues + destination_issues)

                if self._settings.require_transfer_funds:
                    balance = compute_account_balance(
                        source,
                        await self._transactions.list_all(account_id=source.id),
                    )
                    if balance < amount:
                        raise InsufficientBalanceError(source.id, balance, amount)

                now = utc_now()
                transfer_id = generate_id()
                legs = [
                    Transaction(
                        id=generate_id(),
                        type=leg_type,
                        amount=amount,
                        category_id=SYSTEM_CATEGORY_TRANSFER_ID,
                        account_id=leg_account,
                        transfer_id=transfer_id,
                        note=note or self._settings.transfer_note,
                        created_at=now,
                        updated_at=now,
                        sync_status=SyncStatus.PENDING,
                    )
                    for leg_type, leg_account in (
                        (TransactionType.EXPENSE, from_account_id),
                        (TransactionType.INCOME, to_account_id),
                    )
                ]
                for leg in legs:
                    await self._transactions.insert(leg)

            await self._events.log_transfer_recorded(
                transfer_id=transfer_id,
                from_account_id=from_account_id,
                to_account_id=to_account_id,
                amount=amount,
            )
            return OperationResult.ok(
                transfer_id,
                expense_id=legs[0].id,
                income_id=legs[1].id,
            )

        return await self._guard(
            "record_transfer",
            action,
            {"from_account_id": from_account_id, "to_account_id": to_account_id},
        )

    async def get_transfer(self, transfer_id: str) -> list[Transaction]:
        """The live legs of a transfer, expense leg first (empty when unknown)."""
        return await self._transactions.list_by_transfer(transfer_id)

    async def delete_transfer(self, transfer_id: str) -> OperationResult:
        """Soft-delete both legs in one unit."""
        async def action() -> OperationResult:
            async with self._db.transaction():
                legs = await self._transactions.list_by_transfer(
                    transfer_id, include_deleted=True,
                )
                if not legs:
                    raise NotFoundError("transfer", transfer_id)
                ids = [leg.id for leg in legs if not leg.is_deleted]
                await self._transactions.soft_delete(ids, utc_now())

            if ids:
                await self._events.log(LedgerEventBuilder.transfer_deleted(transfer_id))
            return OperationResult.ok(transfer_id, deleted_ids=ids)

        return await self._guard("delete_transfer", action, {"transfer_id": transfer_id})
