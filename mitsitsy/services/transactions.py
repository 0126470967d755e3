"""
Transaction Service

Records and soft-deletes single transactions and serves the transaction feed
and the ledger-wide totals.

DESIGN DECISION: The balance check and the insert of an expense run in the
same unit of work. Units are serialized, so two expenses issued together
against one account can never both pass the check on the same balance.

Income never carries a user category: it is always filed under the system
income category.
"""

from typing import Optional

from mitsitsy.identifiers import generate_id
from mitsitsy.models.events import LedgerEventBuilder
from mitsitsy.models.ledger import (
    SYSTEM_CATEGORY_INCOME_ID,
    CandidateTransaction,
    CategoryExpense,
    LedgerTotals,
    SyncStatus,
    Transaction,
    TransactionType,
    TransactionWithDetails,
    utc_now,
)
from mitsitsy.models.results import OperationResult
from mitsitsy.services.balance import (
    compute_account_balance,
    compute_net_worth,
    compute_totals,
    with_balance,
)
from mitsitsy.services.base import LedgerService
from mitsitsy.services.errors import InsufficientBalanceError, LedgerError, NotFoundError
from mitsitsy.services.storage import (
    AccountRepository,
    CategoryRepository,
    TransactionRepository,
)
from mitsitsy.validation import LedgerValidator, ensure_valid


class TransactionService(LedgerService):
    """Single-row ledger writes and the reads built on them."""

    def __init__(self, db, settings=None, event_logger=None):
        super().__init__(db, settings, event_logger)
        self._accounts = AccountRepository(db)
        self._categories = CategoryRepository(db)
        self._transactions = TransactionRepository(db)
        self._validator = LedgerValidator(self._accounts, self._categories)

    async def record_transaction(
        self,
        type: TransactionType | str,
        amount: int,
        category_id: Optional[str] = None,
        account_id: Optional[str] = None,
        note: Optional[str] = None,
    ) -> OperationResult:
        """
        Record one expense or income.

        Args:
            type: "expense" or "income"
            amount: Positive amount in cents
            category_id: Category for expenses (ignored for income)
            account_id: Account the money leaves or enters. None only for
                        unassigned records, which skip the balance check.
            note: Optional free text

        Returns:
            OperationResult with the new transaction id. Fails with
            INSUFFICIENT_BALANCE when an expense exceeds the account's balance.
        """
        async def action() -> OperationResult:
            try:
                transaction = await self._insert_checked(
                    type, amount, category_id, account_id, note,
                )
            except LedgerError as e:
                await self._events.log_transaction_rejected(
                    error_kind=e.kind.value,
                    message=e.message,
                    details={"amount": amount, "account_id": account_id},
                )
                raise

            await self._events.log_transaction_recorded(
                transaction_id=transaction.id,
                transaction_type=transaction.type.value,
                amount=transaction.amount,
                account_id=transaction.account_id,
            )
            return OperationResult.ok(transaction.id)

        return await self._guard("record_transaction", action, {"account_id": account_id})

    async def _insert_checked(
        self,
        type: TransactionType | str,
        amount: int,
        category_id: Optional[str],
        account_id: Optional[str],
        note: Optional[str],
    ) -> Transaction:
        # Stage 1: input shape, before any I/O
        transaction_type, issues = self._validator.parse_transaction_type(type)
        issues += self._validator.check_amount(amount)
        issues += self._validator.check_note(note)
        ensure_valid(issues)

        if transaction_type == TransactionType.INCOME:
            category_id = SYSTEM_CATEGORY_INCOME_ID

        async with self._db.transaction():
            # Stage 2: references, inside the unit
            issues = []
            account = None
            if account_id is not None:
                account, account_issues = await self._validator.load_account(account_id)
                issues += account_issues
            _, category_issues = await self._validator.load_category(category_id)
            issues += category_issues
            ensure_valid(issues)

            if transaction_type == TransactionType.EXPENSE and account is not None:
                balance = compute_account_balance(
                    account,
                    await self._transactions.list_all(account_id=account.id),
                )
                if balance < amount:
                    raise InsufficientBalanceError(account.id, balance, amount)

            now = utc_now()
            transaction = Transaction(
                id=generate_id(),
                type=transaction_type,
                amount=amount,
                category_id=category_id,
                account_id=account_id,
                note=note,
                created_at=now,
                updated_at=now,
                sync_status=SyncStatus.PENDING,
            )
            await self._transactions.insert(transaction)

        return transaction

    async def delete_transaction(self, transaction_id: str) -> OperationResult:
        """
        Soft-delete a transaction.

        Deleting either leg of a transfer deletes both legs, so a transfer can
        never be left half-applied. Deleting an already deleted row succeeds
        and changes nothing.

        Returns:
            OperationResult whose data["deleted_ids"] lists the rows deleted now
        """
        async def action() -> OperationResult:
            async with self._db.transaction():
                transaction = await self._transactions.get(transaction_id, include_deleted=True)
                if transaction is None:
                    raise NotFoundError("transaction", transaction_id)
                if transaction.is_deleted:
                    return OperationResult.ok(transaction_id, deleted_ids=[])

                if transaction.is_transfer:
                    legs = await self._transactions.list_by_transfer(transaction.transfer_id)
                    ids = [leg.id for leg in legs]
                else:
                    ids = [transaction.id]
                await self._transactions.soft_delete(ids, utc_now())

            await self._events.log(LedgerEventBuilder.transaction_deleted(ids))
            return OperationResult.ok(transaction_id, deleted_ids=ids)

        return await self._guard(
            "delete_transaction", action, {"transaction_id": transaction_id},
        )

    async def record_candidates(
        self,
        candidates: list[CandidateTransaction],
        account_id: Optional[str],
    ) -> list[OperationResult]:
        """
        Record transactions proposed by the receipt or voice parsers.

        Each candidate goes through record_transaction on its own, in order,
        with the same checks as manual input. One failing candidate does not
        stop the rest.
        """
        results = []
        for candidate in candidates:
            results.append(await self.record_transaction(
                type=candidate.type,
                amount=candidate.amount,
                category_id=candidate.category_id,
                account_id=account_id,
                note=candidate.note,
            ))
        return results

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return await self._transactions.get(transaction_id)

    async def list_transactions(
        self,
        limit: Optional[int] = None,
        account_id: Optional[str] = None,
    ) -> list[TransactionWithDetails]:
        """
        The default feed, newest first.

        Soft-deleted rows are excluded. A transfer shows up once, as its
        expense leg labelled "from → to". With account_id the feed holds that
        account's rows, incoming transfer legs included.
        """
        return await self._transactions.list_with_details(limit=limit, account_id=account_id)

    async def get_totals(self) -> LedgerTotals:
        """Income and expense without transfers, plus net worth."""
        transactions = await self._transactions.list_all()
        accounts = await self._accounts.list_all()
        income, expense = compute_totals(transactions)
        net_worth = compute_net_worth(with_balance(a, transactions) for a in accounts)
        return LedgerTotals(total_income=income, total_expense=expense, balance=net_worth)

    async def expenses_by_category(self) -> list[CategoryExpense]:
        """Expense sums per category, largest first, transfers excluded."""
        return await self._transactions.expenses_by_category()
