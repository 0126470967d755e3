"""
Planification Service

A planification is a draft list of future expenses and income. Its lifecycle
has exactly one transition:

    PENDING --validate()--> COMPLETED (terminal)

Expiry is derived (pending with a past deadline), never a stored status.
Expired plans stay editable and can still be validated.

DESIGN DECISION: validate() settles the whole plan in one unit of work: every
item becomes a transaction on the chosen account and the status flips, or
nothing happens at all. There is no balance check; callers use
projected_balance() to warn before validating.

Notification scheduler calls happen after commit and never fail the operation.
"""

from datetime import datetime
from typing import Awaitable, Callable, Optional

from mitsitsy.identifiers import generate_id
from mitsitsy.models.events import LedgerEventBuilder, LedgerEventType
from mitsitsy.models.ledger import (
    SYSTEM_CATEGORY_INCOME_ID,
    Planification,
    PlanificationItem,
    PlanificationItemWithCategory,
    PlanificationStatus,
    PlanificationWithTotals,
    SyncStatus,
    Transaction,
    TransactionType,
    ensure_utc,
    utc_now,
)
from mitsitsy.models.results import OperationResult
from mitsitsy.services.balance import compute_account_balance
from mitsitsy.services.base import LedgerService
from mitsitsy.services.errors import (
    AlreadyValidatedError,
    NotFoundError,
    PlanificationLockedError,
)
from mitsitsy.services.notifications import LoggingNotificationScheduler, NotificationScheduler
from mitsitsy.services.storage import (
    AccountRepository,
    CategoryRepository,
    PlanificationItemRepository,
    PlanificationRepository,
    TransactionRepository,
)
from mitsitsy.validation import LedgerValidator, ensure_valid
from mitsitsy.validation.validator import MAX_TITLE_LENGTH


class PlanificationService(LedgerService):
    """
    Planification state machine and settlement.

    Args:
        db: Connected and migrated database
        settings: Ledger settings
        event_logger: Structured event logger
        notifier: Reminder scheduler (defaults to one that only logs)
    """

    def __init__(
        self,
        db,
        settings=None,
        event_logger=None,
        notifier: Optional[NotificationScheduler] = None,
    ):
        super().__init__(db, settings, event_logger)
        self._plans = PlanificationRepository(db)
        self._items = PlanificationItemRepository(db)
        self._accounts = AccountRepository(db)
        self._transactions = TransactionRepository(db)
        self._validator = LedgerValidator(self._accounts, CategoryRepository(db))
        self._notifier = notifier or LoggingNotificationScheduler()

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _load_pending(self, planification_id: str) -> Planification:
        """Load a live plan that can still be edited."""
        plan = await self._plans.get(planification_id)
        if plan is None:
            raise NotFoundError("planification", planification_id)
        if plan.is_locked:
            raise PlanificationLockedError(f"Planification '{plan.title}' is completed and locked")
        return plan

    async def _notify(
        self,
        action: str,
        planification_id: str,
        call: Callable[[], Awaitable[None]],
    ) -> None:
        # The ledger write already committed; a scheduler failure is only logged.
        try:
            await call()
        except Exception as e:
            await self._events.log_external_service_error(
                service="notification_scheduler",
                error=e,
                details={"action": action, "planification_id": planification_id},
            )

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def create(
        self,
        title: str,
        deadline: Optional[datetime] = None,
    ) -> OperationResult:
        """Create an empty pending planification."""
        async def action() -> OperationResult:
            issues = self._validator.check_text(title, "title", MAX_TITLE_LENGTH)
            issues += self._validator.check_deadline(deadline)
            ensure_valid(issues)

            now = utc_now()
            plan = Planification(
                id=generate_id(),
                title=title,
                status=PlanificationStatus.PENDING,
                deadline=deadline,
                created_at=now,
                updated_at=now,
            )
            async with self._db.transaction():
                await self._plans.insert(plan)

            await self._events.log_planification(
                LedgerEventType.PLANIFICATION_CREATED, plan.id, f"Planification created: {plan.title}",
            )
            if plan.deadline is not None:
                await self._notify(
                    "schedule_deadline_reminder", plan.id,
                    lambda: self._notifier.schedule_deadline_reminder(plan.id, plan.title, plan.deadline),
                )
            return OperationResult.ok(plan.id)

        return await self._guard("create_planification", action)

    async def add_item(
        self,
        planification_id: str,
        amount: int,
        type: TransactionType | str = TransactionType.EXPENSE,
        category_id: Optional[str] = None,
        note: Optional[str] = None,
    ) -> OperationResult:
        """
        Add a line to a pending plan.

        Income items are always filed under the system income category.

        Returns:
            OperationResult with the new item id, PLANIFICATION_LOCKED when
            the plan is completed
        """
        async def action() -> OperationResult:
            item_type, issues = self._validator.parse_transaction_type(type)
            issues += self._validator.check_amount(amount)
            issues += self._validator.check_note(note)
            ensure_valid(issues)

            item_category = SYSTEM_CATEGORY_INCOME_ID if item_type == TransactionType.INCOME else category_id

            async with self._db.transaction():
                await self._load_pending(planification_id)
                _, issues = await self._validator.load_category(item_category)
                ensure_valid(issues)

                now = utc_now()
                item = PlanificationItem(
                    id=generate_id(),
                    planification_id=planification_id,
                    amount=amount,
                    type=item_type,
                    category_id=item_category,
                    note=note,
                    created_at=now,
                )
                await self._items.insert(item)
                await self._plans.touch(planification_id, now)

            await self._events.log_planification(
                LedgerEventType.PLANIFICATION_UPDATED, planification_id, "Item added",
                {"item_id": item.id, "amount": amount, "type": item_type.value},
            )
            return OperationResult.ok(item.id)

        return await self._guard("add_planification_item", action, {"planification_id": planification_id})

    async def remove_item(self, item_id: str) -> OperationResult:
        """Hard-delete one item of a pending plan."""
        async def action() -> OperationResult:
            async with self._db.transaction():
                item = await self._items.get(item_id)
                if item is None:
                    raise NotFoundError("item", item_id)
                await self._load_pending(item.planification_id)
                await self._items.delete(item_id)
                await self._plans.touch(item.planification_id, utc_now())

            await self._events.log_planification(
                LedgerEventType.PLANIFICATION_UPDATED, item.planification_id, "Item removed",
                {"item_id": item_id},
            )
            return OperationResult.ok(item_id)

        return await self._guard("remove_planification_item", action, {"item_id": item_id})

    async def update_deadline(
        self,
        planification_id: str,
        deadline: Optional[datetime],
    ) -> OperationResult:
        """
        Set or clear the deadline of a pending plan.

        Reminders are re-armed for the new deadline (or cancelled when it is
        cleared), and the expiry notification can fire again.
        """
        async def action() -> OperationResult:
            ensure_valid(self._validator.check_deadline(deadline))
            new_deadline = ensure_utc(deadline)
            async with self._db.transaction():
                plan = await self._load_pending(planification_id)
                await self._plans.set_deadline(planification_id, new_deadline, utc_now())

            await self._events.log_planification(
                LedgerEventType.PLANIFICATION_UPDATED, planification_id, "Deadline changed",
                {"deadline": new_deadline.isoformat() if new_deadline else None},
            )
            await self._notify(
                "cancel_reminders", planification_id,
                lambda: self._notifier.cancel_reminders(planification_id),
            )
            if new_deadline is not None:
                await self._notify(
                    "schedule_deadline_reminder", planification_id,
                    lambda: self._notifier.schedule_deadline_reminder(
                        planification_id, plan.title, new_deadline,
                    ),
                )
            return OperationResult.ok(planification_id)

        return await self._guard("update_planification_deadline", action, {"planification_id": planification_id})

    async def update_title(self, planification_id: str, title: str) -> OperationResult:
        async def action() -> OperationResult:
            ensure_valid(self._validator.check_text(title, "title", MAX_TITLE_LENGTH))
            async with self._db.transaction():
                await self._load_pending(planification_id)
                await self._plans.set_title(planification_id, title.strip(), utc_now())

            await self._events.log_planification(
                LedgerEventType.PLANIFICATION_UPDATED, planification_id, "Title changed",
            )
            return OperationResult.ok(planification_id)

        return await self._guard("update_planification_title", action, {"planification_id": planification_id})

    async def delete(self, planification_id: str) -> OperationResult:
        """
        Soft-delete a planification, pending or completed.

        Transactions created by an earlier validation are not touched.
        """
        async def action() -> OperationResult:
            async with self._db.transaction():
                plan = await self._plans.get(planification_id)
                if plan is None:
                    raise NotFoundError("planification", planification_id)
                await self._plans.soft_delete(planification_id, utc_now())

            await self._events.log_planification(
                LedgerEventType.PLANIFICATION_DELETED, planification_id, "Planification deleted",
            )
            await self._notify(
                "cancel_reminders", planification_id,
                lambda: self._notifier.cancel_reminders(planification_id),
            )
            return OperationResult.ok(planification_id)

        return await self._guard("delete_planification", action, {"planification_id": planification_id})

    # =========================================================================
    # EXPIRY SWEEP
    # =========================================================================

    async def check_expired(self, now: Optional[datetime] = None) -> OperationResult:
        """
        Notify once for every pending plan whose deadline has passed.

        Meant to run whenever the app comes to the foreground. A plan is
        flagged (expiry_notified_at) in the same unit that selects it, so a
        second sweep does not notify again. Status is never changed.

        Returns:
            OperationResult whose data["expired_ids"] lists the plans notified now
        """
        async def action() -> OperationResult:
            at = ensure_utc(now) or utc_now()
            async with self._db.transaction():
                expired = [
                    plan for plan in await self._plans.list_pending_with_deadline()
                    if plan.is_expired(at) and plan.expiry_notified_at is None
                ]
                for plan in expired:
                    await self._plans.mark_expiry_notified(plan.id, at)

            for plan in expired:
                await self._events.log_planification(
                    LedgerEventType.PLANIFICATION_EXPIRED, plan.id, f"Deadline passed: {plan.title}",
                    {"deadline": plan.deadline.isoformat()},
                )
                await self._notify(
                    "notify_expired", plan.id,
                    lambda plan=plan: self._notifier.notify_expired(plan.id, plan.title),
                )
            return OperationResult.ok(expired_ids=[plan.id for plan in expired])

        return await self._guard("check_expired_planifications", action)

    # =========================================================================
    # SETTLEMENT
    # =========================================================================

    async def validate(self, planification_id: str, account_id: str) -> OperationResult:
        """
        Settle a pending plan into the ledger.

        Every item becomes one transaction on account_id, then the plan is
        marked completed, all in one unit. Income items become income
        transactions unless settle_income_items_as_income is off, in which
        case every item is settled as an expense.

        Returns:
            OperationResult with data["transaction_ids"], ALREADY_VALIDATED
            when the plan is not pending
        """
        async def action() -> OperationResult:
            async with self._db.transaction():
                plan = await self._plans.get(planification_id)
                if plan is None:
                    raise NotFoundError("planification", planification_id)
                if plan.status != PlanificationStatus.PENDING:
                    raise AlreadyValidatedError(f"Planification '{plan.title}' is already validated")

                account, issues = await self._validator.load_account(account_id)
                ensure_valid(issues)

                items = await self._items.list_for(planification_id)
                now = utc_now()
                transaction_ids = []
                for item in items:
                    transaction = self._settle_item(item, account.id, now)
                    await self._transactions.insert(transaction)
                    transaction_ids.append(transaction.id)

                if not await self._plans.mark_completed(planification_id, now):
                    raise AlreadyValidatedError(f"Planification '{plan.title}' is already validated")

            expenses = sum(i.amount for i in items if i.type == TransactionType.EXPENSE)
            income = sum(i.amount for i in items if i.type == TransactionType.INCOME)
            await self._events.log(LedgerEventBuilder.planification_validated(
                planification_id=planification_id,
                account_id=account.id,
                item_count=len(items),
                total=expenses - income,
            ))
            await self._notify(
                "cancel_reminders", planification_id,
                lambda: self._notifier.cancel_reminders(planification_id),
            )
            return OperationResult.ok(planification_id, transaction_ids=transaction_ids)

        return await self._guard(
            "validate_planification",
            action,
            {"planification_id": planification_id, "account_id": account_id},
        )

    def _settle_item(
        self,
        item: PlanificationItemWithCategory,
        account_id: str,
        now: datetime,
    ) -> Transaction:
        if self._settings.settle_income_items_as_income:
            transaction_type = item.type
        else:
            transaction_type = TransactionType.EXPENSE
        return Transaction(
            id=generate_id(),
            type=transaction_type,
            amount=item.amount,
            category_id=item.category_id,
            account_id=account_id,
            note=item.note,
            created_at=now,
            updated_at=now,
            sync_status=SyncStatus.PENDING,
        )

    # =========================================================================
    # READS
    # =========================================================================

    async def get(self, planification_id: str) -> Optional[PlanificationWithTotals]:
        return await self._plans.get_with_totals(planification_id)

    async def list_planifications(self) -> list[PlanificationWithTotals]:
        """Live plans: pending first, then most recently updated."""
        return await self._plans.list_with_totals()

    async def list_items(self, planification_id: str) -> list[PlanificationItemWithCategory]:
        """Items of a plan, newest first."""
        return await self._items.list_for(planification_id)

    async def projected_balance(self, planification_id: str, account_id: str) -> Optional[int]:
        """
        Balance the account would have after validating the plan.

        Returns None when the plan or the account does not exist. A negative
        value is a warning for the caller, validate() does not refuse it.
        """
        plan = await self._plans.get_with_totals(planification_id)
        account = await self._accounts.get(account_id)
        if plan is None or account is None:
            return None
        balance = compute_account_balance(
            account, await self._transactions.list_all(account_id=account_id),
        )
        if self._settings.settle_income_items_as_income:
            return balance - plan.total
        return balance - plan.total_expenses - plan.total_income
