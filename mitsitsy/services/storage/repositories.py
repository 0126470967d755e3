"""
Ledger repositories.

One repository per table. Repositories own the SQL and the row <-> model
mapping; they never decide whether a write is allowed. Writes must be issued
inside LedgerDatabase.transaction(), reads may run anywhere.

Every read skips soft-deleted rows unless include_deleted=True is passed.
"""

from datetime import datetime
from typing import Callable, Optional

from mitsitsy.models.ledger import (
    Account,
    Category,
    CategoryExpense,
    Planification,
    PlanificationItem,
    PlanificationItemWithCategory,
    PlanificationStatus,
    PlanificationWithTotals,
    Transaction,
    TransactionType,
    TransactionWithDetails,
)
from mitsitsy.services.storage.schema import to_db_timestamp
from mitsitsy.services.storage.sqlite import LedgerDatabase


Rescale = Callable[[int], int]


def _ts(value: Optional[datetime]) -> Optional[str]:
    return to_db_timestamp(value) if value is not None else None


def _deleted_clause(include_deleted: bool) -> str:
    return "" if include_deleted else " AND deleted_at IS NULL"


async def _rescale_column(
    db: LedgerDatabase,
    table: str,
    column: str,
    convert: Rescale,
    where: str,
    touch_updated_at: bool,
    now: datetime,
) -> int:
    """Rewrite one money column row by row; returns the number of rows visited."""
    rows = await db.fetchall(f"SELECT id, {column} FROM {table} WHERE {where}")
    if touch_updated_at:
        sql = f"UPDATE {table} SET {column} = ?, updated_at = ? WHERE id = ?"
        params = [(convert(row[column]), _ts(now), row["id"]) for row in rows]
    else:
        sql = f"UPDATE {table} SET {column} = ? WHERE id = ?"
        params = [(convert(row[column]), row["id"]) for row in rows]
    if params:
        await db.executemany(sql, params)
    return len(rows)


# =============================================================================
# ACCOUNTS
# =============================================================================

class AccountRepository:
    """SQL for the accounts table."""

    def __init__(self, db: LedgerDatabase):
        self.db = db

    def _row_to_account(self, row) -> Account:
        return Account.model_validate(dict(row))

    async def insert(self, account: Account) -> None:
        await self.db.execute(
            """INSERT INTO accounts
               (id, name, type, initial_balance, icon, is_default,
                created_at, updated_at, deleted_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                account.id,
                account.name,
                account.type.value,
                account.initial_balance,
                account.icon,
                int(account.is_default),
                _ts(account.created_at),
                _ts(account.updated_at),
                _ts(account.deleted_at),
            ),
        )

    async def get(self, account_id: str, include_deleted: bool = False) -> Optional[Account]:
        row = await self.db.fetchone(
            "SELECT * FROM accounts WHERE id = ?" + _deleted_clause(include_deleted),
            (account_id,),
        )
        return self._row_to_account(row) if row else None

    async def list_all(self, include_deleted: bool = False) -> list[Account]:
        rows = await self.db.fetchall(
            "SELECT * FROM accounts WHERE 1 = 1"
            + _deleted_clause(include_deleted)
            + " ORDER BY created_at ASC, rowid ASC"
        )
        return [self._row_to_account(row) for row in rows]

    async def count_custom(self) -> int:
        row = await self.db.fetchone(
            "SELECT COUNT(*) FROM accounts WHERE is_default = 0 AND deleted_at IS NULL"
        )
        return int(row[0])

    async def soft_delete(self, account_id: str, now: datetime) -> int:
        return await self.db.execute(
            "UPDATE accounts SET deleted_at = ?, updated_at = ? WHERE id = ? AND deleted_at IS NULL",
            (_ts(now), _ts(now), account_id),
        )

    async def rescale_initial_balances(self, convert: Rescale, now: datetime) -> int:
        return await _rescale_column(
            self.db, "accounts", "initial_balance", convert,
            where="deleted_at IS NULL", touch_updated_at=True, now=now,
        )


# =============================================================================
# CATEGORIES
# =============================================================================

class CategoryRepository:
    """SQL for the categories table."""

    def __init__(self, db: LedgerDatabase):
        self.db = db

    def _row_to_category(self, row) -> Category:
        return Category.model_validate(dict(row))

    async def insert(self, category: Category, ignore_existing: bool = False) -> int:
        verb = "INSERT OR IGNORE" if ignore_existing else "INSERT"
        return await self.db.execute(
            f"""{verb} INTO categories
               (id, name, icon, color, is_default, category_type,
                created_at, sync_status, deleted_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                category.id,
                category.name,
                category.icon,
                category.color,
                int(category.is_default),
                category.category_type.value,
                _ts(category.created_at),
                category.sync_status.value,
                _ts(category.deleted_at),
            ),
        )

    async def get(self, category_id: str, include_deleted: bool = False) -> Optional[Category]:
        row = await self.db.fetchone(
            "SELECT * FROM categories WHERE id = ?" + _deleted_clause(include_deleted),
            (category_id,),
        )
        return self._row_to_category(row) if row else None

    async def list_all(self, include_deleted: bool = False) -> list[Category]:
        rows = await self.db.fetchall(
            "SELECT * FROM categories WHERE 1 = 1"
            + _deleted_clause(include_deleted)
            + " ORDER BY name ASC"
        )
        return [self._row_to_category(row) for row in rows]

    async def count_custom(self) -> int:
        row = await self.db.fetchone(
            "SELECT COUNT(*) FROM categories WHERE is_default = 0 AND deleted_at IS NULL"
        )
        return int(row[0])

    async def soft_delete(self, category_id: str, now: datetime) -> int:
        return await self.db.execute(
            "UPDATE categories SET deleted_at = ?, sync_status = 'pending' "
            "WHERE id = ? AND deleted_at IS NULL",
            (_ts(now), category_id),
        )


# =============================================================================
# TRANSACTIONS
# =============================================================================

# Feed query: the income leg of a transfer is hidden, the expense leg carries
# the name of the account on the other side.
_FEED_SELECT = """
SELECT
    t.*,
    c.name  AS category_name,
    c.icon  AS category_icon,
    c.color AS category_color,
    a.name  AS account_name,
    a.type  AS account_type,
    (
        SELECT la.name
        FROM transactions lt
        JOIN accounts la ON la.id = lt.account_id
        WHERE lt.transfer_id = t.transfer_id AND lt.id != t.id
        LIMIT 1
    ) AS linked_account_name
FROM transactions t
LEFT JOIN categories c ON c.id = t.category_id
LEFT JOIN accounts a ON a.id = t.account_id
WHERE t.deleted_at IS NULL
"""


class TransactionRepository:
    """SQL for the transactions table."""

    def __init__(self, db: LedgerDatabase):
        self.db = db

    def _row_to_transaction(self, row) -> Transaction:
        return Transaction.model_validate(dict(row))

    async def insert(self, transaction: Transaction) -> None:
        await self.db.execute(
            """INSERT INTO transactions
               (id, type, amount, category_id, account_id, transfer_id, note,
                created_at, updated_at, sync_status, deleted_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                transaction.id,
                transaction.type.value,
                transaction.amount,
                transaction.category_id,
                transaction.account_id,
                transaction.transfer_id,
                transaction.note,
                _ts(transaction.created_at),
                _ts(transaction.updated_at),
                transaction.sync_status.value,
                _ts(transaction.deleted_at),
            ),
        )

    async def get(self, transaction_id: str, include_deleted: bool = False) -> Optional[Transaction]:
        row = await self.db.fetchone(
            "SELECT * FROM transactions WHERE id = ?" + _deleted_clause(include_deleted),
            (transaction_id,),
        )
        return self._row_to_transaction(row) if row else None

    async def list_all(self, account_id: Optional[str] = None) -> list[Transaction]:
        """Non-deleted transactions, newest first, optionally for one account."""
        sql = "SELECT * FROM transactions WHERE deleted_at IS NULL"
        params: tuple = ()
        if account_id is not None:
            sql += " AND account_id = ?"
            params = (account_id,)
        sql += " ORDER BY created_at DESC, rowid DESC"
        rows = await self.db.fetchall(sql, params)
        return [self._row_to_transaction(row) for row in rows]

    async def list_by_transfer(
        self,
        transfer_id: str,
        include_deleted: bool = False,
    ) -> list[Transaction]:
        """Both legs of a transfer, expense leg first."""
        rows = await self.db.fetchall(
            "SELECT * FROM transactions WHERE transfer_id = ?"
            + _deleted_clause(include_deleted)
            + " ORDER BY CASE type WHEN 'expense' THEN 0 ELSE 1 END",
            (transfer_id,),
        )
        return [self._row_to_transaction(row) for row in rows]

    async def list_with_details(
        self,
        limit: Optional[int] = None,
        account_id: Optional[str] = None,
    ) -> list[TransactionWithDetails]:
        """
        Feed rows, newest first.

        The chronological feed keeps only the expense leg of a transfer. An
        account feed keeps whichever leg touches that account instead.
        """
        sql = _FEED_SELECT
        params: list = []
        if account_id is not None:
            sql += " AND t.account_id = ?"
            params.append(account_id)
        else:
            sql += " AND NOT (t.transfer_id IS NOT NULL AND t.type = 'income')"
        sql += " ORDER BY t.created_at DESC, t.rowid DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        rows = await self.db.fetchall(sql, params)
        return [TransactionWithDetails.model_validate(dict(row)) for row in rows]

    async def expenses_by_category(self) -> list[CategoryExpense]:
        rows = await self.db.fetchall(
            """SELECT
                   t.category_id AS category_id,
                   COALESCE(c.name, '') AS name,
                   COALESCE(c.color, '#95A5A6') AS color,
                   SUM(t.amount) AS amount
               FROM transactions t
               LEFT JOIN categories c ON c.id = t.category_id
               WHERE t.deleted_at IS NULL
                 AND t.type = ?
                 AND t.transfer_id IS NULL
               GROUP BY t.category_id
               ORDER BY amount DESC""",
            (TransactionType.EXPENSE.value,),
        )
        return [CategoryExpense.model_validate(dict(row)) for row in rows]

    async def soft_delete(self, transaction_ids: list[str], now: datetime) -> int:
        if not transaction_ids:
            return 0
        placeholders = ", ".join("?" for _ in transaction_ids)
        return await self.db.execute(
            f"""UPDATE transactions
                SET deleted_at = ?, updated_at = ?, sync_status = 'pending'
                WHERE id IN ({placeholders}) AND deleted_at IS NULL""",
            (_ts(now), _ts(now), *transaction_ids),
        )

    async def rescale_amounts(self, convert: Rescale, now: datetime) -> int:
        return await _rescale_column(
            self.db, "transactions", "amount", convert,
            where="deleted_at IS NULL", touch_updated_at=True, now=now,
        )


# =============================================================================
# PLANIFICATIONS
# =============================================================================

_TOTALS_SELECT = """
SELECT
    p.*,
    COALESCE(SUM(CASE WHEN i.type = 'expense' THEN i.amount END), 0) AS total_expenses,
    COALESCE(SUM(CASE WHEN i.type = 'income' THEN i.amount END), 0) AS total_income,
    COUNT(i.id) AS item_count
FROM planifications p
LEFT JOIN planification_items i ON i.planification_id = p.id
WHERE p.deleted_at IS NULL
"""


class PlanificationRepository:
    """SQL for the planifications table."""

    def __init__(self, db: LedgerDatabase):
        self.db = db

    def _row_to_planification(self, row) -> Planification:
        return Planification.model_validate(dict(row))

    async def insert(self, planification: Planification) -> None:
        await self.db.execute(
            """INSERT INTO planifications
               (id, title, status, deadline, created_at, updated_at,
                deleted_at, expiry_notified_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                planification.id,
                planification.title,
                planification.status.value,
                _ts(planification.deadline),
                _ts(planification.created_at),
                _ts(planification.updated_at),
                _ts(planification.deleted_at),
                _ts(planification.expiry_notified_at),
            ),
        )

    async def get(self, planification_id: str, include_deleted: bool = False) -> Optional[Planification]:
        row = await self.db.fetchone(
            "SELECT * FROM planifications WHERE id = ?" + _deleted_clause(include_deleted),
            (planification_id,),
        )
        return self._row_to_planification(row) if row else None

    async def get_with_totals(self, planification_id: str) -> Optional[PlanificationWithTotals]:
        row = await self.db.fetchone(
            _TOTALS_SELECT + " AND p.id = ? GROUP BY p.id",
            (planification_id,),
        )
        return PlanificationWithTotals.model_validate(dict(row)) if row else None

    async def list_with_totals(self) -> list[PlanificationWithTotals]:
        """Pending plans first, then most recently updated."""
        rows = await self.db.fetchall(
            _TOTALS_SELECT
            + """ GROUP BY p.id
                ORDER BY CASE p.status WHEN 'pending' THEN 0 ELSE 1 END,
                         p.updated_at DESC"""
        )
        return [PlanificationWithTotals.model_validate(dict(row)) for row in rows]

    async def list_pending_with_deadline(self) -> list[Planification]:
        rows = await self.db.fetchall(
            """SELECT * FROM planifications
               WHERE deleted_at IS NULL
                 AND status = ?
                 AND deadline IS NOT NULL
               ORDER BY deadline ASC""",
            (PlanificationStatus.PENDING.value,),
        )
        return [self._row_to_planification(row) for row in rows]

    async def touch(self, planification_id: str, now: datetime) -> int:
        return await self.db.execute(
            "UPDATE planifications SET updated_at = ? WHERE id = ?",
            (_ts(now), planification_id),
        )

    async def set_title(self, planification_id: str, title: str, now: datetime) -> int:
        return await self.db.execute(
            "UPDATE planifications SET title = ?, updated_at = ? WHERE id = ?",
            (title, _ts(now), planification_id),
        )

    async def set_deadline(
        self,
        planification_id: str,
        deadline: Optional[datetime],
        now: datetime,
    ) -> int:
        """Change the deadline and re-arm the expiry notification."""
        return await self.db.execute(
            """UPDATE planifications
               SET deadline = ?, expiry_notified_at = NULL, updated_at = ?
               WHERE id = ?""",
            (_ts(deadline), _ts(now), planification_id),
        )

    async def mark_completed(self, planification_id: str, now: datetime) -> int:
        """PENDING -> COMPLETED. Returns 0 when the plan was not pending."""
        return await self.db.execute(
            """UPDATE planifications SET status = ?, updated_at = ?
               WHERE id = ? AND status = ?""",
            (
                PlanificationStatus.COMPLETED.value,
                _ts(now),
                planification_id,
                PlanificationStatus.PENDING.value,
            ),
        )

    async def mark_expiry_notified(self, planification_id: str, now: datetime) -> int:
        return await self.db.execute(
            """UPDATE planifications SET expiry_notified_at = ?
               WHERE id = ? AND expiry_notified_at IS NULL""",
            (_ts(now), planification_id),
        )

    async def soft_delete(self, planification_id: str, now: datetime) -> int:
        return await self.db.execute(
            """UPDATE planifications SET deleted_at = ?, updated_at = ?
               WHERE id = ? AND deleted_at IS NULL""",
            (_ts(now), _ts(now), planification_id),
        )


class PlanificationItemRepository:
    """SQL for the planification_items table. Items are hard-deleted."""

    def __init__(self, db: LedgerDatabase):
        self.db = db

    async def insert(self, item: PlanificationItem) -> None:
        await self.db.execute(
            """INSERT INTO planification_items
               (id, planification_id, amount, type, category_id, note, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                item.id,
                item.planification_id,
                item.amount,
                item.type.value,
                item.category_id,
                item.note,
                _ts(item.created_at),
            ),
        )

    async def get(self, item_id: str) -> Optional[PlanificationItem]:
        row = await self.db.fetchone(
            "SELECT * FROM planification_items WHERE id = ?",
            (item_id,),
        )
        return PlanificationItem.model_validate(dict(row)) if row else None

    async def list_for(self, planification_id: str) -> list[PlanificationItemWithCategory]:
        rows = await self.db.fetchall(
            """SELECT
                   i.*,
                   c.name  AS category_name,
                   c.icon  AS category_icon,
                   c.color AS category_color
               FROM planification_items i
               LEFT JOIN categories c ON c.id = i.category_id
               WHERE i.planification_id = ?
               ORDER BY i.created_at DESC, i.rowid DESC""",
            (planification_id,),
        )
        return [PlanificationItemWithCategory.model_validate(dict(row)) for row in rows]

    async def delete(self, item_id: str) -> int:
        return await self.db.execute(
            "DELETE FROM planification_items WHERE id = ?",
            (item_id,),
        )

    async def rescale_amounts(self, convert: Rescale, now: datetime) -> int:
        # Items of completed and deleted plans are converted too.
        return await _rescale_column(
            self.db, "planification_items", "amount", convert,
            where="1 = 1", touch_updated_at=False, now=now,
        )


# =============================================================================
# SETTINGS
# =============================================================================

class SettingsRepository:
    """Key/value access to the settings table."""

    def __init__(self, db: LedgerDatabase):
        self.db = db

    async def get(self, key: str) -> Optional[str]:
        row = await self.db.fetchone("SELECT value FROM settings WHERE key = ?", (key,))
        return row["value"] if row else None

    async def set(self, key: str, value: str, now: datetime) -> None:
        await self.db.execute(
            """INSERT INTO settings (key, value, updated_at) VALUES (?, ?, ?)
               ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                              updated_at = excluded.updated_at""",
            (key, value, _ts(now)),
        )

    async def all(self) -> dict[str, str]:
        rows = await self.db.fetchall("SELECT key, value FROM settings ORDER BY key")
        return {row["key"]: row["value"] for row in rows}
