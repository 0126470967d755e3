"""
Balance Engine

Pure functions over snapshots of rows. Nothing here touches the store and
nothing is cached: services load the rows and call these on every read.

DESIGN DECISION: An account's balance is never stored. It is always
initial_balance + sum(income) - sum(expense) over the account's non-deleted
transactions, so there is no running counter that can drift.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from mitsitsy.models.ledger import (
    Account,
    AccountWithBalance,
    PlanificationItem,
    Transaction,
    TransactionType,
)


def _live_for_account(account_id: str, transactions: Iterable[Transaction]) -> list[Transaction]:
    return [
        t for t in transactions
        if t.account_id == account_id and not t.is_deleted
    ]


def compute_account_totals(
    account: Account,
    transactions: Iterable[Transaction],
) -> tuple[int, int]:
    """
    Income and expense sums for one account.

    Transfer legs count here: they move money in and out of the account.

    Returns:
        (total_income, total_expense)
    """
    income = 0
    expense = 0
    for t in _live_for_account(account.id, transactions):
        if t.type == TransactionType.INCOME:
            income += t.amount
        else:
            expense += t.amount
    return income, expense


def compute_account_balance(account: Account, transactions: Iterable[Transaction]) -> int:
    """
    Current balance of one account.

    Rows of other accounts and soft-deleted rows are ignored, so the whole
    transaction table can be passed in.
    """
    income, expense = compute_account_totals(account, transactions)
    return account.initial_balance + income - expense


def with_balance(account: Account, transactions: Iterable[Transaction]) -> AccountWithBalance:
    """Attach the derived totals to an account."""
    income, expense = compute_account_totals(account, transactions)
    return AccountWithBalance(
        **account.model_dump(),
        total_income=income,
        total_expense=expense,
        current_balance=account.initial_balance + income - expense,
    )


def compute_net_worth(accounts: Iterable[AccountWithBalance]) -> int:
    """Sum of current balances of non-deleted accounts."""
    return sum(a.current_balance for a in accounts if not a.is_deleted)


def compute_totals(transactions: Iterable[Transaction]) -> tuple[int, int]:
    """
    Ledger-wide income and expense.

    Transfer legs are excluded: a transfer moves money, it neither earns nor
    spends it.

    Returns:
        (total_income, total_expense)
    """
    income = 0
    expense = 0
    for t in transactions:
        if t.is_deleted or t.is_transfer:
            continue
        if t.type == TransactionType.INCOME:
            income += t.amount
        else:
            expense += t.amount
    return income, expense


def compute_planification_totals(items: Iterable[PlanificationItem]) -> tuple[int, int, int]:
    """
    Returns:
        (total_expenses, total_income, total) where total is expenses minus income
    """
    expenses = 0
    income = 0
    for item in items:
        if item.type == TransactionType.INCOME:
            income += item.amount
        else:
            expenses += item.amount
    return expenses, income, expenses - income


def round_half_up(value: int, rate: Decimal) -> int:
    """value * rate rounded to the nearest cent, halves away from zero."""
    return int((Decimal(value) * rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
