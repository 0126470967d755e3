"""
Tests for recording, deleting and reading transactions.
"""

import asyncio

import pytest

from mitsitsy.models.ledger import (
    SYSTEM_CATEGORY_INCOME_ID,
    CandidateTransaction,
    TransactionType,
)
from mitsitsy.models.results import ErrorKind
from mitsitsy.services.base import STORAGE_FAILURE_MESSAGE
from mitsitsy.services.storage import StorageError

BANK_OPENING = 100000
CASH_OPENING = 5000


async def _row_count(ledger) -> int:
    row = await ledger.db.fetchone("SELECT COUNT(*) FROM transactions")
    return int(row[0])


class TestRecordTransaction:
    """Tests for record_transaction."""

    @pytest.mark.asyncio
    async def test_expense_lowers_the_balance(self, ledger, accounts):
        """Test that an expense is recorded and derived into the balance."""
        result = await ledger.transactions.record_transaction(
            "expense", 3000, "food", accounts["bank"], note="Lunch",
        )
        assert result.success, result.message

        stored = await ledger.transactions.get_transaction(result.id)
        assert stored.amount == 3000
        assert stored.category_id == "food"
        assert stored.sync_status.value == "pending"
        assert await ledger.accounts.get_balance(accounts["bank"]) == BANK_OPENING - 3000

    @pytest.mark.asyncio
    async def test_income_goes_to_system_category(self, ledger, accounts):
        """Test that income ignores the category it is given."""
        result = await ledger.transactions.record_transaction(
            TransactionType.INCOME, 7000, "food", accounts["cash"],
        )
        assert result.success

        stored = await ledger.transactions.get_transaction(result.id)
        assert stored.category_id == SYSTEM_CATEGORY_INCOME_ID
        assert await ledger.accounts.get_balance(accounts["cash"]) == CASH_OPENING + 7000

    @pytest.mark.asyncio
    async def test_expense_may_empty_the_account(self, ledger, accounts):
        """Test that an expense equal to the balance is allowed."""
        result = await ledger.transactions.record_transaction(
            "expense", CASH_OPENING, "food", accounts["cash"],
        )
        assert result.success
        assert await ledger.accounts.get_balance(accounts["cash"]) == 0

    @pytest.mark.asyncio
    async def test_overdraft_is_refused_without_writing(self, ledger, accounts):
        """Test that an expense above the balance leaves the store unchanged."""
        before = await _row_count(ledger)

        result = await ledger.transactions.record_transaction(
            "expense", CASH_OPENING + 1, "food", accounts["cash"],
        )

        assert not result.success
        assert result.error == ErrorKind.INSUFFICIENT_BALANCE
        assert await _row_count(ledger) == before
        assert await ledger.accounts.get_balance(accounts["cash"]) == CASH_OPENING

    @pytest.mark.parametrize("amount", [0, -100, 10.5, "100", True, None, 2**63])
    @pytest.mark.asyncio
    async def test_bad_amounts_are_rejected(self, ledger, accounts, amount):
        """Test that amounts must be positive integer cents."""
        result = await ledger.transactions.record_transaction(
            "expense", amount, "food", accounts["bank"],
        )
        assert not result.success
        assert result.error == ErrorKind.VALIDATION_ERROR
        assert result.issues[0].field == "amount"

    @pytest.mark.asyncio
    async def test_unknown_type_is_rejected(self, ledger, accounts):
        """Test that only expense and income are accepted."""
        result = await ledger.transactions.record_transaction(
            "refund", 100, "food", accounts["bank"],
        )
        assert result.error == ErrorKind.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_unknown_account_is_rejected(self, ledger, accounts):
        """Test that a dangling account reference is a validation error."""
        result = await ledger.transactions.record_transaction(
            "expense", 100, "food", "no-such-account",
        )
        assert result.error == ErrorKind.VALIDATION_ERROR
        assert result.issues[0].issue_type == "not_found"

    @pytest.mark.asyncio
    async def test_unknown_category_is_rejected(self, ledger, accounts):
        """Test that a dangling category reference is a validation error."""
        result = await ledger.transactions.record_transaction(
            "expense", 100, "no-such-category", accounts["bank"],
        )
        assert result.error == ErrorKind.VALIDATION_ERROR
        assert result.issues[0].field == "category_id"

    @pytest.mark.asyncio
    async def test_deleted_account_is_rejected(self, ledger, accounts):
        """Test that a soft-deleted account cannot receive transactions."""
        created = await ledger.accounts.create_account("Savings", "bank", 1000)
        await ledger.accounts.delete_account(created.id)

        result = await ledger.transactions.record_transaction("income", 100, None, created.id)
        assert result.error == ErrorKind.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_note_length_is_bounded(self, ledger, accounts):
        """Test that notes longer than 500 characters are rejected."""
        result = await ledger.transactions.record_transaction(
            "expense", 100, "food", accounts["bank"], note="x" * 501,
        )
        assert result.error == ErrorKind.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_unassigned_record_skips_balance_check(self, ledger, accounts):
        """Test that a row without an account is accepted and touches no balance."""
        result = await ledger.transactions.record_transaction("expense", 10 ** 9, "food")
        assert result.success
        assert await ledger.accounts.get_net_worth() == BANK_OPENING + CASH_OPENING

    @pytest.mark.asyncio
    async def test_concurrent_expenses_cannot_both_overdraw(self, ledger, accounts):
        """Test that two expenses racing on one balance are serialized."""
        results = await asyncio.gather(
            ledger.transactions.record_transaction("expense", 60000, "food", accounts["bank"]),
            ledger.transactions.record_transaction("expense", 60000, "food", accounts["bank"]),
        )

        outcomes = sorted(r.success for r in results)
        assert outcomes == [False, True]
        refused = next(r for r in results if not r.success)
        assert refused.error == ErrorKind.INSUFFICIENT_BALANCE
        assert await ledger.accounts.get_balance(accounts["bank"]) == 40000

    @pytest.mark.asyncio
    async def test_rejections_and_successes_are_logged(self, ledger, accounts, recording_logger):
        """Test that every attempt leaves an event."""
        await ledger.transactions.record_transaction("expense", 100, "food", accounts["bank"])
        await ledger.transactions.record_transaction("expense", 10 ** 9, "food", accounts["bank"])

        types = recording_logger.event_types()
        assert "transaction_recorded" in types
        assert "transaction_rejected" in types

    @pytest.mark.asyncio
    async def test_storage_failure_becomes_a_result(self, ledger, accounts, monkeypatch, recording_logger):
        """Test that a failing store is reported, not raised."""
        async def broken_insert(transaction):
            raise StorageError("disk I/O error")

        monkeypatch.setattr(ledger.transactions._transactions, "insert", broken_insert)

        result = await ledger.transactions.record_transaction(
            "expense", 100, "food", accounts["bank"],
        )

        assert not result.success
        assert result.error == ErrorKind.STORAGE_FAILURE
        assert result.message == STORAGE_FAILURE_MESSAGE
        assert "storage_error" in recording_logger.event_types()


class TestDeleteTransaction:
    """Tests for soft deletion."""

    @pytest.mark.asyncio
    async def test_delete_reverts_the_balance(self, ledger, accounts):
        """Test that deleting moves the balance back by the signed amount."""
        expense = await ledger.transactions.record_transaction("expense", 2500, "food", accounts["bank"])
        income = await ledger.transactions.record_transaction("income", 900, None, accounts["bank"])

        await ledger.transactions.delete_transaction(expense.id)
        assert await ledger.accounts.get_balance(accounts["bank"]) == BANK_OPENING + 900

        await ledger.transactions.delete_transaction(income.id)
        assert await ledger.accounts.get_balance(accounts["bank"]) == BANK_OPENING

    @pytest.mark.asyncio
    async def test_deleted_row_stays_in_the_store(self, ledger, accounts):
        """Test that deletion is soft and marks the row for sync."""
        expense = await ledger.transactions.record_transaction("expense", 2500, "food", accounts["bank"])
        await ledger.transactions.delete_transaction(expense.id)

        assert await ledger.transactions.get_transaction(expense.id) is None
        row = await ledger.db.fetchone(
            "SELECT deleted_at, sync_status FROM transactions WHERE id = ?", (expense.id,),
        )
        assert row["deleted_at"] is not None
        assert row["sync_status"] == "pending"

    @pytest.mark.asyncio
    async def test_second_delete_is_a_no_op(self, ledger, accounts):
        """Test that deleting twice succeeds and changes nothing."""
        expense = await ledger.transactions.record_transaction("expense", 2500, "food", accounts["bank"])
        first = await ledger.transactions.delete_transaction(expense.id)
        second = await ledger.transactions.delete_transaction(expense.id)

        assert first.data["deleted_ids"] == [expense.id]
        assert second.success
        assert second.data["deleted_ids"] == []
        assert await ledger.accounts.get_balance(accounts["bank"]) == BANK_OPENING

    @pytest.mark.asyncio
    async def test_unknown_id_is_a_validation_error(self, ledger, accounts):
        """Test that deleting a missing row fails."""
        result = await ledger.transactions.delete_transaction("missing")
        assert result.error == ErrorKind.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_deleting_one_transfer_leg_deletes_both(self, ledger, accounts):
        """Test that a transfer is never left half-applied."""
        transfer = await ledger.transfers.record_transfer(accounts["bank"], accounts["cash"], 4000)

        result = await ledger.transactions.delete_transaction(transfer.data["income_id"])

        assert set(result.data["deleted_ids"]) == {transfer.data["expense_id"], transfer.data["income_id"]}
        assert await ledger.transfers.get_transfer(transfer.id) == []
        assert await ledger.accounts.get_balance(accounts["bank"]) == BANK_OPENING
        assert await ledger.accounts.get_balance(accounts["cash"]) == CASH_OPENING


class TestCandidates:
    """Tests for parser-proposed transactions."""

    @pytest.mark.asyncio
    async def test_each_candidate_is_checked_on_its_own(self, ledger, accounts):
        """Test that one bad candidate does not stop the others."""
        candidates = [
            CandidateTransaction(amount=1000, category_id="food", note="bread"),
            CandidateTransaction(amount=10 ** 9, category_id="food"),
            CandidateTransaction(amount=2000, type="income"),
        ]

        results = await ledger.transactions.record_candidates(candidates, accounts["cash"])

        assert [r.success for r in results] == [True, False, True]
        assert results[1].error == ErrorKind.INSUFFICIENT_BALANCE
        assert await ledger.accounts.get_balance(accounts["cash"]) == CASH_OPENING - 1000 + 2000


class TestReads:
    """Tests for the feed and the totals."""

    @pytest.mark.asyncio
    async def test_feed_is_newest_first_and_hides_deleted(self, ledger, accounts):
        """Test feed ordering and soft-delete filtering."""
        first = await ledger.transactions.record_transaction("expense", 100, "food", accounts["bank"])
        second = await ledger.transactions.record_transaction("expense", 200, "bills", accounts["bank"])
        third = await ledger.transactions.record_transaction("income", 300, None, accounts["bank"])
        await ledger.transactions.delete_transaction(second.id)

        feed = await ledger.transactions.list_transactions()

        assert [row.id for row in feed] == [third.id, first.id]
        assert feed[1].category_name == "Food"
        assert feed[1].account_name == "Bank"

    @pytest.mark.asyncio
    async def test_feed_shows_a_transfer_once(self, ledger, accounts):
        """Test that only the expense leg appears, labelled from → to."""
        transfer = await ledger.transfers.record_transfer(accounts["bank"], accounts["cash"], 4000)

        feed = await ledger.transactions.list_transactions()

        assert [row.id for row in feed] == [transfer.data["expense_id"]]
        assert feed[0].label == "Bank → Cash"

    @pytest.mark.asyncio
    async def test_account_feeds_show_their_transfer_leg(self, ledger, accounts):
        """Test that both accounts list a transfer between them."""
        transfer = await ledger.transfers.record_transfer(accounts["bank"], accounts["cash"], 2000)

        bank_feed = await ledger.transactions.list_transactions(account_id=accounts["bank"])
        cash_feed = await ledger.transactions.list_transactions(account_id=accounts["cash"])

        assert [row.id for row in bank_feed] == [transfer.data["expense_id"]]
        assert [row.id for row in cash_feed] == [transfer.data["income_id"]]
        assert cash_feed[0].type == TransactionType.INCOME
        assert cash_feed[0].label == "Bank → Cash"
        assert await ledger.accounts.get_balance(accounts["cash"]) == CASH_OPENING + 2000

    @pytest.mark.asyncio
    async def test_feed_limit_and_account_filter(self, ledger, accounts):
        """Test the optional feed arguments."""
        for amount in (100, 200, 300):
            await ledger.transactions.record_transaction("expense", amount, "food", accounts["bank"])
        await ledger.transactions.record_transaction("expense", 50, "food", accounts["cash"])

        assert len(await ledger.transactions.list_transactions(limit=2)) == 2
        cash_feed = await ledger.transactions.list_transactions(account_id=accounts["cash"])
        assert [row.amount for row in cash_feed] == [50]

    @pytest.mark.asyncio
    async def test_totals_exclude_transfers(self, ledger, accounts):
        """Test that transfers appear in neither total."""
        await ledger.transactions.record_transaction("income", 5000, None, accounts["bank"])
        await ledger.transactions.record_transaction("expense", 1200, "food", accounts["bank"])
        await ledger.transfers.record_transfer(accounts["bank"], accounts["cash"], 3000)

        totals = await ledger.transactions.get_totals()

        assert totals.total_income == 5000
        assert totals.total_expense == 1200
        assert totals.balance == BANK_OPENING + CASH_OPENING + 5000 - 1200

    @pytest.mark.asyncio
    async def test_expenses_by_category(self, ledger, accounts):
        """Test per-category expense sums, largest first."""
        await ledger.transactions.record_transaction("expense", 1000, "food", accounts["bank"])
        await ledger.transactions.record_transaction("expense", 500, "food", accounts["bank"])
        await ledger.transactions.record_transaction("expense", 4000, "bills", accounts["bank"])
        await ledger.transfers.record_transfer(accounts["bank"], accounts["cash"], 9000)

        breakdown = await ledger.transactions.expenses_by_category()

        assert [(c.category_id, c.amount) for c in breakdown] == [("bills", 4000), ("food", 1500)]
        assert breakdown[1].name == "Food"
