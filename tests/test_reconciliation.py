"""Tests for the budget/savings delta transactions."""
import pytest

from finance_tracker.ledger.reconciliation import (
    parse_amount,
    now_iso,
    initial_budget_transaction,
    budget_adjustment_transaction,
    initial_savings_transaction,
    savings_adjustment_transaction
)


class TestParseAmount:

    @pytest.mark.parametrize("value,expected", [
        (None, 0.0),
        ("", 0.0),
        ("abc", 0.0),
        ("nan", 0.0),
        ("12.5", 12.5),
        (40, 40.0),
    ])
    def test_parse_amount(self, value, expected):
        assert parse_amount(value) == expected


def test_now_iso_is_utc_with_z():
    stamp = now_iso()
    assert stamp.endswith("Z")
    assert "T" in stamp
    assert len(stamp) == len("2024-01-01T00:00:00.000Z")


class TestSavingsTransactions:
    """Savings create/update synthesis."""

    def test_zero_initial_amount_creates_nothing(self):
        assert initial_savings_transaction(1, "Vacation", 0) is None
        assert initial_savings_transaction(1, "Vacation", "") is None

    def test_initial_amount_creates_expense(self):
        txn = initial_savings_transaction(1, "Vacation", 150, date="2024-01-10")

        assert txn == {
            "context_id": 1,
            "description": "Initial savings for Vacation",
            "date": "2024-01-10",
            "category": "Savings",
            "type": "Expense",
            "amount": 150,
            "account": "Vacation",
            "notes": "Initial deposit to savings goal: Vacation"
        }

    def test_withdrawal_creates_income(self):
        txn = savings_adjustment_transaction(1, "Vacation", 150, 100)

        assert txn["type"] == "Income"
        assert txn["amount"] == 50
        assert txn["description"] == "Savings adjustment for Vacation"
        assert txn["notes"].endswith("Withdrawn from savings.")
        assert txn["date"].endswith("Z")

    def test_deposit_creates_expense(self):
        txn = savings_adjustment_transaction(1, "Vacation", 100, 175.25)

        assert txn["type"] == "Expense"
        assert txn["amount"] == 75.25
        assert txn["notes"].endswith("Added to savings.")

    def test_update_to_zero_is_a_withdrawal(self):
        txn = savings_adjustment_transaction(1, "Vacation", 80, 0)
        assert txn["type"] == "Income"
        assert txn["amount"] == 80

    def test_unchanged_amount_creates_nothing(self):
        assert savings_adjustment_transaction(1, "Vacation", 100, "100") is None

    def test_difference_rounded_to_cents(self):
        txn = savings_adjustment_transaction(1, "Vacation", 0.1, 0.3)
        assert txn["amount"] == 0.2


class TestBudgetTransactions:
    """Budget create/update synthesis."""

    def test_initial_limit_creates_expense(self):
        txn = initial_budget_transaction(1, "Food", "500")

        assert txn["type"] == "Expense"
        assert txn["amount"] == 500
        assert txn["category"] == "Budget"
        assert txn["account"] == "Food"
        assert txn["description"] == "Initial budget allocation for Food"

    def test_zero_limit_creates_nothing(self):
        assert initial_budget_transaction(1, "Food", 0) is None

    def test_lowered_limit_creates_income(self):
        txn = budget_adjustment_transaction(1, "Food", 500, 300)

        assert txn["type"] == "Income"
        assert txn["amount"] == 200
        assert txn["description"] == "Budget adjustment for Food"
        assert txn["notes"] == "Automatic transaction from budget adjustment. Budget decreased."

    def test_raised_limit_creates_expense(self):
        txn = budget_adjustment_transaction(1, "Food", 300, 450)

        assert txn["type"] == "Expense"
        assert txn["amount"] == 150
        assert txn["notes"] == "Automatic transaction from budget adjustment. Budget increased."

    def test_unchanged_limit_creates_nothing(self):
        assert budget_adjustment_transaction(1, "Food", 300, 300.0) is None
