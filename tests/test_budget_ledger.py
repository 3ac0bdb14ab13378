"""Tests for the budget ledger (spent totals and overrun warnings)."""
import pytest


class TestMonthOf:
    """Test cases for month_of."""

    @pytest.mark.parametrize("value,expected", [
        ("2024-01-15", "2024-01"),
        ("2024-01-31T23:30:00", "2024-01"),
        ("2024-12-01T08:00:00.000Z", "2024-12"),
        ("2024-04-01T02:00:00+05:00", "2024-03"),
        ("2024-03-31T22:00:00-05:00", "2024-04"),
    ])
    def test_month_of(self, value, expected):
        from finance_tracker.ledger.budget_ledger import month_of
        assert month_of(value) == expected

    def test_month_of_rejects_garbage(self):
        from finance_tracker.ledger.budget_ledger import month_of
        with pytest.raises(ValueError):
            month_of("last tuesday")


class TestBudgetLedger:
    """Test cases for BudgetLedger, driven through FinanceService.create_transaction."""

    def expense(self, context_id, amount, category="Food", date="2024-01-20"):
        return {
            "context_id": context_id,
            "description": "Groceries",
            "date": date,
            "category": category,
            "type": "Expense",
            "amount": amount,
            "account": "Checking"
        }

    def test_expense_over_limit_updates_spent_and_warns(self, temp_service, context_id):
        budget_id = temp_service.store.add_budget(context_id, "Food", 500, "2024-01")

        result = temp_service.create_transaction(self.expense(context_id, 600))

        assert temp_service.store.get_budget(budget_id)["spent"] == 600
        warning = result["budgetWarning"]
        assert warning["overage"] == 100
        assert warning["spent"] == 600
        assert warning["limit"] == 500
        assert warning["category"] == "Food"
        assert warning["message"] == "Budget exceeded for Food!"
        assert warning["details"] == "Spent $600.00 of $500.00 budget ($100.00 over)"

    def test_expense_under_limit_accumulates_without_warning(self, temp_service, context_id):
        budget_id = temp_service.store.add_budget(context_id, "Food", 500, "2024-01")

        first = temp_service.create_transaction(self.expense(context_id, 200))
        second = temp_service.create_transaction(self.expense(context_id, 300))

        assert "budgetWarning" not in first
        # Exactly at the limit is not over it
        assert "budgetWarning" not in second
        assert temp_service.store.get_budget(budget_id)["spent"] == 500

    def test_no_budget_no_warning_no_side_effect(self, temp_service, context_id):
        other_month = temp_service.store.add_budget(context_id, "Food", 100, "2024-02")
        other_category = temp_service.store.add_budget(context_id, "Rent", 100, "2024-01")

        result = temp_service.create_transaction(self.expense(context_id, 600))

        assert "budgetWarning" not in result
        assert result["id"] > 0
        assert temp_service.store.get_budget(other_month)["spent"] == 0
        assert temp_service.store.get_budget(other_category)["spent"] == 0

    def test_income_does_not_touch_budget(self, temp_service, context_id):
        budget_id = temp_service.store.add_budget(context_id, "Food", 500, "2024-01")
        fields = self.expense(context_id, 900)
        fields["type"] = "Income"

        result = temp_service.create_transaction(fields)

        assert "budgetWarning" not in result
        assert temp_service.store.get_budget(budget_id)["spent"] == 0

    def test_budget_of_other_context_untouched(self, temp_service, context_id):
        other = temp_service.store.add_context("Work", "Work")
        budget_id = temp_service.store.add_budget(other, "Food", 500, "2024-01")

        temp_service.create_transaction(self.expense(context_id, 600))

        assert temp_service.store.get_budget(budget_id)["spent"] == 0

    def test_month_taken_from_datetime_string(self, temp_service, context_id):
        budget_id = temp_service.store.add_budget(context_id, "Food", 50, "2024-03")

        result = temp_service.create_transaction(
            self.expense(context_id, 75, date="2024-03-31T22:15:00.000Z")
        )

        assert result["budgetWarning"]["overage"] == 25
        assert temp_service.store.get_budget(budget_id)["spent"] == 75

    def test_spent_diverges_after_update_and_delete(self, temp_service, context_id):
        """spent only moves on creation; edits and deletes leave it stale.

        The dashboard's actual_spending is computed from transactions and so
        follows the edits, while the cached spent does not.
        """
        store = temp_service.store
        budget_id = store.add_budget(context_id, "Food", 500, "2024-01")

        first = temp_service.create_transaction(self.expense(context_id, 200))
        second = temp_service.create_transaction(self.expense(context_id, 100))
        assert store.get_budget(budget_id)["spent"] == 300

        store.update_transaction(first["id"], amount=50)
        store.delete_transaction(second["id"])

        row = store.get_budget_vs_actual(context_id, "2024-01")[0]
        assert row["spent"] == 300
        assert row["actual_spending"] == 50

    def test_build_warning(self):
        from finance_tracker.ledger.budget_ledger import build_warning

        warning = build_warning("Fun", 1234.5, 1000)
        assert warning["overage"] == 234.5
        assert warning["details"] == "Spent $1234.50 of $1000.00 budget ($234.50 over)"

    def test_offset_date_lands_in_same_month_for_spent_and_dashboard(self, temp_service, context_id):
        """An offset timestamp counts toward the same month in spent and actual_spending."""
        store = temp_service.store
        march = store.add_budget(context_id, "Food", 50, "2024-03")
        april = store.add_budget(context_id, "Food", 50, "2024-04")

        result = temp_service.create_transaction(
            self.expense(context_id, 100, date="2024-04-01T02:00:00+05:00")
        )

        assert result["budgetWarning"]["overage"] == 50
        assert store.get_budget(march)["spent"] == 100
        assert store.get_budget(april)["spent"] == 0

        march_row = store.get_budget_vs_actual(context_id, "2024-03")[0]
        april_row = store.get_budget_vs_actual(context_id, "2024-04")[0]
        assert march_row["spent"] == march_row["actual_spending"] == 100
        assert april_row["spent"] == april_row["actual_spending"] == 0
        assert store.get_income_expense_totals(context_id, "2024-03") == {"Expense": 100}
