"""Tests for the SQLite store."""
import sqlite3

import pytest
from pathlib import Path


class TestSQLiteStore:
    """Test cases for SQLiteStore class."""

    def test_init_creates_tables(self, store):
        """Store should create all required tables on initialization."""
        tables = store.get_tables()
        for table in ["contexts", "transactions", "subscriptions", "savings", "budgets", "investments"]:
            assert table in tables

    def test_init_seeds_default_context(self, store):
        """A fresh database gets exactly one default context."""
        contexts = store.get_all_contexts()
        assert len(contexts) == 1
        assert contexts[0]["name"] == "Personal"
        assert contexts[0]["type"] == "Home"

    def test_reopen_does_not_reseed(self, temp_db_path: Path):
        """Reopening a database with contexts should not add another default."""
        from finance_tracker.db.sqlite_store import SQLiteStore

        with SQLiteStore(temp_db_path) as store:
            store.add_context("Side gig", "Business")

        with SQLiteStore(temp_db_path) as store:
            assert len(store.get_all_contexts()) == 2

    def test_foreign_keys_enabled(self, store):
        assert store.conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1

    def test_add_and_get_transaction(self, store):
        """Should add a transaction and retrieve it by ID."""
        ctx = store.get_all_contexts()[0]["id"]
        txn_id = store.add_transaction(
            context_id=ctx,
            description="Payroll",
            date="2024-01-18",
            category="Salary",
            txn_type="Income",
            amount=3500.00,
            account="Checking"
        )

        assert isinstance(txn_id, int)
        txn = store.get_transaction(txn_id)
        assert txn["description"] == "Payroll"
        assert txn["type"] == "Income"
        assert txn["amount"] == 3500.00
        assert txn["notes"] == ""

    def test_transaction_amount_must_be_positive(self, store):
        """The schema rejects zero and negative amounts."""
        ctx = store.get_all_contexts()[0]["id"]
        with pytest.raises(sqlite3.IntegrityError):
            store.add_transaction(ctx, "Refund", "2024-01-18", "Food", "Expense", -5, "Checking")

    def test_transaction_type_is_constrained(self, store):
        ctx = store.get_all_contexts()[0]["id"]
        with pytest.raises(sqlite3.IntegrityError):
            store.add_transaction(ctx, "Transfer", "2024-01-18", "Misc", "Transfer", 5, "Checking")

    def test_transactions_newest_first(self, store):
        ctx = store.get_all_contexts()[0]["id"]
        store.add_transaction(ctx, "Old", "2024-01-01", "Food", "Expense", 1, "Cash")
        store.add_transaction(ctx, "New", "2024-03-01", "Food", "Expense", 1, "Cash")
        store.add_transaction(ctx, "Middle", "2024-02-01", "Food", "Expense", 1, "Cash")

        assert [t["description"] for t in store.get_transactions(ctx)] == ["New", "Middle", "Old"]

    def test_update_transaction(self, store):
        ctx = store.get_all_contexts()[0]["id"]
        txn_id = store.add_transaction(ctx, "Lunch", "2024-01-10", "Food", "Expense", 12, "Cash")

        assert store.update_transaction(txn_id, amount=15, notes="with tip") is True
        txn = store.get_transaction(txn_id)
        assert txn["amount"] == 15
        assert txn["notes"] == "with tip"

    def test_update_ignores_unknown_fields(self, store):
        """Fields outside the whitelist (like context_id) are not written."""
        ctx = store.get_all_contexts()[0]["id"]
        other = store.add_context("Work", "Work")
        txn_id = store.add_transaction(ctx, "Lunch", "2024-01-10", "Food", "Expense", 12, "Cash")

        store.update_transaction(txn_id, context_id=other, amount=13)
        txn = store.get_transaction(txn_id)
        assert txn["context_id"] == ctx
        assert txn["amount"] == 13

    def test_update_and_delete_missing_rows(self, store):
        assert store.update_transaction(9999, amount=10) is False
        assert store.delete_transaction(9999) is False
        assert store.delete_budget(9999) is False
        assert store.get_saving(9999) is None

    def test_budget_find_and_spent(self, store):
        ctx = store.get_all_contexts()[0]["id"]
        budget_id = store.add_budget(ctx, "Food", 500, "2024-01")

        budget = store.find_budget(ctx, "Food", "2024-01")
        assert budget["id"] == budget_id
        assert budget["spent"] == 0
        assert store.find_budget(ctx, "Food", "2024-02") is None
        assert store.find_budget(ctx, "food", "2024-01") is None

        store.set_budget_spent(budget_id, 42.5)
        assert store.get_budget(budget_id)["spent"] == 42.5

    def test_update_budget_keeps_spent(self, store):
        ctx = store.get_all_contexts()[0]["id"]
        budget_id = store.add_budget(ctx, "Food", 500, "2024-01", spent=120)

        store.update_budget(budget_id, monthly_limit=300, spent=0)
        budget = store.get_budget(budget_id)
        assert budget["monthly_limit"] == 300
        assert budget["spent"] == 120

    def test_savings_date_is_optional(self, store):
        ctx = store.get_all_contexts()[0]["id"]
        saving_id = store.add_saving(ctx, "Emergency fund", 0, 1000)
        saving = store.get_saving(saving_id)
        assert saving["date"] is None
        assert saving["amount"] == 0

    def test_delete_context_cascades(self, store):
        """Deleting a context removes every row that references it."""
        ctx = store.add_context("Business", "Business")
        keep = store.get_all_contexts()[-1]["id"]

        store.add_transaction(ctx, "Invoice", "2024-01-05", "Sales", "Income", 900, "Business")
        store.add_subscription(ctx, "Hosting", 20, "monthly", "2024-02-01", "Active")
        store.add_saving(ctx, "Tax reserve", 300, 1000)
        store.add_budget(ctx, "Software", 100, "2024-01")
        store.add_investment(ctx, "Index fund", "ETF", 1000, 1100, "2023-06-01")
        store.add_transaction(keep, "Groceries", "2024-01-05", "Food", "Expense", 50, "Cash")

        assert store.delete_context(ctx) is True

        assert store.get_context(ctx) is None
        for table in ["transactions", "subscriptions", "savings", "budgets", "investments"]:
            assert store.count_rows(table, ctx) == 0
        assert store.count_rows("transactions", keep) == 1

    def test_savings_progress_groups_by_account(self, store):
        """Rows sharing an account are summed; the largest goal wins."""
        ctx = store.get_all_contexts()[0]["id"]
        store.add_saving(ctx, "Vacation", 200, 1000)
        store.add_saving(ctx, "Vacation", 100, 1500)
        store.add_saving(ctx, "Car", 50, 5000)

        progress = {p["account"]: p for p in store.get_savings_progress(ctx)}
        assert progress["Vacation"]["current_amount"] == 300
        assert progress["Vacation"]["goal"] == 1500
        assert progress["Car"]["current_amount"] == 50

    def test_upcoming_renewals(self, store):
        """Only active subscriptions billing within the window are listed."""
        from datetime import date, timedelta

        ctx = store.get_all_contexts()[0]["id"]
        soon = (date.today() + timedelta(days=5)).isoformat()
        later = (date.today() + timedelta(days=60)).isoformat()
        store.add_subscription(ctx, "Music", 10, "monthly", soon, "Active")
        store.add_subscription(ctx, "Gym", 40, "monthly", soon, "Paused")
        store.add_subscription(ctx, "Domain", 15, "yearly", later, "Active")

        renewals = store.get_upcoming_renewals(ctx, days=30)
        assert [r["service"] for r in renewals] == ["Music"]

    def test_migration_adds_missing_columns(self, temp_db_path: Path):
        """Databases from older versions get the newer columns."""
        from finance_tracker.db.sqlite_store import SQLiteStore

        conn = sqlite3.connect(str(temp_db_path))
        conn.executescript("""
            CREATE TABLE contexts (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL,
                type TEXT NOT NULL, created_at TEXT DEFAULT CURRENT_TIMESTAMP);
            CREATE TABLE savings (id INTEGER PRIMARY KEY AUTOINCREMENT, context_id INTEGER NOT NULL,
                account TEXT NOT NULL, date TEXT NOT NULL, amount REAL NOT NULL, goal REAL NOT NULL,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP);
            CREATE TABLE budgets (id INTEGER PRIMARY KEY AUTOINCREMENT, context_id INTEGER NOT NULL,
                category TEXT NOT NULL, monthly_limit REAL NOT NULL, month TEXT NOT NULL,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP);
            INSERT INTO contexts (name, type) VALUES ('Old', 'Home');
            INSERT INTO savings (context_id, account, date, amount, goal) VALUES (1, 'Fund', '2023-01-01', 10, 100);
        """)
        conn.commit()
        conn.close()

        with SQLiteStore(temp_db_path) as store:
            assert "description" in [c[1] for c in store._table_columns("savings")]
            assert "spent" in [c[1] for c in store._table_columns("budgets")]
            assert store.get_saving(1)["account"] == "Fund"
            # date is nullable after the rebuild
            assert store.add_saving(1, "New", 0, 50) > 1
