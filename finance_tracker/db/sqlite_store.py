"""SQLite store for contexts, transactions, budgets, savings, subscriptions and investments."""
import sqlite3
from pathlib import Path
from typing import List, Dict, Any, Optional, Iterable

from .schema import SCHEMA_SQL, DEFAULT_CONTEXT_SQL, CONTEXT_TABLES
from finance_tracker.config import DEFAULT_CONTEXT_NAME, DEFAULT_CONTEXT_TYPE


class SQLiteStore:
    """SQLite storage for every entity of the finance tracker."""

    def __init__(self, db_path: Path):
        """Initialize the store with database path."""
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        # Cascading deletes from contexts rely on this
        self.conn.execute("PRAGMA foreign_keys=ON")
        self._init_schema()

    def _init_schema(self) -> None:
        """Initialize database schema and seed the default context.

        Migrations run BEFORE the full schema so that databases created by an
        older version get their missing columns before indexes are built.
        """
        cursor = self.conn.cursor()
        self._run_migrations()
        cursor.executescript(SCHEMA_SQL)
        cursor.execute(DEFAULT_CONTEXT_SQL, (DEFAULT_CONTEXT_NAME, DEFAULT_CONTEXT_TYPE))
        self.conn.commit()

    def _table_exists(self, name: str) -> bool:
        cursor = self.conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (name,)
        )
        return cursor.fetchone() is not None

    def _table_columns(self, name: str) -> List[sqlite3.Row]:
        return self.conn.execute(f"PRAGMA table_info({name})").fetchall()

    def _run_migrations(self) -> None:
        """Run any pending migrations for schema updates."""
        # Migration: transactions.description was added after the first release
        if self._table_exists("transactions"):
            columns = [row[1] for row in self._table_columns("transactions")]
            if "description" not in columns:
                self.conn.execute("ALTER TABLE transactions ADD COLUMN description TEXT")
                self.conn.commit()

        if self._table_exists("savings"):
            columns = self._table_columns("savings")
            names = [row[1] for row in columns]
            if "description" not in names:
                self.conn.execute("ALTER TABLE savings ADD COLUMN description TEXT")
                self.conn.commit()

            # Migration: savings.date became nullable. SQLite has no ALTER COLUMN,
            # so the table is rebuilt.
            date_column = next((row for row in columns if row[1] == "date"), None)
            if date_column is not None and date_column[3] == 1:
                self.conn.executescript("""
                    CREATE TABLE savings_new (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        context_id INTEGER NOT NULL,
                        account TEXT NOT NULL,
                        date TEXT,
                        amount REAL NOT NULL,
                        goal REAL NOT NULL,
                        description TEXT,
                        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                        FOREIGN KEY (context_id) REFERENCES contexts(id) ON DELETE CASCADE
                    );
                    INSERT INTO savings_new (id, context_id, account, date, amount, goal, description, created_at)
                    SELECT id, context_id, account, date, amount, goal, description, created_at FROM savings;
                    DROP TABLE savings;
                    ALTER TABLE savings_new RENAME TO savings;
                """)
                self.conn.commit()

        # Migration: budgets.spent (running total used by the budget ledger)
        if self._table_exists("budgets"):
            columns = [row[1] for row in self._table_columns("budgets")]
            if "spent" not in columns:
                self.conn.execute("ALTER TABLE budgets ADD COLUMN spent REAL DEFAULT 0")
                self.conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        if self.conn:
            self.conn.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def get_tables(self) -> List[str]:
        """Get list of tables in the database."""
        cursor = self.conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        )
        return [row[0] for row in cursor.fetchall()]

    def checkpoint(self) -> None:
        """Flush the WAL into the main database file."""
        self.conn.execute("PRAGMA wal_checkpoint(FULL)")

    def _fetch_all(self, query: str, params: Iterable[Any] = ()) -> List[Dict[str, Any]]:
        cursor = self.conn.execute(query, tuple(params))
        return [dict(row) for row in cursor.fetchall()]

    def _fetch_one(self, query: str, params: Iterable[Any] = ()) -> Optional[Dict[str, Any]]:
        cursor = self.conn.execute(query, tuple(params))
        row = cursor.fetchone()
        return dict(row) if row else None

    def _update_row(self, table: str, allowed: set, row_id: int, fields: Dict[str, Any]) -> bool:
        """Update whitelisted columns of a row. Returns False if the row doesn't exist."""
        updates = {k: v for k, v in fields.items() if k in allowed}
        if not updates:
            return self._fetch_one(f"SELECT id FROM {table} WHERE id = ?", (row_id,)) is not None

        set_clause = ", ".join(f"{k} = ?" for k in updates.keys())
        params = list(updates.values()) + [row_id]
        cursor = self.conn.execute(f"UPDATE {table} SET {set_clause} WHERE id = ?", params)
        self.conn.commit()
        return cursor.rowcount > 0

    def _delete_row(self, table: str, row_id: int) -> bool:
        cursor = self.conn.execute(f"DELETE FROM {table} WHERE id = ?", (row_id,))
        self.conn.commit()
        return cursor.rowcount > 0

    def count_rows(self, table: str, context_id: Optional[int] = None) -> int:
        """Count rows in a table, optionally restricted to one context."""
        if table not in CONTEXT_TABLES and table != "contexts":
            raise ValueError(f"Unknown table: {table}")
        query = f"SELECT COUNT(*) FROM {table}"
        params = []
        if context_id is not None and table != "contexts":
            query += " WHERE context_id = ?"
            params.append(context_id)
        return self.conn.execute(query, params).fetchone()[0]

    # === Context Methods ===

    def get_all_contexts(self) -> List[Dict[str, Any]]:
        """Get all contexts, newest first."""
        return self._fetch_all("SELECT * FROM contexts ORDER BY created_at DESC, id DESC")

    def get_context(self, context_id: int) -> Optional[Dict[str, Any]]:
        """Get a single context by ID."""
        return self._fetch_one("SELECT * FROM contexts WHERE id = ?", (context_id,))

    def add_context(self, name: str, context_type: str) -> int:
        """Add a new context. Returns the new context ID."""
        cursor = self.conn.execute(
            "INSERT INTO contexts (name, type) VALUES (?, ?)",
            (name, context_type)
        )
        self.conn.commit()
        return cursor.lastrowid

    def update_context(self, context_id: int, **kwargs) -> bool:
        """Update a context's fields."""
        return self._update_row("contexts", {"name", "type"}, context_id, kwargs)

    def delete_context(self, context_id: int) -> bool:
        """Delete a context and, through the foreign keys, everything in it."""
        return self._delete_row("contexts", context_id)

    # === Transaction Methods ===

    def get_transactions(self, context_id: int) -> List[Dict[str, Any]]:
        """Get all transactions for a context, newest first."""
        return self._fetch_all(
            """SELECT * FROM transactions WHERE context_id = ?
               ORDER BY date DESC, created_at DESC, id DESC""",
            (context_id,)
        )

    def get_transaction(self, txn_id: int) -> Optional[Dict[str, Any]]:
        """Get a transaction by ID."""
        return self._fetch_one("SELECT * FROM transactions WHERE id = ?", (txn_id,))

    def add_transaction(
        self,
        context_id: int,
        description: str,
        date: str,
        category: str,
        txn_type: str,
        amount: float,
        account: str,
        notes: Optional[str] = None
    ) -> int:
        """Add a transaction. Returns the new transaction ID."""
        cursor = self.conn.execute(
            """INSERT INTO transactions (context_id, description, date, category, type, amount, account, notes)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (context_id, description, date, category, txn_type, amount, account, notes or "")
        )
        self.conn.commit()
        return cursor.lastrowid

    def update_transaction(self, txn_id: int, **kwargs) -> bool:
        """Update a transaction's fields. Budget totals are left untouched."""
        allowed = {"description", "date", "category", "type", "amount", "account", "notes"}
        if "notes" in kwargs:
            kwargs["notes"] = kwargs["notes"] or ""
        return self._update_row("transactions", allowed, txn_id, kwargs)

    def delete_transaction(self, txn_id: int) -> bool:
        """Delete a transaction."""
        return self._delete_row("transactions", txn_id)

    # === Subscription Methods ===

    def get_subscriptions(self, context_id: int) -> List[Dict[str, Any]]:
        """Get subscriptions for a context, soonest billing first."""
        return self._fetch_all(
            "SELECT * FROM subscriptions WHERE context_id = ? ORDER BY next_billing_date ASC",
            (context_id,)
        )

    def get_subscription(self, sub_id: int) -> Optional[Dict[str, Any]]:
        """Get a single subscription by ID."""
        return self._fetch_one("SELECT * FROM subscriptions WHERE id = ?", (sub_id,))

    def add_subscription(
        self,
        context_id: int,
        service: str,
        amount: float,
        frequency: str,
        next_billing_date: str,
        status: str
    ) -> int:
        """Add a subscription. Returns the new subscription ID."""
        cursor = self.conn.execute(
            """INSERT INTO subscriptions (context_id, service, amount, frequency, next_billing_date, status)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (context_id, service, amount, frequency, next_billing_date, status)
        )
        self.conn.commit()
        return cursor.lastrowid

    def update_subscription(self, sub_id: int, **kwargs) -> bool:
        """Update a subscription's fields."""
        allowed = {"service", "amount", "frequency", "next_billing_date", "status"}
        return self._update_row("subscriptions", allowed, sub_id, kwargs)

    def delete_subscription(self, sub_id: int) -> bool:
        """Delete a subscription."""
        return self._delete_row("subscriptions", sub_id)

    # === Savings Methods ===

    def get_savings(self, context_id: int) -> List[Dict[str, Any]]:
        """Get savings records for a context."""
        return self._fetch_all(
            """SELECT * FROM savings WHERE context_id = ?
               ORDER BY date DESC, created_at DESC, id DESC""",
            (context_id,)
        )

    def get_saving(self, saving_id: int) -> Optional[Dict[str, Any]]:
        """Get a single savings record by ID."""
        return self._fetch_one("SELECT * FROM savings WHERE id = ?", (saving_id,))

    def add_saving(
        self,
        context_id: int,
        account: str,
        amount: float,
        goal: float,
        date: Optional[str] = None,
        description: Optional[str] = None
    ) -> int:
        """Add a savings record. Returns the new record ID."""
        cursor = self.conn.execute(
            """INSERT INTO savings (context_id, account, date, amount, goal, description)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (context_id, account, date or None, amount, goal, description or None)
        )
        self.conn.commit()
        return cursor.lastrowid

    def update_saving(self, saving_id: int, **kwargs) -> bool:
        """Update a savings record's fields."""
        allowed = {"account", "date", "amount", "goal", "description"}
        for key in ("date", "description"):
            if key in kwargs:
                kwargs[key] = kwargs[key] or None
        return self._update_row("savings", allowed, saving_id, kwargs)

    def delete_saving(self, saving_id: int) -> bool:
        """Delete a savings record."""
        return self._delete_row("savings", saving_id)

    # === Budget Methods ===

    def get_budgets(self, context_id: int, month: str) -> List[Dict[str, Any]]:
        """Get the budgets of a context for one month (YYYY-MM)."""
        return self._fetch_all(
            "SELECT * FROM budgets WHERE context_id = ? AND month = ? ORDER BY category ASC",
            (context_id, month)
        )

    def get_budget(self, budget_id: int) -> Optional[Dict[str, Any]]:
        """Get a single budget by ID."""
        return self._fetch_one("SELECT * FROM budgets WHERE id = ?", (budget_id,))

    def find_budget(self, context_id: int, category: str, month: str) -> Optional[Dict[str, Any]]:
        """Find the budget for a context, category and month."""
        return self._fetch_one(
            "SELECT * FROM budgets WHERE context_id = ? AND category = ? AND month = ?",
            (context_id, category, month)
        )

    def add_budget(
        self,
        context_id: int,
        category: str,
        monthly_limit: float,
        month: str,
        spent: float = 0
    ) -> int:
        """Add a budget. Returns the new budget ID."""
        cursor = self.conn.execute(
            """INSERT INTO budgets (context_id, category, monthly_limit, month, spent)
               VALUES (?, ?, ?, ?, ?)""",
            (context_id, category, monthly_limit, month, spent)
        )
        self.conn.commit()
        return cursor.lastrowid

    def update_budget(self, budget_id: int, **kwargs) -> bool:
        """Update a budget's fields. spent is only changed by set_budget_spent."""
        return self._update_row("budgets", {"category", "monthly_limit", "month"}, budget_id, kwargs)

    def set_budget_spent(self, budget_id: int, spent: float) -> None:
        """Overwrite the cached spent total of a budget."""
        self.conn.execute("UPDATE budgets SET spent = ? WHERE id = ?", (spent, budget_id))
        self.conn.commit()

    def delete_budget(self, budget_id: int) -> bool:
        """Delete a budget."""
        return self._delete_row("budgets", budget_id)

    # === Investment Methods ===

    def get_investments(self, context_id: int) -> List[Dict[str, Any]]:
        """Get investments for a context, most recent first."""
        return self._fetch_all(
            """SELECT * FROM investments WHERE context_id = ?
               ORDER BY date_invested DESC, created_at DESC, id DESC""",
            (context_id,)
        )

    def get_investment(self, investment_id: int) -> Optional[Dict[str, Any]]:
        """Get a single investment by ID."""
        return self._fetch_one("SELECT * FROM investments WHERE id = ?", (investment_id,))

    def add_investment(
        self,
        context_id: int,
        asset_name: str,
        investment_type: str,
        amount_invested: float,
        current_value: float,
        date_invested: str,
        notes: Optional[str] = None
    ) -> int:
        """Add an investment. Returns the new investment ID."""
        cursor = self.conn.execute(
            """INSERT INTO investments (context_id, asset_name, type, amount_invested, current_value, date_invested, notes)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (context_id, asset_name, investment_type, amount_invested, current_value, date_invested, notes or "")
        )
        self.conn.commit()
        return cursor.lastrowid

    def update_investment(self, investment_id: int, **kwargs) -> bool:
        """Update an investment's fields."""
        allowed = {"asset_name", "type", "amount_invested", "current_value", "date_invested", "notes"}
        if "notes" in kwargs:
            kwargs["notes"] = kwargs["notes"] or ""
        return self._update_row("investments", allowed, investment_id, kwargs)

    def delete_investment(self, investment_id: int) -> bool:
        """Delete an investment."""
        return self._delete_row("investments", investment_id)

    # === Dashboard Queries ===

    def get_income_expense_totals(self, context_id: int, month: str) -> Dict[str, float]:
        """Sum transaction amounts by type for one month."""
        cursor = self.conn.execute("""
            SELECT type, SUM(amount) as total
            FROM transactions
            WHERE context_id = ? AND strftime('%Y-%m', date) = ?
            GROUP BY type
        """, (context_id, month))
        return {row["type"]: row["total"] or 0 for row in cursor.fetchall()}

    def get_spending_by_category(self, context_id: int, month: str) -> List[Dict[str, Any]]:
        """Sum expense amounts by category for one month, largest first."""
        return self._fetch_all("""
            SELECT category, SUM(amount) as total
            FROM transactions
            WHERE context_id = ? AND type = 'Expense' AND strftime('%Y-%m', date) = ?
            GROUP BY category
            ORDER BY total DESC
        """, (context_id, month))

    def get_active_subscription_total(self, context_id: int) -> float:
        """Sum the amounts of active subscriptions."""
        cursor = self.conn.execute(
            "SELECT SUM(amount) FROM subscriptions WHERE context_id = ? AND status = 'Active'",
            (context_id,)
        )
        result = cursor.fetchone()[0]
        return result if result else 0

    def get_savings_progress(self, context_id: int) -> List[Dict[str, Any]]:
        """Group savings rows by account name: summed amount, largest goal."""
        return self._fetch_all("""
            SELECT account, SUM(amount) as current_amount, MAX(goal) as goal
            FROM savings
            WHERE context_id = ?
            GROUP BY account
            ORDER BY account
        """, (context_id,))

    def get_investment_totals(self, context_id: int) -> Dict[str, Any]:
        """Total invested, total current value and count of investments."""
        cursor = self.conn.execute("""
            SELECT
                SUM(amount_invested) as total_invested,
                SUM(current_value) as total_current_value,
                COUNT(*) as total_investments
            FROM investments
            WHERE context_id = ?
        """, (context_id,))
        row = cursor.fetchone()
        return {
            "total_invested": row["total_invested"] or 0,
            "total_current_value": row["total_current_value"] or 0,
            "total_investments": row["total_investments"] or 0
        }

    def get_budget_vs_actual(self, context_id: int, month: str) -> List[Dict[str, Any]]:
        """Compare each budget of a month with the expenses recorded against it.

        actual_spending is computed from the transactions table, independently
        of the cached budgets.spent column.
        """
        return self._fetch_all("""
            SELECT
                b.id,
                b.category,
                b.monthly_limit,
                b.spent,
                COALESCE(SUM(t.amount), 0) as actual_spending
            FROM budgets b
            LEFT JOIN transactions t ON b.context_id = t.context_id
                AND b.category = t.category
                AND t.type = 'Expense'
                AND strftime('%Y-%m', t.date) = b.month
            WHERE b.context_id = ? AND b.month = ?
            GROUP BY b.id, b.category, b.monthly_limit, b.spent
            ORDER BY b.category
        """, (context_id, month))

    def get_recent_transactions(self, context_id: int, limit: int = 5) -> List[Dict[str, Any]]:
        """Get the latest transactions of a context."""
        return self._fetch_all("""
            SELECT * FROM transactions
            WHERE context_id = ?
            ORDER BY date DESC, created_at DESC, id DESC
            LIMIT ?
        """, (context_id, limit))

    def get_upcoming_renewals(self, context_id: int, days: int = 30, limit: int = 5) -> List[Dict[str, Any]]:
        """Get active subscriptions billing within the next N days (overdue included)."""
        return self._fetch_all("""
            SELECT * FROM subscriptions
            WHERE context_id = ? AND status = 'Active'
                AND date(next_billing_date) <= date('now', '+' || ? || ' days')
            ORDER BY next_billing_date ASC
            LIMIT ?
        """, (context_id, days, limit))

    # === Export ===

    def get_export_rows(self, context_id: int) -> Dict[str, List[Dict[str, Any]]]:
        """Get every row of a context, grouped by table."""
        orderings = {
            "transactions": "date DESC",
            "subscriptions": "service",
            "savings": "account",
            "budgets": "month DESC, category",
            "investments": "asset_name",
        }
        return {
            table: self._fetch_all(
                f"SELECT * FROM {table} WHERE context_id = ? ORDER BY {orderings[table]}",
                (context_id,)
            )
            for table in CONTEXT_TABLES
        }
