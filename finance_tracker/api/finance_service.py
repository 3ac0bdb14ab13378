"""Finance service - main orchestration layer."""
import math
import shutil
import sqlite3
import logging
from datetime import date, datetime, timezone
from pathlib import Path
from typing import List, Dict, Any, Optional

from finance_tracker.config import (
    DB_PATH,
    BACKUP_DIR,
    RECENT_TRANSACTIONS_LIMIT,
    RENEWAL_WINDOW_DAYS,
    UPCOMING_RENEWALS_LIMIT,
    ensure_data_dir,
    ensure_backup_dir
)
from finance_tracker.db.schema import CONTEXT_TABLES
from finance_tracker.db.sqlite_store import SQLiteStore
from finance_tracker.ledger.budget_ledger import BudgetLedger


logger = logging.getLogger(__name__)


class ContextNotFoundError(Exception):
    """Raised when an operation targets a context that doesn't exist."""

    def __init__(self, context_id: int):
        self.context_id = context_id
        super().__init__(f"Context with ID {context_id} does not exist")


class FinanceService:
    """Main service for the finance tracker.

    Wires the store to the budget ledger and provides the read-side
    aggregations, export/import and backups.
    """

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize the finance service.

        Args:
            db_path: Path to SQLite database (default: ~/.finance_tracker/finance.db)
        """
        if db_path is None:
            ensure_data_dir()

        self.db_path = Path(db_path or DB_PATH)
        self.store = SQLiteStore(self.db_path)
        self.ledger = BudgetLedger(self.store)

    def close(self):
        """Close all connections."""
        self.store.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def require_context(self, context_id: int) -> Dict[str, Any]:
        """Return the context or raise ContextNotFoundError."""
        context = self.store.get_context(context_id)
        if context is None:
            raise ContextNotFoundError(context_id)
        return context

    def create_transaction(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Record a transaction and run the budget ledger for expenses.

        Args:
            fields: context_id, description, date, category, type, amount,
                account and optional notes

        Returns:
            The stored transaction row, plus a budgetWarning entry when the
            expense pushed its budget over the monthly limit
        """
        self.require_context(fields["context_id"])

        txn_id = self.store.add_transaction(
            context_id=fields["context_id"],
            description=fields["description"],
            date=fields["date"],
            category=fields["category"],
            txn_type=fields["type"],
            amount=fields["amount"],
            account=fields["account"],
            notes=fields.get("notes")
        )
        logger.info(f"Created {fields['type']} transaction {txn_id} in context {fields['context_id']}")

        budget_warning = None
        if fields["type"] == "Expense":
            budget_warning = self.ledger.record_expense(
                fields["context_id"],
                fields["category"],
                fields["date"],
                fields["amount"]
            )

        response = self.store.get_transaction(txn_id)
        if budget_warning:
            response["budgetWarning"] = budget_warning
        return response

    def get_dashboard(self, context_id: int, month: Optional[str] = None) -> Dict[str, Any]:
        """Get the dashboard summary of a context for a month (default: current).

        Returns:
            Dict with summary totals, spending by category, savings progress,
            budget vs actual, recent transactions and upcoming renewals
        """
        if not month:
            month = date.today().strftime("%Y-%m")

        totals = self.store.get_income_expense_totals(context_id, month)
        income = totals.get("Income", 0)
        expenses = totals.get("Expense", 0)

        investments = self.store.get_investment_totals(context_id)
        total_invested = investments["total_invested"]
        total_current_value = investments["total_current_value"]
        profit_loss = total_current_value - total_invested
        profit_loss_pct = (profit_loss / total_invested) * 100 if total_invested > 0 else 0

        return {
            "summary": {
                "totalIncome": income,
                "totalExpenses": expenses,
                "netIncome": income - expenses,
                "totalSubscriptions": self.store.get_active_subscription_total(context_id),
                "totalInvested": total_invested,
                "totalCurrentValue": total_current_value,
                "profitLoss": profit_loss,
                "profitLossPercentage": profit_loss_pct
            },
            "spendingByCategory": self.store.get_spending_by_category(context_id, month),
            "savingsProgress": self.store.get_savings_progress(context_id),
            "budgetVsActual": self.store.get_budget_vs_actual(context_id, month),
            "recentTransactions": self.store.get_recent_transactions(
                context_id, limit=RECENT_TRANSACTIONS_LIMIT
            ),
            "upcomingRenewals": self.store.get_upcoming_renewals(
                context_id, days=RENEWAL_WINDOW_DAYS, limit=UPCOMING_RENEWALS_LIMIT
            ),
            "currentMonth": month
        }

    def get_investments(self, context_id: int) -> List[Dict[str, Any]]:
        """Get investments with their profit/loss figures."""
        investments = self.store.get_investments(context_id)
        for inv in investments:
            invested = inv["amount_invested"] or 0
            inv["profit_loss"] = (inv["current_value"] or 0) - invested
            inv["profit_loss_percentage"] = (inv["profit_loss"] / invested) * 100 if invested > 0 else 0
        return investments

    def export_context(self, context_id: int) -> Dict[str, Any]:
        """Dump all data of a context as a JSON-serializable dict."""
        context = self.require_context(context_id)
        data = self.store.get_export_rows(context_id)

        return {
            "exportDate": datetime.now(timezone.utc).isoformat(),
            "context": context,
            "data": data,
            "summary": {
                "totalTransactions": len(data["transactions"]),
                "totalSubscriptions": len(data["subscriptions"]),
                "totalSavings": len(data["savings"]),
                "totalBudgets": len(data["budgets"]),
                "totalInvestments": len(data["investments"])
            }
        }

    def import_context(self, context_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """Re-insert exported rows into a target context.

        Rows get new ids and the target context_id. Transactions are inserted
        directly, without going through the budget ledger; budgets keep their
        exported spent total. A bad row is reported in errors and skipped.

        Returns:
            Dict with per-entity imported counts and error messages
        """
        self.require_context(context_id)

        results = {
            "imported": {table: 0 for table in CONTEXT_TABLES},
            "errors": []
        }

        importers = {
            "transactions": lambda row: self.store.add_transaction(
                context_id=context_id,
                description=row["description"],
                date=row["date"],
                category=row["category"],
                txn_type=row["type"],
                amount=row["amount"],
                account=row["account"],
                notes=row.get("notes")
            ),
            "subscriptions": lambda row: self.store.add_subscription(
                context_id=context_id,
                service=row["service"],
                amount=row["amount"],
                frequency=row["frequency"],
                next_billing_date=row["next_billing_date"],
                status=row["status"]
            ),
            "savings": lambda row: self.store.add_saving(
                context_id=context_id,
                account=row["account"],
                amount=row["amount"],
                goal=row["goal"],
                date=row.get("date"),
                description=row.get("description")
            ),
            "budgets": lambda row: self.store.add_budget(
                context_id=context_id,
                category=row["category"],
                monthly_limit=row["monthly_limit"],
                month=row["month"],
                spent=row.get("spent") or 0
            ),
            "investments": lambda row: self.store.add_investment(
                context_id=context_id,
                asset_name=row["asset_name"],
                investment_type=row["type"],
                amount_invested=row["amount_invested"],
                current_value=row["current_value"],
                date_invested=row["date_invested"],
                notes=row.get("notes")
            ),
        }
        labels = {
            "transactions": "Transaction",
            "subscriptions": "Subscription",
            "savings": "Savings",
            "budgets": "Budget",
            "investments": "Investment",
        }

        for table in CONTEXT_TABLES:
            rows = data.get(table)
            if not isinstance(rows, list):
                continue
            for row in rows:
                try:
                    if any(isinstance(v, float) and not math.isfinite(v) for v in row.values()):
                        raise ValueError("non-finite number")
                    importers[table](row)
                    results["imported"][table] += 1
                except (KeyError, TypeError, AttributeError) as e:
                    results["errors"].append(f"{labels[table]} import error: missing field {e}")
                except (ValueError, sqlite3.Error) as e:
                    results["errors"].append(f"{labels[table]} import error: {e}")

        logger.info(f"Imported into context {context_id}: {results['imported']}, {len(results['errors'])} errors")
        return results

    def backup_database(self, backup_dir: Optional[Path] = None) -> Dict[str, Any]:
        """Copy the database file to a timestamped backup file.

        Returns:
            Dict with the backup file name, full path and timestamp
        """
        backup_dir = ensure_backup_dir(Path(backup_dir or BACKUP_DIR))
        now = datetime.now(timezone.utc)
        timestamp = now.strftime("%Y-%m-%dT%H-%M-%S-%f")
        backup_file = f"finance-backup-{timestamp}.db"
        backup_path = backup_dir / backup_file

        self.store.checkpoint()
        shutil.copy2(self.db_path, backup_path)
        logger.info(f"Database backed up to {backup_path}")

        return {
            "backupFile": backup_file,
            "backupPath": str(backup_path),
            "timestamp": now.isoformat()
        }
