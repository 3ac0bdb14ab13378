"""Budget ledger: keeps each budget's running spent total as expenses are recorded."""
import logging
from datetime import timezone
from typing import Dict, Any, Optional

from dateutil.parser import isoparse

from finance_tracker.db.sqlite_store import SQLiteStore


logger = logging.getLogger(__name__)


def month_of(date: str) -> str:
    """Return the YYYY-MM month of an ISO-8601 date or datetime string.

    Datetimes with a UTC offset are converted to UTC first, the same way
    SQLite's strftime reads them in the dashboard queries. Naive values
    are taken as written.

    Raises:
        ValueError: if the string is not ISO-8601
    """
    parsed = isoparse(date)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return f"{parsed.year:04d}-{parsed.month:02d}"


def build_warning(category: str, spent: float, limit: float) -> Dict[str, Any]:
    """Build the payload returned when a category goes over its monthly limit."""
    overage = spent - limit
    return {
        "message": f"Budget exceeded for {category}!",
        "details": f"Spent ${spent:.2f} of ${limit:.2f} budget (${overage:.2f} over)",
        "category": category,
        "spent": spent,
        "limit": limit,
        "overage": overage
    }


class BudgetLedger:
    """Update budget spent totals when expense transactions are created.

    The update is incremental: spent is read, increased by the new expense and
    written back. Editing or deleting a transaction later does not adjust it,
    so spent can drift from the sum of the month's expenses.
    """

    def __init__(self, store: SQLiteStore):
        """Initialize with SQLite store.

        Args:
            store: SQLiteStore instance
        """
        self.store = store

    def record_expense(
        self,
        context_id: int,
        category: str,
        date: str,
        amount: float
    ) -> Optional[Dict[str, Any]]:
        """Add an expense to the matching budget's spent total.

        Args:
            context_id: Context the expense belongs to
            category: Expense category, matched exactly against budget categories
            date: ISO-8601 transaction date; its month selects the budget
            amount: Positive expense amount

        Returns:
            Budget warning dict if the new total exceeds the monthly limit,
            None otherwise (including when no budget matches)
        """
        month = month_of(date)
        budget = self.store.find_budget(context_id, category, month)
        if budget is None:
            logger.debug(f"No budget for {category} in {month} (context {context_id})")
            return None

        current_spent = budget["spent"] or 0
        new_spent = current_spent + amount
        limit = budget["monthly_limit"]

        self.store.set_budget_spent(budget["id"], new_spent)
        logger.info(f"Budget {budget['id']} ({category}, {month}): spent {current_spent} -> {new_spent}")

        if new_spent > limit:
            warning = build_warning(category, new_spent, limit)
            logger.warning(warning["details"])
            return warning

        return None
