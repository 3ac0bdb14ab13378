"""Synthesize the transactions that explain budget and savings amount changes.

Each function returns a transaction payload ready to POST to
/api/transactions, or None when the change needs no transaction.
"""
import math
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from finance_tracker.config import BUDGET_CATEGORY, SAVINGS_CATEGORY


def parse_amount(value: Any) -> float:
    """Parse a form amount. Empty, missing or unparseable values count as 0."""
    if value is None or value == "":
        return 0.0
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return 0.0
    return amount if math.isfinite(amount) else 0.0


def now_iso() -> str:
    """Current UTC instant as YYYY-MM-DDTHH:MM:SS.mmmZ."""
    stamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


def _delta(old: Any, new: Any) -> float:
    return round(parse_amount(new) - parse_amount(old), 2)


def _transaction(
    context_id: int,
    description: str,
    category: str,
    txn_type: str,
    amount: float,
    account: str,
    notes: str,
    date: Optional[str]
) -> Dict[str, Any]:
    return {
        "context_id": context_id,
        "description": description,
        "date": date or now_iso(),
        "category": category,
        "type": txn_type,
        "amount": amount,
        "account": account,
        "notes": notes
    }


def initial_budget_transaction(
    context_id: int,
    category: str,
    monthly_limit: Any,
    date: Optional[str] = None
) -> Optional[Dict[str, Any]]:
    """Expense recording the initial allocation of a new budget."""
    amount = parse_amount(monthly_limit)
    if amount <= 0:
        return None
    return _transaction(
        context_id,
        f"Initial budget allocation for {category}",
        BUDGET_CATEGORY,
        "Expense",
        amount,
        category,
        f"Initial budget allocation: {category}",
        date
    )


def budget_adjustment_transaction(
    context_id: int,
    category: str,
    old_limit: Any,
    new_limit: Any,
    date: Optional[str] = None
) -> Optional[Dict[str, Any]]:
    """Expense when a budget is raised, income when it is lowered."""
    difference = _delta(old_limit, new_limit)
    if difference == 0:
        return None
    increased = difference > 0
    return _transaction(
        context_id,
        f"Budget adjustment for {category}",
        BUDGET_CATEGORY,
        "Expense" if increased else "Income",
        abs(difference),
        category,
        "Automatic transaction from budget adjustment. "
        + ("Budget increased." if increased else "Budget decreased."),
        date
    )


def initial_savings_transaction(
    context_id: int,
    account: str,
    amount: Any,
    date: Optional[str] = None
) -> Optional[Dict[str, Any]]:
    """Expense recording the opening deposit of a savings record.

    A zero opening amount creates no transaction.
    """
    initial = parse_amount(amount)
    if initial <= 0:
        return None
    return _transaction(
        context_id,
        f"Initial savings for {account}",
        SAVINGS_CATEGORY,
        "Expense",
        initial,
        account,
        f"Initial deposit to savings goal: {account}",
        date
    )


def savings_adjustment_transaction(
    context_id: int,
    account: str,
    old_amount: Any,
    new_amount: Any,
    date: Optional[str] = None
) -> Optional[Dict[str, Any]]:
    """Expense when money is added to savings, income when it is withdrawn."""
    difference = _delta(old_amount, new_amount)
    if difference == 0:
        return None
    deposited = difference > 0
    return _transaction(
        context_id,
        f"Savings adjustment for {account}",
        SAVINGS_CATEGORY,
        "Expense" if deposited else "Income",
        abs(difference),
        account,
        "Automatic transaction from savings goal adjustment. "
        + ("Added to savings." if deposited else "Withdrawn from savings."),
        date
    )
