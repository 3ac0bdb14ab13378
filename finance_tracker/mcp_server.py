#!/usr/bin/env python3
"""MCP Server for the finance tracker - exposes contexts, budgets and transactions to MCP clients."""
from typing import Optional

from fastmcp import FastMCP

# Initialize MCP server
mcp = FastMCP(
    name="finance-tracker",
    instructions="""You have access to a local personal finance tracker. All data is
partitioned into contexts (e.g. Home, Work, Business); call list_contexts first
to find the context_id to use.

Use these tools to help the user understand their finances:
- list_contexts: Available contexts
- get_dashboard: Monthly income, expenses, budgets, savings and renewals
- get_budgets: Budgets of a month with their spent totals
- get_transactions: Transactions of a context, newest first
- add_transaction: Record an income or expense (expenses count against budgets)

When an added expense returns a budgetWarning, tell the user which budget was exceeded."""
)

# Lazy-load the finance service to avoid opening the database at import time
_service = None


def get_service():
    """Get or create the finance service instance."""
    global _service
    if _service is None:
        from finance_tracker.api.finance_service import FinanceService
        _service = FinanceService()
        _service.__enter__()
    return _service


@mcp.tool()
def list_contexts() -> list:
    """List all contexts (id, name, type), newest first."""
    return get_service().store.get_all_contexts()


@mcp.tool()
def get_dashboard(context_id: int, month: Optional[str] = None) -> dict:
    """Get the dashboard summary of a context.

    Args:
        context_id: Context to summarize
        month: Month as YYYY-MM (default: current month)

    Returns summary totals, spending by category, savings progress,
    budget vs actual, recent transactions and upcoming renewals.
    """
    return get_service().get_dashboard(context_id, month)


@mcp.tool()
def get_budgets(context_id: int, month: str) -> list:
    """Get the budgets of a context for a month (YYYY-MM), with spent totals."""
    return get_service().store.get_budgets(context_id, month)


@mcp.tool()
def get_transactions(context_id: int, limit: int = 50) -> list:
    """Get transactions of a context, newest first.

    Args:
        context_id: Context to read
        limit: Max transactions to return (default 50)
    """
    return get_service().store.get_transactions(context_id)[:limit]


@mcp.tool()
def add_transaction(
    context_id: int,
    description: str,
    date: str,
    category: str,
    type: str,
    amount: float,
    account: str,
    notes: Optional[str] = None
) -> dict:
    """Record a transaction.

    Args:
        context_id: Context the transaction belongs to
        description: What the money was for
        date: ISO date, e.g. 2024-01-15
        category: Category name, matched against budget categories
        type: "Income" or "Expense"
        amount: Positive amount
        account: Account the money moved through
        notes: Optional notes

    Returns the created transaction, or {"error": ...} if it was rejected.
    Expenses over a budget's monthly limit include a budgetWarning.
    """
    return record_transaction({
        "context_id": context_id,
        "description": description,
        "date": date,
        "category": category,
        "type": type,
        "amount": amount,
        "account": account,
        "notes": notes
    })


def record_transaction(fields: dict) -> dict:
    """Validate fields like POST /api/transactions does, then create the transaction."""
    from pydantic import ValidationError
    from finance_tracker.api.finance_service import ContextNotFoundError
    from finance_tracker.web.api import TransactionCreate

    try:
        transaction = TransactionCreate(**fields)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        return {"error": f"Validation failed: {problems}"}

    try:
        return get_service().create_transaction(transaction.model_dump())
    except ContextNotFoundError as e:
        return {"error": str(e)}


if __name__ == "__main__":
    mcp.run()
