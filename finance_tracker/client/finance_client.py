"""REST client for the finance tracker API.

Mirrors what the browser front end does: every call takes an explicit
context id, mutations publish on an InvalidationBus, and budget/savings
saves are followed by the transaction that explains the amount change.
"""
import logging
from datetime import date
from typing import Optional, Dict, Any, List, Tuple

import requests

from finance_tracker.config import API_BASE_URL
from finance_tracker.client.events import (
    InvalidationBus,
    TRANSACTIONS,
    BUDGETS,
    SAVINGS,
    SUBSCRIPTIONS,
    INVESTMENTS,
    CONTEXTS,
    DASHBOARD
)
from finance_tracker.ledger.reconciliation import (
    parse_amount,
    initial_budget_transaction,
    budget_adjustment_transaction,
    initial_savings_transaction,
    savings_adjustment_transaction
)


logger = logging.getLogger(__name__)


class APIError(Exception):
    """The API answered with an error status."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"{status_code}: {message}")


class LastContextError(Exception):
    """Refused to delete the only remaining context."""


class ReconciliationError(Exception):
    """A budget or savings record was saved but its transaction was not.

    The saved record is not rolled back. `transaction` holds the payload that
    could not be posted so the caller can retry or report it.
    """

    def __init__(self, record: Dict[str, Any], transaction: Dict[str, Any], cause: Exception):
        self.record = record
        self.transaction = transaction
        self.cause = cause
        super().__init__(f"Saved record {record.get('id')} but failed to record its transaction: {cause}")


class FinanceClient:
    """Client for the /api endpoints.

    Args:
        base_url: Server root, e.g. http://127.0.0.1:5000. Use "" with a
            test client that resolves relative URLs.
        session: requests.Session or any object with a compatible
            request(method, url, params=..., json=...) method
        bus: InvalidationBus to publish on (a private one by default)
    """

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        session=None,
        bus: Optional[InvalidationBus] = None,
        timeout: float = 10.0
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.bus = bus or InvalidationBus()
        self.timeout = timeout

    def _request(self, method: str, path: str, params: dict = None, json: Any = None) -> Any:
        kwargs = {"params": params, "json": json}
        if isinstance(self.session, requests.Session):
            kwargs["timeout"] = self.timeout

        response = self.session.request(method, f"{self.base_url}/api{path}", **kwargs)
        if response.status_code >= 400:
            try:
                message = response.json().get("error", response.text)
            except ValueError:
                message = response.text
            logger.debug(f"{method} {path} failed: {response.status_code} {message}")
            raise APIError(response.status_code, message)
        return response.json()

    # === Contexts ===

    def list_contexts(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/contexts")

    def create_context(self, name: str, context_type: str) -> Dict[str, Any]:
        context = self._request("POST", "/contexts", json={"name": name, "type": context_type})
        self.bus.publish(CONTEXTS, context)
        return context

    def update_context(self, context_id: int, name: str, context_type: str) -> Dict[str, Any]:
        context = self._request("PUT", f"/contexts/{context_id}", json={"name": name, "type": context_type})
        self.bus.publish(CONTEXTS, context)
        return context

    def delete_context(self, context_id: int) -> Dict[str, Any]:
        """Delete a context and all of its data.

        Raises:
            LastContextError: if it is the only context left
        """
        if len(self.list_contexts()) <= 1:
            raise LastContextError("Cannot delete the last context")
        result = self._request("DELETE", f"/contexts/{context_id}")
        self.bus.publish([CONTEXTS, TRANSACTIONS, BUDGETS, SAVINGS, SUBSCRIPTIONS, INVESTMENTS, DASHBOARD])
        return result

    # === Transactions ===

    def list_transactions(self, context_id: int) -> List[Dict[str, Any]]:
        return self._request("GET", "/transactions", params={"context_id": context_id})

    def create_transaction(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Create a transaction. The result may carry a budgetWarning."""
        txn = self._request("POST", "/transactions", json=fields)
        if txn.get("budgetWarning"):
            logger.warning(txn["budgetWarning"]["message"])
        # Expenses move budget spent totals server side
        self.bus.publish([TRANSACTIONS, BUDGETS, DASHBOARD], txn)
        return txn

    def update_transaction(self, txn_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
        txn = self._request("PUT", f"/transactions/{txn_id}", json=fields)
        self.bus.publish([TRANSACTIONS, DASHBOARD], txn)
        return txn

    def delete_transaction(self, txn_id: int) -> Dict[str, Any]:
        result = self._request("DELETE", f"/transactions/{txn_id}")
        self.bus.publish([TRANSACTIONS, DASHBOARD], {"id": txn_id})
        return result

    # === Subscriptions / Investments ===

    def list_subscriptions(self, context_id: int) -> List[Dict[str, Any]]:
        return self._request("GET", "/subscriptions", params={"context_id": context_id})

    def save_subscription(self, fields: Dict[str, Any], sub_id: Optional[int] = None) -> Dict[str, Any]:
        if sub_id is None:
            sub = self._request("POST", "/subscriptions", json=fields)
        else:
            sub = self._request("PUT", f"/subscriptions/{sub_id}", json=fields)
        self.bus.publish([SUBSCRIPTIONS, DASHBOARD], sub)
        return sub

    def delete_subscription(self, sub_id: int) -> Dict[str, Any]:
        result = self._request("DELETE", f"/subscriptions/{sub_id}")
        self.bus.publish([SUBSCRIPTIONS, DASHBOARD], {"id": sub_id})
        return result

    def list_investments(self, context_id: int) -> List[Dict[str, Any]]:
        return self._request("GET", "/investments", params={"context_id": context_id})

    def save_investment(self, fields: Dict[str, Any], investment_id: Optional[int] = None) -> Dict[str, Any]:
        if investment_id is None:
            investment = self._request("POST", "/investments", json=fields)
        else:
            investment = self._request("PUT", f"/investments/{investment_id}", json=fields)
        self.bus.publish([INVESTMENTS, DASHBOARD], investment)
        return investment

    def delete_investment(self, investment_id: int) -> Dict[str, Any]:
        result = self._request("DELETE", f"/investments/{investment_id}")
        self.bus.publish([INVESTMENTS, DASHBOARD], {"id": investment_id})
        return result

    # === Budgets ===

    def list_budgets(self, context_id: int, month: str) -> List[Dict[str, Any]]:
        return self._request("GET", "/budgets", params={"context_id": context_id, "month": month})

    def save_budget(
        self,
        context_id: int,
        category: str,
        monthly_limit: Any,
        month: Optional[str] = None,
        existing: Optional[Dict[str, Any]] = None
    ) -> Tuple[Dict[str, Any], Optional[Dict[str, Any]]]:
        """Create or update a budget, then record the matching transaction.

        A new budget records its limit as an Expense. Changing the limit of an
        existing budget records the difference: Expense when raised, Income
        when lowered.

        Args:
            context_id: Context of the budget
            category: Budget category
            monthly_limit: New limit
            month: YYYY-MM (default: the existing budget's month, else the current month)
            existing: The stored budget row when updating

        Returns:
            (saved budget, created transaction or None)

        Raises:
            ReconciliationError: the budget was saved but the transaction failed
        """
        limit = parse_amount(monthly_limit)
        if existing is None:
            payload = {
                "context_id": context_id,
                "category": category,
                "monthly_limit": limit,
                "month": month or date.today().strftime("%Y-%m")
            }
            budget = self._request("POST", "/budgets", json=payload)
            txn = initial_budget_transaction(context_id, category, limit)
        else:
            payload = {
                "category": category,
                "monthly_limit": limit,
                "month": month or existing["month"]
            }
            budget = self._request("PUT", f"/budgets/{existing['id']}", json=payload)
            txn = budget_adjustment_transaction(context_id, category, existing["monthly_limit"], limit)

        self.bus.publish([BUDGETS, DASHBOARD], budget)
        return budget, self._record_reconciliation(budget, txn)

    def delete_budget(self, budget_id: int) -> Dict[str, Any]:
        result = self._request("DELETE", f"/budgets/{budget_id}")
        self.bus.publish([BUDGETS, DASHBOARD], {"id": budget_id})
        return result

    # === Savings ===

    def list_savings(self, context_id: int) -> List[Dict[str, Any]]:
        return self._request("GET", "/savings", params={"context_id": context_id})

    def save_savings(
        self,
        context_id: int,
        fields: Dict[str, Any],
        existing: Optional[Dict[str, Any]] = None
    ) -> Tuple[Dict[str, Any], Optional[Dict[str, Any]]]:
        """Create or update a savings record, then record the matching transaction.

        Money put into savings is recorded as an Expense, money taken out as
        Income. A new record with amount 0 records nothing.

        Args:
            context_id: Context of the record
            fields: account, amount, goal and optional date/description
            existing: The stored savings row when updating

        Returns:
            (saved record, created transaction or None)

        Raises:
            ReconciliationError: the record was saved but the transaction failed
        """
        payload = dict(fields)
        payload["amount"] = parse_amount(fields.get("amount"))
        payload["goal"] = parse_amount(fields.get("goal"))

        if existing is None:
            payload["context_id"] = context_id
            saving = self._request("POST", "/savings", json=payload)
            txn = initial_savings_transaction(context_id, payload["account"], payload["amount"])
        else:
            saving = self._request("PUT", f"/savings/{existing['id']}", json=payload)
            txn = savings_adjustment_transaction(
                context_id, payload["account"], existing["amount"], payload["amount"]
            )

        self.bus.publish([SAVINGS, DASHBOARD], saving)
        return saving, self._record_reconciliation(saving, txn)

    def delete_savings(self, saving_id: int) -> Dict[str, Any]:
        result = self._request("DELETE", f"/savings/{saving_id}")
        self.bus.publish([SAVINGS, DASHBOARD], {"id": saving_id})
        return result

    def _record_reconciliation(
        self,
        record: Dict[str, Any],
        txn: Optional[Dict[str, Any]]
    ) -> Optional[Dict[str, Any]]:
        if txn is None:
            return None
        try:
            return self.create_transaction(txn)
        except (APIError, requests.RequestException) as e:
            logger.error(f"Record {record.get('id')} saved without its transaction: {e}")
            raise ReconciliationError(record, txn, e) from e

    # === Dashboard / Export ===

    def get_dashboard(self, context_id: int, month: Optional[str] = None) -> Dict[str, Any]:
        params = {"context_id": context_id}
        if month:
            params["month"] = month
        return self._request("GET", "/dashboard", params=params)

    def export_context(self, context_id: int) -> Dict[str, Any]:
        return self._request("GET", "/export", params={"context_id": context_id})

    def import_context(self, context_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        result = self._request("POST", "/export/import", json={"context_id": context_id, "data": data})
        self.bus.publish([TRANSACTIONS, BUDGETS, SAVINGS, SUBSCRIPTIONS, INVESTMENTS, DASHBOARD])
        return result

    def backup(self) -> Dict[str, Any]:
        return self._request("GET", "/export/backup")
