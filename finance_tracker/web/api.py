"""FastAPI backend for the finance tracker."""
import logging
import re
from typing import Optional, Dict, Any, Literal
from contextlib import asynccontextmanager

from dateutil.parser import isoparse
from fastapi import FastAPI, HTTPException, Depends, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator
from starlette.exceptions import HTTPException as StarletteHTTPException

from finance_tracker.config import (
    DESCRIPTION_MAX_LENGTH,
    CATEGORY_MAX_LENGTH,
    ACCOUNT_MAX_LENGTH,
    NOTES_MAX_LENGTH
)
from finance_tracker.api.finance_service import FinanceService, ContextNotFoundError


logger = logging.getLogger(__name__)

# Global service instance (for production use)
_service: Optional[FinanceService] = None


def get_service() -> FinanceService:
    """Dependency to get the finance service."""
    global _service
    if _service is None:
        _service = FinanceService()
        _service.__enter__()
    return _service


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage service lifecycle."""
    yield
    # Cleanup on shutdown
    global _service
    if _service is not None:
        _service.__exit__(None, None, None)
        _service = None


app = FastAPI(
    title="Finance Tracker API",
    description="Personal finance tracking across Home, Work and Business contexts",
    version="1.0.0",
    lifespan=lifespan
)


# === Error Handlers ===

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Return HTTP errors as {"error": message}."""
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report request validation failures as 400 instead of FastAPI's 422."""
    details = [
        {
            "field": ".".join(str(part) for part in err["loc"][1:]) or str(err["loc"][0]),
            "message": err["msg"]
        }
        for err in exc.errors()
    ]
    message = "Validation failed"
    if details:
        message += f": {details[0]['field']}: {details[0]['message']}"
    return JSONResponse(status_code=400, content={"error": message, "details": details})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Log unexpected failures and hide their details from the client."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# === Pydantic Models ===

# ISO-8601 forms that SQLite's date functions also understand
ISO_DATE_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}([T ]\d{2}:\d{2}(:\d{2}(\.\d+)?)?(Z|[+-]\d{2}:\d{2})?)?$"
)


def _validate_iso_date(value: Optional[str]) -> Optional[str]:
    if value is None or value == "":
        return value
    if not ISO_DATE_RE.match(value):
        raise ValueError("must be a valid ISO 8601 date")
    try:
        isoparse(value)
    except ValueError:
        raise ValueError("must be a valid ISO 8601 date")
    return value


class ApiModel(BaseModel):
    """Base for request bodies: trimmed strings, finite numbers only."""
    model_config = ConfigDict(str_strip_whitespace=True, allow_inf_nan=False)


class ContextIn(ApiModel):
    name: str = Field(..., min_length=1)
    type: Literal["Home", "Work", "Business"]


class TransactionUpdate(ApiModel):
    description: str = Field(..., min_length=1, max_length=DESCRIPTION_MAX_LENGTH)
    date: str
    category: str = Field(..., min_length=1, max_length=CATEGORY_MAX_LENGTH)
    type: Literal["Income", "Expense"]
    amount: float = Field(..., gt=0)  # Sign is carried by type
    account: str = Field(..., min_length=1, max_length=ACCOUNT_MAX_LENGTH)
    notes: Optional[str] = Field(None, max_length=NOTES_MAX_LENGTH)

    @field_validator("date")
    @classmethod
    def check_date(cls, value: str) -> str:
        return _validate_iso_date(value)


class TransactionCreate(TransactionUpdate):
    context_id: int = Field(..., ge=1)


class SubscriptionUpdate(ApiModel):
    service: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0)
    frequency: Literal["daily", "weekly", "monthly", "yearly"]
    next_billing_date: str = Field(..., min_length=1)
    status: Literal["Active", "Paused", "Cancelled"]

    @field_validator("next_billing_date")
    @classmethod
    def check_date(cls, value: str) -> str:
        return _validate_iso_date(value)


class SubscriptionCreate(SubscriptionUpdate):
    context_id: int = Field(..., ge=1)


class SavingsUpdate(ApiModel):
    account: str = Field(..., min_length=1)
    amount: float = Field(..., ge=0)  # Zero is a valid balance
    goal: float = Field(..., gt=0)
    date: Optional[str] = None
    description: Optional[str] = None

    @field_validator("date")
    @classmethod
    def check_date(cls, value: Optional[str]) -> Optional[str]:
        return _validate_iso_date(value)


class SavingsCreate(SavingsUpdate):
    context_id: int = Field(..., ge=1)


class BudgetUpdate(ApiModel):
    category: str = Field(..., min_length=1)
    monthly_limit: float = Field(..., gt=0)
    month: str = Field(..., pattern=r"^\d{4}-\d{2}$")


class BudgetCreate(BudgetUpdate):
    context_id: int = Field(..., ge=1)


class InvestmentUpdate(ApiModel):
    asset_name: str = Field(..., min_length=1)
    type: Literal[
        "Stock", "Bond", "Mutual Fund", "ETF", "Crypto", "Real Estate",
        "Commodity", "REIT", "Options", "Futures", "Forex", "Other"
    ]
    amount_invested: float = Field(..., gt=0)
    current_value: float = Field(..., ge=0)
    date_invested: str = Field(..., min_length=1)
    notes: Optional[str] = None

    @field_validator("date_invested")
    @classmethod
    def check_date(cls, value: str) -> str:
        return _validate_iso_date(value)


class InvestmentCreate(InvestmentUpdate):
    context_id: int = Field(..., ge=1)


class ImportRequest(ApiModel):
    context_id: int = Field(..., ge=1)
    data: Dict[str, Any]


def _require_context(service: FinanceService, context_id: int) -> None:
    """Reject writes that reference a context which doesn't exist."""
    try:
        service.require_context(context_id)
    except ContextNotFoundError as e:
        raise HTTPException(status_code=400, detail=str(e))


# === Context Endpoints ===

@app.get("/api/contexts")
def get_contexts(service: FinanceService = Depends(get_service)):
    """Get all contexts, newest first."""
    return service.store.get_all_contexts()


@app.post("/api/contexts", status_code=201)
def create_context(context: ContextIn, service: FinanceService = Depends(get_service)):
    """Create a new context."""
    context_id = service.store.add_context(context.name, context.type)
    return service.store.get_context(context_id)


@app.put("/api/contexts/{context_id}")
def update_context(
    context_id: int,
    context: ContextIn,
    service: FinanceService = Depends(get_service)
):
    """Rename a context or change its type."""
    if not service.store.update_context(context_id, name=context.name, type=context.type):
        raise HTTPException(status_code=404, detail="Context not found")
    return service.store.get_context(context_id)


@app.delete("/api/contexts/{context_id}")
def delete_context(context_id: int, service: FinanceService = Depends(get_service)):
    """Delete a context and everything recorded in it."""
    if not service.store.delete_context(context_id):
        raise HTTPException(status_code=404, detail="Context not found")
    return {"message": "Context deleted successfully"}


# === Transaction Endpoints ===

@app.get("/api/transactions")
def get_transactions(
    context_id: int = Query(..., ge=1),
    service: FinanceService = Depends(get_service)
):
    """Get the transactions of a context, newest first."""
    return service.store.get_transactions(context_id)


@app.post("/api/transactions", status_code=201)
def create_transaction(
    transaction: TransactionCreate,
    service: FinanceService = Depends(get_service)
):
    """Create a transaction.

    Expenses are added to the matching budget's spent total; the response
    carries a budgetWarning when that total goes over the monthly limit.
    """
    _require_context(service, transaction.context_id)
    return service.create_transaction(transaction.model_dump())


@app.get("/api/transactions/{txn_id}")
def get_transaction(txn_id: int, service: FinanceService = Depends(get_service)):
    """Get a single transaction by ID."""
    txn = service.store.get_transaction(txn_id)
    if txn is None:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return txn


@app.put("/api/transactions/{txn_id}")
def update_transaction(
    txn_id: int,
    updates: TransactionUpdate,
    service: FinanceService = Depends(get_service)
):
    """Update a transaction. Budget spent totals are not adjusted."""
    if not service.store.update_transaction(txn_id, **updates.model_dump()):
        raise HTTPException(status_code=404, detail="Transaction not found")
    return service.store.get_transaction(txn_id)


@app.delete("/api/transactions/{txn_id}")
def delete_transaction(txn_id: int, service: FinanceService = Depends(get_service)):
    """Delete a transaction. Budget spent totals are not adjusted."""
    if not service.store.delete_transaction(txn_id):
        raise HTTPException(status_code=404, detail="Transaction not found")
    return {"message": "Transaction deleted successfully"}


# === Subscription Endpoints ===

@app.get("/api/subscriptions")
def get_subscriptions(
    context_id: int = Query(..., ge=1),
    service: FinanceService = Depends(get_service)
):
    """Get the subscriptions of a context."""
    return service.store.get_subscriptions(context_id)


@app.post("/api/subscriptions", status_code=201)
def create_subscription(
    subscription: SubscriptionCreate,
    service: FinanceService = Depends(get_service)
):
    """Create a new subscription."""
    _require_context(service, subscription.context_id)
    sub_id = service.store.add_subscription(
        context_id=subscription.context_id,
        service=subscription.service,
        amount=subscription.amount,
        frequency=subscription.frequency,
        next_billing_date=subscription.next_billing_date,
        status=subscription.status
    )
    return service.store.get_subscription(sub_id)


@app.put("/api/subscriptions/{sub_id}")
def update_subscription(
    sub_id: int,
    updates: SubscriptionUpdate,
    service: FinanceService = Depends(get_service)
):
    """Update a subscription."""
    if not service.store.update_subscription(sub_id, **updates.model_dump()):
        raise HTTPException(status_code=404, detail="Subscription not found")
    return service.store.get_subscription(sub_id)


@app.delete("/api/subscriptions/{sub_id}")
def delete_subscription(sub_id: int, service: FinanceService = Depends(get_service)):
    """Delete a subscription."""
    if not service.store.delete_subscription(sub_id):
        raise HTTPException(status_code=404, detail="Subscription not found")
    return {"message": "Subscription deleted successfully"}


# === Savings Endpoints ===

@app.get("/api/savings")
def get_savings(
    context_id: int = Query(..., ge=1),
    service: FinanceService = Depends(get_service)
):
    """Get the savings records of a context."""
    return service.store.get_savings(context_id)


@app.post("/api/savings", status_code=201)
def create_saving(saving: SavingsCreate, service: FinanceService = Depends(get_service)):
    """Create a savings record. An amount of 0 is allowed."""
    _require_context(service, saving.context_id)
    saving_id = service.store.add_saving(
        context_id=saving.context_id,
        account=saving.account,
        amount=saving.amount,
        goal=saving.goal,
        date=saving.date,
        description=saving.description
    )
    return service.store.get_saving(saving_id)


@app.put("/api/savings/{saving_id}")
def update_saving(
    saving_id: int,
    updates: SavingsUpdate,
    service: FinanceService = Depends(get_service)
):
    """Update a savings record."""
    if not service.store.update_saving(saving_id, **updates.model_dump()):
        raise HTTPException(status_code=404, detail="Savings record not found")
    return service.store.get_saving(saving_id)


@app.delete("/api/savings/{saving_id}")
def delete_saving(saving_id: int, service: FinanceService = Depends(get_service)):
    """Delete a savings record."""
    if not service.store.delete_saving(saving_id):
        raise HTTPException(status_code=404, detail="Savings record not found")
    return {"message": "Savings record deleted successfully"}


# === Budget Endpoints ===

@app.get("/api/budgets")
def get_budgets(
    context_id: int = Query(..., ge=1),
    month: str = Query(..., pattern=r"^\d{4}-\d{2}$"),
    service: FinanceService = Depends(get_service)
):
    """Get the budgets of a context for a month (YYYY-MM)."""
    return service.store.get_budgets(context_id, month)


@app.post("/api/budgets", status_code=201)
def create_budget(budget: BudgetCreate, service: FinanceService = Depends(get_service)):
    """Create a budget. Only one budget per context, category and month."""
    _require_context(service, budget.context_id)
    if service.store.find_budget(budget.context_id, budget.category, budget.month):
        raise HTTPException(status_code=400, detail="Budget already exists for this category and month")

    budget_id = service.store.add_budget(
        context_id=budget.context_id,
        category=budget.category,
        monthly_limit=budget.monthly_limit,
        month=budget.month
    )
    return service.store.get_budget(budget_id)


@app.put("/api/budgets/{budget_id}")
def update_budget(
    budget_id: int,
    updates: BudgetUpdate,
    service: FinanceService = Depends(get_service)
):
    """Update a budget's category, limit or month. spent is kept as is."""
    if not service.store.update_budget(budget_id, **updates.model_dump()):
        raise HTTPException(status_code=404, detail="Budget not found")
    return service.store.get_budget(budget_id)


@app.delete("/api/budgets/{budget_id}")
def delete_budget(budget_id: int, service: FinanceService = Depends(get_service)):
    """Delete a budget."""
    if not service.store.delete_budget(budget_id):
        raise HTTPException(status_code=404, detail="Budget not found")
    return {"message": "Budget deleted successfully"}


# === Investment Endpoints ===

@app.get("/api/investments")
def get_investments(
    context_id: int = Query(..., ge=1),
    service: FinanceService = Depends(get_service)
):
    """Get the investments of a context with profit/loss figures."""
    return service.get_investments(context_id)


@app.post("/api/investments", status_code=201)
def create_investment(
    investment: InvestmentCreate,
    service: FinanceService = Depends(get_service)
):
    """Create a new investment."""
    _require_context(service, investment.context_id)
    investment_id = service.store.add_investment(
        context_id=investment.context_id,
        asset_name=investment.asset_name,
        investment_type=investment.type,
        amount_invested=investment.amount_invested,
        current_value=investment.current_value,
        date_invested=investment.date_invested,
        notes=investment.notes
    )
    return service.store.get_investment(investment_id)


@app.put("/api/investments/{investment_id}")
def update_investment(
    investment_id: int,
    updates: InvestmentUpdate,
    service: FinanceService = Depends(get_service)
):
    """Update an investment."""
    if not service.store.update_investment(investment_id, **updates.model_dump()):
        raise HTTPException(status_code=404, detail="Investment not found")
    return service.store.get_investment(investment_id)


@app.delete("/api/investments/{investment_id}")
def delete_investment(investment_id: int, service: FinanceService = Depends(get_service)):
    """Delete an investment."""
    if not service.store.delete_investment(investment_id):
        raise HTTPException(status_code=404, detail="Investment not found")
    return {"message": "Investment deleted successfully"}


# === Dashboard ===

@app.get("/api/dashboard")
def get_dashboard(
    context_id: int = Query(..., ge=1),
    month: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}$"),
    service: FinanceService = Depends(get_service)
):
    """Get the dashboard summary of a context (current month by default)."""
    return service.get_dashboard(context_id, month)


# === Export / Import / Backup ===

@app.get("/api/export")
def export_data(
    context_id: int = Query(..., ge=1),
    service: FinanceService = Depends(get_service)
):
    """Export all data of a context as JSON."""
    try:
        return service.export_context(context_id)
    except ContextNotFoundError:
        raise HTTPException(status_code=404, detail="Context not found")


@app.post("/api/export/import")
def import_data(request: ImportRequest, service: FinanceService = Depends(get_service)):
    """Import an export's data into a context. Rows get new ids."""
    try:
        results = service.import_context(request.context_id, request.data)
    except ContextNotFoundError:
        raise HTTPException(status_code=404, detail="Context not found")
    return {"message": "Import completed", "results": results}


@app.get("/api/export/backup")
def backup_database(service: FinanceService = Depends(get_service)):
    """Copy the database file to a timestamped backup."""
    result = service.backup_database()
    return {"message": "Backup created successfully", **result}
