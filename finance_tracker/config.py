"""Configuration settings for the finance tracker."""
from pathlib import Path

# Paths
DATA_DIR = Path.home() / ".finance_tracker"
DB_PATH = DATA_DIR / "finance.db"
BACKUP_DIR = DATA_DIR / "backups"

# Web server
API_HOST = "127.0.0.1"
API_PORT = 5000
API_BASE_URL = f"http://localhost:{API_PORT}"

# Enumerated values (mirrored by CHECK constraints in db/schema.py)
CONTEXT_TYPES = ["Home", "Work", "Business"]
TRANSACTION_TYPES = ["Income", "Expense"]
SUBSCRIPTION_FREQUENCIES = ["daily", "weekly", "monthly", "yearly"]
SUBSCRIPTION_STATUSES = ["Active", "Paused", "Cancelled"]
INVESTMENT_TYPES = [
    "Stock",
    "Bond",
    "Mutual Fund",
    "ETF",
    "Crypto",
    "Real Estate",
    "Commodity",
    "REIT",
    "Options",
    "Futures",
    "Forex",
    "Other"
]

# Seeded when the contexts table is empty
DEFAULT_CONTEXT_NAME = "Personal"
DEFAULT_CONTEXT_TYPE = "Home"

# Categories used by synthesized transactions
BUDGET_CATEGORY = "Budget"
SAVINGS_CATEGORY = "Savings"

# Dashboard
RECENT_TRANSACTIONS_LIMIT = 5
RENEWAL_WINDOW_DAYS = 30
UPCOMING_RENEWALS_LIMIT = 5

# Field limits for transactions
DESCRIPTION_MAX_LENGTH = 255
CATEGORY_MAX_LENGTH = 100
ACCOUNT_MAX_LENGTH = 100
NOTES_MAX_LENGTH = 500


def ensure_data_dir() -> Path:
    """Ensure the data directory exists."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    return DATA_DIR


def ensure_backup_dir(backup_dir: Path = BACKUP_DIR) -> Path:
    """Ensure the backup directory exists."""
    backup_dir.mkdir(parents=True, exist_ok=True)
    return backup_dir
