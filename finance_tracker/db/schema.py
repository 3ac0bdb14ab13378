"""SQLite schema definitions for the finance tracker."""

SCHEMA_SQL = """
-- Contexts (Home/Work/Business profiles); every other table hangs off one
CREATE TABLE IF NOT EXISTS contexts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    type TEXT NOT NULL CHECK (type IN ('Home', 'Work', 'Business')),
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

-- Transactions table (amount is always positive, type carries the sign)
CREATE TABLE IF NOT EXISTS transactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    context_id INTEGER NOT NULL,
    description TEXT NOT NULL,
    date TEXT NOT NULL,
    category TEXT NOT NULL,
    type TEXT NOT NULL CHECK (type IN ('Income', 'Expense')),
    amount REAL NOT NULL CHECK (amount > 0),
    account TEXT NOT NULL,
    notes TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (context_id) REFERENCES contexts(id) ON DELETE CASCADE
);

-- Subscriptions table
CREATE TABLE IF NOT EXISTS subscriptions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    context_id INTEGER NOT NULL,
    service TEXT NOT NULL,
    amount REAL NOT NULL,
    frequency TEXT NOT NULL CHECK (frequency IN ('daily', 'weekly', 'monthly', 'yearly')),
    next_billing_date TEXT NOT NULL,
    status TEXT NOT NULL CHECK (status IN ('Active', 'Paused', 'Cancelled')),
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (context_id) REFERENCES contexts(id) ON DELETE CASCADE
);

-- Savings table (rows sharing an account name are summed on the dashboard)
CREATE TABLE IF NOT EXISTS savings (
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

-- Budgets table; spent is a running cache bumped on expense creation
CREATE TABLE IF NOT EXISTS budgets (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    context_id INTEGER NOT NULL,
    category TEXT NOT NULL,
    monthly_limit REAL NOT NULL,
    month TEXT NOT NULL,  -- YYYY-MM
    spent REAL DEFAULT 0,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (context_id) REFERENCES contexts(id) ON DELETE CASCADE
);

-- Investments table
CREATE TABLE IF NOT EXISTS investments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    context_id INTEGER NOT NULL,
    asset_name TEXT NOT NULL,
    type TEXT NOT NULL CHECK (type IN ('Stock', 'Bond', 'Mutual Fund', 'ETF', 'Crypto',
        'Real Estate', 'Commodity', 'REIT', 'Options', 'Futures', 'Forex', 'Other')),
    amount_invested REAL NOT NULL,
    current_value REAL NOT NULL,
    date_invested TEXT NOT NULL,
    notes TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (context_id) REFERENCES contexts(id) ON DELETE CASCADE
);

-- Indexes for common queries
CREATE INDEX IF NOT EXISTS idx_transactions_context_id ON transactions(context_id);
CREATE INDEX IF NOT EXISTS idx_transactions_date ON transactions(date);
CREATE INDEX IF NOT EXISTS idx_subscriptions_context_id ON subscriptions(context_id);
CREATE INDEX IF NOT EXISTS idx_savings_context_id ON savings(context_id);
CREATE INDEX IF NOT EXISTS idx_budgets_context_id ON budgets(context_id);
CREATE INDEX IF NOT EXISTS idx_budgets_month ON budgets(month);
CREATE INDEX IF NOT EXISTS idx_investments_context_id ON investments(context_id);
"""

# Seed a default context on a fresh database
DEFAULT_CONTEXT_SQL = """
INSERT INTO contexts (name, type)
SELECT ?, ?
WHERE NOT EXISTS (SELECT 1 FROM contexts);
"""

# Context-scoped tables, in export order
CONTEXT_TABLES = ["transactions", "subscriptions", "savings", "budgets", "investments"]
