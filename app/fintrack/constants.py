"""
Central constants for the FinTrack application.
"""
from __future__ import annotations

ROLE_ADMIN = "ADMIN"
ROLE_USER = "USER"
VALID_ROLES = (ROLE_ADMIN, ROLE_USER)

MOVEMENT_INCOME = "INCOME"
MOVEMENT_EXPENSE = "EXPENSE"
MOVEMENT_TYPES = (MOVEMENT_INCOME, MOVEMENT_EXPENSE)

# Display labels used by CSV exports
MOVEMENT_TYPE_LABELS = {MOVEMENT_INCOME: "Income", MOVEMENT_EXPENSE: "Expense"}
MOVEMENT_TYPE_PLURAL_LABELS = {MOVEMENT_INCOME: "Incomes", MOVEMENT_EXPENSE: "Expenses"}

# Free-text search words that also match a movement type (English + Spanish)
INCOME_SEARCH_WORDS = ("ingreso", "income")
EXPENSE_SEARCH_WORDS = ("egreso", "expense", "gasto")

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

REPORT_PERIODS = ("week", "month", "year")
TOP_CONCEPTS_LIMIT = 5
TOP_USERS_LIMIT = 5
SUMMARY_CONCEPTS_LIMIT = 50
DAILY_CHART_DAYS = 30
MONTHLY_CHART_MONTHS = 12

CSV_REPORT_TYPES = ("movements", "summary", "users")
CSV_REPORT_FILENAMES = {
    "movements": "financial_movements",
    "summary": "financial_summary",
    "users": "users",
}
