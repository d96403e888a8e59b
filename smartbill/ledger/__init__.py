"""
Ledger Package

The transaction list itself plus everything derived from it: the
grounding context, the budget assessment and the calendar view.
"""

from smartbill.ledger.advice import assess_budget, health_score
from smartbill.ledger.book import (
    InvalidAmountError,
    Ledger,
    LedgerError,
    TransactionNotFoundError,
    seed_demo_transactions,
)
from smartbill.ledger.calendar import month_calendar, transactions_on
from smartbill.ledger.context import build_context, format_line, render_context_text

__all__ = [
    "Ledger",
    "seed_demo_transactions",
    "build_context",
    "format_line",
    "render_context_text",
    "assess_budget",
    "health_score",
    "month_calendar",
    "transactions_on",
    # Exceptions
    "InvalidAmountError",
    "LedgerError",
    "TransactionNotFoundError",
]
