"""
Validation Package

Amount sanitization and the reconciler that turns model candidates
into ledger entries.
"""

from smartbill.validation.amounts import CENT, ZERO, format_amount, sanitize_amount
from smartbill.validation.reconciler import (
    ReconciliationResult,
    TransactionReconciler,
    notification_text,
)

__all__ = [
    "CENT",
    "ZERO",
    "format_amount",
    "sanitize_amount",
    "ReconciliationResult",
    "TransactionReconciler",
    "notification_text",
]
