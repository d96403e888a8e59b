"""
Data Models Package

This package contains all Pydantic models used in SmartBill.
All data flowing through the system must conform to these schemas.
"""

from smartbill.models.transaction import (
    MANUAL_MERCHANT,
    UNKNOWN_MERCHANT,
    Category,
    Transaction,
    new_transaction_id,
)
from smartbill.models.conversation import ConversationMessage, MessageRole
from smartbill.models.llm import (
    AIPersona,
    InputMode,
    MediaPayload,
    ModelMessage,
    ModelRequest,
    ModelResult,
    ModelRole,
    ResultStatus,
    TransactionCandidate,
)
from smartbill.models.summary import (
    BudgetAssessment,
    CategoryTotal,
    ContextSummary,
    DayTotals,
)
from smartbill.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "MANUAL_MERCHANT",
    "UNKNOWN_MERCHANT",
    "Category",
    "Transaction",
    "new_transaction_id",
    # Conversation models
    "ConversationMessage",
    "MessageRole",
    # Model boundary
    "AIPersona",
    "InputMode",
    "MediaPayload",
    "ModelMessage",
    "ModelRequest",
    "ModelResult",
    "ModelRole",
    "ResultStatus",
    "TransactionCandidate",
    # Summaries
    "BudgetAssessment",
    "CategoryTotal",
    "ContextSummary",
    "DayTotals",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
