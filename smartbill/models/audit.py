"""
Audit Models for SmartBill

Every significant action in the chat pipeline is logged for audit purposes.
This provides:
1. Traceability from a chat turn to the ledger entries it created
2. Debugging information when the model misbehaves
3. Ability to reconstruct history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Chat turns
    MESSAGE_RECEIVED = "message_received"
    MODEL_REQUEST_SENT = "model_request_sent"
    MODEL_RESPONSE_PARSED = "model_response_parsed"
    MODEL_FALLBACK = "model_fallback"
    CAPTURE_CANCELLED = "capture_cancelled"

    # Reconciliation
    TRANSACTIONS_ADDED = "transactions_added"
    CANDIDATES_DROPPED = "candidates_dropped"

    # Ledger actions
    TRANSACTION_ADDED_MANUALLY = "transaction_added_manually"
    TRANSACTION_CONFIRMED = "transaction_confirmed"
    TRANSACTION_DELETED = "transaction_deleted"

    # Preferences
    BUDGET_UPDATED = "budget_updated"
    API_KEY_UPDATED = "api_key_updated"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'message')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - all events of one chat turn share this
    correlation_id: Optional[UUID] = None

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None
    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_log_dict(), ensure_ascii=False, default=str)


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.message_received("text", 12, correlation_id)
        event = AuditEventBuilder.transaction_confirmed(txn_id)
    """

    @staticmethod
    def message_received(
        mode: str,
        length: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MESSAGE_RECEIVED,
            entity_type="message",
            correlation_id=correlation_id,
            description=f"User submitted {mode} input",
            details={"mode": mode, "length": length},
            is_user_action=True,
        )

    @staticmethod
    def model_request_sent(
        mode: str,
        message_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MODEL_REQUEST_SENT,
            entity_type="model_request",
            correlation_id=correlation_id,
            description=f"Model request sent with {message_count} messages",
            details={"mode": mode, "message_count": message_count},
        )

    @staticmethod
    def model_response_parsed(
        status: str,
        candidate_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MODEL_RESPONSE_PARSED,
            entity_type="model_response",
            correlation_id=correlation_id,
            description=f"Model replied ({status}) with {candidate_count} candidates",
            details={"status": status, "candidate_count": candidate_count},
        )

    @staticmethod
    def model_fallback(
        status: str,
        error_message: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MODEL_FALLBACK,
            severity=AuditSeverity.WARNING,
            entity_type="model_response",
            correlation_id=correlation_id,
            description=f"Model gateway fell back: {status}",
            details={"status": status},
            error_message=error_message,
        )

    @staticmethod
    def capture_cancelled(correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CAPTURE_CANCELLED,
            entity_type="capture",
            correlation_id=correlation_id,
            description="Live capture closed before the countdown fired",
            is_user_action=True,
        )

    @staticmethod
    def transactions_added(
        transaction_ids: list[str],
        total: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTIONS_ADDED,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"{len(transaction_ids)} transactions added from chat - ¥{total}",
            details={"transaction_ids": transaction_ids, "total": total},
        )

    @staticmethod
    def candidates_dropped(
        dropped: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CANDIDATES_DROPPED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"{dropped} candidates dropped for invalid amounts",
            details={"dropped": dropped},
        )

    @staticmethod
    def transaction_added_manually(
        transaction_id: str,
        category: str,
        amount: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED_MANUALLY,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Manual entry: {category} ¥{amount}",
            details={"category": category, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def transaction_confirmed(transaction_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CONFIRMED,
            entity_type="transaction",
            entity_id=transaction_id,
            description="User confirmed pending transaction",
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(transaction_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            description="User deleted transaction",
            is_user_action=True,
        )

    @staticmethod
    def budget_updated(old: int, new: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_UPDATED,
            entity_type="preferences",
            description=f"Monthly budget changed from {old} to {new}",
            details={"old": old, "new": new},
            is_user_action=True,
        )

    @staticmethod
    def api_key_updated(configured: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.API_KEY_UPDATED,
            entity_type="preferences",
            description="API key stored" if configured else "API key cleared",
            details={"configured": configured},
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
