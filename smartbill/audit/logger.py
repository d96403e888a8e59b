"""
Audit Logger

DESIGN DECISION: Every significant action in the pipeline is logged.
This provides:
1. Traceability from a chat turn to the ledger entries it created
2. Debugging capability when the model returns something odd
3. A local history the user can inspect

The audit logger:
- Gracefully handles failures (a failed audit write never breaks a chat turn)
- Supports correlation IDs to trace the events of one turn
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from smartbill.models.audit import AuditEvent, AuditEventBuilder
from smartbill.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(ensure_ascii=False)
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog output through the stdlib root logger at `level`."""
    logging.basicConfig(format="%(message)s", level=level.upper())


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The local store (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("smartbill.audit")

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def recent_events(self, limit: int = 50) -> list[dict]:
        """Most recent persisted events, newest first."""
        if not self._storage:
            return []
        try:
            return self._storage.recent_events(limit)
        except Exception as e:
            self._logger.error("audit_storage_read_failed", error=str(e))
            return []

    def log_message_received(self, mode: str, length: int, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.message_received(mode, length, correlation_id))

    def log_model_request_sent(self, mode: str, message_count: int, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.model_request_sent(mode, message_count, correlation_id))

    def log_model_response(
        self,
        status: str,
        candidate_count: int,
        error_message: Optional[str],
        is_fallback: bool,
        correlation_id: UUID,
    ) -> None:
        """Log how the gateway resolved a request."""
        if is_fallback:
            event = AuditEventBuilder.model_fallback(status, error_message, correlation_id)
        else:
            event = AuditEventBuilder.model_response_parsed(status, candidate_count, correlation_id)
        self.log(event)

    def log_capture_cancelled(self, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.capture_cancelled(correlation_id))

    def log_reconciliation(
        self,
        transaction_ids: list[str],
        total: str,
        dropped: int,
        correlation_id: UUID,
    ) -> None:
        """Log what a model response did to the ledger."""
        if transaction_ids:
            self.log(AuditEventBuilder.transactions_added(transaction_ids, total, correlation_id))
        if dropped:
            self.log(AuditEventBuilder.candidates_dropped(dropped, correlation_id))

    def log_manual_entry(self, transaction_id: str, category: str, amount: str) -> None:
        self.log(AuditEventBuilder.transaction_added_manually(transaction_id, category, amount))

    def log_transaction_confirmed(self, transaction_id: str) -> None:
        self.log(AuditEventBuilder.transaction_confirmed(transaction_id))

    def log_transaction_deleted(self, transaction_id: str) -> None:
        self.log(AuditEventBuilder.transaction_deleted(transaction_id))

    def log_budget_updated(self, old: int, new: int) -> None:
        self.log(AuditEventBuilder.budget_updated(old, new))

    def log_api_key_updated(self, configured: bool) -> None:
        self.log(AuditEventBuilder.api_key_updated(configured))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log external service error."""
        self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., one chat turn).
    Pass it through all subsequent operations.
    """
    return uuid4()
