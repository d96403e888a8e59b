"""
Tests for SmartBill

Test strategy:
1. Unit tests for individual components (models, normalizer, reconciler)
2. Integration tests for flows (with a mocked model endpoint)
3. No real API calls in tests (httpx.MockTransport)
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from smartbill.models import (
    AIPersona,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    Category,
    ConversationMessage,
    InputMode,
    MediaPayload,
    MessageRole,
    ModelMessage,
    ModelRequest,
    ModelResult,
    ModelRole,
    ResultStatus,
    Transaction,
    TransactionCandidate,
)


class TestTransactionModel:
    """Tests for the ledger entry model."""

    def test_transaction_creation(self):
        """Test Transaction model creation with defaults."""
        txn = Transaction(amount=Decimal("35"), category=Category.FOOD, date=date(2024, 5, 1))
        assert txn.merchant == "未知"
        assert txn.need_confirmation is False
        assert txn.is_auto_imported is False
        assert len(txn.id) == 32

    def test_transaction_ids_are_unique(self):
        """Test each transaction gets its own id."""
        a = Transaction(amount=Decimal("1"), category=Category.FOOD, date=date(2024, 5, 1))
        b = Transaction(amount=Decimal("1"), category=Category.FOOD, date=date(2024, 5, 1))
        assert a.id != b.id

    def test_transaction_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValueError):
            Transaction(amount=Decimal("-10"), category=Category.FOOD, date=date(2024, 5, 1))

    def test_transaction_is_frozen(self):
        """Test that entries cannot be edited in place."""
        txn = Transaction(amount=Decimal("10"), category=Category.FOOD, date=date(2024, 5, 1))
        with pytest.raises(ValueError):
            txn.amount = Decimal("20")

    def test_transaction_strips_merchant(self):
        """Test that whitespace is stripped from the merchant."""
        txn = Transaction(amount=Decimal("10"), category=Category.FOOD, merchant="  瑞幸  ", date=date(2024, 5, 1))
        assert txn.merchant == "瑞幸"

    def test_income_is_decided_by_category(self):
        """Test is_income and signed_amount."""
        salary = Transaction(amount=Decimal("8000"), category=Category.INCOME, date=date(2024, 5, 1))
        lunch = Transaction(amount=Decimal("35"), category=Category.FOOD, date=date(2024, 5, 1))
        assert salary.is_income is True
        assert salary.signed_amount == Decimal("8000")
        assert lunch.is_income is False
        assert lunch.signed_amount == Decimal("-35")

    def test_json_dump_uses_iso_date(self):
        """Test the persisted shape."""
        txn = Transaction(amount=Decimal("12.50"), category=Category.TRANSPORT, date=date(2024, 5, 1))
        data = txn.model_dump(mode="json")
        assert data["date"] == "2024-05-01"
        assert data["category"] == "交通"


class TestConversationModels:
    """Tests for conversation messages."""

    def test_legacy_ai_role_reads_as_assistant(self):
        """Test that stored 'ai' roles load as assistant."""
        message = ConversationMessage.model_validate({"role": "ai", "text": "hi"})
        assert message.role == MessageRole.ASSISTANT
        assert message.is_user is False

    def test_non_string_text_becomes_empty(self):
        """Test that a damaged text field does not fail the load."""
        message = ConversationMessage.model_validate({"role": "user", "text": 42})
        assert message.text == ""

    def test_assistant_factory(self):
        """Test ConversationMessage.assistant."""
        message = ConversationMessage.assistant("好", [{"amount": 1}], "开心", "#fff")
        assert message.extracted_transactions == [{"amount": 1}]
        assert message.mood_tag == "开心"


class TestModelBoundary:
    """Tests for the model request/response types."""

    def test_media_payload_data_uri(self):
        """Test data URI construction."""
        payload = MediaPayload(kind=InputMode.IMAGE, mime_type="image/png", data_base64="QUJD")
        assert payload.data_uri == "data:image/png;base64,QUJD"

    def test_audio_format_from_mime(self):
        """Test short audio format names."""
        assert MediaPayload(kind=InputMode.AUDIO, mime_type="audio/mpeg", data_base64="x").audio_format == "mp3"
        assert MediaPayload(kind=InputMode.AUDIO, mime_type="audio/wav", data_base64="x").audio_format == "wav"

    def test_request_wire_format(self):
        """Test ModelRequest serialization."""
        request = ModelRequest(messages=(
            ModelMessage(role=ModelRole.SYSTEM, content="sys"),
            ModelMessage(role=ModelRole.USER, content="hi"),
        ))
        assert request.system_prompt == "sys"
        assert request.to_wire() == [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "hi"},
        ]

    def test_candidate_accepts_anything(self):
        """Test that candidates are never rejected at the boundary."""
        candidate = TransactionCandidate.model_validate({"amount": "abc", "category": 5, "note": "extra"})
        assert candidate.amount == "abc"
        assert candidate.raw()["note"] == "extra"

    def test_result_fallback_flag(self):
        """Test is_fallback for each status."""
        assert ModelResult(reply="x", status=ResultStatus.FAILED).is_fallback is True
        assert ModelResult(reply="x", status=ResultStatus.MISSING_CREDENTIAL).is_fallback is True
        assert ModelResult(reply="x", status=ResultStatus.UNSTRUCTURED).is_fallback is False
        assert ModelResult(reply="x", persona=AIPersona(vibe_check="开心")).is_fallback is False


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.MESSAGE_RECEIVED,
            description="User submitted text input",
        )
        assert event.event_type == AuditEventType.MESSAGE_RECEIVED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTIONS_ADDED,
            description="2 transactions added",
            details={"total": "47"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "transactions_added"
        assert log_dict["details"]["total"] == "47"

    def test_audit_event_to_json_keeps_chinese(self):
        """Test JSON output is readable."""
        event = AuditEventBuilder.transaction_added_manually("abc", "餐饮", "35")
        assert "餐饮" in event.to_json()

    def test_audit_event_builder_message_received(self):
        """Test AuditEventBuilder.message_received."""
        correlation_id = uuid4()
        event = AuditEventBuilder.message_received("image", 2048, correlation_id)
        assert event.correlation_id == correlation_id
        assert event.details == {"mode": "image", "length": 2048}
        assert event.is_user_action is True

    def test_audit_event_builder_model_fallback(self):
        """Test AuditEventBuilder.model_fallback."""
        event = AuditEventBuilder.model_fallback("failed", "HTTP 500", uuid4())
        assert event.event_type == AuditEventType.MODEL_FALLBACK
        assert event.severity == AuditSeverity.WARNING
        assert event.error_message == "HTTP 500"

    def test_audit_event_builder_transaction_confirmed(self):
        """Test AuditEventBuilder.transaction_confirmed."""
        event = AuditEventBuilder.transaction_confirmed("txn-1")
        assert event.event_type == AuditEventType.TRANSACTION_CONFIRMED
        assert event.entity_id == "txn-1"
        assert event.is_user_action is True


class TestCategories:
    """Tests for the category enum."""

    def test_all_categories_exist(self):
        """Test that expected categories exist."""
        expected = ["餐饮", "购物", "交通", "娱乐", "住房", "医疗", "教育", "收入", "其他"]
        for label in expected:
            assert Category(label) is not None
        assert len(Category) == len(expected)

    def test_category_values(self):
        """Test category string values."""
        assert Category.FOOD.value == "餐饮"
        assert Category.INCOME.value == "收入"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
