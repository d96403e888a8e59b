"""
Main Orchestrator for SmartBill

This module ties together all the components and defines the
end-to-end flows for:
1. Chat (input → context → prompt → model → reconcile → reply)
2. Ledger actions (manual entry, confirm, delete, budget, API key)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Model output reaches the ledger only through the reconciler
- The history window is taken BEFORE the user's turn is appended
- Every step is audited
- The chat surface always receives a reply, whatever failed

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

import datetime
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Optional
from uuid import UUID

import httpx
import structlog

from smartbill.agents import PromptBuilder
from smartbill.agents.prompts import (
    APOLOGY,
    AUDIO_TURN_PLACEHOLDER,
    FRUSTRATED_MOOD,
    IMAGE_TURN_PLACEHOLDER,
)
from smartbill.audit import AuditLogger, create_correlation_id
from smartbill.config import Settings, get_settings
from smartbill.config.preferences import UserPreferences
from smartbill.conversation import ConversationHistory
from smartbill.ledger import Ledger, build_context
from smartbill.models.conversation import ConversationMessage
from smartbill.models.llm import InputMode, MediaPayload, ModelResult, ResultStatus
from smartbill.models.summary import ContextSummary
from smartbill.models.transaction import Transaction
from smartbill.services.auth import SessionManager
from smartbill.services.image import CaptureCountdown, ImageService, prepare_audio
from smartbill.services.llm import ModelGateway
from smartbill.services.storage import (
    InMemoryStore,
    JsonFileStore,
    KeyValueAuditStorage,
    KeyValueStore,
)
from smartbill.validation import ZERO, TransactionReconciler

logger = structlog.get_logger(__name__)

INCOME_RECORDED = "收入记好了！"
EXPENSE_RECORDED = "支出记好了！"


@dataclass
class ChatTurn:
    """Outcome of one submission: the assistant's reply and any new entries."""
    reply: ConversationMessage
    added: list[Transaction] = field(default_factory=list)
    notification: str = ""


class ChatPipeline:
    """
    Orchestrates one chat turn.

    Flow:
    1. Context → summarize the ledger and budget
    2. Window → take the recent history (before this turn)
    3. Record → append the user's turn
    4. Ask → build the request and send it through the gateway
    5. Commit → reconcile candidates into the ledger
    6. Reply → append the assistant's turn

    Submissions may overlap; each one appends its turns when it gets
    there, so replies land in completion order.
    """

    def __init__(
        self,
        ledger: Ledger,
        history: ConversationHistory,
        preferences: UserPreferences,
        gateway: ModelGateway,
        prompt_builder: Optional[PromptBuilder] = None,
        reconciler: Optional[TransactionReconciler] = None,
        image_service: Optional[ImageService] = None,
        audit_logger: Optional[AuditLogger] = None,
        today: Callable[[], datetime.date] = datetime.date.today,
        recent_limit: int = 10,
        top_expense: int = 5,
        top_income: int = 3,
    ):
        self._ledger = ledger
        self._history = history
        self._preferences = preferences
        self._gateway = gateway
        self._prompt_builder = prompt_builder or PromptBuilder()
        self._reconciler = reconciler or TransactionReconciler(today=today)
        self._image_service = image_service or ImageService()
        self._audit_logger = audit_logger
        self._today = today
        self._recent_limit = recent_limit
        self._top_expense = top_expense
        self._top_income = top_income

    def context(self) -> ContextSummary:
        """The grounding summary as of today."""
        return build_context(
            self._ledger.transactions,
            self._preferences.monthly_budget,
            self._today(),
            recent_limit=self._recent_limit,
            top_expense=self._top_expense,
            top_income=self._top_income,
        )

    async def submit_text(self, text: str) -> Optional[ChatTurn]:
        """Send a typed message. Blank input is ignored (returns None)."""
        if not text or not text.strip():
            return None
        return await self._run_turn(InputMode.TEXT, text, lambda: None, user_input=text)

    async def submit_voice_transcript(self, transcript: str) -> Optional[ChatTurn]:
        """Speech already turned into text goes down the text path."""
        return await self.submit_text(transcript)

    async def submit_audio(self, audio_bytes: bytes, mime_type: str) -> ChatTurn:
        """Send a recorded voice clip for the model to listen to."""
        return await self._run_turn(
            InputMode.AUDIO,
            AUDIO_TURN_PLACEHOLDER,
            lambda: prepare_audio(audio_bytes, mime_type),
            input_size=len(audio_bytes or b""),
        )

    async def submit_image(self, image_bytes: bytes, mime_type: Optional[str] = None) -> ChatTurn:
        """Send a photo (gallery pick or camera frame)."""
        return await self._run_turn(
            InputMode.IMAGE,
            IMAGE_TURN_PLACEHOLDER,
            lambda: self._image_service.prepare(image_bytes, mime_type),
            input_size=len(image_bytes or b""),
        )

    async def submit_capture(
        self,
        countdown: CaptureCountdown,
        grab_frame: Callable[[], bytes],
        mime_type: str = "image/jpeg",
    ) -> Optional[ChatTurn]:
        """
        Live camera: wait for the countdown, then grab and send a frame.

        Returns None if the countdown was cancelled. Once the frame is
        grabbed the request always proceeds.
        """
        if not await countdown.wait():
            if self._audit_logger:
                self._audit_logger.log_capture_cancelled(create_correlation_id())
            return None
        return await self.submit_image(grab_frame(), mime_type)

    async def _run_turn(
        self,
        mode: InputMode,
        user_text: str,
        make_payload: Callable[[], Optional[MediaPayload]],
        user_input: Optional[str] = None,
        input_size: Optional[int] = None,
    ) -> ChatTurn:
        correlation_id = create_correlation_id()
        if self._audit_logger:
            self._audit_logger.log_message_received(
                mode.value,
                input_size if input_size is not None else len(user_text),
                correlation_id,
            )

        try:
            context = self.context()
            window = self._history.recent(self._prompt_builder.history_window)
            self._history.append(ConversationMessage.user(user_text))

            request = self._prompt_builder.build_request(
                context,
                window,
                mode=mode,
                user_input=user_input,
                payload=make_payload(),
            )
            if self._audit_logger:
                self._audit_logger.log_model_request_sent(mode.value, len(request.messages), correlation_id)

            result = await self._gateway.send(request)
            self._audit_result(result, correlation_id)

            reconciliation = self._reconciler.apply(result, self._ledger.extend)
            if self._audit_logger:
                self._audit_logger.log_reconciliation(
                    [t.id for t in reconciliation.added],
                    str(sum((t.amount for t in reconciliation.added), ZERO)),
                    reconciliation.dropped_count,
                    correlation_id,
                )

            persona = result.persona
            reply = ConversationMessage.assistant(
                result.reply,
                extracted_transactions=result.raw_transactions or None,
                mood_tag=persona.vibe_check if persona else None,
                mood_color=persona.mood_color if persona else None,
            )
            self._history.append(reply)
            return ChatTurn(
                reply=reply,
                added=reconciliation.added,
                notification=reconciliation.notification,
            )
        except Exception as e:
            return self._apology(e, correlation_id)

    def _audit_result(self, result: ModelResult, correlation_id: UUID) -> None:
        if not self._audit_logger:
            return
        self._audit_logger.log_model_response(
            status=result.status.value,
            candidate_count=len(result.transactions),
            error_message=result.error_message,
            is_fallback=result.status != ResultStatus.OK,
            correlation_id=correlation_id,
        )
        if result.status == ResultStatus.FAILED:
            self._audit_logger.log_external_service_error(
                service="model_gateway",
                error_message=result.error_message or "",
                correlation_id=correlation_id,
            )

    def _apology(self, error: Exception, correlation_id: UUID) -> ChatTurn:
        logger.exception("chat_turn_failed", correlation_id=str(correlation_id))
        if self._audit_logger:
            self._audit_logger.log_error(
                error_type=type(error).__name__,
                error_message=str(error),
                correlation_id=correlation_id,
            )

        vibe, _ = FRUSTRATED_MOOD
        reply = ConversationMessage.assistant(APOLOGY, mood_tag=vibe)
        try:
            self._history.append(reply)
        except Exception:
            logger.exception("history_append_failed", correlation_id=str(correlation_id))
        return ChatTurn(reply=reply)


class LedgerFlow:
    """
    User actions on the ledger and preferences outside the chat.

    Validation errors (InvalidAmountError, TransactionNotFoundError,
    ValueError) propagate so the surface can show them.
    """

    def __init__(
        self,
        ledger: Ledger,
        preferences: UserPreferences,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._ledger = ledger
        self._preferences = preferences
        self._audit_logger = audit_logger

    def add_manual(
        self,
        amount: Any,
        category: Any,
        merchant: Optional[str] = None,
        is_income: bool = False,
    ) -> tuple[Transaction, str]:
        """
        Record a typed-in entry.

        Returns:
            (transaction, notification)
        """
        transaction = self._ledger.add_manual(amount, category, merchant, is_income)
        if self._audit_logger:
            self._audit_logger.log_manual_entry(
                transaction.id,
                transaction.category.value,
                str(transaction.amount),
            )
        return transaction, INCOME_RECORDED if transaction.is_income else EXPENSE_RECORDED

    def confirm(self, transaction_id: str) -> Transaction:
        transaction = self._ledger.confirm(transaction_id)
        if self._audit_logger:
            self._audit_logger.log_transaction_confirmed(transaction_id)
        return transaction

    def delete(self, transaction_id: str) -> Transaction:
        transaction = self._ledger.delete(transaction_id)
        if self._audit_logger:
            self._audit_logger.log_transaction_deleted(transaction_id)
        return transaction

    def set_monthly_budget(self, budget: int) -> int:
        old = self._preferences.monthly_budget
        new = self._preferences.set_monthly_budget(budget)
        if self._audit_logger:
            self._audit_logger.log_budget_updated(old, new)
        return new

    def set_api_key(self, api_key: str) -> None:
        self._preferences.set_api_key(api_key)
        if self._audit_logger:
            self._audit_logger.log_api_key_updated(True)

    def clear_api_key(self) -> None:
        self._preferences.clear_api_key()
        if self._audit_logger:
            self._audit_logger.log_api_key_updated(False)


@dataclass
class AppComponents:
    """Everything the surface needs, wired together."""
    settings: Settings
    store: KeyValueStore
    ledger: Ledger
    history: ConversationHistory
    preferences: UserPreferences
    sessions: SessionManager
    gateway: ModelGateway
    chat: ChatPipeline
    ledger_flow: LedgerFlow
    audit_logger: AuditLogger


def create_app_components(
    store: Optional[KeyValueStore] = None,
    settings: Optional[Settings] = None,
    client: Optional[httpx.AsyncClient] = None,
    today: Callable[[], datetime.date] = datetime.date.today,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        store: Key/value backend. Defaults to the JSON file from settings,
            or an in-memory store if that file cannot be opened.
        settings: Root settings; defaults to get_settings()
        client: Shared HTTP client for the model gateway
        today: Clock for "today" (injectable for tests)
    """
    settings = settings or get_settings()
    app_settings = settings.app

    if store is None:
        try:
            store = JsonFileStore(app_settings.storage_file)
        except OSError as e:
            # Storage not available - continue in memory
            logger.warning("store_unavailable", path=str(app_settings.storage_file), error=str(e))
            store = InMemoryStore()

    audit_logger = AuditLogger(KeyValueAuditStorage(store, limit=app_settings.audit_log_limit))

    preferences = UserPreferences(
        store,
        default_budget=app_settings.default_monthly_budget,
        max_budget=app_settings.max_monthly_budget,
    )
    ledger = Ledger(store, today=today).load(seed=app_settings.seed_demo_data)
    history = ConversationHistory(store).load()
    gateway = ModelGateway(preferences.get_api_key, settings.llm, client=client)

    chat = ChatPipeline(
        ledger=ledger,
        history=history,
        preferences=preferences,
        gateway=gateway,
        prompt_builder=PromptBuilder(
            persona_text=app_settings.load_persona_text(),
            history_window=app_settings.history_window,
        ),
        reconciler=TransactionReconciler(today=today),
        image_service=ImageService(
            max_dimension=app_settings.max_image_dimension,
            jpeg_quality=app_settings.jpeg_quality,
        ),
        audit_logger=audit_logger,
        today=today,
        recent_limit=app_settings.recent_transactions_limit,
        top_expense=app_settings.top_expense_categories,
        top_income=app_settings.top_income_categories,
    )

    return AppComponents(
        settings=settings,
        store=store,
        ledger=ledger,
        history=history,
        preferences=preferences,
        sessions=SessionManager(store),
        gateway=gateway,
        chat=chat,
        ledger_flow=LedgerFlow(ledger, preferences, audit_logger),
        audit_logger=audit_logger,
    )
