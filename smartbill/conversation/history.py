"""
Conversation State

The chat transcript, persisted as a whole after every append.

Messages are append-only. Restoring a missing or damaged transcript never
fails: the user simply gets a fresh greeting.
"""

import random
from collections.abc import Callable, Sequence
from typing import Optional

import structlog
from pydantic import ValidationError

from smartbill.models.conversation import ConversationMessage, MessageRole
from smartbill.services.storage import CorruptValueError, KeyValueStore, StorageKeys

logger = structlog.get_logger(__name__)

DEFAULT_GREETINGS = (
    "嗨！我是财伴，你的智能财务管家～有啥财务问题尽管问我！",
    "哟！今儿想聊点啥？记账、查账、还是想知道自己还有多少钱可以造？",
    "Hey~ 准备好了吗？让我帮你盯着钱包！",
)
GREETING_MOOD = "聊天"


class ConversationHistory:
    """
    Ordered list of conversation turns backed by the store.

    Usage:
        history = ConversationHistory(store).load()
        window = history.recent(20)
        history.append(ConversationMessage.user("午饭35"))
    """

    def __init__(
        self,
        store: KeyValueStore,
        key: str = StorageKeys.CONVERSATION_HISTORY,
        greetings: Sequence[str] = DEFAULT_GREETINGS,
        chooser: Callable[[Sequence[str]], str] = random.choice,
    ):
        self._store = store
        self._key = key
        self._greetings = greetings
        self._chooser = chooser
        self._messages: list[ConversationMessage] = []

    def greeting(self) -> ConversationMessage:
        return ConversationMessage(
            role=MessageRole.ASSISTANT,
            text=self._chooser(self._greetings),
            mood_tag=GREETING_MOOD,
        )

    def _restore(self) -> Optional[list[ConversationMessage]]:
        try:
            data = self._store.get_json(self._key)
        except CorruptValueError as e:
            logger.warning("history_corrupt", error=str(e))
            return None
        if not isinstance(data, list) or not data:
            return None
        if not all(isinstance(item, dict) for item in data):
            logger.warning("history_corrupt", error="non-object entry")
            return None

        messages = []
        for item in data:
            record = dict(item)
            # Unknown roles are read as the assistant's
            if record.get("role") not in ("user", "assistant", "ai"):
                record["role"] = MessageRole.ASSISTANT
            try:
                messages.append(ConversationMessage.model_validate(record))
            except ValidationError as e:
                logger.warning("history_message_skipped", error=str(e))
        return messages or None

    def load(self) -> "ConversationHistory":
        """Restore the transcript, seeding one greeting if there is none."""
        restored = self._restore()
        self._messages = restored if restored is not None else [self.greeting()]
        return self

    def _persist(self, messages: list[ConversationMessage]) -> None:
        self._store.set_json(
            self._key,
            [m.model_dump(mode="json", exclude_none=True) for m in messages],
        )

    def append(self, message: ConversationMessage) -> None:
        """Add a message. If the write fails the transcript is unchanged."""
        updated = self._messages + [message]
        self._persist(updated)
        self._messages = updated

    def recent(self, n: int) -> list[ConversationMessage]:
        """The last `n` messages, oldest first."""
        if n <= 0:
            return []
        return self._messages[-n:]

    @property
    def messages(self) -> tuple[ConversationMessage, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)
