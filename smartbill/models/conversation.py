"""Conversation message models."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ConversationMessage(BaseModel):
    """
    One turn of the chat transcript.

    Messages are append-only: once created they are never edited or
    reordered. `extracted_transactions` keeps the raw, unvalidated candidates
    the model returned so the UI can show what was understood.
    """
    model_config = ConfigDict(frozen=True)

    role: MessageRole
    text: str = ""
    extracted_transactions: Optional[list[dict[str, Any]]] = None
    mood_tag: Optional[str] = None
    mood_color: Optional[str] = None

    @field_validator('role', mode='before')
    @classmethod
    def accept_legacy_role(cls, v: Any) -> Any:
        """Older transcripts stored the assistant role as 'ai'."""
        if v == "ai":
            return MessageRole.ASSISTANT
        return v

    @field_validator('text', mode='before')
    @classmethod
    def text_must_be_string(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""

    @classmethod
    def user(cls, text: str) -> "ConversationMessage":
        return cls(role=MessageRole.USER, text=text)

    @classmethod
    def assistant(
        cls,
        text: str,
        extracted_transactions: Optional[list[dict[str, Any]]] = None,
        mood_tag: Optional[str] = None,
        mood_color: Optional[str] = None,
    ) -> "ConversationMessage":
        return cls(
            role=MessageRole.ASSISTANT,
            text=text,
            extracted_transactions=extracted_transactions,
            mood_tag=mood_tag,
            mood_color=mood_color,
        )

    @property
    def is_user(self) -> bool:
        return self.role == MessageRole.USER
