"""
Language Model Boundary Models

These models describe what crosses the boundary to and from the
chat-completions endpoint.

DESIGN DECISION: Everything coming back from the model is treated as
untrusted. `TransactionCandidate` declares every field optional and
untyped; sanitization happens later in the reconciler, never here.
"""

from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class InputMode(str, Enum):
    """How the user supplied the current turn."""
    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"


class MediaPayload(BaseModel):
    """An encoded image or audio clip ready to embed in a request."""
    model_config = ConfigDict(frozen=True)

    kind: InputMode
    mime_type: str
    data_base64: str = Field(..., min_length=1)

    @property
    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.data_base64}"

    @property
    def audio_format(self) -> str:
        """Short format name ('wav', 'mp3', ...) derived from the MIME type."""
        subtype = self.mime_type.split("/", 1)[-1].lower()
        return {"mpeg": "mp3", "x-wav": "wav", "wave": "wav"}.get(subtype, subtype)


class ModelRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ModelMessage(BaseModel):
    """One role-tagged message in the provider's vocabulary."""
    model_config = ConfigDict(frozen=True)

    role: ModelRole
    content: Union[str, list[dict[str, Any]]]

    def to_wire(self) -> dict[str, Any]:
        return {"role": self.role.value, "content": self.content}


class ModelRequest(BaseModel):
    """A fully assembled request, minus transport details (model name, key)."""
    model_config = ConfigDict(frozen=True)

    mode: InputMode = InputMode.TEXT
    messages: tuple[ModelMessage, ...]

    @property
    def system_prompt(self) -> str:
        first = self.messages[0] if self.messages else None
        if first is not None and first.role == ModelRole.SYSTEM and isinstance(first.content, str):
            return first.content
        return ""

    def to_wire(self) -> list[dict[str, Any]]:
        return [message.to_wire() for message in self.messages]


class TransactionCandidate(BaseModel):
    """
    A transaction as the model described it.

    CRITICAL: This is PROPOSED data. Amounts may be strings, negative or
    missing; categories may be free text. Only the reconciler turns a
    candidate into a ledger Transaction.
    """
    model_config = ConfigDict(extra="allow", frozen=True)

    amount: Any = None
    category: Any = None
    merchant: Any = None
    date: Any = None
    is_income: Any = None

    def raw(self) -> dict[str, Any]:
        """The candidate as received, for the audit trail in the transcript."""
        return self.model_dump(exclude_none=True)


class AIPersona(BaseModel):
    """Sentiment metadata attached to a reply. Display only."""
    model_config = ConfigDict(frozen=True)

    vibe_check: Optional[str] = None
    mood_color: Optional[str] = None


class ResultStatus(str, Enum):
    """How a ModelResult came to be."""
    OK = "ok"                                  # parsed structured JSON
    UNSTRUCTURED = "unstructured"              # reply is the raw model text
    MISSING_CREDENTIAL = "missing_credential"  # canned setup guide
    FAILED = "failed"                          # transport or protocol failure


class ModelResult(BaseModel):
    """
    What the gateway hands back for every request.

    Always well-formed: a reply string, a (possibly empty) candidate list
    and optional persona metadata.
    """
    model_config = ConfigDict(frozen=True)

    reply: str
    transactions: list[TransactionCandidate] = Field(default_factory=list)
    persona: Optional[AIPersona] = None
    status: ResultStatus = ResultStatus.OK
    error_message: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        return self.status in (ResultStatus.MISSING_CREDENTIAL, ResultStatus.FAILED)

    @property
    def raw_transactions(self) -> list[dict[str, Any]]:
        return [candidate.raw() for candidate in self.transactions]
