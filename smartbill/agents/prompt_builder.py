"""
Prompt Builder

Assembles the role-tagged message list for one model request.

The system message is built from four sections, always in this order:
1. Persona (configurable)
2. Response contract (the JSON shape the gateway parses)
3. Grounding context (the user's current finances)
4. Document gate (image and audio turns only)

It is followed by the recent conversation window and then the current
input. The builder is pure: it never mutates the history or the summary
it is given.
"""

from collections.abc import Sequence
from typing import Any, Optional

from smartbill.agents.prompts import (
    AUDIO_GATE,
    AUDIO_INSTRUCTION,
    DEFAULT_PERSONA,
    IMAGE_GATE,
    IMAGE_INSTRUCTION,
    RESPONSE_CONTRACT,
)
from smartbill.ledger.context import render_context_text
from smartbill.models.conversation import ConversationMessage, MessageRole
from smartbill.models.llm import (
    InputMode,
    MediaPayload,
    ModelMessage,
    ModelRequest,
    ModelRole,
)
from smartbill.models.summary import ContextSummary


class PromptBuilder:
    """
    Builds ModelRequests for text, image and audio turns.

    Usage:
        builder = PromptBuilder(history_window=20)
        request = builder.build_request(summary, history, InputMode.TEXT, "午饭35")
    """

    def __init__(self, persona_text: Optional[str] = None, history_window: int = 20):
        self._persona = (persona_text or "").strip() or DEFAULT_PERSONA
        self._history_window = history_window

    @property
    def persona(self) -> str:
        return self._persona

    @property
    def history_window(self) -> int:
        return self._history_window

    def system_prompt(self, context: ContextSummary, mode: InputMode = InputMode.TEXT) -> str:
        sections = [self._persona, RESPONSE_CONTRACT, render_context_text(context)]
        if mode == InputMode.IMAGE:
            sections.append(IMAGE_GATE)
        elif mode == InputMode.AUDIO:
            sections.append(AUDIO_GATE)
        return "\n\n".join(sections)

    def history_messages(self, history: Sequence[ConversationMessage]) -> list[ModelMessage]:
        """The last `history_window` turns in the provider's role vocabulary."""
        if self._history_window <= 0:
            return []
        window = list(history)[-self._history_window:]
        return [
            ModelMessage(
                role=ModelRole.USER if m.role == MessageRole.USER else ModelRole.ASSISTANT,
                content=m.text,
            )
            for m in window
        ]

    def build_request(
        self,
        context: ContextSummary,
        history: Sequence[ConversationMessage],
        mode: InputMode = InputMode.TEXT,
        user_input: Optional[str] = None,
        payload: Optional[MediaPayload] = None,
    ) -> ModelRequest:
        """
        Build the request for one turn.

        Args:
            context: Grounding summary of the ledger
            history: Prior turns, oldest first, NOT including the current input
            mode: How the current input was supplied
            user_input: The typed or transcribed text (text mode)
            payload: The encoded image or audio clip (image and audio modes)

        Raises:
            PromptBuildError: If the input required by `mode` is missing
        """
        messages = [ModelMessage(role=ModelRole.SYSTEM, content=self.system_prompt(context, mode))]
        messages.extend(self.history_messages(history))
        messages.append(ModelMessage(role=ModelRole.USER, content=self._current_input(mode, user_input, payload)))
        return ModelRequest(mode=mode, messages=tuple(messages))

    def _current_input(
        self,
        mode: InputMode,
        user_input: Optional[str],
        payload: Optional[MediaPayload],
    ) -> Any:
        if mode == InputMode.TEXT:
            if not user_input or not user_input.strip():
                raise PromptBuildError("Text turns need non-empty user input")
            return user_input

        if payload is None:
            raise PromptBuildError(f"{mode.value} turns need a media payload")
        if payload.kind != mode:
            raise PromptBuildError(f"Expected a {mode.value} payload, got {payload.kind.value}")

        if mode == InputMode.IMAGE:
            return [
                {"type": "image_url", "image_url": {"url": payload.data_uri}},
                {"type": "text", "text": user_input or IMAGE_INSTRUCTION},
            ]
        return [
            {"type": "input_audio", "input_audio": {"data": payload.data_base64, "format": payload.audio_format}},
            {"type": "text", "text": user_input or AUDIO_INSTRUCTION},
        ]


class PromptBuildError(Exception):
    """A request could not be assembled from the given inputs."""
    pass
