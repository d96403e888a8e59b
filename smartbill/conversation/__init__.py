"""Conversation state package."""

from smartbill.conversation.history import DEFAULT_GREETINGS, ConversationHistory

__all__ = [
    "DEFAULT_GREETINGS",
    "ConversationHistory",
]
