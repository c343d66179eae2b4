"""Conversation log and message model."""

from .conversation import ConversationStore, Turn, TurnState
from .message_model import ChatMessage

__all__ = ["ChatMessage", "ConversationStore", "Turn", "TurnState"]
