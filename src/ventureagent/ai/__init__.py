"""Agent transport, response types, and tool wiring."""

from .ai_types import AgentResponse, CurrentUser, Insight, UserType
from .client import AgentTransport, ClientSettings

__all__ = ["AgentResponse", "AgentTransport", "ClientSettings", "CurrentUser", "Insight", "UserType"]
