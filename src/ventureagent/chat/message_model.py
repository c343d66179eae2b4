"""Chat message data model and its persisted form."""

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Literal, Mapping

from ..ai.ai_types import AgentResponse, Insight, JSONMap, parse_timestamp, utcnow

ChatRole = Literal["user", "assistant"]
_ROLES: tuple[str, ...] = ("user", "assistant")


def new_message_id(role: ChatRole) -> str:
    """Locally unique id in the ``msg-<epoch-ms>-<role>-<hex>`` form."""

    return f"msg-{int(time.time() * 1000)}-{role}-{secrets.token_hex(3)}"


@dataclass(slots=True, frozen=True)
class ChatMessage:
    """One turn in the conversation log."""

    id: str
    role: ChatRole
    content: str
    timestamp: datetime = field(default_factory=utcnow)
    insights: tuple[Insight, ...] | None = None
    suggestions: tuple[str, ...] | None = None
    metadata: JSONMap | None = None

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls(id=new_message_id("user"), role="user", content=content)

    @classmethod
    def from_response(cls, response: AgentResponse) -> "ChatMessage":
        return cls(
            id=response.id,
            role="assistant",
            content=response.content,
            timestamp=response.timestamp,
            insights=tuple(response.insights) if response.insights is not None else None,
            suggestions=tuple(response.suggestions) if response.suggestions is not None else None,
            metadata=dict(response.metadata) if response.metadata is not None else None,
        )

    def with_content(self, content: str) -> "ChatMessage":
        return replace(self, content=content, timestamp=utcnow())

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the message for persistence."""

        payload: Dict[str, Any] = {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.insights is not None:
            payload["insights"] = [insight.to_dict() for insight in self.insights]
        if self.suggestions is not None:
            payload["suggestions"] = list(self.suggestions)
        if self.metadata is not None:
            payload["metadata"] = dict(self.metadata)
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ChatMessage":
        """Rebuild a message from :meth:`to_dict` output; raises ``ValueError`` on bad data."""

        role = payload.get("role")
        if role not in _ROLES:
            raise ValueError(f"Unknown message role: {role!r}")
        message_id = payload.get("id")
        content = payload.get("content")
        if not isinstance(message_id, str) or not isinstance(content, str):
            raise ValueError("Stored message is missing id or content")
        insights = payload.get("insights")
        suggestions = payload.get("suggestions")
        metadata = payload.get("metadata")
        return cls(
            id=message_id,
            role=role,
            content=content,
            timestamp=parse_timestamp(payload.get("timestamp")),
            insights=tuple(Insight.from_payload(item) for item in insights) if isinstance(insights, list) else None,
            suggestions=tuple(str(item) for item in suggestions) if isinstance(suggestions, list) else None,
            metadata=dict(metadata) if isinstance(metadata, Mapping) else None,
        )
