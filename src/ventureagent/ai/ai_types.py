"""Shared types for the agent transport and conversation layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Mapping, Union

from .errors import MalformedResponseError

__all__ = [
    "JSONValue",
    "JSONMap",
    "UserType",
    "AgentType",
    "InsightType",
    "InsightPriority",
    "Insight",
    "AgentResponse",
    "CurrentUser",
    "AuthProvider",
    "ChunkCallback",
    "utcnow",
    "parse_timestamp",
]

JSONValue = Union[str, int, float, bool, None, list["JSONValue"], dict[str, "JSONValue"]]
JSONMap = dict[str, JSONValue]


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""

    return datetime.now(timezone.utc)


class UserType(str, Enum):
    """Platform roles; each role is mapped to a set of tools."""

    ENTREPRENEUR = "entrepreneur"
    INVESTOR = "investor"
    LENDER = "lender"
    GRANTOR = "grantor"
    PARTNER = "partner"
    ADMIN = "admin"


class AgentType:
    """Agent labels the backend is known to emit. The field itself stays open."""

    CO_FOUNDER = "co_founder"
    CO_INVESTOR = "co_investor"
    CO_BUILDER = "co_builder"
    BUSINESS_ADVISOR = "business_advisor"
    INVESTMENT_ANALYST = "investment_analyst"
    CREDIT_ANALYST = "credit_analyst"
    IMPACT_ANALYST = "impact_analyst"
    PROGRAM_ANALYST = "program_analyst"
    BUSINESS_ANALYST = "business_analyst"
    UNKNOWN = "unknown"


class InsightType(str, Enum):
    RECOMMENDATION = "recommendation"
    WARNING = "warning"
    OPPORTUNITY = "opportunity"
    RISK = "risk"


class InsightPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(slots=True, frozen=True)
class Insight:
    """Structured observation attached to an assistant message."""

    type: InsightType
    title: str
    description: str
    priority: InsightPriority = InsightPriority.MEDIUM
    actionable: bool = False

    @classmethod
    def from_payload(cls, payload: Any) -> "Insight":
        if not isinstance(payload, Mapping):
            raise MalformedResponseError("Insight must be an object")
        try:
            insight_type = InsightType(payload.get("type"))
            priority = InsightPriority(payload.get("priority", InsightPriority.MEDIUM.value))
        except ValueError as exc:
            raise MalformedResponseError(f"Invalid insight: {exc}") from exc
        return cls(
            type=insight_type,
            title=str(payload.get("title", "")),
            description=str(payload.get("description", "")),
            priority=priority,
            actionable=bool(payload.get("actionable", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "actionable": self.actionable,
        }


def parse_timestamp(value: Any) -> datetime:
    """Turn an ISO string (or datetime) into an aware datetime; missing means now."""

    if value is None or value == "":
        return utcnow()
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError as exc:
            raise MalformedResponseError(f"Invalid timestamp: {value!r}") from exc
    else:
        raise MalformedResponseError(f"Invalid timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(slots=True)
class AgentResponse:
    """Canonical result of one exchange with the agent endpoint."""

    id: str
    content: str
    agent_type: str = AgentType.UNKNOWN
    timestamp: datetime = field(default_factory=utcnow)
    suggestions: list[str] | None = None
    insights: list[Insight] | None = None
    metadata: JSONMap | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "AgentResponse":
        """Normalize a backend JSON object (camelCase keys) into a response."""

        if not isinstance(payload, Mapping):
            raise MalformedResponseError("Agent response must be a JSON object")
        response_id = payload.get("id")
        content = payload.get("content")
        if not isinstance(response_id, (str, int)) or response_id == "":
            raise MalformedResponseError("Agent response is missing an id")
        if not isinstance(content, str):
            raise MalformedResponseError("Agent response is missing content")

        suggestions = payload.get("suggestions")
        if suggestions is not None:
            if not isinstance(suggestions, list):
                raise MalformedResponseError("suggestions must be a list")
            suggestions = [str(item) for item in suggestions]

        insights_payload = payload.get("insights")
        insights: list[Insight] | None = None
        if insights_payload is not None:
            if not isinstance(insights_payload, list):
                raise MalformedResponseError("insights must be a list")
            insights = [Insight.from_payload(item) for item in insights_payload]

        metadata = payload.get("metadata")
        if metadata is not None and not isinstance(metadata, Mapping):
            raise MalformedResponseError("metadata must be an object")

        agent_type = payload.get("agentType", payload.get("agent_type"))
        return cls(
            id=str(response_id),
            content=content,
            agent_type=str(agent_type) if agent_type else AgentType.UNKNOWN,
            timestamp=parse_timestamp(payload.get("timestamp")),
            suggestions=suggestions,
            insights=insights,
            metadata=dict(metadata) if metadata is not None else None,
        )


@dataclass(slots=True, frozen=True)
class CurrentUser:
    """The authenticated user on whose behalf messages are sent."""

    id: str
    user_type: str = UserType.ENTREPRENEUR.value
    email: str | None = None


AuthProvider = Callable[[], "CurrentUser | None"]
ChunkCallback = Callable[[str], None]
