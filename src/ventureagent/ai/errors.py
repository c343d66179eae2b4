"""Error taxonomy for talking to the remote agent endpoint."""

from __future__ import annotations

import httpx

__all__ = [
    "AUTH_REQUIRED_MESSAGE",
    "EMPTY_MESSAGE_ERROR",
    "AgentError",
    "AuthenticationRequiredError",
    "AgentRequestError",
    "MalformedResponseError",
    "handle_agent_error",
]

AUTH_REQUIRED_MESSAGE = "User not authenticated"
EMPTY_MESSAGE_ERROR = "Message cannot be empty"
_FALLBACK_MESSAGE = "An unexpected error occurred while contacting the assistant"


class AgentError(RuntimeError):
    """Base class for failures surfaced through the transport's ``error`` field."""


class AuthenticationRequiredError(AgentError):
    """No current user; raised before any network activity."""

    def __init__(self, message: str = AUTH_REQUIRED_MESSAGE) -> None:
        super().__init__(message)


class AgentRequestError(AgentError):
    """The backend answered with a non-success HTTP status or an error frame."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(AgentError):
    """The backend payload could not be decoded into an agent response."""


def handle_agent_error(exc: BaseException) -> str:
    """Return the human-readable message shown for ``exc``."""

    if isinstance(exc, AgentError):
        return str(exc) or _FALLBACK_MESSAGE
    if isinstance(exc, httpx.TimeoutException):
        return "The assistant took too long to respond"
    if isinstance(exc, httpx.HTTPStatusError):
        return f"Request failed with status {exc.response.status_code}"
    message = str(exc).strip()
    return message or _FALLBACK_MESSAGE
