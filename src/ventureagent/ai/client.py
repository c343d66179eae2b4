"""Async transport for the remote business agent endpoint."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..services.session import SessionIdentityProvider
from ..services.settings import Settings
from .ai_types import AgentResponse, AuthProvider, ChunkCallback, CurrentUser
from .errors import (
    EMPTY_MESSAGE_ERROR,
    AgentError,
    AgentRequestError,
    AuthenticationRequiredError,
    MalformedResponseError,
    handle_agent_error,
)
from .streaming import process_streaming_response

__all__ = ["ClientSettings", "SendOptions", "AgentTransport", "static_user"]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ClientSettings:
    """Subset of settings required to talk to the agent endpoint."""

    base_url: str
    chat_path: str = "/api/ai/chat"
    stream_path: str = "/api/ai/chat/stream"
    auth_token: str | None = None
    request_timeout: float | None = 90.0
    max_retries: int = 1
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    default_headers: Mapping[str, str] | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "ClientSettings":
        return cls(
            base_url=settings.base_url,
            chat_path=settings.chat_path,
            stream_path=settings.stream_path,
            auth_token=settings.auth_token or None,
            request_timeout=settings.request_timeout,
            max_retries=settings.max_retries,
            retry_min_seconds=settings.retry_min_seconds,
            retry_max_seconds=settings.retry_max_seconds,
            default_headers=dict(settings.default_headers),
        )


@dataclass(slots=True)
class SendOptions:
    """Per-call options for :meth:`AgentTransport.send_message`."""

    user_type: str | None = None
    streaming: bool = False
    on_chunk: ChunkCallback | None = None
    context: Dict[str, Any] = field(default_factory=dict)


def static_user(user: CurrentUser | None) -> AuthProvider:
    """Auth provider that always reports ``user``."""

    return lambda: user


class AgentTransport:
    """Issues one logical request per call and normalizes the reply.

    Failures never propagate: :meth:`send_message` returns ``None`` and the
    reason is exposed through :attr:`error`. :attr:`is_loading` is true while
    any call is in flight.
    """

    def __init__(
        self,
        settings: ClientSettings,
        *,
        auth: AuthProvider,
        session: SessionIdentityProvider,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._auth = auth
        self._session = session
        self._owns_client = client is None
        self._client = client or self._build_client(settings)
        self._in_flight = 0
        self._error: str | None = None

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def is_loading(self) -> bool:
        return self._in_flight > 0

    @property
    def error(self) -> str | None:
        return self._error

    async def send_message(
        self,
        message: str,
        *,
        user_type: str | None = None,
        streaming: bool = False,
        on_chunk: ChunkCallback | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> AgentResponse | None:
        """Send ``message`` to the agent and return the normalized response."""

        options = SendOptions(
            user_type=user_type,
            streaming=streaming,
            on_chunk=on_chunk,
            context=dict(context or {}),
        )
        self._error = None
        self._in_flight += 1
        try:
            user = self._auth()
            if user is None:
                raise AuthenticationRequiredError()
            if not message or not message.strip():
                raise AgentError(EMPTY_MESSAGE_ERROR)
            payload = self._build_payload(user, message, options)
            LOGGER.debug(
                "Sending agent request (streaming=%s, user_type=%s, session=%s)",
                options.streaming,
                payload["userType"],
                payload["sessionId"],
            )
            if options.streaming:
                return await self._send_streaming(payload, options.on_chunk)
            return await self._send_regular(payload)
        except Exception as exc:
            self._error = handle_agent_error(exc)
            LOGGER.warning("Agent request failed: %s", self._error)
            return None
        finally:
            self._in_flight -= 1

    def _build_payload(self, user: CurrentUser, message: str, options: SendOptions) -> Dict[str, Any]:
        return {
            "userId": user.id,
            "userType": options.user_type or user.user_type,
            "message": message,
            "sessionId": self._session.get_or_create(),
            "streaming": options.streaming,
            "context": options.context,
        }

    async def _send_regular(self, payload: Mapping[str, Any]) -> AgentResponse:
        async for attempt in self._retrying():
            with attempt:
                response = await self._client.post(self._settings.chat_path, json=payload)
        self._raise_for_status(response)
        try:
            body = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise MalformedResponseError("Agent response was not valid JSON") from exc
        return AgentResponse.from_payload(body)

    async def _send_streaming(
        self, payload: Mapping[str, Any], on_chunk: ChunkCallback | None
    ) -> AgentResponse:
        async with self._client.stream("POST", self._settings.stream_path, json=payload) as response:
            if response.is_error:
                await response.aread()
                self._raise_for_status(response)
            return await process_streaming_response(response.aiter_lines(), on_chunk)

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self._settings.max_retries)),
            wait=wait_exponential(
                multiplier=self._settings.retry_min_seconds,
                max=self._settings.retry_max_seconds,
            ),
            retry=retry_if_exception_type(httpx.TransportError),
        )

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if not response.is_error:
            return
        detail = None
        try:
            body = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            body = None
        if isinstance(body, Mapping):
            detail = body.get("error") or body.get("message")
        message = f"Request failed with status {response.status_code}"
        if detail:
            message = f"{message}: {detail}"
        raise AgentRequestError(message, status_code=response.status_code)

    def _build_client(self, settings: ClientSettings) -> httpx.AsyncClient:
        headers = dict(settings.default_headers or {})
        if settings.auth_token:
            headers.setdefault("Authorization", f"Bearer {settings.auth_token}")
        return httpx.AsyncClient(
            base_url=settings.base_url,
            timeout=settings.request_timeout,
            headers=headers,
        )

    async def aclose(self) -> None:
        """Close the HTTP client if this transport created it."""

        if self._owns_client:
            await self._client.aclose()
