"""Conversation store: the message log layered over the agent transport.

Each ``send_message`` call drives one :class:`Turn` through
``PENDING -> STREAMING -> SETTLED | FAILED``. The turn owns a provisional
assistant id; every chunk replaces the entry carrying that id, so a turn is
represented by at most one assistant entry at any time. Settlement swaps the
provisional entry for the server's message in the same slot.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Protocol, Sequence

from ..ai.ai_types import AgentResponse, ChunkCallback
from ..ai.errors import EMPTY_MESSAGE_ERROR, MalformedResponseError
from ..services.storage import LocalStorage
from .message_model import ChatMessage, new_message_id

__all__ = [
    "HISTORY_KEY",
    "BUSY_ERROR",
    "TurnState",
    "Turn",
    "ConversationStore",
    "MessageListener",
]

LOGGER = logging.getLogger(__name__)
HISTORY_KEY = "ai_chat_history"
BUSY_ERROR = "A response is already in progress"
_FALLBACK_FAILURE = "The assistant could not answer"

MessageListener = Callable[[tuple[ChatMessage, ...]], None]


class _Transport(Protocol):
    @property
    def error(self) -> str | None: ...

    @property
    def is_loading(self) -> bool: ...

    async def send_message(
        self,
        message: str,
        *,
        user_type: str | None = None,
        streaming: bool = False,
        on_chunk: ChunkCallback | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> AgentResponse | None: ...


class TurnState(Enum):
    PENDING = "pending"
    STREAMING = "streaming"
    SETTLED = "settled"
    FAILED = "failed"


@dataclass(slots=True)
class Turn:
    """Bookkeeping for one in-flight user/assistant exchange."""

    user_message_id: str
    provisional_id: str
    state: TurnState = TurnState.PENDING
    partial: str = ""
    error: str | None = None

    @property
    def finished(self) -> bool:
        return self.state in (TurnState.SETTLED, TurnState.FAILED)


class ConversationStore:
    """Owns the ordered message log for one conversation.

    Lifecycle is construct, :meth:`load` (implicit on first use), mutate,
    persist after every mutation, :meth:`dispose`. Once disposed, late chunk
    and completion callbacks from an abandoned request change nothing.
    """

    def __init__(
        self,
        transport: _Transport,
        storage: LocalStorage | None,
        *,
        history_key: str = HISTORY_KEY,
    ) -> None:
        self._transport = transport
        self._storage = storage
        self._history_key = history_key
        self._messages: list[ChatMessage] = []
        self._listeners: list[MessageListener] = []
        self._active_turn: Turn | None = None
        self._error: str | None = None
        self._loaded = False
        self._disposed = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        self._ensure_loaded()
        return tuple(self._messages)

    @property
    def active_turn(self) -> Turn | None:
        return self._active_turn

    @property
    def is_loading(self) -> bool:
        return self._active_turn is not None or self._transport.is_loading

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def disposed(self) -> bool:
        return self._disposed

    def subscribe(self, listener: MessageListener) -> Callable[[], None]:
        """Call ``listener`` with the new log after each mutation; returns an unsubscribe hook."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def load(self) -> tuple[ChatMessage, ...]:
        """Restore the persisted log. Missing or corrupt data yields an empty log."""

        if self._loaded:
            return tuple(self._messages)
        self._loaded = True
        self._messages = self._read_history()
        if self._messages:
            LOGGER.debug("Restored %s message(s) from %s", len(self._messages), self._history_key)
        return tuple(self._messages)

    def dispose(self) -> None:
        self._disposed = True
        self._listeners.clear()
        if self._active_turn is not None and not self._active_turn.finished:
            self._active_turn.state = TurnState.FAILED
        self._active_turn = None

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def send_message(self, content: str, context: Mapping[str, Any] | None = None) -> bool:
        """Append the user turn, stream the answer into the log, and settle it.

        Returns ``True`` once an assistant answer has been settled. Blank content
        and calls made while another turn is in flight are rejected without
        touching the log.
        """

        self._ensure_loaded()
        if self._disposed:
            return False
        if self._active_turn is not None:
            self._error = BUSY_ERROR
            LOGGER.info("Rejected overlapping send while a turn is in flight")
            return False
        if not content or not content.strip():
            self._error = EMPTY_MESSAGE_ERROR
            return False

        user_message = ChatMessage.user(content)
        turn = Turn(user_message_id=user_message.id, provisional_id=new_message_id("assistant"))
        self._active_turn = turn
        self._error = None
        self._messages.append(user_message)
        self._commit()

        try:
            response = await self._transport.send_message(
                content,
                streaming=True,
                context=context,
                on_chunk=lambda chunk: self._apply_chunk(turn, chunk),
            )
        finally:
            if self._active_turn is turn:
                self._active_turn = None

        if self._disposed or turn.finished:
            return False
        if response is None:
            self._fail(turn, self._transport.error)
            return False
        self._settle(turn, response)
        return True

    def clear_history(self) -> None:
        """Empty the log and remove the persisted copy; safe on an empty log."""

        self._ensure_loaded()
        self._detach_active_turn()
        self._messages = []
        self._commit()

    def delete_message(self, message_id: str) -> None:
        self._ensure_loaded()
        remaining = [message for message in self._messages if message.id != message_id]
        if len(remaining) == len(self._messages):
            return
        self._messages = remaining
        self._commit()

    async def regenerate_last_response(self) -> bool:
        """Discard the latest answer and ask the latest user question again.

        Every message from the most recent assistant message onward is
        removed (nothing is removed when there is no assistant message), then
        the most recent user message's content is re-sent. If that user
        message is still the last entry after the cut it is dropped too, so
        the re-sent question is not logged twice.
        """

        self._ensure_loaded()
        if self._active_turn is not None:
            self._error = BUSY_ERROR
            return False
        question_index = _last_index(self._messages, "user")
        if question_index is None:
            return False
        question = self._messages[question_index]
        answer_index = _last_index(self._messages, "assistant")
        kept = self._messages[:answer_index] if answer_index is not None else list(self._messages)
        if kept and kept[-1].id == question.id:
            kept.pop()
        self._messages = kept
        self._commit()
        return await self.send_message(question.content)

    # ------------------------------------------------------------------
    # Turn transitions
    # ------------------------------------------------------------------

    def _apply_chunk(self, turn: Turn, chunk: str) -> None:
        if self._disposed or turn.finished:
            return
        turn.partial += chunk
        provisional = ChatMessage(id=turn.provisional_id, role="assistant", content=turn.partial)
        if turn.state is TurnState.PENDING:
            turn.state = TurnState.STREAMING
            self._messages.append(provisional)
        else:
            self._replace_or_append(turn.provisional_id, provisional)
        self._commit()

    def _settle(self, turn: Turn, response: AgentResponse) -> None:
        final = ChatMessage.from_response(response)
        if turn.state is TurnState.STREAMING:
            self._replace_or_append(turn.provisional_id, final)
        else:
            self._messages.append(final)
        turn.state = TurnState.SETTLED
        self._error = None
        self._commit()

    def _fail(self, turn: Turn, error: str | None) -> None:
        turn.error = error or _FALLBACK_FAILURE
        turn.state = TurnState.FAILED
        self._error = turn.error
        self._messages = [message for message in self._messages if message.id != turn.provisional_id]
        self._commit()

    def _detach_active_turn(self) -> None:
        turn = self._active_turn
        if turn is not None and not turn.finished:
            turn.state = TurnState.FAILED
        self._active_turn = None

    def _replace_or_append(self, message_id: str, message: ChatMessage) -> None:
        for index, existing in enumerate(self._messages):
            if existing.id == message_id:
                self._messages[index] = message
                return
        self._messages.append(message)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def _commit(self) -> None:
        self._persist()
        snapshot = tuple(self._messages)
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                LOGGER.exception("Conversation listener failed")

    def _persist(self) -> None:
        if self._storage is None:
            return
        try:
            if self._messages:
                body = json.dumps([message.to_dict() for message in self._messages])
                self._storage.set_item(self._history_key, body)
            else:
                self._storage.remove_item(self._history_key)
        except Exception as exc:
            LOGGER.warning("Failed to save chat history: %s", exc)

    def _read_history(self) -> list[ChatMessage]:
        if self._storage is None:
            return []
        try:
            raw = self._storage.get_item(self._history_key)
            if not raw:
                return []
            payload = json.loads(raw)
            if not isinstance(payload, list):
                raise ValueError("stored history is not a list")
            return [ChatMessage.from_dict(item) for item in payload]
        except (OSError, ValueError, TypeError, AttributeError, MalformedResponseError) as exc:
            LOGGER.warning("Failed to load chat history: %s", exc)
            return []


def _last_index(messages: Sequence[ChatMessage], role: str) -> int | None:
    for index in range(len(messages) - 1, -1, -1):
        if messages[index].role == role:
            return index
    return None
