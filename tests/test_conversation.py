"""Tests for the conversation store and its per-turn state machine."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Mapping, Sequence

import httpx
import pytest

from ventureagent.ai.ai_types import AgentResponse, ChunkCallback, CurrentUser
from ventureagent.ai.client import AgentTransport, ClientSettings, static_user
from ventureagent.ai.errors import EMPTY_MESSAGE_ERROR
from ventureagent.chat.conversation import BUSY_ERROR, HISTORY_KEY, ConversationStore, TurnState
from ventureagent.chat.message_model import ChatMessage
from ventureagent.services.session import SessionIdentityProvider
from ventureagent.services.storage import MemoryStorage


class _FakeTransport:
    """Scripted stand-in for :class:`AgentTransport`."""

    def __init__(
        self,
        chunks: Sequence[str] = (),
        *,
        response: AgentResponse | None = None,
        error: str | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self._chunks = list(chunks)
        self._response = response
        self._error_to_report = error
        self._gate = gate
        self.error: str | None = None
        self.is_loading = False
        self.calls: list[dict[str, Any]] = []

    async def send_message(
        self,
        message: str,
        *,
        user_type: str | None = None,
        streaming: bool = False,
        on_chunk: ChunkCallback | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> AgentResponse | None:
        self.calls.append({"message": message, "streaming": streaming, "context": context})
        self.error = None
        self.is_loading = True
        try:
            for chunk in self._chunks:
                if on_chunk is not None:
                    on_chunk(chunk)
            if self._gate is not None:
                await self._gate.wait()
            if self._error_to_report is not None:
                self.error = self._error_to_report
                return None
            if self._response is not None:
                return self._response
            return AgentResponse(id=f"resp-{len(self.calls)}", content="".join(self._chunks) or "ok")
        finally:
            self.is_loading = False


def _assistant_entries(messages: Sequence[ChatMessage]) -> list[ChatMessage]:
    return [message for message in messages if message.role == "assistant"]


@pytest.mark.asyncio
async def test_streamed_chunks_build_a_single_assistant_entry(storage: MemoryStorage) -> None:
    transport = _FakeTransport(
        ["Hel", "lo, ", "world"],
        response=AgentResponse(id="resp-final", content="Hello, world"),
    )
    store = ConversationStore(transport, storage)
    snapshots: list[tuple[ChatMessage, ...]] = []
    store.subscribe(snapshots.append)

    ok = await store.send_message("hi")

    assert ok is True
    streamed = [_assistant_entries(snapshot) for snapshot in snapshots]
    assert all(len(entries) <= 1 for entries in streamed)
    partials = [entries[0].content for entries in streamed if entries]
    assert partials == ["Hel", "Hello, ", "Hello, world", "Hello, world"]

    messages = store.messages
    assert [message.role for message in messages] == ["user", "assistant"]
    assert messages[0].content == "hi"
    assert messages[1].id == "resp-final"
    assert store.active_turn is None
    assert store.error is None
    assert transport.calls[0]["streaming"] is True


@pytest.mark.asyncio
async def test_provisional_id_is_stable_while_streaming(storage: MemoryStorage) -> None:
    transport = _FakeTransport(["a", "b", "c"], response=AgentResponse(id="resp-x", content="abc"))
    store = ConversationStore(transport, storage)
    ids: list[str] = []
    store.subscribe(lambda messages: ids.extend(m.id for m in _assistant_entries(messages)))

    await store.send_message("go")

    provisional = ids[:3]
    assert len(set(provisional)) == 1
    assert provisional[0] != "resp-x"
    assert ids[-1] == "resp-x"


@pytest.mark.asyncio
async def test_non_streaming_reply_is_appended_once(storage: MemoryStorage) -> None:
    store = ConversationStore(_FakeTransport(response=AgentResponse(id="r1", content="Done")), storage)

    await store.send_message("hi")

    assert [(m.role, m.content) for m in store.messages] == [("user", "hi"), ("assistant", "Done")]


@pytest.mark.asyncio
async def test_failure_removes_provisional_entry_and_keeps_user_message(storage: MemoryStorage) -> None:
    transport = _FakeTransport(["partial"], error="Request failed with status 500")
    store = ConversationStore(transport, storage)

    ok = await store.send_message("hi")

    assert ok is False
    assert [m.role for m in store.messages] == ["user"]
    assert store.error == "Request failed with status 500"
    assert store.active_turn is None


@pytest.mark.asyncio
async def test_history_round_trips_through_storage(storage: MemoryStorage) -> None:
    first = ConversationStore(_FakeTransport(["Hel", "lo"]), storage)
    await first.send_message("hi")
    first.dispose()

    remounted = ConversationStore(_FakeTransport(), storage)

    assert remounted.messages == first.messages
    stored = json.loads(storage.get_item(HISTORY_KEY) or "[]")
    assert [item["role"] for item in stored] == ["user", "assistant"]


def test_corrupt_history_loads_as_empty(storage: MemoryStorage, caplog: pytest.LogCaptureFixture) -> None:
    storage.set_item(HISTORY_KEY, "{not json")

    with caplog.at_level("WARNING"):
        store = ConversationStore(_FakeTransport(), storage)
        assert store.messages == ()

    assert "Failed to load chat history" in caplog.text


def test_history_without_storage_stays_in_memory() -> None:
    store = ConversationStore(_FakeTransport(), None)

    assert store.load() == ()


@pytest.mark.asyncio
async def test_clear_history_is_idempotent(storage: MemoryStorage) -> None:
    store = ConversationStore(_FakeTransport(["x"]), storage)
    await store.send_message("hi")

    store.clear_history()
    store.clear_history()

    assert store.messages == ()
    assert storage.get_item(HISTORY_KEY) is None


@pytest.mark.asyncio
async def test_delete_message(storage: MemoryStorage) -> None:
    store = ConversationStore(_FakeTransport(["answer"]), storage)
    await store.send_message("question")
    user_id = store.messages[0].id

    store.delete_message(user_id)
    store.delete_message("does-not-exist")

    assert [m.role for m in store.messages] == ["assistant"]

    store.delete_message(store.messages[0].id)
    assert storage.get_item(HISTORY_KEY) is None


@pytest.mark.asyncio
async def test_regenerate_replaces_last_answer_without_duplicating_question(storage: MemoryStorage) -> None:
    transport = _FakeTransport(["first answer"])
    store = ConversationStore(transport, storage)
    await store.send_message("question")
    transport._chunks = ["second answer"]

    ok = await store.regenerate_last_response()

    assert ok is True
    assert [(m.role, m.content) for m in store.messages] == [
        ("user", "question"),
        ("assistant", "second answer"),
    ]
    assert [call["message"] for call in transport.calls] == ["question", "question"]


@pytest.mark.asyncio
async def test_regenerate_removes_from_last_assistant_message_onward(storage: MemoryStorage) -> None:
    transport = _FakeTransport(["a1"])
    store = ConversationStore(transport, storage)
    await store.send_message("q1")
    transport._chunks = []
    transport._error_to_report = "Request failed with status 500"
    assert await store.send_message("q2") is False
    assert [(m.role, m.content) for m in store.messages] == [("user", "q1"), ("assistant", "a1"), ("user", "q2")]

    transport._chunks = ["a2"]
    transport._error_to_report = None
    ok = await store.regenerate_last_response()

    assert ok is True
    assert [(m.role, m.content) for m in store.messages] == [
        ("user", "q1"),
        ("user", "q2"),
        ("assistant", "a2"),
    ]
    assert transport.calls[-1]["message"] == "q2"


@pytest.mark.asyncio
async def test_regenerate_without_assistant_message_resends_question_once(storage: MemoryStorage) -> None:
    transport = _FakeTransport(error="Request failed with status 502")
    store = ConversationStore(transport, storage)
    await store.send_message("question")

    transport._error_to_report = None
    transport._chunks = ["answer"]
    assert await store.regenerate_last_response() is True

    assert [(m.role, m.content) for m in store.messages] == [("user", "question"), ("assistant", "answer")]


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["", "   "])
async def test_blank_message_is_rejected_before_append(storage: MemoryStorage, content: str) -> None:
    transport = _FakeTransport(["x"])
    store = ConversationStore(transport, storage)

    assert await store.send_message(content) is False

    assert store.messages == ()
    assert store.error == EMPTY_MESSAGE_ERROR
    assert transport.calls == []
    assert storage.get_item(HISTORY_KEY) is None


class _BrokenStorage:
    def get_item(self, key: str) -> str | None:
        raise OSError("storage disabled")

    def set_item(self, key: str, value: str) -> None:
        raise OSError("quota exceeded")

    def remove_item(self, key: str) -> None:
        raise OSError("storage disabled")


@pytest.mark.asyncio
async def test_storage_failures_keep_the_conversation_in_memory(caplog: pytest.LogCaptureFixture) -> None:
    store = ConversationStore(_FakeTransport(["Hel", "lo"]), _BrokenStorage())

    with caplog.at_level("WARNING", logger="ventureagent.chat.conversation"):
        ok = await store.send_message("hi")
        assert ok is True
        assert [(m.role, m.content) for m in store.messages] == [("user", "hi"), ("assistant", "Hello")]

        store.clear_history()

    assert store.messages == ()
    assert "Failed to load chat history" in caplog.text
    assert "Failed to save chat history" in caplog.text


@pytest.mark.asyncio
async def test_regenerate_without_user_message_is_noop(storage: MemoryStorage) -> None:
    transport = _FakeTransport()
    store = ConversationStore(transport, storage)

    assert await store.regenerate_last_response() is False
    assert transport.calls == []


@pytest.mark.asyncio
async def test_overlapping_send_is_rejected(storage: MemoryStorage) -> None:
    gate = asyncio.Event()
    transport = _FakeTransport(["Hel"], gate=gate)
    store = ConversationStore(transport, storage)

    first = asyncio.create_task(store.send_message("one"))
    while store.active_turn is None or store.active_turn.state is not TurnState.STREAMING:
        await asyncio.sleep(0)

    rejected = await store.send_message("two")
    assert rejected is False
    assert store.error == BUSY_ERROR
    assert [m.content for m in store.messages if m.role == "user"] == ["one"]
    assert store.is_loading is True

    gate.set()
    assert await first is True
    assert store.error is None
    assert len(transport.calls) == 1


@pytest.mark.asyncio
async def test_dispose_ignores_late_chunks_and_completion(storage: MemoryStorage) -> None:
    gate = asyncio.Event()
    transport = _FakeTransport(["Hel"], gate=gate)
    store = ConversationStore(transport, storage)
    notified: list[int] = []
    store.subscribe(lambda messages: notified.append(len(messages)))

    task = asyncio.create_task(store.send_message("hi"))
    while store.active_turn is None or store.active_turn.state is not TurnState.STREAMING:
        await asyncio.sleep(0)
    before = store.messages
    notifications = len(notified)
    store.dispose()
    gate.set()

    assert await task is False
    assert store.disposed is True
    assert store.messages == before
    assert len(notified) == notifications
    assert await store.send_message("again") is False


@pytest.mark.asyncio
async def test_clear_during_stream_discards_turn(storage: MemoryStorage) -> None:
    gate = asyncio.Event()
    transport = _FakeTransport(["Hel"], gate=gate)
    store = ConversationStore(transport, storage)

    task = asyncio.create_task(store.send_message("hi"))
    while store.active_turn is None or store.active_turn.state is not TurnState.STREAMING:
        await asyncio.sleep(0)
    store.clear_history()
    gate.set()

    assert await task is False
    assert store.messages == ()


@pytest.mark.asyncio
async def test_unsubscribe_stops_notifications(storage: MemoryStorage) -> None:
    store = ConversationStore(_FakeTransport(["x"]), storage)
    seen: list[int] = []
    unsubscribe = store.subscribe(lambda messages: seen.append(len(messages)))
    unsubscribe()

    await store.send_message("hi")

    assert seen == []


@pytest.mark.asyncio
async def test_failing_listener_does_not_break_the_turn(storage: MemoryStorage) -> None:
    store = ConversationStore(_FakeTransport(["x"]), storage)

    def _explode(messages: tuple[ChatMessage, ...]) -> None:
        raise RuntimeError("listener bug")

    store.subscribe(_explode)

    assert await store.send_message("hi") is True


@pytest.mark.asyncio
async def test_end_to_end_with_http_stream(storage: MemoryStorage) -> None:
    frames = [
        {"type": "chunk", "content": "Hel"},
        {"type": "chunk", "content": "lo, "},
        {"type": "chunk", "content": "world"},
        {"type": "complete", "response": {"id": "resp-http", "content": "Hello, world", "agentType": "co_founder"}},
    ]
    body = "".join(f"data: {json.dumps(frame)}\n\n" for frame in frames) + "data: [DONE]\n\n"

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=body.encode("utf-8"))

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://agent.test")
    transport = AgentTransport(
        ClientSettings(base_url="http://agent.test"),
        auth=static_user(CurrentUser(id="user-1")),
        session=SessionIdentityProvider(storage),
        client=client,
    )
    store = ConversationStore(transport, storage)
    counts: list[int] = []
    store.subscribe(lambda messages: counts.append(len(_assistant_entries(messages))))

    assert await store.send_message("hi") is True

    assert max(counts) == 1
    assert store.messages[-1].id == "resp-http"
    assert store.messages[-1].content == "Hello, world"
    await client.aclose()


@pytest.mark.asyncio
async def test_unauthenticated_send_reports_transport_error(storage: MemoryStorage) -> None:
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
    transport = AgentTransport(
        ClientSettings(base_url="http://agent.test"),
        auth=static_user(None),
        session=SessionIdentityProvider(storage),
        client=client,
    )
    store = ConversationStore(transport, storage)

    assert await store.send_message("hi") is False
    assert store.error == "User not authenticated"
    assert [m.role for m in store.messages] == ["user"]
    await client.aclose()
