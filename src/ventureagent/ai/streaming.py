"""Decoding of the incremental chat stream.

The stream endpoint answers with server-sent-event style lines::

    data: {"type": "chunk", "content": "Hel"}
    data: {"type": "chunk", "content": "lo"}
    data: {"type": "complete", "response": {"id": "...", "content": "Hello", ...}}
    data: [DONE]

Blank lines and ``:`` comment lines are keep-alives and are skipped.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any, AsyncIterable

from .ai_types import AgentResponse, AgentType, ChunkCallback, utcnow
from .errors import AgentRequestError, MalformedResponseError

__all__ = ["StreamFrame", "parse_stream_line", "process_streaming_response", "DONE_SENTINEL"]

LOGGER = logging.getLogger(__name__)
DONE_SENTINEL = "[DONE]"
_DATA_PREFIX = "data:"


@dataclass(slots=True)
class StreamFrame:
    """One decoded stream frame."""

    type: str
    content: str | None = None
    response: Any | None = None
    message: str | None = None


def parse_stream_line(line: str) -> StreamFrame | None:
    """Decode a single line; returns ``None`` for keep-alives and non-data fields."""

    stripped = line.strip()
    if not stripped or stripped.startswith(":"):
        return None
    if not stripped.startswith(_DATA_PREFIX):
        # event:/id:/retry: fields carry nothing this client uses
        return None
    body = stripped[len(_DATA_PREFIX):].strip()
    if body == DONE_SENTINEL:
        return StreamFrame(type="done")
    try:
        payload = json.loads(body)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(f"Stream frame is not valid JSON: {exc.msg}") from exc
    if not isinstance(payload, dict):
        raise MalformedResponseError("Stream frame must be a JSON object")

    frame_type = payload.get("type")
    if frame_type == "chunk":
        content = payload.get("content")
        if not isinstance(content, str):
            raise MalformedResponseError("Chunk frame is missing text content")
        return StreamFrame(type="chunk", content=content)
    if frame_type == "complete":
        return StreamFrame(type="complete", response=payload.get("response"))
    if frame_type == "error":
        return StreamFrame(type="error", message=str(payload.get("message") or "Streaming failed"))
    LOGGER.debug("Ignoring unknown stream frame type %r", frame_type)
    return None


async def process_streaming_response(
    lines: AsyncIterable[str],
    on_chunk: ChunkCallback | None = None,
) -> AgentResponse:
    """Feed chunks to ``on_chunk`` in arrival order and return the final response.

    If the stream ends without a ``complete`` frame the response is built from
    the concatenated chunks; a stream with neither is malformed.
    """

    pieces: list[str] = []
    final: AgentResponse | None = None
    async for line in lines:
        frame = parse_stream_line(line)
        if frame is None:
            continue
        if frame.type == "chunk":
            text = frame.content or ""
            pieces.append(text)
            if on_chunk is not None:
                on_chunk(text)
        elif frame.type == "complete":
            final = AgentResponse.from_payload(frame.response)
        elif frame.type == "error":
            raise AgentRequestError(frame.message or "Streaming failed")
        elif frame.type == "done":
            break

    if final is not None:
        return final
    if not pieces:
        raise MalformedResponseError("Stream ended without any content")
    LOGGER.debug("Stream ended without a completion frame; assembling %s chunk(s)", len(pieces))
    return AgentResponse(
        id=f"stream-{uuid.uuid4().hex}",
        content="".join(pieces),
        agent_type=AgentType.UNKNOWN,
        timestamp=utcnow(),
    )
