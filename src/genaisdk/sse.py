"""
Incremental server-sent events decoder.

The decoder is fed raw bytes as they arrive from the network and returns
complete events. Chunk boundaries may fall anywhere, including inside a
multi-byte UTF-8 sequence or between the two characters of a CRLF.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import AsyncGenerator, AsyncIterator
from dataclasses import dataclass
from typing import Any

from .exceptions import APIError, SerializationError, StreamError

logger = logging.getLogger(__name__)

_FRAME_TERMINATORS = (b"\r\n\r\n", b"\n\n", b"\r\r")
_LINE_SPLIT = re.compile(r"\r\n|\r|\n")

DONE_SENTINEL = "[DONE]"


@dataclass
class SseEvent:
    """A single decoded event."""

    data: str = ""
    event: str | None = None
    id: str | None = None


def _find_terminator(buffer: bytearray) -> tuple[int, int] | None:
    """Return (index, length) of the earliest frame terminator."""
    best: tuple[int, int] | None = None
    for terminator in _FRAME_TERMINATORS:
        index = buffer.find(terminator)
        if index != -1 and (best is None or index < best[0]):
            best = (index, len(terminator))
    return best


class SseDecoder:
    """Stateful SSE frame decoder.

    Example:
        >>> decoder = SseDecoder()
        >>> decoder.feed(b"data: hel")
        []
        >>> decoder.feed(b"lo\\n\\n")
        [SseEvent(data='hello', event=None, id=None)]
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    def feed(self, chunk: bytes) -> list[SseEvent]:
        """Add bytes to the buffer and return every event they complete."""
        self._buffer.extend(chunk)
        events: list[SseEvent] = []

        while True:
            found = _find_terminator(self._buffer)
            if found is None:
                break
            index, length = found
            frame = bytes(self._buffer[:index])
            del self._buffer[: index + length]

            event = self._decode_frame(frame)
            if event is not None:
                events.append(event)

        return events

    def flush(self) -> list[SseEvent]:
        """Decode whatever is left once the stream has ended."""
        if not self._buffer.strip():
            self._buffer.clear()
            return []
        frame = bytes(self._buffer)
        self._buffer.clear()
        event = self._decode_frame(frame)
        return [event] if event is not None else []

    @staticmethod
    def _decode_frame(frame: bytes) -> SseEvent | None:
        try:
            text = frame.decode("utf-8")
        except UnicodeDecodeError as e:
            raise StreamError(f"Invalid UTF-8 in event stream: {e}") from e

        event_name: str | None = None
        event_id: str | None = None
        data_lines: list[str] = []
        seen = False

        for line in _LINE_SPLIT.split(text):
            if not line or line.startswith(":"):
                continue

            if ":" in line:
                name, value = line.split(":", 1)
                if value.startswith(" "):
                    value = value[1:]
            else:
                name, value = line, ""

            if name == "data":
                data_lines.append(value)
                seen = True
            elif name == "event":
                event_name = value
                seen = True
            elif name == "id":
                event_id = value
                seen = True

        if not seen:
            return None
        return SseEvent(data="\n".join(data_lines), event=event_name, id=event_id)


async def iter_sse_events(chunks: AsyncIterator[bytes]) -> AsyncGenerator[SseEvent, None]:
    """Decode an async byte stream into events."""
    decoder = SseDecoder()
    async for chunk in chunks:
        for event in decoder.feed(chunk):
            yield event
    for event in decoder.flush():
        yield event


def _raise_chunk_error(payload: dict[str, Any]) -> None:
    error_info = payload.get("error")
    if not error_info:
        return
    raise APIError.from_error_object(
        error_info,
        default_message=json.dumps(error_info),
        response_body=json.dumps(payload),
    )


async def iter_sse_json(chunks: AsyncIterator[bytes]) -> AsyncGenerator[dict[str, Any], None]:
    """Decode an event stream whose data fields hold JSON objects.

    Stops at the ``[DONE]`` sentinel. Events with empty data are skipped.

    Raises:
        StreamError: If the stream is not valid UTF-8.
        SerializationError: If an event's data is not valid JSON.
        APIError: If an event carries an ``error`` object.
    """
    async for event in iter_sse_events(chunks):
        data = event.data.strip()
        if not data:
            continue
        if data == DONE_SENTINEL:
            logger.debug("Event stream finished with [DONE]")
            return

        try:
            payload = json.loads(data)
        except json.JSONDecodeError as e:
            raise SerializationError(f"Invalid JSON in event stream: {e}", payload=data) from e

        if isinstance(payload, dict):
            _raise_chunk_error(payload)
        yield payload
