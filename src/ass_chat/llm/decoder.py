"""Incremental decoder for server-sent chat-completion streams.

The wire format is one ``data: {json}`` frame per line, terminated by a
``data: [DONE]`` line or by the connection closing.  Chunks arrive at
arbitrary byte boundaries, so both the UTF-8 decoding state and the
unterminated tail of the last line are carried between reads.
"""

from __future__ import annotations

import codecs
import json
import logging
from typing import Any, AsyncIterable, AsyncIterator

_logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_LINE = "data: [DONE]"


def parse_frame(payload: str) -> dict[str, Any] | None:
    """Parse one frame payload.  Returns None if it is not a JSON object."""
    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    return data


def frame_delta(frame: dict[str, Any]) -> str:
    """Return ``choices[0].delta.content`` or ``""`` when absent."""
    choices = frame.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    choice = choices[0]
    if not isinstance(choice, dict):
        return ""
    delta = choice.get("delta")
    if not isinstance(delta, dict):
        return ""
    content = delta.get("content")
    return content if isinstance(content, str) else ""


class StreamDecoder:
    """Turn raw byte chunks into content deltas.

    One instance serves exactly one response.  Once the ``[DONE]`` line has
    been seen, ``done`` is set and further input is ignored.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.done = False
        self.frames_seen = 0
        self.frames_dropped = 0

    @property
    def pending(self) -> str:
        """Unterminated text carried over to the next chunk."""
        return self._buffer

    def feed(self, chunk: bytes) -> list[str]:
        """Consume *chunk* and return the deltas of every completed line."""
        if self.done:
            return []
        self._buffer += self._decoder.decode(chunk)
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        return self._process(lines)

    def finish(self) -> list[str]:
        """Flush at end-of-data, treating any leftover text as a final line."""
        if self.done:
            return []
        self._buffer += self._decoder.decode(b"", final=True)
        tail, self._buffer = self._buffer, ""
        return self._process([tail] if tail else [])

    def _process(self, lines: list[str]) -> list[str]:
        deltas: list[str] = []
        for line in lines:
            trimmed = line.strip()
            if not trimmed:
                continue
            if trimmed == DONE_LINE:
                self.done = True
                break
            if not trimmed.startswith(DATA_PREFIX):
                continue

            self.frames_seen += 1
            frame = parse_frame(trimmed[len(DATA_PREFIX):])
            if frame is None:
                self.frames_dropped += 1
                _logger.debug("Skipping malformed frame: %.80s", trimmed)
                continue

            content = frame_delta(frame)
            if content:
                deltas.append(content)
        return deltas


async def decode_stream(chunks: AsyncIterable[bytes]) -> AsyncIterator[str]:
    """Lazily yield deltas from an async stream of byte chunks."""
    decoder = StreamDecoder()
    async for chunk in chunks:
        for delta in decoder.feed(chunk):
            yield delta
        if decoder.done:
            return
    for delta in decoder.finish():
        yield delta
