"""Async client for OpenAI-compatible chat-completion endpoints.

Uses ``httpx.AsyncClient`` and exposes ``async def chat()`` for one-shot
replies and ``stream_deltas()`` / ``chat_stream()`` for streamed ones.
Streaming reads are raced against a :class:`CancellationToken` so that a
cancel interrupts a blocked read instead of waiting for the next chunk.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
import time
from typing import Any, AsyncIterator, Awaitable, Sequence, TypeVar

import httpx

from ass_chat.cancellation import CancellationToken
from ass_chat.config import AssConfig
from ass_chat.errors import (
    BackendConnectionError,
    BackendStatusError,
    ChatError,
    MissingBodyError,
)
from ass_chat.types import Message

from .decoder import StreamDecoder
from .request_builder import build_request

_logger = logging.getLogger(__name__)

T = TypeVar("T")

# Anything with a ``markdown(text)`` method, or a bare callable
Sink = Any

# Returned by _race() when the token fired before the awaited step finished
_CANCELLED: Any = object()

_NO_BODY_STATUSES = (204, 205)


def _raise_for_status(resp: httpx.Response) -> None:
    if not resp.is_success:
        raise BackendStatusError(resp.status_code, resp.reason_phrase)


async def _next_chunk(chunks: AsyncIterator[bytes]) -> bytes | None:
    """Next chunk, or None at end-of-data."""
    try:
        return await chunks.__anext__()
    except StopAsyncIteration:
        return None


async def _race(step: Awaitable[T], token: CancellationToken) -> T:
    """Await *step* unless *token* fires first.

    On cancellation the in-flight step is cancelled and awaited before
    ``_CANCELLED`` is returned, so nothing keeps reading behind our back.
    """
    step_task = asyncio.ensure_future(step)
    waiter = asyncio.ensure_future(token.wait())
    try:
        done, _ = await asyncio.wait(
            {step_task, waiter}, return_when=asyncio.FIRST_COMPLETED,
        )
    except asyncio.CancelledError:
        step_task.cancel()
        raise
    finally:
        waiter.cancel()

    if step_task in done:
        return step_task.result()

    step_task.cancel()
    await asyncio.gather(step_task, return_exceptions=True)
    return _CANCELLED


async def _deliver(sink: Sink, delta: str) -> None:
    emit = getattr(sink, "markdown", sink)
    result = emit(delta)
    if inspect.isawaitable(result):
        await result


class AsyncChatClient:
    """Client for one OpenAI-compatible endpoint.

    Parameters
    ----------
    config:
        Endpoint, key, model and timeout.
    transport:
        Optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        config: AssConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._client = httpx.AsyncClient(
            transport=transport,
            timeout=httpx.Timeout(config.timeout, connect=30, read=300),
        )
        self._stream_client = httpx.AsyncClient(
            transport=transport,
            timeout=httpx.Timeout(config.timeout, connect=30, read=60),
        )

    # ------------------------------------------------------------------
    # Non-streaming chat
    # ------------------------------------------------------------------

    async def chat(self, messages: Sequence[Message]) -> str:
        """Send a non-streaming request and return the first choice's text."""
        descriptor = build_request(self.config, messages, stream=False)
        start = time.monotonic()
        try:
            resp = await self._client.post(
                descriptor.url, headers=descriptor.headers, content=descriptor.body,
            )
        except httpx.TransportError as e:
            _logger.warning("Chat request to %s failed: %s", descriptor.url, e)
            raise BackendConnectionError(str(e) or type(e).__name__) from e

        _raise_for_status(resp)
        try:
            data = resp.json()
        except ValueError as e:
            raise ChatError("Invalid JSON response") from e

        _logger.debug(
            "Chat response in %.0f ms", (time.monotonic() - start) * 1000,
        )
        choices = data.get("choices") if isinstance(data, dict) else None
        if not isinstance(choices, list) or not choices:
            return ""
        choice = choices[0]
        if not isinstance(choice, dict):
            return ""
        message = choice.get("message")
        if not isinstance(message, dict):
            return ""
        content = message.get("content")
        return content if isinstance(content, str) else ""

    # ------------------------------------------------------------------
    # Streaming chat
    # ------------------------------------------------------------------

    async def stream_deltas(
        self,
        messages: Sequence[Message],
        token: CancellationToken | None = None,
    ) -> AsyncIterator[str]:
        """Yield content deltas as they arrive.

        Ends at ``[DONE]``, at end-of-data, or when *token* is cancelled.
        Cancellation is never reported as an error.
        """
        token = token or CancellationToken()
        if token.is_cancellation_requested:
            _logger.debug("Cancelled before the request was sent")
            return

        descriptor = build_request(self.config, messages, stream=True)
        request = self._stream_client.build_request(
            "POST", descriptor.url,
            headers=descriptor.headers, content=descriptor.body,
        )

        start = time.monotonic()
        try:
            resp = await _race(self._stream_client.send(request, stream=True), token)
        except httpx.TransportError as e:
            if token.is_cancellation_requested:
                _logger.debug("Connect aborted by cancellation: %s", e)
                return
            _logger.warning("Stream request to %s failed: %s", descriptor.url, e)
            raise BackendConnectionError(str(e) or type(e).__name__) from e
        if resp is _CANCELLED:
            _logger.info("Cancelled while waiting for response headers")
            return

        decoder = StreamDecoder()
        deltas = 0
        try:
            if not resp.is_success:
                body = await resp.aread()
                _logger.warning(
                    "Backend returned %d: %.200s",
                    resp.status_code, body.decode("utf-8", errors="replace"),
                )
            _raise_for_status(resp)
            if resp.status_code in _NO_BODY_STATUSES:
                raise MissingBodyError()

            chunks = resp.aiter_bytes()
            while True:
                if token.is_cancellation_requested:
                    _logger.info("Stream cancelled after %d deltas", deltas)
                    break

                chunk = await _race(_next_chunk(chunks), token)
                if chunk is _CANCELLED:
                    _logger.info("Stream read aborted after %d deltas", deltas)
                    break
                if chunk is None:
                    for delta in decoder.finish():
                        deltas += 1
                        yield delta
                    break

                for delta in decoder.feed(chunk):
                    deltas += 1
                    yield delta
                if decoder.done:
                    break
        except (httpx.TransportError, httpx.StreamError) as e:
            if token.is_cancellation_requested:
                _logger.debug("Stream aborted by cancellation: %s", e)
                return
            _logger.warning("Stream from %s broke: %s", descriptor.url, e)
            raise BackendConnectionError(str(e) or type(e).__name__) from e
        finally:
            await resp.aclose()
            _logger.debug(
                "Stream closed: %d deltas, %d frames seen, %d dropped, %.0f ms",
                deltas, decoder.frames_seen, decoder.frames_dropped,
                (time.monotonic() - start) * 1000,
            )

    async def chat_stream(
        self,
        messages: Sequence[Message],
        sink: Sink,
        token: CancellationToken | None = None,
    ) -> None:
        """Forward every delta to *sink* as soon as it is decoded."""
        async with contextlib.aclosing(self.stream_deltas(messages, token)) as deltas:
            async for delta in deltas:
                await _deliver(sink, delta)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close underlying HTTP clients."""
        await self._client.aclose()
        await self._stream_client.aclose()

    async def __aenter__(self) -> AsyncChatClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
