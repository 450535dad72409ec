"""Cooperative cancellation tokens.

A :class:`CancellationTokenSource` owns the right to cancel; the
:class:`CancellationToken` it hands out can only be observed.  Callers poll
``is_cancellation_requested``, register callbacks, or ``await token.wait()``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

_logger = logging.getLogger(__name__)

Callback = Callable[[], None]


class CancellationToken:
    """Read-only view of a cancellation signal."""

    def __init__(self) -> None:
        self._cancelled = False
        self._event = asyncio.Event()
        self._callbacks: list[Callback] = []

    @property
    def is_cancellation_requested(self) -> bool:
        return self._cancelled

    def on_cancellation_requested(self, callback: Callback) -> Callable[[], None]:
        """Register *callback*; returns a function that unregisters it.

        If the token is already cancelled the callback runs immediately.
        """
        if self._cancelled:
            callback()
            return lambda: None
        self._callbacks.append(callback)

        def _dispose() -> None:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass

        return _dispose

    async def wait(self) -> None:
        """Block until cancellation is requested."""
        await self._event.wait()

    def _fire(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                _logger.exception("Cancellation callback %r raised", callback)


class CancellationTokenSource:
    """Creates a token and cancels it on demand."""

    def __init__(self) -> None:
        self._token = CancellationToken()

    @property
    def token(self) -> CancellationToken:
        return self._token

    def cancel(self) -> None:
        """Request cancellation.  Calling it more than once is harmless."""
        if not self._token.is_cancellation_requested:
            _logger.debug("Cancellation requested")
        self._token._fire()
