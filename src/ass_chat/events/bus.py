"""Async pub/sub EventBus that keeps chat internals apart from the front end.

Event names are namespaced (``chat.started``, ``auth.sessions_changed``), so
a handler can subscribe to one event, to a whole namespace with ``"chat.*"``,
or to everything with ``"*"``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable

from ass_chat.types import ChatEvent, EventType

_logger = logging.getLogger(__name__)

_WILDCARD = "*"
_NAMESPACE_SUFFIX = ".*"

# Handlers are sync or async callables taking a ChatEvent
Handler = Callable[[ChatEvent], Any]


def namespace(event_type: EventType | str) -> str:
    """``"chat"`` for ``chat.done``; the whole name when it has no dot."""
    name = event_type.value if isinstance(event_type, EventType) else str(event_type)
    return name.split(".", 1)[0]


def _pattern(event_type: EventType | str) -> str:
    if isinstance(event_type, EventType):
        return event_type.value
    pattern = str(event_type)
    if pattern != _WILDCARD and not pattern.endswith(_NAMESPACE_SUFFIX):
        # Plain names must be real event types
        EventType(pattern)
    return pattern


class EventBus:
    """Lightweight async pub/sub event bus.

    ``emit()`` fans out to exact, namespace and wildcard handlers
    concurrently; a failing handler is logged and never reaches the emitter.
    """

    def __init__(self, max_history: int = 200) -> None:
        self._handlers: dict[str, list[Handler]] = {}
        self._history: list[ChatEvent] = []
        self._max_history = max_history

    def subscribe(
        self, event_type: EventType | str, handler: Handler,
    ) -> Callable[[], None]:
        """Register *handler* and return a callable that unregisters it.

        *event_type* is an :class:`EventType`, its string value, a namespace
        pattern such as ``"auth.*"``, or ``"*"``.  Unknown plain names raise
        ``ValueError``.
        """
        pattern = _pattern(event_type)
        self._handlers.setdefault(pattern, []).append(handler)
        return lambda: self.unsubscribe(pattern, handler)

    def unsubscribe(self, event_type: EventType | str, handler: Handler) -> None:
        """Remove *handler*; unknown handlers are ignored."""
        handlers = self._handlers.get(_pattern(event_type), [])
        if handler in handlers:
            handlers.remove(handler)

    async def emit(self, event: ChatEvent) -> None:
        """Record *event* and deliver it to every matching handler."""
        self._history.append(event)
        if len(self._history) > self._max_history:
            self._history = self._history[-self._max_history:]

        handlers = self._matching(event.type)
        if not handlers:
            return
        await asyncio.gather(
            *(self._call_handler(h, event) for h in handlers),
            return_exceptions=True,
        )

    @property
    def history(self) -> list[ChatEvent]:
        """Return a copy of the event history."""
        return list(self._history)

    def history_for(self, ns: str) -> list[ChatEvent]:
        """Recorded events of one namespace, e.g. ``"auth"``."""
        return [e for e in self._history if namespace(e.type) == ns]

    def clear(self) -> None:
        self._handlers.clear()
        self._history.clear()

    def _matching(self, event_type: EventType) -> list[Handler]:
        handlers = list(self._handlers.get(event_type.value, []))
        handlers.extend(self._handlers.get(namespace(event_type) + _NAMESPACE_SUFFIX, []))
        handlers.extend(self._handlers.get(_WILDCARD, []))
        return handlers

    @staticmethod
    async def _call_handler(handler: Handler, event: ChatEvent) -> None:
        try:
            result = handler(event)
            if inspect.isawaitable(result):
                await result
        except Exception:
            _logger.exception(
                "EventBus handler %s raised for event %s",
                getattr(handler, "__name__", handler),
                event.type.value,
            )
