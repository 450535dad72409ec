"""In-memory authentication session provider."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Sequence

from ass_chat.events.bus import EventBus
from ass_chat.types import ChatEvent, EventType

_logger = logging.getLogger(__name__)

PROVIDER_ID = "ass-provider"
PROVIDER_LABEL = "Ass"


@dataclass(frozen=True)
class SessionAccount:
    id: str
    label: str


@dataclass(frozen=True)
class AuthenticationSession:
    id: str
    access_token: str
    account: SessionAccount
    scopes: tuple[str, ...] = ()


@dataclass
class SessionsChange:
    added: list[AuthenticationSession] = field(default_factory=list)
    removed: list[AuthenticationSession] = field(default_factory=list)
    changed: list[AuthenticationSession] = field(default_factory=list)


class AuthenticationProvider:
    """Single-account provider; sessions live only as long as the process.

    Every add or remove is published on the event bus as
    ``auth.sessions_changed`` with a :class:`SessionsChange` payload.
    """

    supports_multiple_accounts = False

    def __init__(self, event_bus: EventBus | None = None) -> None:
        self._event_bus = event_bus or EventBus()
        self._sessions: list[AuthenticationSession] = []

    async def get_sessions(
        self, scopes: Sequence[str] | None = None,
    ) -> list[AuthenticationSession]:
        return list(self._sessions)

    async def create_session(self, scopes: Sequence[str]) -> AuthenticationSession:
        session = AuthenticationSession(
            id=f"ass-session-{int(time.time() * 1000)}",
            access_token="ass-token",
            account=SessionAccount(id="ass-user", label="Ass User"),
        )
        self._sessions.append(session)
        _logger.info("Created session %s", session.id)
        await self._fire(SessionsChange(added=[session]))
        return session

    async def remove_session(self, session_id: str) -> None:
        for index, session in enumerate(self._sessions):
            if session.id == session_id:
                del self._sessions[index]
                _logger.info("Removed session %s", session_id)
                await self._fire(SessionsChange(removed=[session]))
                return

    async def _fire(self, change: SessionsChange) -> None:
        await self._event_bus.emit(ChatEvent(
            type=EventType.AUTH_SESSIONS_CHANGED,
            data={"provider": PROVIDER_ID, "change": change},
        ))
