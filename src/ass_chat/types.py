"""Shared data types for Ass Chat."""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from typing import Any, Literal

Role = Literal["system", "user", "assistant"]


# ---------------------------------------------------------------------------
# Wire types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Message:
    """One chat message.  Order within a conversation is significant."""

    role: Role
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class ChatRequest:
    """Body of a chat completion call."""

    model: str
    messages: list[Message]
    stream: bool = True

    def to_payload(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [m.to_dict() for m in self.messages],
            "stream": self.stream,
        }


@dataclass(frozen=True)
class RequestDescriptor:
    """Everything needed to send a request, built without any I/O."""

    url: str
    headers: dict[str, str]
    body: str
    streaming: bool


# ---------------------------------------------------------------------------
# Chat result types
# ---------------------------------------------------------------------------

@dataclass
class ChatErrorDetails:
    message: str


@dataclass
class ChatResult:
    """Outcome of one chat request as seen by the front end."""

    metadata: dict[str, Any] = field(default_factory=dict)
    error_details: ChatErrorDetails | None = None

    @property
    def failed(self) -> bool:
        return self.error_details is not None


@dataclass(frozen=True)
class ChatFollowup:
    prompt: str
    label: str = ""


# ---------------------------------------------------------------------------
# Event types
# ---------------------------------------------------------------------------

class EventType(enum.Enum):
    """Event types emitted on the EventBus."""

    # Chat lifecycle
    CHAT_STARTED = "chat.started"
    CHAT_DONE = "chat.done"
    CHAT_ERROR = "chat.error"
    CHAT_CANCELLED = "chat.cancelled"

    # Authentication
    AUTH_SESSIONS_CHANGED = "auth.sessions_changed"


@dataclass
class ChatEvent:
    """Event emitted via the EventBus."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
