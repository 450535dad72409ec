"""Response turns, response parts, and the sinks that receive deltas."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, Union

from rich.console import Console


# ---------------------------------------------------------------------------
# Response parts
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MarkdownPart:
    """Rendered text.  The only part replayed into later requests."""

    value: str


@dataclass(frozen=True)
class ProgressPart:
    """Transient status line shown while a reply is in flight."""

    value: str


ResponsePart = Union[MarkdownPart, ProgressPart]


# ---------------------------------------------------------------------------
# History turns
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RequestTurn:
    prompt: str
    command: str | None = None


@dataclass(frozen=True)
class ResponseTurn:
    parts: tuple[ResponsePart, ...] = ()
    command: str | None = None

    def text(self) -> str:
        """Concatenated markdown parts; every other part is dropped."""
        return "".join(p.value for p in self.parts if isinstance(p, MarkdownPart))


HistoryTurn = Union[RequestTurn, ResponseTurn]


@dataclass
class ChatContext:
    """Prior turns of the conversation, oldest first."""

    history: list[HistoryTurn] = field(default_factory=list)


@dataclass(frozen=True)
class ChatPrompt:
    """The user's current input plus the slash command it was sent with."""

    prompt: str
    command: str | None = None


# ---------------------------------------------------------------------------
# Sinks
# ---------------------------------------------------------------------------

class ResponseStream(Protocol):
    """Append-only incremental text emitter."""

    def markdown(self, value: str) -> None: ...


class RecordingResponseStream:
    """Keeps every part it receives so it can become a ResponseTurn."""

    def __init__(self) -> None:
        self.parts: list[ResponsePart] = []

    def markdown(self, value: str) -> None:
        self.parts.append(MarkdownPart(value))

    def progress(self, value: str) -> None:
        self.parts.append(ProgressPart(value))

    def text(self) -> str:
        return "".join(p.value for p in self.parts if isinstance(p, MarkdownPart))

    def to_turn(self, command: str | None = None) -> ResponseTurn:
        return ResponseTurn(parts=tuple(self.parts), command=command)


class ConsoleResponseStream(RecordingResponseStream):
    """Prints deltas to a rich console as they arrive and records them."""

    def __init__(self, console: Console) -> None:
        super().__init__()
        self.console = console

    def markdown(self, value: str) -> None:
        super().markdown(value)
        self.console.print(value, end="", highlight=False, markup=False)

    def progress(self, value: str) -> None:
        super().progress(value)
        self.console.print(f"[dim]{value}[/dim]", end="\r")
