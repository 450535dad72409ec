"""Chat participant: turns one user request into a backend call.

    history → messages → command rewrite → client → stream

The participant owns no transport logic; it assembles the conversation,
hands it to the client, and converts any failure into a rendered
diagnostic plus a structured :class:`ChatResult`.
"""

from __future__ import annotations

import logging
from typing import Any

from ass_chat.cancellation import CancellationToken
from ass_chat.events.bus import EventBus
from ass_chat.llm.client import AsyncChatClient
from ass_chat.types import ChatErrorDetails, ChatEvent, ChatFollowup, ChatResult, EventType, Message

from .response import ChatContext, ChatPrompt, RequestTurn, ResponseStream, ResponseTurn

_logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are Ass, an AI programming assistant.
You are helpful, harmless, and honest.
You help users with coding tasks, answer questions, and provide explanations.
When providing code, use markdown code blocks with appropriate language tags.
Be concise and direct in your responses."""

# Commands that rewrite the prompt before it is sent
COMMAND_PREFIXES = {
    "explain": "Please explain the following:\n",
    "fix": "Please fix the issues in the following code:\n",
    "generate": "Please generate code for:\n",
}

HELP_LINES = (
    "# Ass Chat Help\n\n",
    "I am Ass, your AI programming assistant. I can help you with:\n\n",
    "- **@ass** - Ask any question\n",
    "- **@ass /explain** - Explain code or concepts\n",
    "- **@ass /fix** - Fix code issues\n",
    "- **@ass /generate** - Generate code\n",
    "- **@ass /help** - Show this help\n\n",
    "## Configuration\n\n",
    "Configure the backend in settings:\n",
    "- `ass.chat.apiEndpoint` - API endpoint URL\n",
    "- `ass.chat.apiKey` - API key (if required)\n",
    "- `ass.chat.model` - Model name\n",
)

ERROR_HINTS = (
    "Please check your configuration:\n",
    "1. Ensure your backend is running\n",
    "2. Check `ass.chat.apiEndpoint` setting\n",
    "3. Verify API key if required\n",
)

FOLLOWUP_PROMPTS = (
    "Can you explain more?",
    "Can you show an example?",
    "How can I improve this?",
)


def build_messages(context: ChatContext, user_prompt: str) -> list[Message]:
    """System prompt, replayed history, then the current user turn."""
    messages = [Message("system", SYSTEM_PROMPT)]
    for turn in context.history:
        if isinstance(turn, RequestTurn):
            messages.append(Message("user", turn.prompt))
        elif isinstance(turn, ResponseTurn):
            content = turn.text()
            if content:
                messages.append(Message("assistant", content))
    messages.append(Message("user", user_prompt))
    return messages


def rewrite_prompt(prompt: str, command: str | None) -> str:
    """Prepend the instruction for *command*; unknown commands pass through."""
    prefix = COMMAND_PREFIXES.get(command or "")
    return f"{prefix}{prompt}" if prefix else prompt


def render_help(stream: ResponseStream) -> None:
    for line in HELP_LINES:
        stream.markdown(line)


def provide_followups(result: ChatResult) -> list[ChatFollowup]:
    """Canned follow-ups, except after help."""
    if result.metadata.get("command") == "help":
        return []
    return [ChatFollowup(prompt=p) for p in FOLLOWUP_PROMPTS]


class ChatParticipant:
    """Handles chat requests against one client.

    Parameters
    ----------
    client:
        Client used for the streamed backend call.
    event_bus:
        Bus for lifecycle events (optional).
    """

    def __init__(
        self,
        client: AsyncChatClient,
        event_bus: EventBus | None = None,
    ) -> None:
        self._client = client
        self._event_bus = event_bus or EventBus()

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

    async def handle(
        self,
        request: ChatPrompt,
        context: ChatContext,
        stream: ResponseStream,
        token: CancellationToken | None = None,
    ) -> ChatResult:
        """Run one request.  Never raises for backend failures."""
        token = token or CancellationToken()

        if request.command == "help":
            render_help(stream)
            return ChatResult(metadata={"command": "help"})

        user_prompt = rewrite_prompt(request.prompt, request.command)
        messages = build_messages(context, user_prompt)

        await self._emit(EventType.CHAT_STARTED, {
            "command": request.command,
            "messages": len(messages),
        })

        try:
            await self._client.chat_stream(messages, stream, token)
        except Exception as e:
            _logger.warning("Chat request failed: %s", e)
            error_message = str(e) or "Unknown error"
            stream.markdown(f"\n\n**Error:** {error_message}\n\n")
            for hint in ERROR_HINTS:
                stream.markdown(hint)
            await self._emit(EventType.CHAT_ERROR, {"error": error_message})
            return ChatResult(
                metadata={"command": request.command},
                error_details=ChatErrorDetails(message=error_message),
            )

        done_type = (
            EventType.CHAT_CANCELLED if token.is_cancellation_requested
            else EventType.CHAT_DONE
        )
        await self._emit(done_type, {"command": request.command})
        return ChatResult(metadata={"command": request.command})

    async def _emit(self, event_type: EventType, data: dict[str, Any]) -> None:
        await self._event_bus.emit(ChatEvent(type=event_type, data=data))
