"""Conversation orchestration for Ass Chat."""

from ass_chat.chat.participant import ChatParticipant, provide_followups
from ass_chat.chat.response import (
    ChatContext,
    ChatPrompt,
    ConsoleResponseStream,
    MarkdownPart,
    ProgressPart,
    RecordingResponseStream,
    RequestTurn,
    ResponseTurn,
)

__all__ = [
    "ChatContext",
    "ChatParticipant",
    "ChatPrompt",
    "ConsoleResponseStream",
    "MarkdownPart",
    "ProgressPart",
    "RecordingResponseStream",
    "RequestTurn",
    "ResponseTurn",
    "provide_followups",
]
