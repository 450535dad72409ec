"""Chat-completion client, request builder and stream decoder."""

from ass_chat.llm.client import AsyncChatClient
from ass_chat.llm.decoder import StreamDecoder, decode_stream
from ass_chat.llm.request_builder import build_headers, build_request

__all__ = [
    "AsyncChatClient",
    "StreamDecoder",
    "build_headers",
    "build_request",
    "decode_stream",
]
