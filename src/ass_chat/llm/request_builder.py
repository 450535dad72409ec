"""Build chat-completion requests from config and conversation state."""

from __future__ import annotations

import json
from typing import Sequence

from ass_chat.config import AssConfig
from ass_chat.types import ChatRequest, Message, RequestDescriptor


def build_headers(api_key: str) -> dict[str, str]:
    """Content-type always; bearer auth only when *api_key* is non-empty."""
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


def build_request(
    config: AssConfig,
    messages: Sequence[Message],
    stream: bool = True,
) -> RequestDescriptor:
    """Assemble the POST for *messages*.  Performs no I/O."""
    request = ChatRequest(model=config.model, messages=list(messages), stream=stream)
    return RequestDescriptor(
        url=config.endpoint,
        headers=build_headers(config.api_key),
        body=json.dumps(request.to_payload()),
        streaming=stream,
    )
