"""Exceptions raised by the chat client."""

from __future__ import annotations


class ChatError(Exception):
    """Base class for failures that end the current chat request."""


class BackendStatusError(ChatError):
    """The backend answered with a non-2xx status."""

    def __init__(self, status_code: int, reason: str = "") -> None:
        self.status_code = status_code
        self.reason = reason
        super().__init__(f"API error: {status_code} {reason}".rstrip())


class BackendConnectionError(ChatError):
    """The backend could not be reached or the connection broke mid-read."""


class MissingBodyError(ChatError):
    """The backend returned a response without a readable body."""

    def __init__(self, message: str = "No response body") -> None:
        super().__init__(message)
