"""Event bus for Ass Chat."""

from ass_chat.events.bus import EventBus

__all__ = ["EventBus"]
