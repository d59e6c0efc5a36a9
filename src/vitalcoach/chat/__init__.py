"""Chat message storage and context assembly."""

from .context import ChatContextService, coaching_persona, resolve_coaching_mode
from .models import ChatMessage
from .store import MessageStore

__all__ = [
    "ChatContextService",
    "ChatMessage",
    "MessageStore",
    "coaching_persona",
    "resolve_coaching_mode",
]
