"""Rolling per-owner conversation windows and their persistence."""

from .history import ConversationHistory, ConversationState, LogEntry
from .context import ContextManager

__all__ = [
    "ConversationHistory",
    "ConversationState",
    "LogEntry",
    "ContextManager",
]
