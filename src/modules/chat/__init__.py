"""Chat module.

Turns a prompt plus conversation history into transport-ready replies:
- Completion through the provider fallback pipeline
- Splitting long answers into size-limited, fence-balanced segments
- User-facing failure messages
"""

from src.modules.chat.history import build_history
from src.modules.chat.schemas import ChatReply
from src.modules.chat.service import ChatService, describe_failure
from src.modules.chat.splitter import MESSAGE_MAX_CHARS, split_message

__all__ = [
    "MESSAGE_MAX_CHARS",
    "ChatReply",
    "ChatService",
    "build_history",
    "describe_failure",
    "split_message",
]
