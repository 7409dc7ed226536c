"""Tutor conversations.

Responsibilities:
    - Session creation, switching and titling
    - History snapshots taken before each new turn
    - Optimistic user/placeholder insertion and streamed reply accumulation
    - Single in-flight generation with timeout and cancellation
"""

from smartstudy.chat.config import ChatConfig, get_chat_config
from smartstudy.chat.session_store import ChatSessionStore, Generation

__all__ = ["ChatConfig", "ChatSessionStore", "Generation", "get_chat_config"]
