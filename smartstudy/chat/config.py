"""Chat store configuration with environment variable loading."""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

WELCOME_MESSAGE = "Hello! I am your SmartStudy AI Tutor. How can I help you today?"
FALLBACK_MESSAGE = "I couldn't generate a response. Please try again."


class ChatConfig(BaseModel):
    """Configuration for the chat session store.

    Attributes:
        title_max_chars: Characters of the first message used as session title.
        generation_timeout: Seconds before an unfinished reply is abandoned.
        welcome_message: Seed model message of every new session.
        fallback_message: Reply text shown when generation fails.
        default_title: Title of sessions created without a hint.
    """

    title_max_chars: int = Field(default=30, ge=1, le=200)
    generation_timeout: float = Field(
        default_factory=lambda: float(os.getenv("CHAT_GENERATION_TIMEOUT", "120")),
        gt=0,
        description="Seconds before a streaming reply is abandoned",
    )
    welcome_message: str = WELCOME_MESSAGE
    fallback_message: str = FALLBACK_MESSAGE
    default_title: str = "New Chat"


def get_chat_config() -> ChatConfig:
    """Create chat configuration from environment."""
    return ChatConfig()
