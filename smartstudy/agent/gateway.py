"""Capability interface for the generative-AI backend.

The ingestion queue and the chat store only depend on this protocol, so
tests can drive them with scripted stand-ins.
"""

import asyncio
from collections.abc import AsyncIterator, Sequence
from typing import Protocol

from smartstudy.models.domain import ChatOptions, ExtractedQuestion, HistoryEntry, Question


class AssistantGateway(Protocol):
    """Structured extraction plus single-shot and streaming chat."""

    async def extract(self, image: bytes, mime_type: str = "image/png") -> list[ExtractedQuestion]:
        """Extract exam questions from an image.

        Raises:
            ExtractionError: On network or model failure.
        """
        ...

    async def chat_complete(
        self,
        history: Sequence[HistoryEntry],
        message: str,
        context: Sequence[Question],
        options: ChatOptions,
    ) -> str:
        """Return a complete tutor reply.

        Raises:
            GatewayError: On network or model failure.
        """
        ...

    def chat_stream(
        self,
        history: Sequence[HistoryEntry],
        message: str,
        context: Sequence[Question],
        options: ChatOptions,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncIterator[str]:
        """Stream a tutor reply as text fragments.

        The iterator is finite and cannot be restarted. It stops early once
        `cancel_event` is set.

        Raises:
            GatewayError: On network or model failure.
        """
        ...
