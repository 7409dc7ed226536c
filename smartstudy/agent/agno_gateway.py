"""Agno-backed assistant gateway for question extraction and tutoring.

Wraps Agno's Agent with:
- Structured image extraction into ExtractedQuestion records
- Tutor replies built from an explicit history snapshot
- Optional web search tools and question-bank context
- Typed errors instead of user-facing fallback text

The gateway keeps no conversation state of its own. Every call receives the
full prior history, so the chat store stays the single owner of sessions.
"""

import asyncio
import base64
import binascii
import logging
from collections.abc import AsyncIterator, Sequence

from agno.agent import Agent
from agno.media import Image
from agno.models.message import Message
from agno.models.openai import OpenAIChat
from agno.run.agent import RunContentEvent, RunErrorEvent

from smartstudy.agent.config import GatewayConfig, get_gateway_config
from smartstudy.agent.prompts import EXTRACTION_PROMPT, build_tutor_instructions
from smartstudy.errors import ExtractionError, GatewayError
from smartstudy.models.domain import (
    ChatOptions,
    ChatRole,
    ExtractedQuestion,
    ExtractionResult,
    HistoryEntry,
    Question,
)

logger = logging.getLogger(__name__)

# Agno/OpenAI call the model side of the conversation "assistant"
_AGNO_ROLES = {ChatRole.USER: "user", ChatRole.MODEL: "assistant"}


def _image_from_base64(data: str | None) -> list[Image] | None:
    """Decode an attachment into an Agno image list."""
    if not data:
        return None
    try:
        return [Image(content=base64.b64decode(data))]
    except (binascii.Error, ValueError) as e:
        raise GatewayError(f"Invalid image attachment: {e}") from e


def build_messages(
    history: Sequence[HistoryEntry],
    message: str,
    attachment: str | None = None,
) -> list[Message]:
    """Convert a history snapshot plus the new prompt into Agno messages.

    Turns without text or image (e.g. a reply that never arrived) are dropped.
    """
    messages = [
        Message(
            role=_AGNO_ROLES[entry.role],
            content=entry.content,
            images=_image_from_base64(entry.attachment),
        )
        for entry in history
        if entry.content or entry.attachment
    ]
    messages.append(
        Message(role="user", content=message, images=_image_from_base64(attachment))
    )
    return messages


class AgnoGateway:
    """AssistantGateway implementation on top of Agno agents."""

    def __init__(self, config: GatewayConfig | None = None) -> None:
        """Initialize the gateway.

        Args:
            config: Optional gateway configuration.
                    Loads from environment if not provided.
        """
        self._config = config or get_gateway_config()
        self._extractor = self._create_extraction_agent()

    def _create_model(self, temperature: float) -> OpenAIChat:
        """Create the OpenAI(-compatible) chat model."""
        return OpenAIChat(
            id=self._config.model_name,
            api_key=self._config.api_key,
            base_url=self._config.base_url,
            temperature=temperature,
            max_tokens=self._config.max_tokens,
        )

    def _create_extraction_agent(self) -> Agent:
        """Create the agent that turns exam images into structured questions.

        Returns:
            Agent constrained to the ExtractionResult output schema.
        """
        return Agent(
            model=self._create_model(self._config.extraction_temperature),
            description="Extracts printed exam questions from scanned images.",
            output_schema=ExtractionResult,
        )

    def _create_tutor_agent(self, context: Sequence[Question], options: ChatOptions) -> Agent:
        """Create a tutor agent for one reply.

        System instructions depend on the question bank and tools on the
        web-search switch, so the agent is built per request.
        """
        tools = []
        if options.use_web_search:
            from agno.tools.duckduckgo import DuckDuckGoTools

            tools.append(DuckDuckGoTools())

        return Agent(
            model=self._create_model(self._config.temperature),
            instructions=build_tutor_instructions(context, options.use_knowledge_base),
            tools=tools,
            markdown=True,
        )

    async def extract(self, image: bytes, mime_type: str = "image/png") -> list[ExtractedQuestion]:
        """Extract exam questions from an image.

        Args:
            image: Raw image bytes.
            mime_type: Image MIME type, e.g. image/png.

        Returns:
            Extracted questions in reading order.

        Raises:
            ExtractionError: If the model call fails or returns no structured output.
        """
        try:
            response = await self._extractor.arun(
                EXTRACTION_PROMPT,
                images=[Image(content=image, format=mime_type.rsplit("/", 1)[-1])],
            )
        except Exception as e:
            logger.error(f"OCR extraction failed: {e}")
            raise ExtractionError("Failed to recognize questions in the image.") from e

        result = response.content
        if not isinstance(result, ExtractionResult):
            logger.error(f"Extraction returned unstructured output: {type(result).__name__}")
            raise ExtractionError("Failed to recognize questions in the image.")

        logger.info(f"Extracted {len(result.questions)} questions from image")
        return result.questions

    async def chat_complete(
        self,
        history: Sequence[HistoryEntry],
        message: str,
        context: Sequence[Question],
        options: ChatOptions,
    ) -> str:
        """Get a complete tutor reply.

        Non-streaming alternative for simpler use cases.

        Raises:
            GatewayError: If the model call fails or returns nothing.
        """
        messages = build_messages(history, message, options.attachment)
        agent = self._create_tutor_agent(context, options)
        try:
            response = await agent.arun(messages)
        except Exception as e:
            logger.error(f"Chat completion failed: {e}")
            raise GatewayError(f"Chat completion failed: {e}") from e

        if not isinstance(response.content, str) or not response.content:
            raise GatewayError("Chat completion returned no content")
        return response.content

    async def chat_stream(
        self,
        history: Sequence[HistoryEntry],
        message: str,
        context: Sequence[Question],
        options: ChatOptions,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncIterator[str]:
        """Stream a tutor reply.

        Agno emits several event types; only content deltas are yielded.

        Yields:
            Response text fragments as they arrive.

        Raises:
            GatewayError: If the run fails or reports an error event.
        """
        messages = build_messages(history, message, options.attachment)
        agent = self._create_tutor_agent(context, options)
        run_error: str | None = None

        try:
            async for event in agent.arun(messages, stream=True):
                if cancel_event is not None and cancel_event.is_set():
                    logger.info("Chat stream cancelled by caller")
                    return
                if isinstance(event, RunErrorEvent):
                    run_error = event.content or "Model run failed"
                    break
                if isinstance(event, RunContentEvent) and isinstance(event.content, str) and event.content:
                    yield event.content
        except Exception as e:
            logger.error(f"Chat stream failed: {e}")
            raise GatewayError(f"Chat stream failed: {e}") from e

        if run_error is not None:
            logger.error(f"Chat stream reported error: {run_error}")
            raise GatewayError(run_error)


# Module-level singleton instance
_gateway: AgnoGateway | None = None


def get_gateway() -> AgnoGateway:
    """Get or create the global gateway.

    Returns:
        The AgnoGateway instance.
    """
    global _gateway
    if _gateway is None:
        _gateway = AgnoGateway()
    return _gateway
