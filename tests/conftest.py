"""Pytest fixtures and shared test configuration.

Provides a scripted gateway plus the stores and API client built on it.

Fixtures:
    - gateway: FakeGateway with controllable extraction and streaming
    - questions: QuestionCollection attached to an ExamSelection
    - uploads: UploadQueueManager (worker stopped on teardown)
    - chat_store: ChatSessionStore with a short generation timeout
    - workspace / async_client: API client wired to the fake gateway
"""

import asyncio
from collections.abc import AsyncGenerator, AsyncIterator, Sequence
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from smartstudy.api.app import app
from smartstudy.chat.config import ChatConfig
from smartstudy.chat.session_store import ChatSessionStore
from smartstudy.ingestion.upload_queue import UploadQueueManager
from smartstudy.models.domain import ChatOptions, ExtractedQuestion, HistoryEntry, Question
from smartstudy.questions.collection import ExamSelection, QuestionCollection
from smartstudy.workspace import StudyWorkspace, get_workspace


class FakeGateway:
    """Scripted AssistantGateway.

    By default `extract` returns two questions named after the image bytes,
    and `chat_stream` yields `fragments`. Set the gates to hold calls open.
    """

    def __init__(self) -> None:
        self.extract_results: list[list[ExtractedQuestion] | Exception] = []
        self.extract_gate: asyncio.Event | None = None
        self.extract_calls: list[bytes] = []
        self.active_extractions = 0
        self.max_active_extractions = 0

        self.fragments: list[str] = ["Hello", ", ", "student!"]
        self.stream_error: Exception | None = None
        self.stream_gate: asyncio.Event | None = None
        self.complete_reply = "A complete answer."
        self.complete_error: Exception | None = None
        self.chat_calls: list[dict[str, Any]] = []

    async def extract(self, image: bytes, mime_type: str = "image/png") -> list[ExtractedQuestion]:
        self.extract_calls.append(image)
        self.active_extractions += 1
        self.max_active_extractions = max(self.max_active_extractions, self.active_extractions)
        try:
            if self.extract_gate is not None:
                await self.extract_gate.wait()
            await asyncio.sleep(0)
            if self.extract_results:
                result = self.extract_results.pop(0)
                if isinstance(result, Exception):
                    raise result
                return result
            name = image.decode()
            return [
                ExtractedQuestion(original_text=f"{name} Q1", subject="Math"),
                ExtractedQuestion(original_text=f"{name} Q2", subject="Math"),
            ]
        finally:
            self.active_extractions -= 1

    def _record(
        self,
        history: Sequence[HistoryEntry],
        message: str,
        context: Sequence[Question],
        options: ChatOptions,
    ) -> None:
        self.chat_calls.append(
            {"history": history, "message": message, "context": list(context), "options": options}
        )

    async def chat_complete(
        self,
        history: Sequence[HistoryEntry],
        message: str,
        context: Sequence[Question],
        options: ChatOptions,
    ) -> str:
        self._record(history, message, context, options)
        await asyncio.sleep(0)
        if self.complete_error is not None:
            raise self.complete_error
        return self.complete_reply

    async def chat_stream(
        self,
        history: Sequence[HistoryEntry],
        message: str,
        context: Sequence[Question],
        options: ChatOptions,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncIterator[str]:
        self._record(history, message, context, options)
        for fragment in self.fragments:
            if self.stream_gate is not None:
                await self.stream_gate.wait()
            await asyncio.sleep(0)
            if cancel_event is not None and cancel_event.is_set():
                return
            yield fragment
        if self.stream_error is not None:
            raise self.stream_error


async def settle(rounds: int = 20) -> None:
    """Give background tasks a few loop iterations."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def chat_config() -> ChatConfig:
    return ChatConfig(generation_timeout=2.0)


@pytest.fixture
def questions() -> QuestionCollection:
    return QuestionCollection(exam=ExamSelection())


@pytest.fixture
async def uploads(
    gateway: FakeGateway, questions: QuestionCollection
) -> AsyncGenerator[UploadQueueManager]:
    """Upload manager whose worker is stopped after the test."""
    manager = UploadQueueManager(gateway, questions)
    yield manager
    await manager.stop()


@pytest.fixture
def chat_store(
    gateway: FakeGateway, questions: QuestionCollection, chat_config: ChatConfig
) -> ChatSessionStore:
    return ChatSessionStore(gateway, questions, config=chat_config)


@pytest.fixture
async def workspace(
    gateway: FakeGateway, chat_config: ChatConfig
) -> AsyncGenerator[StudyWorkspace]:
    ws = StudyWorkspace(gateway, chat_config=chat_config)
    yield ws
    await ws.stop()


@pytest.fixture
async def async_client(workspace: StudyWorkspace) -> AsyncGenerator[AsyncClient]:
    """Create async HTTP client for API testing.

    Yields:
        AsyncClient whose requests hit the app wired to the fake gateway.
    """
    app.dependency_overrides[get_workspace] = lambda: workspace
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.pop(get_workspace, None)
