"""Pydantic models for the domain and the HTTP API.

Provides type safety, validation, and automatic OpenAPI documentation.

Modules:
    - domain: Question, UploadTask, ChatSession and friends
    - schemas: Request/response payloads for the API
"""

from smartstudy.models.domain import (
    ChatMessage,
    ChatOptions,
    ChatRole,
    ChatSession,
    Difficulty,
    ExamSnapshot,
    ExtractedQuestion,
    ExtractionResult,
    GenerationPhase,
    GenerationState,
    GenerationUpdate,
    History,
    HistoryEntry,
    ImageUpload,
    Question,
    QuestionType,
    UploadStatus,
    UploadTask,
)

__all__ = [
    "ChatMessage",
    "ChatOptions",
    "ChatRole",
    "ChatSession",
    "Difficulty",
    "ExamSnapshot",
    "ExtractedQuestion",
    "ExtractionResult",
    "GenerationPhase",
    "GenerationState",
    "GenerationUpdate",
    "History",
    "HistoryEntry",
    "ImageUpload",
    "Question",
    "QuestionType",
    "UploadStatus",
    "UploadTask",
]
