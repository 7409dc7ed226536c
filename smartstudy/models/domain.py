"""Domain entities for questions, upload tasks and chat sessions.

Entities are mutable pydantic models owned by exactly one store:
QuestionCollection owns Question, UploadQueueManager owns UploadTask,
ChatSessionStore owns ChatSession and its messages.
"""

import time
import uuid
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def new_id() -> str:
    """Return a fresh opaque identifier."""
    return str(uuid.uuid4())


class QuestionType(str, Enum):
    """Kinds of exam questions the extractor recognises."""

    CHOICE = "Multiple Choice"
    FILL = "Fill in the Blank"
    TEXT = "Short Answer"
    UNKNOWN = "Unknown"


class Difficulty(str, Enum):
    """Estimated difficulty of a question."""

    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


class ExtractedQuestion(BaseModel):
    """A question as returned by the gateway, before it joins the collection.

    Attributes:
        original_text: Printed question stem, sub-parts included.
        type: Question kind.
        options: Printed choices for multiple-choice questions.
        answer: Correct answer when visible or derivable.
        subject: Academic subject.
        difficulty: Estimated difficulty.
    """

    model_config = ConfigDict(populate_by_name=True)

    original_text: str = Field(
        ...,
        alias="originalText",
        description=(
            "The clean, printed text of the question stem. Exclude handwritten "
            "student answers, circles, ticks or grading marks. Use LaTeX for math. "
            "Keep all sub-parts (a, b, c) in this single field."
        ),
    )
    type: QuestionType = Field(QuestionType.UNKNOWN, description="The type of question.")
    options: list[str] | None = Field(
        None,
        description="Printed options for multiple choice; exclude handwritten marks.",
    )
    answer: str | None = Field(None, description="The correct answer, if visible or derivable.")
    subject: str = Field("General", description="Academic subject (Math, Physics, History, ...).")
    difficulty: Difficulty = Field(Difficulty.MEDIUM, description="Estimated difficulty level.")


class Question(ExtractedQuestion):
    """An item in the question bank.

    Attributes:
        id: Unique identifier within the collection.
        source: Where the question came from (file name, "QR Scan", "Manual").
        selected: Whether the user ticked it in the bank view.
    """

    id: str = Field(default_factory=new_id)
    source: str | None = None
    selected: bool = False


class ExtractionResult(BaseModel):
    """Wrapper for structured extraction output."""

    questions: list[ExtractedQuestion] = Field(default_factory=list)


class UploadStatus(str, Enum):
    """Lifecycle states of an upload task."""

    PENDING = "pending"
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class ImageUpload(BaseModel):
    """Raw image handed to the ingestion pipeline."""

    content: bytes = Field(..., repr=False)
    filename: str = "image.png"
    mime_type: str = "image/png"


class UploadTask(BaseModel):
    """One image awaiting or undergoing extraction.

    The image bytes are owned by the task and dropped when it is removed.
    `error` is only set while status is ERROR.
    """

    id: str = Field(default_factory=new_id)
    content: bytes = Field(default=b"", repr=False, exclude=True)
    filename: str = "image.png"
    mime_type: str = "image/png"
    status: UploadStatus = UploadStatus.PENDING
    error: str | None = None
    questions_added: int = 0
    created_at: float = Field(default_factory=time.time)


class ChatRole(str, Enum):
    """Speaker of a chat message."""

    USER = "user"
    MODEL = "model"


class ChatMessage(BaseModel):
    """One turn in a conversation.

    Model messages start empty and grow while a reply streams in.
    """

    id: str = Field(default_factory=new_id)
    role: ChatRole
    content: str = ""
    timestamp: float = Field(default_factory=time.time)
    attachment: str | None = Field(None, repr=False)


class ChatSession(BaseModel):
    """An ordered, titled conversation."""

    id: str = Field(default_factory=new_id)
    title: str
    messages: list[ChatMessage] = Field(default_factory=list)
    updated_at: float = Field(default_factory=time.time)


class HistoryEntry(BaseModel):
    """Immutable copy of a prior turn sent to the gateway as history."""

    model_config = ConfigDict(frozen=True)

    role: ChatRole
    content: str
    attachment: str | None = Field(None, repr=False)


History = tuple[HistoryEntry, ...]


class ChatOptions(BaseModel):
    """Per-request switches for a tutor reply."""

    model_config = ConfigDict(frozen=True)

    use_web_search: bool = False
    use_knowledge_base: bool = True
    attachment: str | None = Field(None, repr=False)


class GenerationPhase(str, Enum):
    """Phases of the single in-flight reply generation."""

    IDLE = "idle"
    AWAITING_SNAPSHOT = "awaiting_snapshot"
    STREAMING = "streaming"
    FINALIZED = "finalized"
    ERRORED = "errored"


class GenerationState(BaseModel):
    """Snapshot of the chat store's generation state machine."""

    phase: GenerationPhase = GenerationPhase.IDLE
    session_id: str | None = None
    message_id: str | None = None
    error: str | None = None

    @property
    def is_generating(self) -> bool:
        return self.phase in (GenerationPhase.AWAITING_SNAPSHOT, GenerationPhase.STREAMING)


class GenerationUpdate(BaseModel):
    """Content of the placeholder message after a state change."""

    phase: GenerationPhase
    content: str


class ExamSnapshot(BaseModel):
    """Saved exam: a title plus its ordered questions."""

    title: str = "Assessment Worksheet"
    questions: list[Question] = Field(default_factory=list)
