"""Pydantic models for API requests and responses."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from smartstudy.models.domain import ChatMessage, Difficulty, QuestionType, UploadStatus


class StreamStatus(str, Enum):
    """Status values for streaming updates."""

    RECEIVED = "received"
    GENERATING = "generating"
    COMPLETE = "complete"
    ERROR = "error"


class ChatRequest(BaseModel):
    """Request payload for the chat streaming endpoint.

    Attributes:
        message: User's question or prompt.
        session_id: Target session; the active one (or a new one) when omitted.
        attachment: Optional base64 image sent with the message.
        use_web_search: Let the tutor search the web.
        use_knowledge_base: Include the question bank as context.
    """

    message: str = Field(..., min_length=1)
    session_id: str | None = None
    attachment: str | None = None
    use_web_search: bool = False
    use_knowledge_base: bool = True

    @field_validator("message", mode="before")
    @classmethod
    def strip_message(cls, v: str) -> str:
        """Strip whitespace from message before validation."""
        if isinstance(v, str):
            return v.strip()
        return v


class StreamChunk(BaseModel):
    """A chunk of streamed response data.

    Attributes:
        content: The text added by this chunk.
        done: Whether this is the final chunk.
        status: Current processing status.
        session_id: Session the reply belongs to.
        message_id: Id of the model message being filled.
        error: Error message if something went wrong.
    """

    content: str
    done: bool
    status: StreamStatus | None = None
    session_id: str | None = None
    message_id: str | None = None
    error: str | None = None


class StudyGuideRequest(BaseModel):
    """Question ids to build a study guide from."""

    question_ids: list[str] = Field(..., min_length=1)


class GenerationStarted(BaseModel):
    """Identifies a reply that is being generated in the background."""

    session_id: str
    message_id: str


class UploadTaskResponse(BaseModel):
    """Public view of an upload task."""

    id: str
    filename: str
    status: UploadStatus
    error: str | None = None
    questions_added: int = 0


class EnqueueResponse(BaseModel):
    """Tasks created by an upload request."""

    task_ids: list[str]


class QuestionImportRequest(BaseModel):
    """Decoded QR payload: a JSON array of question records."""

    payload: str = Field(..., min_length=1)


class QuestionUpdate(BaseModel):
    """Editable question fields; omitted fields stay unchanged.

    `options`, `answer` and `source` may be cleared with null. The other
    fields are required on a question and reject null.
    """

    model_config = ConfigDict(populate_by_name=True)

    original_text: str | None = Field(None, alias="originalText", min_length=1)
    type: QuestionType | None = None
    options: list[str] | None = None
    answer: str | None = None
    subject: str | None = Field(None, min_length=1)
    difficulty: Difficulty | None = None
    source: str | None = None

    @field_validator("original_text", "type", "subject", "difficulty")
    @classmethod
    def reject_null(cls, v: object) -> object:
        """Reject an explicit null for a field every question must have."""
        if v is None:
            raise ValueError("Field cannot be null")
        return v



class ExamQuestionsRequest(BaseModel):
    """Question ids to add to the exam."""

    question_ids: list[str] = Field(..., min_length=1)


class ExamOrderRequest(BaseModel):
    """New order of the exam's question ids."""

    question_ids: list[str]


class SessionCreateRequest(BaseModel):
    """Optional title hint for a new session."""

    title_hint: str | None = None


class SessionSummary(BaseModel):
    """Session list entry."""

    id: str
    title: str
    message_count: int = Field(..., ge=0)
    updated_at: float
    active: bool = False


class SessionDetail(SessionSummary):
    """Session with its full message log."""

    messages: list[ChatMessage]


class SubjectCount(BaseModel):
    """Number of bank questions in one subject."""

    subject: str
    count: int = Field(..., ge=0)


class DashboardStats(BaseModel):
    """Overview of the question bank, the exam and upload activity.

    Attributes:
        total_questions: Questions in the bank.
        selected_questions: Questions currently ticked in the bank view.
        exam_questions: Questions in the exam selection.
        active_uploads: Uploads queued or being processed.
        recent_uploads: Latest uploads, newest first.
        top_subjects: Most common subjects, largest first.
    """

    total_questions: int
    selected_questions: int
    exam_questions: int
    active_uploads: int
    recent_uploads: list[UploadTaskResponse]
    top_subjects: list[SubjectCount]
