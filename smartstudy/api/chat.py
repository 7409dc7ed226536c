"""Chat session endpoints with Server-Sent Events streaming.

The store generates replies in the background; the SSE endpoint relays the
placeholder's growth as content deltas and ends with a done chunk.
"""

import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse

from smartstudy.chat.session_store import Generation
from smartstudy.errors import GenerationInProgress, SessionNotFound
from smartstudy.models.domain import ChatSession, GenerationPhase
from smartstudy.models.schemas import (
    ChatRequest,
    GenerationStarted,
    SessionCreateRequest,
    SessionDetail,
    SessionSummary,
    StreamChunk,
    StreamStatus,
    StudyGuideRequest,
)
from smartstudy.workspace import StudyWorkspace, get_workspace

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


def _summary(session: ChatSession, active_id: str | None) -> SessionSummary:
    return SessionSummary(
        id=session.id,
        title=session.title,
        message_count=len(session.messages),
        updated_at=session.updated_at,
        active=session.id == active_id,
    )


def _session_not_found(e: SessionNotFound) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


def _busy(e: GenerationInProgress) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


def _sse(chunk: StreamChunk) -> str:
    return f"data: {chunk.model_dump_json()}\n\n"


async def _relay(generation: Generation) -> AsyncGenerator[str]:
    """Translate placeholder updates into SSE chunks.

    Yields:
        `data:` lines; the last one has done=true.
    """
    ids = {"session_id": generation.session_id, "message_id": generation.message_id}
    yield _sse(StreamChunk(content="", done=False, status=StreamStatus.RECEIVED, **ids))

    sent = 0
    async for update in generation.updates():
        if update.phase is GenerationPhase.STREAMING:
            delta = update.content[sent:]
            sent = len(update.content)
            if delta:
                yield _sse(
                    StreamChunk(content=delta, done=False, status=StreamStatus.GENERATING, **ids)
                )
        elif update.phase is GenerationPhase.ERRORED:
            yield _sse(
                StreamChunk(content="", done=True, status=StreamStatus.ERROR, error=update.content, **ids)
            )
            return
        else:
            yield _sse(StreamChunk(content="", done=True, status=StreamStatus.COMPLETE, **ids))
            return


@router.post("/sessions", response_model=SessionSummary, status_code=status.HTTP_201_CREATED)
async def create_session(
    request: SessionCreateRequest | None = None,
    workspace: StudyWorkspace = Depends(get_workspace),
) -> SessionSummary:
    """Create a session seeded with the welcome message and make it active."""
    session_id = workspace.chat.create_session(request.title_hint if request else None)
    return _summary(workspace.chat.get_session(session_id), workspace.chat.active_session_id)


@router.get("/sessions", response_model=list[SessionSummary])
async def list_sessions(workspace: StudyWorkspace = Depends(get_workspace)) -> list[SessionSummary]:
    """List sessions, newest first."""
    active_id = workspace.chat.active_session_id
    return [_summary(s, active_id) for s in workspace.chat.list_sessions()]


@router.get("/sessions/{session_id}", response_model=SessionDetail)
async def get_session(
    session_id: str,
    workspace: StudyWorkspace = Depends(get_workspace),
) -> SessionDetail:
    """Return a session with its full message log."""
    try:
        session = workspace.chat.get_session(session_id)
    except SessionNotFound as e:
        raise _session_not_found(e) from e
    summary = _summary(session, workspace.chat.active_session_id)
    return SessionDetail(**summary.model_dump(), messages=session.messages)


@router.post("/sessions/{session_id}/activate", response_model=SessionSummary)
async def activate_session(
    session_id: str,
    workspace: StudyWorkspace = Depends(get_workspace),
) -> SessionSummary:
    """Switch the active session."""
    try:
        workspace.chat.switch_active(session_id)
    except SessionNotFound as e:
        raise _session_not_found(e) from e
    return _summary(workspace.chat.get_session(session_id), session_id)


@router.post("/chat/stream")
async def chat_stream(
    request: ChatRequest,
    workspace: StudyWorkspace = Depends(get_workspace),
) -> StreamingResponse:
    """Send a message and stream the tutor's reply as Server-Sent Events.

    Raises:
        404: Unknown session.
        409: Another reply is still generating.
        422: Empty message.
    """
    try:
        generation = workspace.chat.send_message(
            request.message,
            session_id=request.session_id,
            attachment=request.attachment,
            use_web_search=request.use_web_search,
            use_knowledge_base=request.use_knowledge_base,
        )
    except SessionNotFound as e:
        raise _session_not_found(e) from e
    except GenerationInProgress as e:
        raise _busy(e) from e

    return StreamingResponse(
        _relay(generation),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post(
    "/chat/study-guide",
    response_model=GenerationStarted,
    status_code=status.HTTP_202_ACCEPTED,
)
async def study_guide(
    request: StudyGuideRequest,
    workspace: StudyWorkspace = Depends(get_workspace),
) -> GenerationStarted:
    """Start a Q&A study guide for the given questions in a new session.

    Raises:
        404: Unknown question id.
        409: Another reply is still generating.
    """
    questions = []
    for question_id in request.question_ids:
        question = workspace.questions.get(question_id)
        if question is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Question not found: {question_id}",
            )
        questions.append(question)

    try:
        generation = workspace.chat.generate_study_guide(questions)
    except GenerationInProgress as e:
        raise _busy(e) from e
    return GenerationStarted(session_id=generation.session_id, message_id=generation.message_id)
