"""Question bank and exam selection endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from smartstudy.errors import ValidationError
from smartstudy.models.domain import ExamSnapshot, Question
from smartstudy.models.schemas import (
    ExamOrderRequest,
    ExamQuestionsRequest,
    QuestionImportRequest,
    QuestionUpdate,
)
from smartstudy.parsing.question_payload import import_question_payload
from smartstudy.workspace import StudyWorkspace, get_workspace

logger = logging.getLogger(__name__)

router = APIRouter(tags=["questions"])


def _not_found(question_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Question not found: {question_id}",
    )


@router.get("/questions", response_model=list[Question])
async def list_questions(workspace: StudyWorkspace = Depends(get_workspace)) -> list[Question]:
    """List the question bank in insertion order."""
    return workspace.questions.snapshot()


@router.post("/questions/import", response_model=list[Question], status_code=status.HTTP_201_CREATED)
async def import_questions(
    request: QuestionImportRequest,
    workspace: StudyWorkspace = Depends(get_workspace),
) -> list[Question]:
    """Import questions from a decoded QR payload.

    Raises:
        422: Payload is not a non-empty JSON array of questions.
    """
    try:
        return import_question_payload(workspace.questions, request.payload)
    except ValidationError as e:
        logger.warning(f"Rejected question payload: {e}")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail=str(e),
        ) from e


@router.patch("/questions/{question_id}", response_model=Question)
async def update_question(
    question_id: str,
    request: QuestionUpdate,
    workspace: StudyWorkspace = Depends(get_workspace),
) -> Question:
    """Edit a question; the exam copy is updated too."""
    updated = workspace.questions.update(question_id, **request.model_dump(exclude_unset=True))
    if updated is None:
        raise _not_found(question_id)
    return updated


@router.delete("/questions/{question_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_question(
    question_id: str,
    workspace: StudyWorkspace = Depends(get_workspace),
) -> None:
    """Delete a question from the bank and the exam."""
    if not workspace.questions.delete(question_id):
        raise _not_found(question_id)


@router.post("/questions/toggle-all", response_model=list[Question])
async def toggle_all(workspace: StudyWorkspace = Depends(get_workspace)) -> list[Question]:
    """Select every question, or clear the selection if all are selected."""
    workspace.questions.toggle_all()
    return workspace.questions.snapshot()


@router.post("/questions/{question_id}/toggle", response_model=Question)
async def toggle_question(
    question_id: str,
    workspace: StudyWorkspace = Depends(get_workspace),
) -> Question:
    """Flip a question's selection flag."""
    question = workspace.questions.toggle_selection(question_id)
    if question is None:
        raise _not_found(question_id)
    return question


@router.get("/exam", response_model=ExamSnapshot)
async def get_exam(workspace: StudyWorkspace = Depends(get_workspace)) -> ExamSnapshot:
    """Return the exam title and its ordered questions."""
    return workspace.exam.snapshot()


@router.post("/exam/questions", response_model=ExamSnapshot)
async def add_exam_questions(
    request: ExamQuestionsRequest,
    workspace: StudyWorkspace = Depends(get_workspace),
) -> ExamSnapshot:
    """Add bank questions to the exam, skipping ones already in it."""
    questions = []
    for question_id in request.question_ids:
        question = workspace.questions.get(question_id)
        if question is None:
            raise _not_found(question_id)
        questions.append(question)
    workspace.exam.add_many(questions)
    return workspace.exam.snapshot()


@router.delete("/exam/questions/{question_id}", response_model=ExamSnapshot)
async def remove_exam_question(
    question_id: str,
    workspace: StudyWorkspace = Depends(get_workspace),
) -> ExamSnapshot:
    """Take a question out of the exam; it stays in the bank."""
    if not workspace.exam.remove(question_id):
        raise _not_found(question_id)
    return workspace.exam.snapshot()


@router.put("/exam/order", response_model=ExamSnapshot)
async def reorder_exam(
    request: ExamOrderRequest,
    workspace: StudyWorkspace = Depends(get_workspace),
) -> ExamSnapshot:
    """Reorder the exam.

    Raises:
        400: The ids are not exactly the exam's questions.
    """
    try:
        workspace.exam.reorder(request.question_ids)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e
    return workspace.exam.snapshot()
