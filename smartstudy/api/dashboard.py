"""Dashboard overview endpoint."""

from fastapi import APIRouter, Depends

from smartstudy.models.schemas import DashboardStats, SubjectCount, UploadTaskResponse
from smartstudy.workspace import StudyWorkspace, get_workspace

router = APIRouter(tags=["dashboard"])

TOP_SUBJECTS = 5
RECENT_UPLOADS = 3


@router.get("/dashboard", response_model=DashboardStats)
async def dashboard(workspace: StudyWorkspace = Depends(get_workspace)) -> DashboardStats:
    """Summarize the question bank, the exam and upload activity."""
    return DashboardStats(
        total_questions=len(workspace.questions),
        selected_questions=len(workspace.questions.selected()),
        exam_questions=len(workspace.exam),
        active_uploads=workspace.uploads.active_count,
        recent_uploads=[
            UploadTaskResponse.model_validate(task, from_attributes=True)
            for task in workspace.uploads.recent_tasks(RECENT_UPLOADS)
        ],
        top_subjects=[
            SubjectCount(subject=subject, count=count)
            for subject, count in workspace.questions.subject_counts(TOP_SUBJECTS)
        ],
    )
