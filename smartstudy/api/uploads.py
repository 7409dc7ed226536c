"""Upload endpoints for the background image extraction queue.

Handles file validation, task creation and queue transitions.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, UploadFile, status

from smartstudy.errors import ExtractionError
from smartstudy.models.domain import ImageUpload, Question, UploadTask
from smartstudy.models.schemas import EnqueueResponse, UploadTaskResponse
from smartstudy.workspace import StudyWorkspace, get_workspace

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/uploads", tags=["uploads"])

MAX_UPLOAD_SIZE = 10 * 1024 * 1024  # 10MB
ALLOWED_IMAGE_TYPES = {"image/png", "image/jpeg", "image/webp", "image/gif", "image/heic"}


def _validate_image_type(file: UploadFile) -> str:
    """Validate that the upload is an image.

    Args:
        file: The uploaded file.

    Returns:
        The image MIME type.

    Raises:
        HTTPException: 400 if the file is not an accepted image.
    """
    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Filename is required",
        )

    content_type = (file.content_type or "").lower()
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Only image files are accepted ({file.filename})",
        )

    return content_type


async def _read_and_validate_size(file: UploadFile) -> bytes:
    """Read file content and validate size.

    Raises:
        HTTPException: 400 if empty, 413 if the file exceeds the size limit.
    """
    content = await file.read()

    if not content:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Empty file provided ({file.filename})",
        )

    if len(content) > MAX_UPLOAD_SIZE:
        size_mb = len(content) / (1024 * 1024)
        raise HTTPException(
            status_code=status.HTTP_413_CONTENT_TOO_LARGE,
            detail=f"File size ({size_mb:.1f}MB) exceeds maximum allowed (10MB)",
        )

    return content


async def _to_image(file: UploadFile) -> ImageUpload:
    mime_type = _validate_image_type(file)
    content = await _read_and_validate_size(file)
    return ImageUpload(content=content, filename=file.filename or "image", mime_type=mime_type)


def _to_response(task: UploadTask) -> UploadTaskResponse:
    return UploadTaskResponse(
        id=task.id,
        filename=task.filename,
        status=task.status,
        error=task.error,
        questions_added=task.questions_added,
    )


@router.post("", response_model=EnqueueResponse, status_code=status.HTTP_201_CREATED)
async def upload_images(
    files: list[UploadFile],
    queue: bool = False,
    workspace: StudyWorkspace = Depends(get_workspace),
) -> EnqueueResponse:
    """Add images to the upload list.

    Tasks start out pending; pass `queue=true` to queue them right away.

    Raises:
        400: Not an image, or empty.
        413: File exceeds 10MB limit.
    """
    images = [await _to_image(file) for file in files]
    task_ids = workspace.uploads.enqueue(images)
    if queue:
        for task_id in task_ids:
            workspace.uploads.mark_queued(task_id)
    return EnqueueResponse(task_ids=task_ids)


@router.get("", response_model=list[UploadTaskResponse])
async def list_uploads(workspace: StudyWorkspace = Depends(get_workspace)) -> list[UploadTaskResponse]:
    """List upload tasks in submission order."""
    return [_to_response(task) for task in workspace.uploads.list_tasks()]


@router.post("/queue", response_model=EnqueueResponse)
async def queue_all(workspace: StudyWorkspace = Depends(get_workspace)) -> EnqueueResponse:
    """Queue every pending upload."""
    return EnqueueResponse(task_ids=workspace.uploads.mark_all_pending_queued())


@router.post("/scan", response_model=list[Question])
async def scan_image(
    file: UploadFile,
    workspace: StudyWorkspace = Depends(get_workspace),
) -> list[Question]:
    """Extract questions from one image immediately, outside the queue.

    Raises:
        400/413: Invalid upload.
        502: Extraction failed.
    """
    image = await _to_image(file)
    try:
        return await workspace.uploads.scan_now(image)
    except ExtractionError as e:
        logger.warning(f"Immediate scan failed for {image.filename}: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(e),
        ) from e


def _require_task(workspace: StudyWorkspace, task_id: str) -> None:
    if workspace.uploads.get(task_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Upload not found: {task_id}",
        )


@router.post("/{task_id}/queue", response_model=UploadTaskResponse)
async def queue_upload(
    task_id: str,
    workspace: StudyWorkspace = Depends(get_workspace),
) -> UploadTaskResponse:
    """Queue one pending upload. Other statuses are left unchanged."""
    _require_task(workspace, task_id)
    workspace.uploads.mark_queued(task_id)
    return _to_response(workspace.uploads.get(task_id))


@router.post("/{task_id}/retry", response_model=UploadTaskResponse)
async def retry_upload(
    task_id: str,
    workspace: StudyWorkspace = Depends(get_workspace),
) -> UploadTaskResponse:
    """Re-queue a failed upload."""
    _require_task(workspace, task_id)
    workspace.uploads.retry(task_id)
    return _to_response(workspace.uploads.get(task_id))


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_upload(
    task_id: str,
    workspace: StudyWorkspace = Depends(get_workspace),
) -> None:
    """Remove an upload. Questions already extracted from it are kept."""
    if not workspace.uploads.remove(task_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Upload not found: {task_id}",
        )
