"""Background upload queue that drains images through the extraction gateway.

One worker coroutine pulls task ids from a FIFO queue in the order they were
queued and holds a single-slot semaphore for the duration of each gateway
call, so at most one extraction runs at any time. Extraction failures are
recorded on the task and never stop the worker.
"""

import asyncio
import contextlib
import logging
from collections.abc import Iterable

from smartstudy.agent.gateway import AssistantGateway
from smartstudy.errors import ExtractionError
from smartstudy.models.domain import ImageUpload, Question, UploadStatus, UploadTask
from smartstudy.questions.collection import QuestionCollection

logger = logging.getLogger(__name__)

EXTRACTION_FAILED = "Failed to extract"


class UploadQueueManager:
    """Owns upload tasks and the single-concurrency processing loop.

    Tasks start out PENDING and are only picked up once the user queues
    them. Queued tasks are processed one at a time, oldest first.
    """

    def __init__(self, gateway: AssistantGateway, questions: QuestionCollection) -> None:
        """Initialize the manager.

        Args:
            gateway: Extraction backend.
            questions: Sink for extracted questions.
        """
        self._gateway = gateway
        self._questions = questions
        self._tasks: dict[str, UploadTask] = {}
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._slot = asyncio.Semaphore(1)
        self._worker: asyncio.Task[None] | None = None

    # --- Read API ---

    def list_tasks(self) -> list[UploadTask]:
        """Return copies of all tasks in submission order."""
        return [task.model_copy() for task in self._tasks.values()]

    def get(self, task_id: str) -> UploadTask | None:
        task = self._tasks.get(task_id)
        return task.model_copy() if task is not None else None

    @property
    def active_count(self) -> int:
        """Number of tasks waiting for or undergoing extraction."""
        return sum(
            1
            for task in self._tasks.values()
            if task.status in (UploadStatus.QUEUED, UploadStatus.PROCESSING)
        )

    def recent_tasks(self, limit: int = 3) -> list[UploadTask]:
        """Return copies of the latest tasks, newest first."""
        return [task.model_copy() for task in reversed(self._tasks.values())][:limit]

    # --- User actions ---

    def enqueue(self, images: Iterable[ImageUpload]) -> list[str]:
        """Create a PENDING task per image.

        Returns:
            The new task ids, in submission order.
        """
        ids = []
        for image in images:
            task = UploadTask(
                content=image.content,
                filename=image.filename,
                mime_type=image.mime_type,
            )
            self._tasks[task.id] = task
            ids.append(task.id)
        logger.info(f"Enqueued {len(ids)} uploads")
        return ids

    def mark_queued(self, task_id: str) -> bool:
        """Queue a pending task for extraction. No-op for any other status."""
        task = self._tasks.get(task_id)
        if task is None or task.status is not UploadStatus.PENDING:
            return False
        self._submit(task)
        return True

    def mark_all_pending_queued(self) -> list[str]:
        """Queue every pending task, in submission order."""
        pending = [t for t in self._tasks.values() if t.status is UploadStatus.PENDING]
        for task in pending:
            self._submit(task)
        return [task.id for task in pending]

    def retry(self, task_id: str) -> bool:
        """Re-queue a failed task. No-op unless the task is in ERROR."""
        task = self._tasks.get(task_id)
        if task is None or task.status is not UploadStatus.ERROR:
            return False
        self._submit(task)
        return True

    def remove(self, task_id: str) -> bool:
        """Delete a task regardless of status and release its image.

        Questions already extracted from it stay in the collection.
        """
        task = self._tasks.pop(task_id, None)
        if task is None:
            return False
        task.content = b""
        logger.info(f"Removed upload {task_id} ({task.filename}, was {task.status.value})")
        return True

    async def scan_now(self, image: ImageUpload) -> list[Question]:
        """Extract one image immediately, outside the queue.

        Shares the extraction slot with the worker, so it waits for any
        running task to finish first.

        Raises:
            ExtractionError: If extraction fails.
        """
        async with self._slot:
            try:
                extracted = await self._gateway.extract(image.content, image.mime_type)
            except ExtractionError:
                raise
            except Exception as e:
                raise ExtractionError(EXTRACTION_FAILED) from e
        return self._questions.add_extracted(extracted, source=image.filename)

    # --- Worker lifecycle ---

    def start(self) -> None:
        """Start the worker if it is not running. Requires a running loop."""
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(
                self._run(), name="upload-queue-worker"
            )
            logger.debug("Upload queue worker started")

    async def stop(self) -> None:
        """Cancel the worker and wait for it to exit."""
        if self._worker is None:
            return
        self._worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._worker
        self._worker = None
        logger.debug("Upload queue worker stopped")

    async def drain(self) -> None:
        """Wait until every queued task has been processed.

        Returns early if the worker is not running or stops while waiting;
        tasks still queued then stay QUEUED until the next start().
        """
        worker = self._worker
        if worker is None or worker.done():
            return
        joined = asyncio.get_running_loop().create_task(self._queue.join())
        try:
            await asyncio.wait({joined, worker}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            joined.cancel()

    # --- Internals ---

    def _submit(self, task: UploadTask) -> None:
        self._set_status(task, UploadStatus.QUEUED)
        self._queue.put_nowait(task.id)
        try:
            self.start()
        except RuntimeError:
            # No running loop yet; start() is called again from the app lifespan
            logger.debug("Upload queued before event loop start")

    def _set_status(self, task: UploadTask, status: UploadStatus, error: str | None = None) -> None:
        task.status = status
        task.error = error if status is UploadStatus.ERROR else None
        logger.info(f"Upload {task.id} ({task.filename}) -> {status.value}")

    async def _run(self) -> None:
        while True:
            task_id = await self._queue.get()
            try:
                task = self._tasks.get(task_id)
                # Removed or no longer queued since it was submitted
                if task is None or task.status is not UploadStatus.QUEUED:
                    continue
                await self._process(task)
            finally:
                self._queue.task_done()

    async def _process(self, task: UploadTask) -> None:
        async with self._slot:
            self._set_status(task, UploadStatus.PROCESSING)
            try:
                extracted = await self._gateway.extract(task.content, task.mime_type)
            except ExtractionError as e:
                logger.warning(f"Scan failed for upload {task.id}: {e}")
                self._set_status(task, UploadStatus.ERROR, str(e) or EXTRACTION_FAILED)
                return
            except asyncio.CancelledError:
                self._set_status(task, UploadStatus.ERROR, "Processing interrupted")
                raise
            except Exception:
                logger.exception(f"Unexpected error while scanning upload {task.id}")
                self._set_status(task, UploadStatus.ERROR, EXTRACTION_FAILED)
                return

            added = self._questions.add_extracted(extracted, source=task.filename)
            task.questions_added = len(added)
            self._set_status(task, UploadStatus.COMPLETED)
