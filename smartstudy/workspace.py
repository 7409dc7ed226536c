"""Wires the question bank, upload queue and chat store around one gateway."""

import logging

from smartstudy.agent.agno_gateway import get_gateway
from smartstudy.agent.gateway import AssistantGateway
from smartstudy.chat.config import ChatConfig
from smartstudy.chat.session_store import ChatSessionStore
from smartstudy.ingestion.upload_queue import UploadQueueManager
from smartstudy.models.domain import ExamSnapshot
from smartstudy.questions.collection import ExamSelection, QuestionCollection

logger = logging.getLogger(__name__)


class StudyWorkspace:
    """All in-memory state of one SmartStudy user.

    Attributes:
        questions: Question bank shared by ingestion and chat.
        exam: Exam subset mirrored on question edits and deletions.
        uploads: Background image extraction queue.
        chat: Tutor sessions.
    """

    def __init__(
        self,
        gateway: AssistantGateway,
        chat_config: ChatConfig | None = None,
        saved_exam: ExamSnapshot | None = None,
    ) -> None:
        self.gateway = gateway
        self.exam = ExamSelection()
        if saved_exam is not None:
            self.exam.load(saved_exam)
        self.questions = QuestionCollection(exam=self.exam)
        self.uploads = UploadQueueManager(gateway, self.questions)
        self.chat = ChatSessionStore(gateway, self.questions, config=chat_config)

    async def start(self) -> None:
        """Start background processing."""
        self.uploads.start()

    async def stop(self) -> None:
        """Stop background processing."""
        await self.uploads.stop()


# Module-level singleton instance
_workspace: StudyWorkspace | None = None


def get_workspace() -> StudyWorkspace:
    """Get or create the global workspace backed by the Agno gateway.

    Returns:
        The StudyWorkspace instance.
    """
    global _workspace
    if _workspace is None:
        _workspace = StudyWorkspace(get_gateway())
        logger.info("Initialized study workspace")
    return _workspace
