"""Multi-session tutor conversations with streamed replies.

Each send takes an immutable snapshot of the session's prior turns, then
optimistically appends the user message and an empty model placeholder.
The reply is produced in a background task; every streamed fragment
replaces the placeholder content with the text accumulated so far.

Only one reply may be generating per store. Failures, timeouts and
cancellation all end with the fallback text in the placeholder and the
store back to idle.
"""

import asyncio
import functools
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence

from smartstudy.agent.gateway import AssistantGateway
from smartstudy.agent.prompts import build_study_guide_prompt
from smartstudy.chat.config import ChatConfig, get_chat_config
from smartstudy.errors import GatewayError, GenerationInProgress, SessionNotFound
from smartstudy.models.domain import (
    ChatMessage,
    ChatOptions,
    ChatRole,
    ChatSession,
    GenerationPhase,
    GenerationState,
    GenerationUpdate,
    History,
    HistoryEntry,
    Question,
)
from smartstudy.questions.collection import QuestionCollection

logger = logging.getLogger(__name__)


class Generation:
    """Handle for one reply being generated in the background.

    Attributes:
        session_id: Session the reply belongs to.
        message_id: Id of the placeholder model message.
        cancel_event: Set when the caller cancels; forwarded to the gateway.
        phase: STREAMING until the reply settles, then FINALIZED or ERRORED.
        content: Latest placeholder content.
        error: Failure reason when the reply errored.
    """

    def __init__(self, session_id: str, message_id: str) -> None:
        self.session_id = session_id
        self.message_id = message_id
        self.cancel_event = asyncio.Event()
        self.phase = GenerationPhase.STREAMING
        self.content = ""
        self.error: str | None = None
        self._task: asyncio.Task[None] | None = None
        self._updates: asyncio.Queue[GenerationUpdate | None] = asyncio.Queue()

    @property
    def done(self) -> bool:
        return self.phase in (GenerationPhase.FINALIZED, GenerationPhase.ERRORED)

    def cancel(self) -> None:
        """Abort the reply; the placeholder gets the fallback text."""
        if self.done:
            return
        self.cancel_event.set()
        if self._task is not None:
            self._task.cancel()

    async def wait(self) -> str:
        """Wait for the reply to settle and return the final content."""
        if self._task is not None:
            await asyncio.wait({self._task})
        return self.content

    async def updates(self) -> AsyncIterator[GenerationUpdate]:
        """Yield every placeholder change until the reply settles."""
        while True:
            update = await self._updates.get()
            if update is None:
                return
            yield update

    def _publish(self, content: str) -> None:
        self.content = content
        self._updates.put_nowait(GenerationUpdate(phase=self.phase, content=content))

    def _finish(self, phase: GenerationPhase, content: str, error: str | None) -> None:
        self.phase = phase
        self.content = content
        self.error = error
        self._updates.put_nowait(GenerationUpdate(phase=phase, content=self.content))
        self._updates.put_nowait(None)


class ChatSessionStore:
    """Owns chat sessions and the single in-flight reply generation."""

    def __init__(
        self,
        gateway: AssistantGateway,
        questions: QuestionCollection,
        config: ChatConfig | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            gateway: Chat backend.
            questions: Question bank offered to the tutor as context.
            config: Optional chat configuration; loads from environment if omitted.
        """
        self._gateway = gateway
        self._questions = questions
        self._config = config or get_chat_config()
        self._sessions: dict[str, ChatSession] = {}
        self._active_session_id: str | None = None
        self._state = GenerationState()

    # --- Read API ---

    @property
    def active_session_id(self) -> str | None:
        return self._active_session_id

    @property
    def is_generating(self) -> bool:
        return self._state.is_generating

    @property
    def state(self) -> GenerationState:
        """Copy of the generation state machine."""
        return self._state.model_copy()

    def get_session(self, session_id: str) -> ChatSession:
        """Return a copy of a session.

        Raises:
            SessionNotFound: If the id is unknown.
        """
        return self._require(session_id).model_copy(deep=True)

    def list_sessions(self) -> list[ChatSession]:
        """Return copies of all sessions, newest first."""
        return [s.model_copy(deep=True) for s in reversed(self._sessions.values())]

    # --- Session management ---

    def create_session(self, title_hint: str | None = None) -> str:
        """Create a session seeded with the welcome message and make it active.

        Returns:
            The new session id, so callers can send into it directly.
        """
        session = ChatSession(
            title=self._derive_title(title_hint) if title_hint else self._config.default_title,
            messages=[
                ChatMessage(
                    id="welcome",
                    role=ChatRole.MODEL,
                    content=self._config.welcome_message,
                )
            ],
        )
        self._sessions[session.id] = session
        self._active_session_id = session.id
        logger.info(f"Created chat session {session.id} ({session.title!r})")
        return session.id

    def switch_active(self, session_id: str) -> None:
        """Make another session active.

        Raises:
            SessionNotFound: If the id is unknown.
        """
        self._require(session_id)
        self._active_session_id = session_id

    # --- Sending ---

    def send_message(
        self,
        text: str,
        session_id: str | None = None,
        attachment: str | None = None,
        use_web_search: bool = False,
        use_knowledge_base: bool = True,
        stream: bool = True,
    ) -> Generation:
        """Append a user turn and start generating the tutor's reply.

        Returns as soon as both messages are in the session; the reply is
        produced in a background task. Must be called from a running loop.

        Args:
            text: The user's message.
            session_id: Target session; the active one (or a new one) if omitted.
            attachment: Optional base64 image sent with the message.
            use_web_search: Let the tutor search the web.
            use_knowledge_base: Give the tutor the question bank as context.
            stream: Stream fragments (True) or write the reply in one go.

        Returns:
            Handle for the reply being generated.

        Raises:
            GenerationInProgress: If another reply is still generating.
            SessionNotFound: If `session_id` is unknown.
            ValueError: If neither text nor attachment is given.
        """
        loop = asyncio.get_running_loop()
        if self.is_generating:
            raise GenerationInProgress("A reply is already being generated")
        if not text and not attachment:
            raise ValueError("Message must contain text or an attachment")

        session = self._resolve_session(session_id, text)
        self._state = GenerationState(
            phase=GenerationPhase.AWAITING_SNAPSHOT, session_id=session.id
        )

        # Prior turns only; the new message goes to the gateway as the prompt
        history = self._snapshot(session)

        user_message = ChatMessage(role=ChatRole.USER, content=text, attachment=attachment)
        placeholder = ChatMessage(role=ChatRole.MODEL, content="")
        self._append_turn(session, user_message, placeholder)

        generation = Generation(session.id, placeholder.id)
        self._state = GenerationState(
            phase=GenerationPhase.STREAMING,
            session_id=session.id,
            message_id=placeholder.id,
        )

        options = ChatOptions(
            use_web_search=use_web_search,
            use_knowledge_base=use_knowledge_base,
            attachment=attachment,
        )
        context = self._questions.snapshot()
        reply = self._stream_reply if stream else self._complete_reply
        work = functools.partial(reply, generation, history, text, context, options)

        task = loop.create_task(self._run(generation, work), name=f"chat-reply-{placeholder.id}")
        # Settles replies cancelled before their first step
        task.add_done_callback(lambda _: self._settle(generation, "Generation cancelled"))
        generation._task = task
        logger.info(f"Generating reply {placeholder.id} in session {session.id}")
        return generation

    def quick_ask(
        self,
        text: str,
        use_web_search: bool = False,
        use_knowledge_base: bool = True,
    ) -> Generation:
        """Ask a question in a brand-new session.

        Raises:
            ValueError: If the question is blank.
            GenerationInProgress: If another reply is still generating.
        """
        if not text.strip():
            raise ValueError("Question must not be empty")
        if self.is_generating:
            raise GenerationInProgress("A reply is already being generated")
        session_id = self.create_session(text)
        return self.send_message(
            text,
            session_id=session_id,
            use_web_search=use_web_search,
            use_knowledge_base=use_knowledge_base,
        )

    def generate_study_guide(self, questions: Sequence[Question]) -> Generation:
        """Start a Q&A study guide for the given questions in a new session.

        Raises:
            ValueError: If no questions are given.
            GenerationInProgress: If another reply is still generating.
        """
        if not questions:
            raise ValueError("No questions selected for the study guide")
        if self.is_generating:
            raise GenerationInProgress("A reply is already being generated")
        session_id = self.create_session("Study Guide Generation")
        return self.send_message(build_study_guide_prompt(questions), session_id=session_id)

    # --- Internals ---

    def _require(self, session_id: str) -> ChatSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def _resolve_session(self, session_id: str | None, text: str) -> ChatSession:
        if session_id is not None:
            return self._require(session_id)
        if self._active_session_id in self._sessions:
            return self._sessions[self._active_session_id]
        return self._sessions[self.create_session(text or None)]

    def _derive_title(self, text: str) -> str:
        return text.strip()[: self._config.title_max_chars] or self._config.default_title

    @staticmethod
    def _snapshot(session: ChatSession) -> History:
        return tuple(
            HistoryEntry(role=m.role, content=m.content, attachment=m.attachment)
            for m in session.messages
        )

    def _append_turn(
        self,
        session: ChatSession,
        user_message: ChatMessage,
        placeholder: ChatMessage,
    ) -> None:
        # Only the seed message so far: title the session after this turn
        if len(session.messages) <= 1:
            session.title = self._derive_title(user_message.content)
        session.messages.extend([user_message, placeholder])
        session.updated_at = time.time()

    def _set_placeholder(self, generation: Generation, content: str) -> None:
        session = self._sessions.get(generation.session_id)
        if session is None:
            return
        for message in session.messages:
            if message.id == generation.message_id:
                message.content = content
                return

    def _write_reply(self, generation: Generation, content: str) -> None:
        """Replace the placeholder content with the full text so far."""
        if generation.done:
            return
        self._set_placeholder(generation, content)
        generation._publish(content)

    async def _stream_reply(
        self,
        generation: Generation,
        history: History,
        text: str,
        context: list[Question],
        options: ChatOptions,
    ) -> None:
        accumulated = ""
        stream = self._gateway.chat_stream(
            history, text, context, options, cancel_event=generation.cancel_event
        )
        try:
            async for fragment in stream:
                if generation.cancel_event.is_set():
                    break
                accumulated += fragment
                self._write_reply(generation, accumulated)
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _complete_reply(
        self,
        generation: Generation,
        history: History,
        text: str,
        context: list[Question],
        options: ChatOptions,
    ) -> None:
        reply = await self._gateway.chat_complete(history, text, context, options)
        self._write_reply(generation, reply)

    async def _run(self, generation: Generation, work: Callable[[], Awaitable[None]]) -> None:
        try:
            async with asyncio.timeout(self._config.generation_timeout):
                await work()
        except TimeoutError:
            self._settle(generation, f"Timed out after {self._config.generation_timeout:g}s")
            return
        except GatewayError as e:
            self._settle(generation, str(e) or "Gateway error")
            return
        except asyncio.CancelledError:
            self._settle(generation, "Generation cancelled")
            raise
        except Exception as e:
            logger.exception(f"Unexpected error generating reply {generation.message_id}")
            self._settle(generation, f"Unexpected error: {e}")
            return

        if generation.cancel_event.is_set():
            self._settle(generation, "Generation cancelled")
        else:
            self._settle(generation)

    def _settle(self, generation: Generation, error: str | None = None) -> None:
        """Move a reply to its terminal phase and return the store to idle."""
        if generation.done:
            return

        if error is not None:
            logger.warning(f"Reply {generation.message_id} failed: {error}")
            self._set_placeholder(generation, self._config.fallback_message)
            generation._finish(GenerationPhase.ERRORED, self._config.fallback_message, error)
        else:
            logger.info(f"Reply {generation.message_id} complete ({len(generation.content)} chars)")
            generation._finish(GenerationPhase.FINALIZED, generation.content, None)

        if self._state.message_id == generation.message_id:
            self._state = GenerationState()
