"""Unit tests for ChatSessionStore."""

import asyncio

import pytest
import pytest_check as check

from smartstudy.chat.config import FALLBACK_MESSAGE, WELCOME_MESSAGE, ChatConfig
from smartstudy.chat.session_store import ChatSessionStore
from smartstudy.errors import GatewayError, GenerationInProgress, SessionNotFound
from smartstudy.models.domain import ChatRole, GenerationPhase, Question
from smartstudy.questions.collection import QuestionCollection
from tests.conftest import FakeGateway, settle


class TestSessions:
    """Tests for session creation and switching."""

    def test_create_session_seeds_welcome_message(self, chat_store: ChatSessionStore) -> None:
        """A new session holds exactly the welcome message and becomes active."""
        session_id = chat_store.create_session()
        session = chat_store.get_session(session_id)

        check.equal(len(session.messages), 1)
        check.equal(session.messages[0].role, ChatRole.MODEL)
        check.equal(session.messages[0].content, WELCOME_MESSAGE)
        check.equal(session.title, "New Chat")
        check.equal(chat_store.active_session_id, session_id)

    def test_create_session_title_hint_truncated(self, chat_store: ChatSessionStore) -> None:
        """Title hints are cut to the configured length."""
        session_id = chat_store.create_session("A" * 50)

        assert chat_store.get_session(session_id).title == "A" * 30

    def test_list_sessions_newest_first(self, chat_store: ChatSessionStore) -> None:
        """The session list starts with the most recently created one."""
        first = chat_store.create_session("first")
        second = chat_store.create_session("second")

        assert [s.id for s in chat_store.list_sessions()] == [second, first]

    def test_switch_active(self, chat_store: ChatSessionStore) -> None:
        """Switching only changes which session is active."""
        first = chat_store.create_session()
        chat_store.create_session()
        before = chat_store.get_session(first)

        chat_store.switch_active(first)

        check.equal(chat_store.active_session_id, first)
        check.equal(chat_store.get_session(first), before)

    def test_switch_active_unknown_session(self, chat_store: ChatSessionStore) -> None:
        """Unknown ids raise SessionNotFound."""
        with pytest.raises(SessionNotFound):
            chat_store.switch_active("missing")

    def test_get_session_returns_copy(self, chat_store: ChatSessionStore) -> None:
        """Mutating a returned session does not touch the store."""
        session_id = chat_store.create_session()
        copy = chat_store.get_session(session_id)
        copy.messages.clear()

        assert len(chat_store.get_session(session_id).messages) == 1


class TestSendMessage:
    """Tests for sending a message and streaming the reply."""

    async def test_streamed_reply_accumulates(
        self, chat_store: ChatSessionStore, gateway: FakeGateway
    ) -> None:
        """Fragments are accumulated into the placeholder message."""
        gateway.fragments = ["2", "+2", "=4"]
        session_id = chat_store.create_session()

        generation = chat_store.send_message("What is 2+2?", session_id=session_id)
        content = await generation.wait()

        session = chat_store.get_session(session_id)
        check.equal(content, "2+2=4")
        check.equal(len(session.messages), 3)
        check.equal(
            [(m.role, m.content) for m in session.messages[1:]],
            [(ChatRole.USER, "What is 2+2?"), (ChatRole.MODEL, "2+2=4")],
        )
        check.equal(session.messages[2].id, generation.message_id)
        check.equal(session.title, "What is 2+2?")
        check.equal(generation.phase, GenerationPhase.FINALIZED)
        check.is_false(chat_store.is_generating)

    async def test_content_grows_monotonically(
        self, chat_store: ChatSessionStore, gateway: FakeGateway
    ) -> None:
        """Each update replaces the content with a longer accumulated string."""
        gateway.fragments = ["2", "+2", "=4"]
        generation = chat_store.send_message("What is 2+2?")
        await generation.wait()

        updates = [u async for u in generation.updates()]
        streamed = [u.content for u in updates if u.phase is GenerationPhase.STREAMING]

        check.equal(streamed, ["2", "2+2", "2+2=4"])
        check.equal(updates[-1].phase, GenerationPhase.FINALIZED)
        check.equal(updates[-1].content, "2+2=4")
        lengths = [len(c) for c in streamed]
        check.equal(lengths, sorted(lengths))

    async def test_placeholder_inserted_before_reply(
        self, chat_store: ChatSessionStore, gateway: FakeGateway
    ) -> None:
        """User message and empty placeholder exist as soon as send returns."""
        gateway.stream_gate = asyncio.Event()
        session_id = chat_store.create_session()

        generation = chat_store.send_message("Hi", session_id=session_id)
        session = chat_store.get_session(session_id)

        check.equal([m.role for m in session.messages], [ChatRole.MODEL, ChatRole.USER, ChatRole.MODEL])
        check.equal(session.messages[-1].content, "")
        check.is_true(chat_store.is_generating)
        check.equal(chat_store.state.phase, GenerationPhase.STREAMING)
        check.equal(chat_store.state.message_id, generation.message_id)

        gateway.stream_gate.set()
        await generation.wait()

    async def test_history_snapshot_excludes_new_turn(
        self, chat_store: ChatSessionStore, gateway: FakeGateway
    ) -> None:
        """The gateway gets prior turns as history and the new text as prompt."""
        session_id = chat_store.create_session()
        await chat_store.send_message("First", session_id=session_id).wait()
        await chat_store.send_message("Second", session_id=session_id).wait()

        first_call, second_call = gateway.chat_calls
        check.equal([(h.role, h.content) for h in first_call["history"]], [(ChatRole.MODEL, WELCOME_MESSAGE)])
        check.equal(first_call["message"], "First")
        check.equal(
            [h.content for h in second_call["history"]],
            [WELCOME_MESSAGE, "First", "Hello, student!"],
        )
        check.equal(second_call["message"], "Second")

    async def test_title_only_set_on_first_exchange(self, chat_store: ChatSessionStore) -> None:
        """Later messages leave the title alone."""
        session_id = chat_store.create_session()
        await chat_store.send_message("Explain the quadratic formula step by step", session_id=session_id).wait()
        await chat_store.send_message("And the discriminant?", session_id=session_id).wait()

        assert chat_store.get_session(session_id).title == "Explain the quadratic formula "

    async def test_send_without_session_creates_one(self, chat_store: ChatSessionStore) -> None:
        """With no active session, one is created from the message."""
        generation = chat_store.send_message("Why is the sky blue?")
        await generation.wait()

        sessions = chat_store.list_sessions()
        check.equal(len(sessions), 1)
        check.equal(sessions[0].id, generation.session_id)
        check.equal(sessions[0].title, "Why is the sky blue?")
        check.equal(sessions[0].messages[1].content, "Why is the sky blue?")
        check.equal(chat_store.active_session_id, generation.session_id)

    async def test_send_without_session_uses_active(self, chat_store: ChatSessionStore) -> None:
        """Omitting the session id targets the active session."""
        chat_store.create_session()
        active = chat_store.create_session()

        generation = chat_store.send_message("Hi")
        await generation.wait()

        assert generation.session_id == active

    async def test_unknown_session_rejected(self, chat_store: ChatSessionStore) -> None:
        """An unknown session id fails without starting a generation."""
        with pytest.raises(SessionNotFound):
            chat_store.send_message("Hi", session_id="missing")

        check.is_false(chat_store.is_generating)
        check.equal(chat_store.list_sessions(), [])

    async def test_empty_message_rejected(self, chat_store: ChatSessionStore) -> None:
        """A message needs text or an attachment."""
        with pytest.raises(ValueError):
            chat_store.send_message("")

    async def test_attachment_is_forwarded(
        self, chat_store: ChatSessionStore, gateway: FakeGateway
    ) -> None:
        """Attachments are stored on the user turn and passed as an option."""
        generation = chat_store.send_message("What is this?", attachment="aW1n", use_web_search=True)
        await generation.wait()

        options = gateway.chat_calls[0]["options"]
        user_message = chat_store.get_session(generation.session_id).messages[1]
        check.equal(options.attachment, "aW1n")
        check.is_true(options.use_web_search)
        check.equal(user_message.attachment, "aW1n")

    async def test_question_bank_passed_as_context(
        self,
        chat_store: ChatSessionStore,
        gateway: FakeGateway,
        questions: QuestionCollection,
    ) -> None:
        """The question bank as of send time is the tutor's context."""
        questions.add([Question(original_text="What is $\\pi$?", subject="Math")])

        await chat_store.send_message("Help with my list").wait()

        context = gateway.chat_calls[0]["context"]
        check.equal([q.original_text for q in context], ["What is $\\pi$?"])
        check.is_true(gateway.chat_calls[0]["options"].use_knowledge_base)

    async def test_non_streaming_reply(
        self, chat_store: ChatSessionStore, gateway: FakeGateway
    ) -> None:
        """stream=False writes the complete reply at once."""
        generation = chat_store.send_message("Summarize", stream=False)
        content = await generation.wait()

        check.equal(content, "A complete answer.")
        check.equal(
            chat_store.get_session(generation.session_id).messages[-1].content,
            "A complete answer.",
        )


class TestSingleGeneration:
    """Tests for the store-wide single generation rule."""

    async def test_second_send_rejected_while_generating(
        self, chat_store: ChatSessionStore, gateway: FakeGateway
    ) -> None:
        """A send into another session fails while a reply is streaming."""
        gateway.stream_gate = asyncio.Event()
        first = chat_store.create_session()
        second = chat_store.create_session()
        generation = chat_store.send_message("One", session_id=first)

        with pytest.raises(GenerationInProgress):
            chat_store.send_message("Two", session_id=second)
        check.equal(len(chat_store.get_session(second).messages), 1)

        gateway.stream_gate.set()
        await generation.wait()
        check.is_false(chat_store.is_generating)

    async def test_quick_ask_rejected_while_generating(
        self, chat_store: ChatSessionStore, gateway: FakeGateway
    ) -> None:
        """Quick ask does not create an orphan session while busy."""
        gateway.stream_gate = asyncio.Event()
        generation = chat_store.send_message("One")

        with pytest.raises(GenerationInProgress):
            chat_store.quick_ask("Two")
        check.equal(len(chat_store.list_sessions()), 1)

        gateway.stream_gate.set()
        await generation.wait()

    async def test_store_accepts_sends_after_completion(self, chat_store: ChatSessionStore) -> None:
        """The flag clears so the user can send again right away."""
        await chat_store.send_message("One").wait()
        await chat_store.send_message("Two").wait()

        assert len(chat_store.list_sessions()[0].messages) == 5


class TestFailures:
    """Tests for error, timeout and cancellation handling."""

    async def test_stream_error_uses_fallback(
        self, chat_store: ChatSessionStore, gateway: FakeGateway
    ) -> None:
        """A gateway error replaces partial content with the apology."""
        gateway.stream_error = GatewayError("model overloaded")

        generation = chat_store.send_message("Hi")
        content = await generation.wait()

        check.equal(content, FALLBACK_MESSAGE)
        check.equal(chat_store.get_session(generation.session_id).messages[-1].content, FALLBACK_MESSAGE)
        check.equal(generation.phase, GenerationPhase.ERRORED)
        check.equal(generation.error, "model overloaded")
        check.is_false(chat_store.is_generating)
        check.equal(chat_store.state.phase, GenerationPhase.IDLE)

    async def test_complete_error_uses_fallback(
        self, chat_store: ChatSessionStore, gateway: FakeGateway
    ) -> None:
        """Non-streaming failures end the same way."""
        gateway.complete_error = GatewayError("down")

        content = await chat_store.send_message("Hi", stream=False).wait()

        assert content == FALLBACK_MESSAGE

    async def test_unexpected_error_uses_fallback(
        self, chat_store: ChatSessionStore, gateway: FakeGateway
    ) -> None:
        """Errors outside the taxonomy are contained as well."""
        gateway.stream_error = KeyError("parts")

        generation = chat_store.send_message("Hi")
        await generation.wait()

        check.equal(generation.content, FALLBACK_MESSAGE)
        check.is_false(chat_store.is_generating)

    async def test_timeout_forces_errored_state(
        self, gateway: FakeGateway, questions: QuestionCollection
    ) -> None:
        """A hung stream is abandoned after the timeout."""
        store = ChatSessionStore(gateway, questions, config=ChatConfig(generation_timeout=0.05))
        gateway.stream_gate = asyncio.Event()

        generation = store.send_message("Hi")
        content = await generation.wait()

        check.equal(content, FALLBACK_MESSAGE)
        check.equal(generation.phase, GenerationPhase.ERRORED)
        check.is_in("Timed out", generation.error)
        check.is_false(store.is_generating)

    async def test_cancel_forces_errored_state(
        self, chat_store: ChatSessionStore, gateway: FakeGateway
    ) -> None:
        """Cancelling mid-stream leaves the apology and an idle store."""
        gateway.stream_gate = asyncio.Event()
        generation = chat_store.send_message("Hi")
        await settle()

        generation.cancel()
        content = await generation.wait()

        check.equal(content, FALLBACK_MESSAGE)
        check.equal(generation.phase, GenerationPhase.ERRORED)
        check.is_true(generation.cancel_event.is_set())
        check.is_false(chat_store.is_generating)

    async def test_cancel_before_start(self, chat_store: ChatSessionStore) -> None:
        """Cancelling before the task runs still settles the reply."""
        generation = chat_store.send_message("Hi")
        generation.cancel()

        content = await generation.wait()

        check.equal(content, FALLBACK_MESSAGE)
        check.is_false(chat_store.is_generating)


class TestIsolation:
    """Tests that sessions never affect each other."""

    async def test_other_session_untouched(
        self, chat_store: ChatSessionStore, gateway: FakeGateway
    ) -> None:
        """Sending, streaming and failing in A leaves B unchanged."""
        session_a = chat_store.create_session()
        session_b = chat_store.create_session()
        before = chat_store.get_session(session_b).model_dump()

        await chat_store.send_message("Hello A", session_id=session_a).wait()
        gateway.stream_error = GatewayError("boom")
        await chat_store.send_message("Again A", session_id=session_a).wait()

        check.equal(chat_store.get_session(session_b).model_dump(), before)
        check.equal(len(chat_store.get_session(session_a).messages), 5)


class TestShortcuts:
    """Tests for quick ask and study guide generation."""

    @pytest.mark.parametrize("text", ["", "   "])
    async def test_quick_ask_blank_creates_no_session(
        self, chat_store: ChatSessionStore, text: str
    ) -> None:
        """A blank quick ask is rejected before any session exists."""
        with pytest.raises(ValueError):
            chat_store.quick_ask(text)

        check.equal(chat_store.list_sessions(), [])
        check.is_none(chat_store.active_session_id)

    async def test_quick_ask_forwards_options(
        self, chat_store: ChatSessionStore, gateway: FakeGateway
    ) -> None:
        """Quick ask passes the tool switches through."""
        await chat_store.quick_ask("Latest news on Mars", use_web_search=True).wait()

        options = gateway.chat_calls[0]["options"]
        check.is_true(options.use_web_search)
        check.is_true(options.use_knowledge_base)

    async def test_quick_ask_uses_new_session(self, chat_store: ChatSessionStore) -> None:
        """Quick ask always opens a fresh session."""
        existing = chat_store.create_session()

        generation = chat_store.quick_ask("Define entropy")
        await generation.wait()

        check.not_equal(generation.session_id, existing)
        check.equal(chat_store.get_session(generation.session_id).title, "Define entropy")

    async def test_study_guide_prompt(
        self, chat_store: ChatSessionStore, gateway: FakeGateway
    ) -> None:
        """The study guide lists every question with its options."""
        selected = [
            Question(original_text="2+2?", options=["3", "4"], subject="Math"),
            Question(original_text="Capital of France?", subject="Geography"),
        ]

        generation = chat_store.generate_study_guide(selected)
        await generation.wait()

        prompt = gateway.chat_calls[0]["message"]
        check.is_in("following 2 questions", prompt)
        check.is_in("Q1: 2+2?\nOptions: 3, 4", prompt)
        check.is_in("Q2: Capital of France?", prompt)
        check.equal(chat_store.get_session(generation.session_id).title, prompt[:30])

    def test_study_guide_requires_questions(self, chat_store: ChatSessionStore) -> None:
        """An empty selection is rejected."""
        with pytest.raises(ValueError):
            chat_store.generate_study_guide([])
