"""Error taxonomy shared by the ingestion, chat and import paths."""


class SmartStudyError(Exception):
    """Base class for all SmartStudy errors."""

    pass


class ExtractionError(SmartStudyError):
    """Raised when the gateway fails to extract questions from an image."""

    pass


class GatewayError(SmartStudyError):
    """Raised when a chat completion or stream fails."""

    pass


class ValidationError(SmartStudyError):
    """Raised when externally supplied question data is malformed or empty."""

    pass


class SessionNotFound(SmartStudyError):
    """Raised when an operation references an unknown chat session."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Chat session not found: {session_id}")
        self.session_id = session_id


class GenerationInProgress(SmartStudyError):
    """Raised when a message is sent while another reply is still generating."""

    pass
