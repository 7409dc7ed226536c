"""SmartStudy - turn scanned exam pages into a question bank and tutor on it.

Combines FastAPI for HTTP streaming, Agno for LLM orchestration,
and Pydantic for data validation.

Components:
    - ingestion: Background upload queue feeding image extraction
    - chat: Multi-session tutor conversations with streamed replies
    - agent: LLM gateway for question extraction and chat
    - parsing: Structured (QR) question payload import
    - api: HTTP endpoints and streaming responses
    - models: Domain entities and request/response schemas
"""

__version__ = "0.1.0"
