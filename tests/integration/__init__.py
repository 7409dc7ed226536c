"""Integration tests for the HTTP API.

Requests go through the real FastAPI app via ASGITransport; only the
LLM gateway is scripted.

Coverage:
    - Upload, queue and extraction flow
    - Question import, editing and exam selection
    - Session management and SSE chat streaming
"""
