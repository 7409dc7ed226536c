"""FastAPI endpoints for SmartStudy.

HTTP and streaming routes with async request handling.
Supports Server-Sent Events for real-time tutor replies.

Endpoints:
    - GET /health: Service health status
    - /uploads: Image upload queue
    - /questions, /exam: Question bank and exam selection
    - /sessions, /chat: Tutor sessions and streamed replies
    - GET /dashboard: Bank, exam and upload overview
"""

from smartstudy.api.app import app, create_app

__all__ = ["app", "create_app"]
