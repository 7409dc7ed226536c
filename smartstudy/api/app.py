"""FastAPI application factory and configuration.

Main application entry point with lifespan management, middleware,
and router registration.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from smartstudy.api.chat import router as chat_router
from smartstudy.api.dashboard import router as dashboard_router
from smartstudy.api.questions import router as questions_router
from smartstudy.api.uploads import router as uploads_router
from smartstudy.workspace import get_workspace

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application startup and shutdown lifecycle.

    Starts the upload worker on startup and stops it on shutdown.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control to the application while it runs.
    """
    # Honour test overrides of the workspace dependency
    workspace = app.dependency_overrides.get(get_workspace, get_workspace)()

    logger.info("Starting SmartStudy API...")
    await workspace.start()
    yield
    logger.info("Shutting down SmartStudy API...")
    await workspace.stop()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    application = FastAPI(
        title="SmartStudy API",
        description=(
            "Builds a question bank from scanned exam pages and tutors on it. "
            "Uploaded images are queued and extracted one at a time; tutor replies "
            "stream back over Server-Sent Events across independent chat sessions."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
    )

    application.include_router(uploads_router)
    application.include_router(questions_router)
    application.include_router(chat_router)
    application.include_router(dashboard_router)

    @application.get("/health")
    async def health_check() -> dict[str, str]:
        """Check service health status."""
        return {"status": "healthy", "service": "smartstudy"}

    return application


app = create_app()
