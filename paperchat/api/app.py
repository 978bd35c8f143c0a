"""FastAPI application factory and configuration.

Builds the app with lifespan management, CORS, and the chat and document
routers.
"""

import logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from paperchat import __version__
from paperchat.agent.sessions import get_session_store
from paperchat.api.chat import router as chat_router
from paperchat.api.documents import router as documents_router

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Allowed origins from CORS_ORIGINS (comma-separated, default ``*``)."""
    raw = os.getenv("CORS_ORIGINS", "*")
    return [origin.strip() for origin in raw.split(",") if origin.strip()] or ["*"]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Create the session store on startup and release cached text on shutdown.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control to the application while it runs.
    """
    store = get_session_store()
    stats = store.extraction_cache.stats()
    logger.info(f"Starting Paper Chat API (extraction cache capacity {stats['max_size']})")
    yield
    logger.info(
        f"Shutting down Paper Chat API: {len(store)} sessions, "
        f"{store.extraction_cache.stats()['size']} cached documents"
    )
    store.extraction_cache.clear()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    application = FastAPI(
        title="Paper Chat API",
        description=(
            "Conversation engine for discussing academic papers with a language model. "
            "Grounds answers in selected papers, extracting full text from their PDFs "
            "on demand, and streams replies from OpenAI-compatible, Anthropic, and "
            "local providers."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT"],
        allow_headers=["*"],
        expose_headers=["X-Session-Id"],
    )

    application.include_router(chat_router)
    application.include_router(documents_router)

    @application.get("/health")
    async def health_check() -> dict[str, str]:
        """Check service health status."""
        return {"status": "healthy", "service": "paperchat", "version": __version__}

    return application


app = create_app()
