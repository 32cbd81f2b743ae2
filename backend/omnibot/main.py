"""FastAPI application entry point with lifespan management."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from omnibot.api.chat import websocket_chat
from omnibot.api.router import api_router
from omnibot.config import Settings, get_settings, settings as default_settings
from omnibot.dependencies import build_orchestrator, build_session_manager
from omnibot.store.session_store import SessionStore, build_session_store

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[SessionStore] = None,
    model_transport: Optional[httpx.AsyncBaseTransport] = None,
    collaborator_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the chat backend.

    ``store`` and the transports default to the real backends; tests pass an
    in-memory store and ``httpx.MockTransport`` instances.
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Manage application startup and shutdown lifecycle."""
        logger.info("Starting %s chat backend...", settings.app_name)

        session_store = store or build_session_store(settings)
        manager = build_session_manager(settings, session_store)
        logger.info("Session manager loaded %d sessions", len(manager.sessions()))

        app.state.session_manager = manager
        app.state.orchestrator = build_orchestrator(
            settings,
            manager,
            model_transport=model_transport,
            collaborator_transport=collaborator_transport,
        )
        app.state.model_transport = model_transport
        app.state.collaborator_transport = collaborator_transport

        yield

        manager.flush()
        logger.info("%s chat backend shut down cleanly", settings.app_name)

    app = FastAPI(
        title=f"{settings.app_name} API",
        description="Chat assistant backend with calculator and document tools",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.dependency_overrides[get_settings] = lambda: settings

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            settings.frontend_url,
            "http://localhost:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Mount API routes
    app.include_router(api_router, prefix="/api")

    # Mount WebSocket endpoint (outside /api prefix to match frontend expectations)
    app.websocket("/ws/chat")(websocket_chat)

    return app


app = create_app()

# Configure logging
logging.basicConfig(
    level=getattr(logging, default_settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
