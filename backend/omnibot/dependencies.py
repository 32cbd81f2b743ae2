"""Construction of the chat components and FastAPI dependency providers.

Components live on ``app.state`` (set up by the application lifespan) rather
than in module globals, so each app instance owns its own session state.
"""

from typing import Optional

import httpx
from fastapi.requests import HTTPConnection

from omnibot.chat.orchestrator import ConversationOrchestrator, OrchestratorConfig
from omnibot.chat.sessions import SessionManager
from omnibot.config import Settings
from omnibot.llm.stream_client import ModelStreamClient
from omnibot.store.session_store import SessionStore
from omnibot.tools.clients import CalculatorClient, RetrieverClient
from omnibot.tools.definitions import ToolRegistry, build_tools


def build_session_manager(settings: Settings, store: SessionStore) -> SessionManager:
    manager = SessionManager(store, title_max_length=settings.title_max_length)
    manager.load()
    return manager


def build_orchestrator(
    settings: Settings,
    sessions: SessionManager,
    *,
    model_transport: Optional[httpx.AsyncBaseTransport] = None,
    collaborator_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ConversationOrchestrator:
    """Wire the orchestrator to the model endpoint and both collaborators.

    The optional transports replace the network (``httpx.MockTransport`` in
    tests).
    """
    calculator = CalculatorClient(settings.calculator_url, transport=collaborator_transport)
    retriever = RetrieverClient(settings.retriever_url, transport=collaborator_transport)
    model = ModelStreamClient(settings.llm_base_url, settings.llm_model, transport=model_transport)
    registry = ToolRegistry(build_tools(calculator, retriever))

    return ConversationOrchestrator(
        sessions,
        model,
        calculator,
        registry,
        config=OrchestratorConfig(
            tool_calling_enabled=settings.tool_calling_enabled,
            fast_path_calculator_enabled=settings.fast_path_calculator_enabled,
            context_window=settings.context_window,
        ),
    )


def get_session_manager(conn: HTTPConnection) -> SessionManager:
    """FastAPI dependency returning the app's session manager."""
    return conn.app.state.session_manager


def get_orchestrator(conn: HTTPConnection) -> ConversationOrchestrator:
    """FastAPI dependency returning the app's conversation orchestrator."""
    return conn.app.state.orchestrator
