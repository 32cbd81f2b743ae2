"""Shared test fixtures for the OmniBot backend."""

import asyncio
import json
from collections.abc import AsyncGenerator, AsyncIterator
from typing import Any, Optional

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from omnibot.chat.orchestrator import ConversationOrchestrator
from omnibot.chat.sessions import SessionManager
from omnibot.config import Settings
from omnibot.dependencies import build_orchestrator
from omnibot.main import create_app
from omnibot.services.calculator_app import app as calculator_app
from omnibot.services.retriever_app import app as retriever_app
from omnibot.store.backends import MemoryBackend
from omnibot.store.session_store import SessionStore

CALCULATOR_URL = "http://calculator"
RETRIEVER_URL = "http://retriever"
MODEL_URL = "http://model"


class RoutingTransport(httpx.AsyncBaseTransport):
    """Sends each request to the transport registered for its host."""

    def __init__(self, routes: dict[str, httpx.AsyncBaseTransport]) -> None:
        self.routes = routes
        self.requests: list[httpx.Request] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return await self.routes[request.url.host].handle_async_request(request)


def ndjson(*records: dict[str, Any]) -> bytes:
    return b"".join(json.dumps(r).encode("utf-8") + b"\n" for r in records)


def token(text: str) -> dict[str, Any]:
    return {"message": {"role": "assistant", "content": text}, "done": False}


def tool_call(name: str, **arguments: Any) -> dict[str, Any]:
    return {
        "message": {
            "role": "assistant",
            "content": "",
            "tool_calls": [{"function": {"name": name, "arguments": arguments}}],
        },
        "done": False,
    }


class FakeModel:
    """Scripted Ollama-style ``/api/chat`` endpoint.

    Each queued reply is a list of raw byte chunks.  ``hang=True`` keeps the
    connection open after the last chunk until the reader gives up.
    """

    def __init__(self) -> None:
        self.replies: list[tuple[list[bytes], bool, int]] = []
        self.payloads: list[dict[str, Any]] = []
        self.transport = httpx.MockTransport(self.handler)

    def reply(
        self,
        *records: dict[str, Any],
        chunk_size: Optional[int] = None,
        hang: bool = False,
        status: int = 200,
    ) -> None:
        body = ndjson(*records)
        if chunk_size:
            chunks = [body[i : i + chunk_size] for i in range(0, len(body), chunk_size)]
        else:
            chunks = [ndjson(r) for r in records]
        self.replies.append((chunks, hang, status))

    def reply_raw(self, *chunks: bytes) -> None:
        self.replies.append((list(chunks), False, 200))

    async def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/tags":
            return httpx.Response(200, json={"models": []})

        self.payloads.append(json.loads(request.content))
        chunks, hang, status = self.replies.pop(0)

        async def body() -> AsyncIterator[bytes]:
            for chunk in chunks:
                yield chunk
                await asyncio.sleep(0)
            if hang:
                await asyncio.sleep(3600)

        return httpx.Response(status, content=body())


def refuse_connection(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("Connection refused", request=request)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        state_backend="memory",
        llm_base_url=MODEL_URL,
        calculator_url=CALCULATOR_URL,
        retriever_url=RETRIEVER_URL,
        log_level="debug",
    )


@pytest.fixture
def fake_model() -> FakeModel:
    return FakeModel()


@pytest.fixture
def collaborators() -> RoutingTransport:
    """In-process calculator and retriever services."""
    return RoutingTransport(
        {
            "calculator": ASGITransport(app=calculator_app),
            "retriever": ASGITransport(app=retriever_app),
        }
    )


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def store(backend: MemoryBackend) -> SessionStore:
    return SessionStore(backend)


@pytest.fixture
def manager(store: SessionStore) -> SessionManager:
    session_manager = SessionManager(store)
    session_manager.load()
    return session_manager


@pytest.fixture
def orchestrator(
    settings: Settings,
    manager: SessionManager,
    fake_model: FakeModel,
    collaborators: RoutingTransport,
) -> ConversationOrchestrator:
    return build_orchestrator(
        settings,
        manager,
        model_transport=fake_model.transport,
        collaborator_transport=collaborators,
    )


@pytest.fixture
def chat_app(
    settings: Settings,
    store: SessionStore,
    fake_model: FakeModel,
    collaborators: RoutingTransport,
):
    return create_app(
        settings,
        store=store,
        model_transport=fake_model.transport,
        collaborator_transport=collaborators,
    )


@pytest_asyncio.fixture
async def client(chat_app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing the chat backend endpoints."""
    async with chat_app.router.lifespan_context(chat_app):
        transport = ASGITransport(app=chat_app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
