"""Tests for keyword search and the retriever service."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from omnibot.retrieval.corpus import DOCUMENTS
from omnibot.retrieval.search import build_section, query_words, search_documents
from omnibot.services.retriever_app import app


def test_search_ignores_punctuation_and_case() -> None:
    """"ecommerce" finds every "E-commerce" document, first three in corpus order."""
    result = search_documents("ecommerce")
    assert [hit.document.id for hit in result.hits] == [1, 3, 5]
    assert result.total_found == 6


def test_search_falls_back_to_single_words() -> None:
    result = search_documents("payment security tips")
    assert [hit.document.id for hit in result.hits] == [1, 4, 7]

    payment = result.hits[1]
    assert payment.section == (
        "Online payment methods include credit cards, PayPal, Stripe, Apple Pay, "
        "and cryptocurrency. Security is crucial with PCI compliance, SSL "
        "certificates, and fraud prevention measures."
    )


def test_search_without_matches() -> None:
    result = search_documents("quantum entanglement")
    assert result.hits == []
    assert result.total_found == 0


def test_query_words_drop_short_and_stop_words() -> None:
    assert query_words("What is the E-commerce tax?") == ["ecommerce", "tax"]


def test_section_prefers_matching_sentences() -> None:
    section = build_section(DOCUMENTS[0].content, ["ecommerce"])
    assert section == "E-commerce involves buying and selling goods and services online."


def test_section_falls_back_to_prefix() -> None:
    content = DOCUMENTS[4].content
    section = build_section(content, ["ecommerce"])
    assert section == content[:150] + "..."


@pytest_asyncio.fixture
async def retriever_client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://rag") as ac:
        yield ac


@pytest.mark.asyncio
async def test_search_endpoint(retriever_client: AsyncClient) -> None:
    """Search returns documents with excerpts and document citations."""
    response = await retriever_client.post("/search", json={"query": "ecommerce"})
    assert response.status_code == 200

    data = response.json()
    assert data["success"] is True
    assert data["totalFound"] == 6
    assert [d["id"] for d in data["documents"]] == [1, 3, 5]

    first = data["documents"][0]
    assert first["section"].startswith("E-commerce involves")
    assert first["citations"] == [
        {"id": 1, "title": "E-commerce Fundamentals", "type": "document"}
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{}, {"query": ""}, {"query": ["a"]}])
async def test_search_requires_string(retriever_client: AsyncClient, body: dict) -> None:
    response = await retriever_client.post("/search", json=body)
    assert response.status_code == 400
    assert response.json() == {
        "error": "Query is required and must be a string",
        "success": False,
    }


@pytest.mark.asyncio
async def test_retriever_health_and_documents(retriever_client: AsyncClient) -> None:
    health = (await retriever_client.get("/health")).json()
    assert health["status"] == "OK"
    assert health["documentCount"] == 10

    listing = (await retriever_client.get("/documents")).json()
    assert listing["total"] == 10
    assert listing["documents"][0]["title"] == "E-commerce Fundamentals"
