"""Health check endpoint for the chat backend and its collaborators."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from fastapi import APIRouter, Depends, Request

from omnibot.config import Settings, get_settings

logger = logging.getLogger(__name__)
router = APIRouter()


async def _check_http(
    url: str, transport: Optional[httpx.AsyncBaseTransport]
) -> dict[str, Any]:
    """GET ``url`` and report whether it answered with a 2xx status."""
    try:
        async with httpx.AsyncClient(transport=transport, timeout=2.0) as client:
            resp = await client.get(url)
        if resp.is_success:
            return {"status": "healthy"}
        return {"status": "unhealthy", "error": f"HTTP {resp.status_code}"}
    except httpx.HTTPError as exc:
        logger.warning("Health check of %s failed: %s", url, exc)
        return {"status": "unhealthy", "error": str(exc)}


@router.get("")
async def health_check(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Return aggregate health of the model endpoint and both collaborators."""
    state = request.app.state
    model_transport = getattr(state, "model_transport", None)
    collaborator_transport = getattr(state, "collaborator_transport", None)

    services = {
        "model": await _check_http(
            f"{settings.llm_base_url.rstrip('/')}/api/tags", model_transport
        ),
        "calculator": await _check_http(
            f"{settings.calculator_url.rstrip('/')}/health", collaborator_transport
        ),
        "retriever": await _check_http(
            f"{settings.retriever_url.rstrip('/')}/health", collaborator_transport
        ),
    }

    overall = (
        "healthy"
        if all(s["status"] == "healthy" for s in services.values())
        else "degraded"
    )

    return {
        "status": overall,
        "sessions": len(state.session_manager.sessions()),
        "services": services,
    }
