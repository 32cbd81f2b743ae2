"""HTTP clients for the calculator and retriever collaborators."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from omnibot.models.tools import SearchResponse

logger = logging.getLogger(__name__)


class CollaboratorError(RuntimeError):
    """A collaborator was unreachable or reported failure.

    ``details`` carries the collaborator's own error detail when it sent one.
    """

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.details = details


class _ServiceClient:
    def __init__(
        self,
        base_url: str,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._transport = transport

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, transport=self._transport
            ) as client:
                resp = await client.post(path, json=payload)
        except httpx.HTTPError as exc:
            logger.warning("%s%s unreachable: %s", self.base_url, path, exc)
            raise CollaboratorError(f"{self.base_url} not reachable") from exc

        try:
            data = resp.json()
        except ValueError as exc:
            raise CollaboratorError(
                f"Invalid JSON from {self.base_url}{path} (HTTP {resp.status_code})"
            ) from exc

        if not isinstance(data, dict) or not data.get("success"):
            details = None
            if isinstance(data, dict):
                details = data.get("details") or data.get("error")
            raise CollaboratorError(
                f"{self.base_url}{path} returned HTTP {resp.status_code}", details
            )
        return data


class CalculatorClient(_ServiceClient):
    """Client for ``POST /calculate``."""

    async def calculate(self, expression: str) -> str:
        """Return the result text for ``expression``.

        Raises:
            CollaboratorError: On transport failure or an unsuccessful reply.
        """
        data = await self._post("/calculate", {"expression": expression})
        return str(data.get("result", ""))


class RetrieverClient(_ServiceClient):
    """Client for ``POST /search``."""

    async def search(self, query: str) -> SearchResponse:
        data = await self._post("/search", {"query": query})
        return SearchResponse.model_validate(data)
