"""Streaming client for an Ollama-compatible ``/api/chat`` endpoint.

The endpoint answers with newline-delimited JSON records::

    {"message": {"role": "assistant", "content": "Hel"}, "done": false}
    {"message": {"role": "assistant", "content": "", "tool_calls": [...]}}

End of stream is the closed connection; a ``done`` record is not required.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional

import httpx

from omnibot.llm.ndjson import NDJSONLineBuffer
from omnibot.tools.definitions import ToolCallDirective

logger = logging.getLogger(__name__)


class ModelConnectionError(RuntimeError):
    """The model endpoint could not be reached or refused the request."""


class ModelStreamError(RuntimeError):
    """The stream broke off or reported an error after it was opened."""


@dataclass
class StreamEvent:
    """One increment of a model reply: text, tool-call directives, or both."""

    text: str = ""
    tool_calls: list[ToolCallDirective] = field(default_factory=list)


def parse_tool_calls(raw_calls: Any) -> list[ToolCallDirective]:
    """Normalize Ollama (dict arguments) and OpenAI (JSON string) tool calls."""
    directives: list[ToolCallDirective] = []
    if not isinstance(raw_calls, list):
        return directives

    for raw in raw_calls:
        if not isinstance(raw, dict):
            continue
        function = raw.get("function") or {}
        name = function.get("name")
        if not name:
            continue
        args = function.get("arguments") or {}
        if isinstance(args, str):
            try:
                args = json.loads(args)
            except json.JSONDecodeError:
                logger.warning("Unparseable arguments for tool %s: %r", name, args)
                args = {}
        if not isinstance(args, dict):
            args = {}
        directive = ToolCallDirective(name=name, args=args)
        if raw.get("id"):
            directive.id = str(raw["id"])
        directives.append(directive)
    return directives


def _event_from_record(record: dict[str, Any]) -> Optional[StreamEvent]:
    if record.get("error"):
        raise ModelStreamError(str(record["error"]))

    message = record.get("message")
    if not isinstance(message, dict):
        return None

    content = message.get("content")
    event = StreamEvent(
        text=content if isinstance(content, str) else "",
        tool_calls=parse_tool_calls(message.get("tool_calls")),
    )
    if not event.text and not event.tool_calls:
        return None
    return event


class ModelStreamClient:
    """Opens one streaming chat request per call to :meth:`stream_chat`."""

    def __init__(
        self,
        base_url: str,
        model: str,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self._transport = transport

    def build_payload(
        self,
        messages: list[dict[str, Any]],
        tools: Optional[list[dict[str, Any]]] = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "stream": True,
        }
        if tools:
            payload["tools"] = tools
        return payload

    async def stream_chat(
        self,
        messages: list[dict[str, Any]],
        tools: Optional[list[dict[str, Any]]] = None,
    ) -> AsyncIterator[StreamEvent]:
        """Yield reply increments in the order the endpoint sends them.

        Raises:
            ModelConnectionError: Before any event, if the request fails.
            ModelStreamError: If the endpoint reports an error mid-stream or
                the connection breaks during a read.
        """
        url = f"{self.base_url}/api/chat"
        payload = self.build_payload(messages, tools)
        buffer = NDJSONLineBuffer()

        async with httpx.AsyncClient(transport=self._transport, timeout=None) as client:
            try:
                async with client.stream("POST", url, json=payload) as resp:
                    if resp.status_code >= 400:
                        body = (await resp.aread()).decode("utf-8", "ignore").strip()
                        raise ModelConnectionError(
                            f"Model endpoint returned {resp.status_code}: {body[:200]}"
                        )

                    try:
                        async for chunk in resp.aiter_bytes():
                            for record in buffer.feed(chunk):
                                event = _event_from_record(record)
                                if event is not None:
                                    yield event
                    except httpx.HTTPError as exc:
                        raise ModelStreamError(f"Stream interrupted: {exc}") from exc

                    for record in buffer.flush():
                        event = _event_from_record(record)
                        if event is not None:
                            yield event
            except httpx.HTTPError as exc:
                raise ModelConnectionError(
                    f"Model endpoint not reachable at {self.base_url}: {exc}"
                ) from exc

        if buffer.skipped:
            logger.info("Skipped %d malformed stream lines", buffer.skipped)
