"""WebSocket endpoint for real-time chat with the assistant."""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import WebSocket, WebSocketDisconnect

from omnibot.chat.orchestrator import ConversationOrchestrator, TurnEvent
from omnibot.chat.sessions import SessionManager, SessionNotFoundError
from omnibot.dependencies import get_orchestrator, get_session_manager

logger = logging.getLogger(__name__)


async def websocket_chat(websocket: WebSocket) -> None:
    """Handle WebSocket connections for real-time chat.

    Protocol:
        Client sends JSON: {"type": "text", "content": "..."}
        Client sends JSON: {"type": "cancel"} to stop the reply in progress
        Server sends JSON: {"type": "status"|"user"|"token"|"tool"|"sealed"|
                            "aborted"|"failed"|"error", "content": "...",
                            "session_id": "...", "message_id": "...",
                            "message": {...}, "timestamp": "..."}

    The receive loop keeps running while a reply streams so that a
    ``cancel`` frame can interrupt it.
    """
    manager: SessionManager = get_session_manager(websocket)
    orchestrator: ConversationOrchestrator = get_orchestrator(websocket)

    session_id = websocket.query_params.get("session_id") or manager.active_session_id
    await websocket.accept()

    try:
        manager.get(session_id)
    except SessionNotFoundError:
        await _send_message(websocket, "error", "Session not found", session_id)
        await websocket.close(code=1008)
        return

    logger.info("WebSocket connected: session_id=%s", session_id)
    await _send_message(websocket, "status", "Connected", session_id)

    async def relay(event: TurnEvent) -> None:
        await _send_event(websocket, event)

    turn_task: Optional[asyncio.Task] = None

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                await _send_message(websocket, "error", "Invalid JSON", session_id)
                continue

            msg_type = data.get("type", "text")
            content = data.get("content") or ""

            if msg_type == "cancel":
                cancelled = orchestrator.cancel(session_id)
                await _send_message(
                    websocket,
                    "status",
                    "Cancelling" if cancelled else "Nothing to cancel",
                    session_id,
                )
            elif msg_type == "text" and isinstance(content, str) and content.strip():
                if orchestrator.is_busy(session_id):
                    await _send_message(
                        websocket, "error", "A reply is already in progress", session_id
                    )
                    continue
                turn_task = asyncio.create_task(
                    orchestrator.submit_turn(session_id, content, listener=relay)
                )
            else:
                await _send_message(
                    websocket, "error", "Empty or unsupported message", session_id
                )

    except WebSocketDisconnect:
        logger.info("WebSocket disconnected: session_id=%s", session_id)
    except Exception as exc:
        logger.exception("WebSocket error for session %s", session_id)
        try:
            await _send_message(websocket, "error", str(exc), session_id)
        except Exception:
            pass
    finally:
        if turn_task is not None and not turn_task.done():
            orchestrator.cancel(session_id)
            await asyncio.gather(turn_task, return_exceptions=True)


async def _send_event(websocket: WebSocket, event: TurnEvent) -> None:
    payload: dict[str, Any] = {
        "type": event.type,
        "content": event.content,
        "session_id": event.session_id,
        "message_id": event.message_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if event.message is not None:
        payload["message"] = event.message.to_json_dict()
    try:
        await websocket.send_json(payload)
    except (WebSocketDisconnect, RuntimeError):
        # Client went away mid-turn; the turn itself still completes.
        logger.debug("Dropping %s event for closed socket", event.type)


async def _send_message(
    websocket: WebSocket,
    msg_type: str,
    content: str,
    session_id: Optional[str],
) -> None:
    """Send a structured JSON message over the WebSocket."""
    payload = {
        "type": msg_type,
        "content": content,
        "session_id": session_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    await websocket.send_json(payload)
