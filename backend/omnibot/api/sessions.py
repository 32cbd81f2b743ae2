"""Session management endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from omnibot.chat.orchestrator import ConversationOrchestrator
from omnibot.chat.sessions import SessionManager, SessionNotFoundError
from omnibot.dependencies import get_orchestrator, get_session_manager
from omnibot.models.sessions import (
    Session,
    SessionCreate,
    SessionRename,
    SessionSummary,
    TurnRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def _summary(session: Session, active_id: str | None) -> dict[str, Any]:
    return SessionSummary(
        id=session.id,
        title=session.title,
        created_at=session.created_at,
        message_count=len(session.messages),
        active=session.id == active_id,
    ).to_json_dict()


def _get_or_404(manager: SessionManager, session_id: str) -> Session:
    try:
        return manager.get(session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")


@router.get("")
async def list_sessions(
    manager: SessionManager = Depends(get_session_manager),
) -> dict[str, Any]:
    """Return every session, newest first, plus the active session id."""
    active_id = manager.active_session_id
    return {
        "sessions": [_summary(s, active_id) for s in manager.sessions()],
        "activeSessionId": active_id,
    }


@router.post("", status_code=201)
async def create_session(
    body: SessionCreate | None = None,
    manager: SessionManager = Depends(get_session_manager),
) -> dict[str, Any]:
    """Start a new chat and make it the active session."""
    session = manager.new_chat(body.title if body else None)
    return session.to_json_dict()


@router.get("/{session_id}")
async def get_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> dict[str, Any]:
    """Return the session with its full message history."""
    return _get_or_404(manager, session_id).to_json_dict()


@router.patch("/{session_id}")
async def rename_session(
    session_id: str,
    body: SessionRename,
    manager: SessionManager = Depends(get_session_manager),
) -> dict[str, Any]:
    _get_or_404(manager, session_id)
    return manager.rename(session_id, body.title).to_json_dict()


@router.post("/{session_id}/activate")
async def activate_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> dict[str, Any]:
    _get_or_404(manager, session_id)
    manager.select(session_id)
    return {"activeSessionId": session_id}


@router.delete("/{session_id}")
async def delete_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Delete a chat session; a replacement is seeded if it was the last one."""
    _get_or_404(manager, session_id)
    orchestrator.cancel(session_id)
    active_id = manager.delete(session_id)
    return {"status": "deleted", "sessionId": session_id, "activeSessionId": active_id}


@router.post("/{session_id}/messages")
async def submit_message(
    session_id: str,
    body: TurnRequest,
    manager: SessionManager = Depends(get_session_manager),
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Run a whole turn and return its outcome (non-streaming clients)."""
    _get_or_404(manager, session_id)
    if orchestrator.is_busy(session_id):
        raise HTTPException(status_code=409, detail="A reply is already in progress")

    result = await orchestrator.submit_turn(session_id, body.content)
    return {
        "sessionId": session_id,
        "state": result.state.value,
        "userMessage": result.user_message.to_json_dict() if result.user_message else None,
        "assistantMessage": (
            result.assistant_message.to_json_dict() if result.assistant_message else None
        ),
        "toolMessages": [m.to_json_dict() for m in result.tool_messages],
    }


@router.post("/{session_id}/cancel")
async def cancel_turn(
    session_id: str,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Cancel the in-flight reply, if any (no-op otherwise)."""
    return {"sessionId": session_id, "cancelled": orchestrator.cancel(session_id)}
