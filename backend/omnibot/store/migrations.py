"""Upgrade persisted chat state to the current schema.

Known shapes, oldest first:

* **legacy** - ``{"messages": [...]}``: a single unnamed conversation from
  before sessions existed.  Becomes one session titled ``"Imported"``.
* **unversioned** - ``{"sessions": [...], "activeSessionId": "..."}``.
* **version 1** - the unversioned shape plus ``"version": 1``.

Anything else, including unparseable JSON, yields ``None`` and the caller
seeds a fresh default session.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Optional

from pydantic import ValidationError

from omnibot.models.sessions import (
    IMPORTED_TITLE,
    STATE_SCHEMA_VERSION,
    PersistedState,
    Session,
)

logger = logging.getLogger(__name__)


def _from_legacy_messages(data: dict[str, Any]) -> dict[str, Any]:
    session = Session(title=IMPORTED_TITLE).to_json_dict()
    session["messages"] = data["messages"]
    return {"version": 1, "sessions": [session], "activeSessionId": session["id"]}


def _from_unversioned(data: dict[str, Any]) -> dict[str, Any]:
    return {
        "version": 1,
        "sessions": data["sessions"],
        "activeSessionId": data.get("activeSessionId"),
    }


def detect_version(data: dict[str, Any]) -> Optional[int]:
    """Schema version of ``data``: -1 legacy, 0 unversioned, or its number."""
    version = data.get("version")
    if isinstance(version, int) and not isinstance(version, bool):
        return version
    if isinstance(data.get("sessions"), list) and data["sessions"]:
        return 0
    if isinstance(data.get("messages"), list):
        return -1
    return None


# version -> function producing the next version's document
MIGRATIONS: dict[int, Callable[[dict[str, Any]], dict[str, Any]]] = {
    -1: _from_legacy_messages,
    0: _from_unversioned,
}


def migrate(data: Any) -> Optional[PersistedState]:
    """Upgrade a decoded document to a validated :class:`PersistedState`."""
    if not isinstance(data, dict):
        return None

    version = detect_version(data)
    if version is None:
        logger.warning("Discarding chat state of unknown shape (keys=%s)", sorted(data))
        return None

    while version < STATE_SCHEMA_VERSION:
        step = MIGRATIONS.get(version)
        if step is None:
            logger.warning("No migration from chat state version %s", version)
            return None
        logger.info("Migrating chat state from version %s", version)
        data = step(data)
        version = detect_version(data)
        if version is None:
            return None

    if version > STATE_SCHEMA_VERSION:
        logger.warning("Chat state version %s is newer than supported", version)
        return None

    try:
        state = PersistedState.model_validate(data)
    except ValidationError as exc:
        logger.warning("Discarding invalid chat state: %s", exc)
        return None

    if not state.sessions:
        return None

    known_ids = {session.id for session in state.sessions}
    if state.active_session_id not in known_ids:
        state.active_session_id = state.sessions[0].id
    return state


def decode_state(raw: Optional[str]) -> Optional[PersistedState]:
    """Parse and migrate a serialized state string; ``None`` when unusable."""
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning("Discarding unparseable chat state: %s", exc)
        return None
    return migrate(data)
