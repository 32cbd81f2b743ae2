"""Durable session store.

Lifecycle: :meth:`SessionStore.load` once at startup, :meth:`SessionStore.save`
after every mutation.  The store is the only writer of durable chat state.
"""

from __future__ import annotations

import json
import logging
from typing import Optional, Sequence

from omnibot.config import Settings
from omnibot.models.sessions import PersistedState, Session
from omnibot.store.backends import (
    FileBackend,
    KeyValueBackend,
    MemoryBackend,
    MongoBackend,
)
from omnibot.store.migrations import decode_state

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "policybot:state"
DEFAULT_MESSAGE_LIMIT = 20


class SessionStore:
    """Reads and writes the versioned session document under one key."""

    def __init__(
        self,
        backend: KeyValueBackend,
        key: str = DEFAULT_STORAGE_KEY,
        message_limit: int = DEFAULT_MESSAGE_LIMIT,
    ) -> None:
        self.backend = backend
        self.key = key
        self.message_limit = message_limit

    def load(self) -> Optional[PersistedState]:
        """Return the stored state, upgraded to the current schema, or ``None``."""
        try:
            raw = self.backend.get_item(self.key)
        except Exception:
            logger.exception("Failed to read chat state from %s", type(self.backend).__name__)
            return None
        return decode_state(raw)

    def serialize(self, sessions: Sequence[Session], active_session_id: Optional[str]) -> str:
        trimmed = [
            session.model_copy(update={"messages": self._trim(session)})
            for session in sessions
        ]
        state = PersistedState(sessions=trimmed, active_session_id=active_session_id)
        return json.dumps(state.to_json_dict())

    def save(self, sessions: Sequence[Session], active_session_id: Optional[str]) -> None:
        """Persist ``sessions``, each trimmed to its most recent messages."""
        payload = self.serialize(sessions, active_session_id)
        try:
            self.backend.set_item(self.key, payload)
        except Exception:
            # Losing a save must not take the chat down; the next save retries.
            logger.exception("Failed to persist chat state")

    def _trim(self, session: Session) -> list:
        if self.message_limit <= 0:
            return []
        return list(session.messages[-self.message_limit:])


def build_session_store(settings: Settings) -> SessionStore:
    """Create the store selected by ``settings.state_backend``."""
    backend_name = settings.state_backend.lower()
    if backend_name == "memory":
        backend: KeyValueBackend = MemoryBackend()
    elif backend_name == "mongodb":
        backend = MongoBackend(settings.mongodb_uri, settings.mongodb_database)
    elif backend_name == "file":
        backend = FileBackend(settings.state_path)
    else:
        raise ValueError(f"Unknown state backend: {settings.state_backend!r}")

    logger.info("Using %s session store (key=%s)", backend_name, settings.storage_key)
    return SessionStore(
        backend,
        key=settings.storage_key,
        message_limit=settings.persisted_message_limit,
    )
