"""In-process owner of the session collection and the active-session pointer.

Every mutation is a keyed read-modify-write: the session (and message) is
looked up by id at the moment of the update and replaced with a modified
copy, so two turns running in different sessions never overwrite each
other's changes with a stale snapshot.  Mutations are synchronous and so
cannot interleave on the event loop.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from omnibot.chat.prompts import build_welcome_message
from omnibot.models.messages import ChatMessage, Citation, ToolType
from omnibot.models.sessions import DEFAULT_TITLE, WELCOME_TITLE, Session
from omnibot.store.session_store import SessionStore

logger = logging.getLogger(__name__)

ELLIPSIS = "..."


class SessionNotFoundError(KeyError):
    """No session with the requested id exists."""


class MessageNotFoundError(KeyError):
    """No message with the requested id exists in the session."""


class MessageSealedError(RuntimeError):
    """An attempt was made to change a message that is no longer in flight."""


def derive_title(text: str, max_length: int = 50) -> str:
    """Session title from the first user message."""
    text = " ".join(text.split())
    if len(text) <= max_length:
        return text
    return text[:max_length] + ELLIPSIS


class SessionManager:
    """Holds the ordered sessions and persists them through a :class:`SessionStore`."""

    def __init__(self, store: SessionStore, *, title_max_length: int = 50) -> None:
        self._store = store
        self._title_max_length = title_max_length
        self._sessions: list[Session] = []
        self._active_session_id: Optional[str] = None
        self._in_flight: set[str] = set()
        self._dirty = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Load persisted state, seeding a welcome session when there is none."""
        state = self._store.load()
        if state is None:
            logger.info("No usable chat state found, seeding welcome session")
            seed = Session(title=WELCOME_TITLE, messages=[build_welcome_message()])
            self._sessions = [seed]
            self._active_session_id = seed.id
            self.persist()
            return

        self._sessions = list(state.sessions)
        self._active_session_id = state.active_session_id
        logger.info(
            "Loaded %d sessions (active=%s)", len(self._sessions), self._active_session_id
        )

    def persist(self) -> None:
        self._store.save(self._sessions, self._active_session_id)
        self._dirty = False

    def flush(self) -> None:
        """Persist only if a deferred mutation is pending."""
        if self._dirty:
            self.persist()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def active_session_id(self) -> Optional[str]:
        return self._active_session_id

    def sessions(self) -> list[Session]:
        return list(self._sessions)

    def get(self, session_id: str) -> Session:
        for session in self._sessions:
            if session.id == session_id:
                return session
        raise SessionNotFoundError(session_id)

    def find_message(self, session_id: str, message_id: str) -> ChatMessage:
        for message in self.get(session_id).messages:
            if message.id == message_id:
                return message
        raise MessageNotFoundError(message_id)

    def is_in_flight(self, message_id: str) -> bool:
        return message_id in self._in_flight

    # ------------------------------------------------------------------
    # Session mutations
    # ------------------------------------------------------------------

    def new_chat(self, title: Optional[str] = None) -> Session:
        session = Session(title=title or DEFAULT_TITLE)
        self._sessions.insert(0, session)
        self._active_session_id = session.id
        self.persist()
        return session

    def select(self, session_id: str) -> Session:
        session = self.get(session_id)
        self._active_session_id = session.id
        self.persist()
        return session

    def rename(self, session_id: str, title: str) -> Session:
        return self._update_session(
            session_id, lambda s: s.model_copy(update={"title": title.strip() or DEFAULT_TITLE})
        )

    def auto_title(self, session_id: str, text: str) -> Session:
        """Title the session after ``text`` if it still has the placeholder title."""
        session = self.get(session_id)
        if session.title != DEFAULT_TITLE:
            return session
        title = derive_title(text, self._title_max_length)
        return self._update_session(session_id, lambda s: s.model_copy(update={"title": title}))

    def delete(self, session_id: str) -> Optional[str]:
        """Remove a session; returns the new active session id.

        The collection never ends up empty: deleting the last session seeds a
        fresh one.
        """
        self.get(session_id)
        self._sessions = [s for s in self._sessions if s.id != session_id]

        if not self._sessions:
            seed = Session(title=WELCOME_TITLE)
            self._sessions = [seed]
            self._active_session_id = seed.id
        elif self._active_session_id == session_id:
            self._active_session_id = self._sessions[0].id

        self.persist()
        logger.info("Deleted session %s (active=%s)", session_id, self._active_session_id)
        return self._active_session_id

    # ------------------------------------------------------------------
    # Message mutations
    # ------------------------------------------------------------------

    def append_message(
        self, session_id: str, message: ChatMessage, *, in_flight: bool = False
    ) -> ChatMessage:
        self._update_session(
            session_id,
            lambda s: s.model_copy(update={"messages": [*s.messages, message]}),
        )
        if in_flight:
            self._in_flight.add(message.id)
        return message

    def insert_message_before(
        self, session_id: str, before_id: str, message: ChatMessage
    ) -> ChatMessage:
        """Insert ``message`` ahead of ``before_id`` (appends if it is gone)."""

        def insert(session: Session) -> Session:
            messages = list(session.messages)
            for index, existing in enumerate(messages):
                if existing.id == before_id:
                    messages.insert(index, message)
                    break
            else:
                messages.append(message)
            return session.model_copy(update={"messages": messages})

        self._update_session(session_id, insert)
        return message

    def append_to_message(self, session_id: str, message_id: str, text: str) -> ChatMessage:
        """Append streamed ``text`` to an in-flight message.

        Persistence is deferred until the message is sealed.
        """
        return self._update_message(
            session_id,
            message_id,
            lambda m: m.model_copy(update={"content": m.content + text}),
            persist=False,
        )

    def replace_content(self, session_id: str, message_id: str, content: str) -> ChatMessage:
        return self._update_message(
            session_id, message_id, lambda m: m.model_copy(update={"content": content})
        )

    def seal_message(
        self,
        session_id: str,
        message_id: str,
        *,
        tool_type: Optional[ToolType] = None,
        citations: Optional[list[Citation]] = None,
    ) -> ChatMessage:
        """Finalize an in-flight message; it cannot be changed afterwards."""
        update: dict = {}
        if tool_type is not None:
            update["tool_type"] = tool_type
        if citations:
            update["citations"] = list(citations)
        message = self._update_message(
            session_id, message_id, lambda m: m.model_copy(update=update)
        )
        self._in_flight.discard(message_id)
        return message

    def release_message(self, session_id: str, message_id: str) -> ChatMessage:
        """Stop tracking an in-flight message without changing it (aborted turns)."""
        self._in_flight.discard(message_id)
        self.flush()
        return self.find_message(session_id, message_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _update_session(
        self,
        session_id: str,
        change: Callable[[Session], Session],
        *,
        persist: bool = True,
    ) -> Session:
        for index, current in enumerate(self._sessions):
            if current.id == session_id:
                updated = change(current)
                self._sessions[index] = updated
                break
        else:
            raise SessionNotFoundError(session_id)

        if persist:
            self.persist()
        else:
            self._dirty = True
        return updated

    def _update_message(
        self,
        session_id: str,
        message_id: str,
        change: Callable[[ChatMessage], ChatMessage],
        *,
        persist: bool = True,
    ) -> ChatMessage:
        if message_id not in self._in_flight:
            raise MessageSealedError(message_id)

        result: list[ChatMessage] = []

        def apply(session: Session) -> Session:
            messages = list(session.messages)
            for index, message in enumerate(messages):
                if message.id == message_id:
                    messages[index] = change(message)
                    result.append(messages[index])
                    break
            else:
                raise MessageNotFoundError(message_id)
            return session.model_copy(update={"messages": messages})

        self._update_session(session_id, apply, persist=persist)
        return result[0]
