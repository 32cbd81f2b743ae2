"""Session models for conversation management."""

from typing import Optional

from pydantic import Field

from omnibot.models.messages import CamelModel, ChatMessage, new_id, now_ms

DEFAULT_TITLE = "New chat"
WELCOME_TITLE = "Welcome"
IMPORTED_TITLE = "Imported"

STATE_SCHEMA_VERSION = 1


class Session(CamelModel):
    """A chat session and its ordered messages."""

    id: str = Field(default_factory=new_id)
    title: str = DEFAULT_TITLE
    created_at: int = Field(default_factory=now_ms)
    messages: list[ChatMessage] = Field(default_factory=list)


class PersistedState(CamelModel):
    """Versioned document written under the session storage key."""

    version: int = STATE_SCHEMA_VERSION
    sessions: list[Session] = Field(default_factory=list)
    active_session_id: Optional[str] = None


class SessionSummary(CamelModel):
    """Summary of a session for list views."""

    id: str
    title: str
    created_at: int
    message_count: int = 0
    active: bool = False


class SessionCreate(CamelModel):
    title: Optional[str] = None


class SessionRename(CamelModel):
    title: str = ""


class TurnRequest(CamelModel):
    """Body of a non-streaming turn submission."""

    content: str = ""
