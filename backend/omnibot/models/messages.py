"""Message models shared by the orchestrator, the session store and the API."""

import time
from enum import Enum
from typing import Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def new_id() -> str:
    return str(uuid4())


class CamelModel(BaseModel):
    """Base model that reads and writes the camelCase persisted shape."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class MessageRole(str, Enum):
    """Message sender role."""

    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ToolType(str, Enum):
    """Which collaborator produced an assistant answer."""

    CALCULATOR = "calculator"
    RAG = "rag"


class Citation(CamelModel):
    """Provenance of content shown in an assistant message."""

    title: str
    section_or_page: Optional[str] = None
    section: Optional[str] = None
    type: Optional[str] = None
    id: Optional[Union[int, str]] = None


class ChatMessage(CamelModel):
    """A single chat message.

    ``content`` only changes while the message is in flight; ``created_at``
    is assigned once at construction.
    """

    id: str = Field(default_factory=new_id)
    role: MessageRole
    content: str = ""
    citations: Optional[list[Citation]] = None
    tool_type: Optional[ToolType] = None
    created_at: int = Field(default_factory=now_ms)
