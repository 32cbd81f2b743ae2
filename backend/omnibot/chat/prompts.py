"""Fixed assistant texts: system instruction, welcome message and fallbacks."""

from __future__ import annotations

from typing import Optional

from omnibot.models.messages import ChatMessage, MessageRole
from omnibot.personality.loader import Personality, default_personality


def build_system_prompt(personality: Optional[Personality] = None) -> str:
    """System instruction prepended to every model request."""
    return (personality or default_personality()).system_prompt


def build_welcome_message(personality: Optional[Personality] = None) -> ChatMessage:
    """The assistant greeting a freshly seeded "Welcome" session starts with."""
    welcome = (personality or default_personality()).welcome
    return ChatMessage(
        role=MessageRole.ASSISTANT,
        content=welcome.content,
        citations=[welcome.citation] if welcome.citation else None,
    )


def fallback_reply(personality: Optional[Personality] = None) -> str:
    """Apology shown when the model endpoint cannot be reached."""
    return (personality or default_personality()).fallback_reply


def calculator_failure(details: Optional[str] = None) -> str:
    texts = default_personality().calculator
    if details:
        return texts.failure.format(details=details)
    return texts.failure_no_details


def retriever_text(key: str) -> str:
    """``failure`` or ``no_results`` wording for the document search tool."""
    return getattr(default_personality().retriever, key)
