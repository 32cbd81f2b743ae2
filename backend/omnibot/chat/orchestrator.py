"""Conversation orchestrator: drives one user turn to a sealed assistant reply.

Turn states::

    idle -> user_appended -> fast_path -> sealed
                          -> streaming -> [tool_dispatch -> streaming] -> sealed
                          -> aborted      (cancelled; partial content kept)
                          -> failed       (content replaced by the fallback)

Only one turn per session may be in flight.  Turns in different sessions are
independent: each works on its own session id and placeholder message id,
and all session changes go through :class:`SessionManager`'s keyed updates.

Cancellation is cooperative.  :meth:`ConversationOrchestrator.cancel` sets
the turn's flag and cancels the task reading the model stream, which aborts
the HTTP read.  A tool call already running is left to finish, and its
result is thrown away.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from omnibot.chat.arithmetic import is_arithmetic_expression
from omnibot.chat.prompts import build_system_prompt, calculator_failure, fallback_reply
from omnibot.chat.sessions import (
    MessageNotFoundError,
    MessageSealedError,
    SessionManager,
    SessionNotFoundError,
)
from omnibot.llm.stream_client import ModelConnectionError, ModelStreamClient, ModelStreamError
from omnibot.models.messages import ChatMessage, Citation, MessageRole, ToolType
from omnibot.tools.clients import CalculatorClient, CollaboratorError
from omnibot.tools.definitions import ToolCallDirective, ToolOutcome, ToolRegistry

logger = logging.getLogger(__name__)


class TurnState(str, Enum):
    IDLE = "idle"
    USER_APPENDED = "user_appended"
    FAST_PATH = "fast_path"
    STREAMING = "streaming"
    TOOL_DISPATCH = "tool_dispatch"
    SEALED = "sealed"
    ABORTED = "aborted"
    FAILED = "failed"
    IGNORED = "ignored"


@dataclass
class TurnEvent:
    """Progress notification for whoever renders the conversation."""

    type: str  # user | token | tool | sealed | aborted | failed
    session_id: str
    message_id: Optional[str] = None
    content: Optional[str] = None
    message: Optional[ChatMessage] = None


@dataclass
class TurnResult:
    session_id: str
    state: TurnState
    user_message: Optional[ChatMessage] = None
    assistant_message: Optional[ChatMessage] = None
    tool_messages: list[ChatMessage] = field(default_factory=list)


@dataclass
class OrchestratorConfig:
    tool_calling_enabled: bool = True
    fast_path_calculator_enabled: bool = True
    context_window: int = 10


EventListener = Callable[[TurnEvent], Awaitable[None]]


class _RoundStatus(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class _Round:
    status: _RoundStatus = _RoundStatus.COMPLETED
    text: str = ""
    tool_calls: list[ToolCallDirective] = field(default_factory=list)


@dataclass
class _Turn:
    session_id: str
    state: TurnState = TurnState.IDLE
    cancelled: asyncio.Event = field(default_factory=asyncio.Event)
    read_task: Optional[asyncio.Task] = None
    placeholder_id: Optional[str] = None


class ConversationOrchestrator:
    """Owns the send/receive lifecycle of chat turns."""

    def __init__(
        self,
        sessions: SessionManager,
        model: ModelStreamClient,
        calculator: CalculatorClient,
        tools: ToolRegistry,
        *,
        config: Optional[OrchestratorConfig] = None,
        system_prompt: Optional[str] = None,
        fallback: Optional[str] = None,
    ) -> None:
        self._sessions = sessions
        self._model = model
        self._calculator = calculator
        self._tools = tools
        self.config = config or OrchestratorConfig()
        self.system_prompt = system_prompt if system_prompt is not None else build_system_prompt()
        self.fallback = fallback if fallback is not None else fallback_reply()
        self._turns: dict[str, _Turn] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def is_busy(self, session_id: str) -> bool:
        return session_id in self._turns

    def state(self, session_id: str) -> TurnState:
        turn = self._turns.get(session_id)
        return turn.state if turn else TurnState.IDLE

    def cancel(self, session_id: str) -> bool:
        """Request cancellation of the session's open turn.

        Returns ``False`` (and does nothing) when no turn is in flight.
        """
        turn = self._turns.get(session_id)
        if turn is None:
            return False
        if not turn.cancelled.is_set():
            logger.info("Cancelling turn in session %s (state=%s)", session_id, turn.state.value)
            turn.cancelled.set()
            if turn.read_task is not None and not turn.read_task.done():
                turn.read_task.cancel()
        return True

    async def submit_turn(
        self,
        session_id: str,
        user_text: str,
        listener: Optional[EventListener] = None,
    ) -> TurnResult:
        """Run one turn; never raises for chat-level failures."""
        text = (user_text or "").strip()
        if not text:
            return TurnResult(session_id, TurnState.IGNORED)
        if session_id in self._turns:
            logger.info("Ignoring submission: session %s already has a turn in flight", session_id)
            return TurnResult(session_id, TurnState.IGNORED)
        try:
            self._sessions.get(session_id)
        except SessionNotFoundError:
            logger.warning("Ignoring submission for unknown session %s", session_id)
            return TurnResult(session_id, TurnState.IGNORED)

        turn = _Turn(session_id)
        self._turns[session_id] = turn
        try:
            return await self._run_turn(turn, text, listener)
        except (SessionNotFoundError, MessageNotFoundError, MessageSealedError) as exc:
            # The session was deleted underneath the turn.
            logger.info("Turn in session %s ended early: %r", session_id, exc)
            return TurnResult(session_id, TurnState.ABORTED)
        except Exception:
            logger.exception("Unexpected error during turn in session %s", session_id)
            return self._fail_unexpectedly(turn)
        finally:
            del self._turns[session_id]
            if turn.placeholder_id and self._sessions.is_in_flight(turn.placeholder_id):
                try:
                    self._sessions.release_message(session_id, turn.placeholder_id)
                except (SessionNotFoundError, MessageNotFoundError):
                    pass

    # ------------------------------------------------------------------
    # Turn phases
    # ------------------------------------------------------------------

    async def _run_turn(
        self, turn: _Turn, text: str, listener: Optional[EventListener]
    ) -> TurnResult:
        session_id = turn.session_id
        user_message = self._sessions.append_message(
            session_id, ChatMessage(role=MessageRole.USER, content=text)
        )
        turn.state = TurnState.USER_APPENDED
        result = TurnResult(session_id, turn.state, user_message=user_message)
        await self._emit(listener, TurnEvent("user", session_id, user_message.id, message=user_message))

        if self.config.fast_path_calculator_enabled and is_arithmetic_expression(text):
            return await self._fast_path(turn, result, text, listener)

        self._sessions.auto_title(session_id, text)
        context = self.build_context(session_id)

        placeholder = self._sessions.append_message(
            session_id, ChatMessage(role=MessageRole.ASSISTANT, content=""), in_flight=True
        )
        turn.placeholder_id = placeholder.id

        tools = self._tools.schemas() if self.config.tool_calling_enabled else None
        first = await self._stream_round(turn, context, tools, listener)
        if first.status is not _RoundStatus.COMPLETED:
            return await self._finish_unsuccessful(turn, result, first, listener)

        if not (first.tool_calls and self.config.tool_calling_enabled):
            return await self._seal(turn, result, listener)

        turn.state = TurnState.TOOL_DISPATCH
        outcomes = await self._dispatch_tools(turn, first.tool_calls)
        if turn.cancelled.is_set():
            logger.info("Discarding %d tool results after cancellation", len(outcomes))
            return await self._abort(turn, result, listener)

        for outcome in outcomes:
            tool_message = ChatMessage(
                role=MessageRole.TOOL,
                content=outcome.content,
                citations=outcome.citations or None,
                tool_type=outcome.tool_type,
            )
            self._sessions.insert_message_before(session_id, placeholder.id, tool_message)
            result.tool_messages.append(tool_message)
            await self._emit(
                listener, TurnEvent("tool", session_id, tool_message.id, message=tool_message)
            )

        followup = context + [self._assistant_tool_call_entry(first)]
        followup.extend(self._tool_entry(outcome) for outcome in outcomes)

        second = await self._stream_round(turn, followup, None, listener)
        if second.status is not _RoundStatus.COMPLETED:
            return await self._finish_unsuccessful(turn, result, second, listener)
        if second.tool_calls:
            logger.info(
                "Ignoring %d tool calls from the follow-up round in session %s",
                len(second.tool_calls),
                session_id,
            )

        tool_type, citations = self._summarize_outcomes(outcomes)
        return await self._seal(turn, result, listener, tool_type=tool_type, citations=citations)

    async def _fast_path(
        self,
        turn: _Turn,
        result: TurnResult,
        expression: str,
        listener: Optional[EventListener],
    ) -> TurnResult:
        turn.state = TurnState.FAST_PATH
        try:
            value = await self._calculator.calculate(expression)
            content = f"{expression} = {value}"
        except CollaboratorError as exc:
            logger.info("Fast-path calculation of %r failed: %s", expression, exc)
            content = calculator_failure(exc.details)

        if turn.cancelled.is_set():
            turn.state = TurnState.ABORTED
            result.state = turn.state
            await self._emit(listener, TurnEvent("aborted", turn.session_id))
            return result

        reply = self._sessions.append_message(
            turn.session_id,
            ChatMessage(
                role=MessageRole.ASSISTANT, content=content, tool_type=ToolType.CALCULATOR
            ),
        )
        turn.state = TurnState.SEALED
        result.state = turn.state
        result.assistant_message = reply
        await self._emit(listener, TurnEvent("sealed", turn.session_id, reply.id, message=reply))
        return result

    async def _stream_round(
        self,
        turn: _Turn,
        messages: list[dict[str, Any]],
        tools: Optional[list[dict[str, Any]]],
        listener: Optional[EventListener],
    ) -> _Round:
        round_ = _Round()
        if turn.cancelled.is_set():
            round_.status = _RoundStatus.CANCELLED
            return round_

        turn.state = TurnState.STREAMING
        session_id, message_id = turn.session_id, turn.placeholder_id

        async def read_stream() -> None:
            async with aclosing(self._model.stream_chat(messages, tools)) as stream:
                async for event in stream:
                    if turn.cancelled.is_set():
                        break
                    if event.text:
                        self._sessions.append_to_message(session_id, message_id, event.text)
                        round_.text += event.text
                        await self._emit(
                            listener,
                            TurnEvent("token", session_id, message_id, content=event.text),
                        )
                    if event.tool_calls:
                        round_.tool_calls.extend(event.tool_calls)

        turn.read_task = asyncio.create_task(read_stream())
        try:
            await turn.read_task
        except asyncio.CancelledError:
            if not turn.cancelled.is_set():
                # The caller itself is being cancelled.
                turn.read_task.cancel()
                raise
        except (ModelConnectionError, ModelStreamError) as exc:
            logger.warning("Model stream failed in session %s: %s", session_id, exc)
            round_.status = _RoundStatus.FAILED
        finally:
            turn.read_task = None

        if turn.cancelled.is_set():
            round_.status = _RoundStatus.CANCELLED
        return round_

    async def _dispatch_tools(
        self, turn: _Turn, directives: list[ToolCallDirective]
    ) -> list[ToolOutcome]:
        outcomes: list[ToolOutcome] = []
        for directive in directives:
            if turn.cancelled.is_set():
                break
            logger.info(
                "Dispatching tool %s(%s) for session %s",
                directive.name,
                directive.args,
                turn.session_id,
            )
            outcomes.append(await self._tools.dispatch(directive))
        return outcomes

    async def _finish_unsuccessful(
        self,
        turn: _Turn,
        result: TurnResult,
        round_: _Round,
        listener: Optional[EventListener],
    ) -> TurnResult:
        if round_.status is _RoundStatus.CANCELLED:
            return await self._abort(turn, result, listener)

        message = self._sessions.replace_content(turn.session_id, turn.placeholder_id, self.fallback)
        message = self._sessions.seal_message(turn.session_id, message.id)
        turn.state = TurnState.FAILED
        result.state = turn.state
        result.assistant_message = message
        await self._emit(listener, TurnEvent("failed", turn.session_id, message.id, message=message))
        return result

    def _fail_unexpectedly(self, turn: _Turn) -> TurnResult:
        result = TurnResult(turn.session_id, TurnState.FAILED)
        try:
            if turn.placeholder_id is None:
                result.assistant_message = self._sessions.append_message(
                    turn.session_id,
                    ChatMessage(role=MessageRole.ASSISTANT, content=self.fallback),
                )
            elif self._sessions.is_in_flight(turn.placeholder_id):
                self._sessions.replace_content(turn.session_id, turn.placeholder_id, self.fallback)
                result.assistant_message = self._sessions.seal_message(
                    turn.session_id, turn.placeholder_id
                )
        except (SessionNotFoundError, MessageNotFoundError):
            pass
        return result

    async def _abort(
        self, turn: _Turn, result: TurnResult, listener: Optional[EventListener]
    ) -> TurnResult:
        message = self._sessions.release_message(turn.session_id, turn.placeholder_id)
        turn.state = TurnState.ABORTED
        result.state = turn.state
        result.assistant_message = message
        await self._emit(listener, TurnEvent("aborted", turn.session_id, message.id, message=message))
        return result

    async def _seal(
        self,
        turn: _Turn,
        result: TurnResult,
        listener: Optional[EventListener],
        *,
        tool_type: Optional[ToolType] = None,
        citations: Optional[list[Citation]] = None,
    ) -> TurnResult:
        message = self._sessions.seal_message(
            turn.session_id, turn.placeholder_id, tool_type=tool_type, citations=citations
        )
        turn.state = TurnState.SEALED
        result.state = turn.state
        result.assistant_message = message
        await self._emit(listener, TurnEvent("sealed", turn.session_id, message.id, message=message))
        return result

    # ------------------------------------------------------------------
    # Context construction
    # ------------------------------------------------------------------

    def build_context(self, session_id: str) -> list[dict[str, Any]]:
        """System instruction plus the most recent user/assistant messages."""
        history = [
            {"role": m.role.value, "content": m.content}
            for m in self._sessions.get(session_id).messages
            if m.role is not MessageRole.TOOL and m.content
        ]
        window = self.config.context_window
        recent = history[-window:] if window > 0 else []
        return [{"role": "system", "content": self.system_prompt}, *recent]

    @staticmethod
    def _assistant_tool_call_entry(round_: _Round) -> dict[str, Any]:
        return {
            "role": "assistant",
            "content": round_.text,
            "tool_calls": [
                {"id": d.id, "function": {"name": d.name, "arguments": d.args}}
                for d in round_.tool_calls
            ],
        }

    @staticmethod
    def _tool_entry(outcome: ToolOutcome) -> dict[str, Any]:
        return {
            "role": "tool",
            "content": outcome.content,
            "tool_call_id": outcome.directive.id,
            "tool_name": outcome.directive.name,
        }

    @staticmethod
    def _summarize_outcomes(
        outcomes: list[ToolOutcome],
    ) -> tuple[Optional[ToolType], list[Citation]]:
        types = {o.tool_type for o in outcomes if o.tool_type is not None}
        if ToolType.RAG in types:
            tool_type: Optional[ToolType] = ToolType.RAG
        elif ToolType.CALCULATOR in types:
            tool_type = ToolType.CALCULATOR
        else:
            tool_type = None
        citations = [c for o in outcomes for c in o.citations]
        return tool_type, citations

    @staticmethod
    async def _emit(listener: Optional[EventListener], event: TurnEvent) -> None:
        if listener is None:
            return
        try:
            await listener(event)
        except Exception:
            logger.exception("Turn event listener failed on %s event", event.type)
