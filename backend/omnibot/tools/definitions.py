"""Model-callable tools backed by the calculator and retriever collaborators."""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional
from uuid import uuid4

from langchain_core.messages import ToolMessage
from langchain_core.tools import BaseTool, tool
from langchain_core.utils.function_calling import convert_to_openai_tool

from omnibot.chat.prompts import calculator_failure, retriever_text
from omnibot.models.messages import Citation, ToolType
from omnibot.tools.clients import CalculatorClient, CollaboratorError, RetrieverClient

logger = logging.getLogger(__name__)

CALCULATE = "calculate"
RETRIEVE_DOCUMENTS = "retrieve_documents"

TOOL_TYPES: dict[str, ToolType] = {
    CALCULATE: ToolType.CALCULATOR,
    RETRIEVE_DOCUMENTS: ToolType.RAG,
}


@dataclass
class ToolCallDirective:
    """A structured tool invocation emitted by the model."""

    name: str
    args: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: f"call_{uuid4().hex[:12]}")


@dataclass
class ToolOutcome:
    """Result of running one directive against its collaborator."""

    directive: ToolCallDirective
    content: str
    citations: list[Citation] = field(default_factory=list)
    tool_type: Optional[ToolType] = None


def format_documents(response) -> str:
    lines = []
    for index, doc in enumerate(response.documents, 1):
        lines.append(f"[{index}] {doc.title}")
        lines.append(doc.content)
        lines.append("")
    return "\n".join(lines).strip()


def build_tools(calculator: CalculatorClient, retriever: RetrieverClient) -> list[BaseTool]:
    """Bind the two collaborator clients into LangChain tools.

    Both tools use ``content_and_artifact``: the content is what the model
    reads, the artifact is the list of citation dicts shown to the user.
    """

    @tool(CALCULATE, response_format="content_and_artifact")
    async def calculate(expression: str) -> tuple[str, list[dict[str, Any]]]:
        """Evaluate an arithmetic expression such as "2 + 3 * 4" or "sqrt(16) ^ 2".

        Use this for any arithmetic instead of computing the answer yourself.
        """
        try:
            result = await calculator.calculate(expression)
        except CollaboratorError as exc:
            logger.info("calculate(%r) failed: %s", expression, exc)
            return calculator_failure(exc.details), []
        return f"{expression} = {result}", []

    @tool(RETRIEVE_DOCUMENTS, response_format="content_and_artifact")
    async def retrieve_documents(query: str) -> tuple[str, list[dict[str, Any]]]:
        """Search the company eBusiness documents by keyword.

        Returns up to three matching documents with their titles and text.
        """
        try:
            response = await retriever.search(query)
        except CollaboratorError as exc:
            logger.info("retrieve_documents(%r) failed: %s", query, exc)
            return retriever_text("failure"), []

        if not response.documents:
            return retriever_text("no_results"), []

        citations = [
            Citation(
                id=doc.id,
                title=doc.title,
                type="document",
                section=doc.section,
            ).to_json_dict()
            for doc in response.documents
        ]
        return format_documents(response), citations

    return [calculate, retrieve_documents]


class ToolRegistry:
    """Resolves tool-call directives to their collaborators."""

    def __init__(self, tools: list[BaseTool]) -> None:
        self._tools = {t.name: t for t in tools}

    def schemas(self) -> list[dict[str, Any]]:
        """OpenAI-style function schemas for the model request."""
        return [convert_to_openai_tool(t) for t in self._tools.values()]

    async def dispatch(self, directive: ToolCallDirective) -> ToolOutcome:
        """Run ``directive``; failures come back as explanatory tool text."""
        selected = self._tools.get(directive.name)
        if selected is None:
            logger.warning("Model requested unknown tool %r", directive.name)
            return ToolOutcome(
                directive=directive,
                content=f"Tool '{directive.name}' is not available.",
            )

        try:
            message = await selected.ainvoke(
                {
                    "name": directive.name,
                    "args": directive.args,
                    "id": directive.id,
                    "type": "tool_call",
                }
            )
        except Exception as exc:
            logger.exception("Tool %s failed", directive.name)
            return ToolOutcome(
                directive=directive,
                content=f"Tool '{directive.name}' failed: {exc}",
                tool_type=TOOL_TYPES.get(directive.name),
            )

        return _outcome_from_message(directive, message)


def _outcome_from_message(directive: ToolCallDirective, message: ToolMessage) -> ToolOutcome:
    content = message.content if isinstance(message.content, str) else str(message.content)
    citations = [Citation.model_validate(c) for c in (message.artifact or [])]
    return ToolOutcome(
        directive=directive,
        content=content,
        citations=citations,
        tool_type=TOOL_TYPES.get(directive.name),
    )
