"""Wire models for the calculator and retriever services."""

from typing import Any, Optional

from pydantic import BaseModel, Field

from omnibot.models.messages import CamelModel, Citation


class CalculateRequest(BaseModel):
    """Loose request body; the service validates ``expression`` itself."""

    expression: Any = None


class CalculateResponse(BaseModel):
    expression: str
    result: str
    success: bool = True


class ServiceError(BaseModel):
    """Structured error body returned by both collaborator services."""

    error: str
    details: Optional[str] = None
    success: bool = False


class SearchRequest(BaseModel):
    query: Any = None


class SearchDocument(CamelModel):
    id: int
    title: str
    content: str
    section: Optional[str] = None
    citations: list[Citation] = Field(default_factory=list)


class SearchResponse(CamelModel):
    query: str
    documents: list[SearchDocument] = Field(default_factory=list)
    total_found: int = 0
    success: bool = True
