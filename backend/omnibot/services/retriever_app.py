"""Keyword retriever HTTP service.

Run with::

    uvicorn omnibot.services.retriever_app:app --port 3002
"""

import logging
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from omnibot.config import settings
from omnibot.models.messages import Citation
from omnibot.models.tools import (
    SearchDocument,
    SearchRequest,
    SearchResponse,
    ServiceError,
)
from omnibot.retrieval.corpus import DOCUMENTS
from omnibot.retrieval.search import search_documents

logger = logging.getLogger(__name__)

app = FastAPI(
    title="OmniBot Retriever API",
    description="Keyword search over the eBusiness document corpus",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.post("/search")
async def search(request: SearchRequest) -> Any:
    """Return the first three documents matching ``query``."""
    query = request.query
    if not query or not isinstance(query, str):
        return JSONResponse(
            status_code=400,
            content=ServiceError(
                error="Query is required and must be a string"
            ).model_dump(exclude_none=True),
        )

    result = search_documents(query)
    logger.info(
        "Search %r matched %d documents (returning %d)",
        query,
        result.total_found,
        len(result.hits),
    )

    documents = [
        SearchDocument(
            id=hit.document.id,
            title=hit.document.title,
            content=hit.document.content,
            section=hit.section,
            citations=[
                Citation(id=hit.document.id, title=hit.document.title, type="document")
            ],
        )
        for hit in result.hits
    ]
    response = SearchResponse(
        query=query, documents=documents, total_found=result.total_found
    )
    return response.to_json_dict()


@app.get("/health")
async def health_check() -> dict[str, Any]:
    return {
        "status": "OK",
        "documentCount": len(DOCUMENTS),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/documents")
async def list_documents() -> dict[str, Any]:
    """Dump the whole corpus (debugging aid)."""
    return {
        "documents": [asdict(doc) for doc in DOCUMENTS],
        "total": len(DOCUMENTS),
    }


logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
