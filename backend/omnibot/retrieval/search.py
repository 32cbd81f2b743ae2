"""Keyword search over the fixed corpus.

Matching is case-insensitive substring containment against a document's
title or content.  Punctuation is ignored on a second pass so that
``"ecommerce"`` still finds ``"E-commerce"``.  When the whole query matches
nothing, any single query word is accepted instead.  Results keep corpus
order; there is no relevance scoring.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable

from omnibot.retrieval.corpus import DOCUMENTS, Document

logger = logging.getLogger(__name__)

MAX_RESULTS = 3
EXCERPT_CHARS = 150
MAX_EXCERPT_SENTENCES = 2
MIN_WORD_LENGTH = 3

_STOP_WORDS = frozenset(
    {"the", "and", "for", "with", "about", "what", "how", "are", "is", "can", "you", "tell"}
)
_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
_NON_WORD = re.compile(r"[^a-z0-9\s]")


@dataclass
class SearchHit:
    document: Document
    section: str


@dataclass
class SearchResult:
    query: str
    hits: list[SearchHit] = field(default_factory=list)
    total_found: int = 0


def _normalize(text: str) -> str:
    return _NON_WORD.sub("", text.lower())


def query_words(query: str) -> list[str]:
    """Significant normalized words of ``query``."""
    return [
        word
        for word in _normalize(query).split()
        if len(word) >= MIN_WORD_LENGTH and word not in _STOP_WORDS
    ]


def _contains(document: Document, needle: str, normalized: bool = False) -> bool:
    if normalized:
        return needle in _normalize(document.title) or needle in _normalize(document.content)
    return needle in document.title.lower() or needle in document.content.lower()


def _matches_query(document: Document, query: str) -> bool:
    lowered = query.lower()
    if _contains(document, lowered):
        return True
    squashed = _normalize(query).strip()
    return bool(squashed) and _contains(document, squashed, normalized=True)


def build_section(content: str, words: Iterable[str]) -> str:
    """Excerpt of ``content`` for a citation.

    Up to two sentences that contain one of ``words``; otherwise the first
    150 characters, with an ellipsis when truncated.
    """
    words = list(words)
    if words:
        sentences = [s for s in _SENTENCE_SPLIT.split(content) if s]
        overlapping = [
            sentence
            for sentence in sentences
            if any(word in _normalize(sentence) for word in words)
        ]
        if overlapping:
            return " ".join(overlapping[:MAX_EXCERPT_SENTENCES])

    if len(content) > EXCERPT_CHARS:
        return content[:EXCERPT_CHARS] + "..."
    return content


def search_documents(
    query: str,
    documents: Iterable[Document] = DOCUMENTS,
    limit: int = MAX_RESULTS,
) -> SearchResult:
    """Return up to ``limit`` matching documents in corpus order."""
    documents = list(documents)
    matching = [doc for doc in documents if _matches_query(doc, query)]

    words = query_words(query)
    if not matching and words:
        matching = [
            doc
            for doc in documents
            if any(_contains(doc, word, normalized=True) for word in words)
        ]
        logger.debug("Word-level fallback for %r matched %d documents", query, len(matching))

    hits = [
        SearchHit(document=doc, section=build_section(doc.content, words))
        for doc in matching[:limit]
    ]
    return SearchResult(query=query, hits=hits, total_found=len(matching))
