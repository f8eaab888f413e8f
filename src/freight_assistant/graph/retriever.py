"""
retriever.py
------------
Document retrieval: nearest-neighbour search, in-memory category filtering and
lexical re-ranking.

The category is applied after the search instead of as a vector-index filter;
index-side metadata filtering proved unreliable, so we over-fetch and filter here.
"""
from __future__ import annotations

from typing import List, Optional, Protocol

import structlog
from langchain_core.vectorstores import VectorStore

from ..models import MAX_CONTEXT_DOCS, Category, RetrievedDocument
from .outcome import capture, unwrap_or
from .scoring import RelevanceScorer, default_scorer, rank_documents

logger = structlog.get_logger(__name__)


class VectorSearch(Protocol):
    async def search(self, query: str, k: int) -> List[RetrievedDocument]: ...


class VectorStoreSearch:
    """Adapts any LangChain `VectorStore` to the `VectorSearch` protocol."""

    def __init__(self, store: VectorStore) -> None:
        self.store = store

    async def search(self, query: str, k: int) -> List[RetrievedDocument]:
        docs = await self.store.asimilarity_search(query, k=k)
        return [
            RetrievedDocument(content=d.page_content, metadata=dict(d.metadata or {}))
            for d in docs
        ]


class DocumentRetriever:
    def __init__(
        self,
        search: VectorSearch,
        scorer: RelevanceScorer = default_scorer,
        search_k: int = 12,
        min_filtered: int = 3,
        context_k: int = MAX_CONTEXT_DOCS,
    ) -> None:
        self.search = search
        self.scorer = scorer
        self.search_k = search_k
        self.min_filtered = min_filtered
        self.context_k = context_k

    def filter_by_category(
        self, candidates: List[RetrievedDocument], category: Category
    ) -> List[RetrievedDocument]:
        """Keep same-category chunks unless that leaves fewer than `min_filtered`."""
        if category == Category.GENERAL:
            return candidates
        filtered = [d for d in candidates if d.category == category.value]
        if len(filtered) < self.min_filtered:
            return candidates
        return filtered

    async def retrieve(
        self, question: str, category: Category, k: Optional[int] = None
    ) -> List[RetrievedDocument]:
        k = max(0, min(self.context_k if k is None else k, MAX_CONTEXT_DOCS))
        outcome = await capture(self.search.search(question, max(self.search_k, k)))
        candidates = unwrap_or(
            outcome, [], "vector_search_failed_continuing_without_context", question=question[:80]
        )

        survivors = self.filter_by_category(list(candidates), category)
        ranked = rank_documents(survivors, question, self.scorer)
        selected = ranked[:k]
        logger.info(
            "retrieved_documents",
            candidates=len(candidates),
            after_filter=len(survivors),
            selected=len(selected),
            category=category.value,
        )
        return selected
