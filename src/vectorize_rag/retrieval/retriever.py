"""Semantic retriever — query the vector index with citation tracking.

Usage::

    from vectorize_rag.retrieval.retriever import SemanticRetriever

    retriever = SemanticRetriever()
    results   = retriever.search("How is the index created?", k=5)
    for r in results:
        print(r.citation.short_ref(), r.content[:80])
"""

from __future__ import annotations

import logging

from vectorize_rag.config import settings
from vectorize_rag.ingestion.embedder import EmbeddingGenerator
from vectorize_rag.retrieval.index_manager import VectorIndexManager
from vectorize_rag.retrieval.models import Citation, IndexMatch, MetadataFilter, RetrievalResult

logger = logging.getLogger(__name__)


class SemanticRetriever:
    """Embed a query and search an index built by the ingestion pipeline.

    Parameters
    ----------
    index:
        Index manager to query.
    embedder:
        Must be the same model that embedded the indexed chunks.
    index_name:
        Index to search.
    default_k:
        Default number of results returned by :meth:`search`.
    score_threshold:
        Minimum similarity score; results below this are discarded.
    """

    def __init__(
        self,
        index: VectorIndexManager | None = None,
        embedder: EmbeddingGenerator | None = None,
        *,
        index_name: str = settings.index_name,
        default_k: int = 5,
        score_threshold: float = 0.0,
    ) -> None:
        self._index = index or VectorIndexManager()
        self._embedder = embedder or EmbeddingGenerator()
        self.index_name = index_name
        self.default_k = default_k
        self.score_threshold = score_threshold

    def search(
        self,
        query: str,
        *,
        k: int | None = None,
        filters: list[MetadataFilter] | None = None,
    ) -> list[RetrievalResult]:
        """Run a semantic search and return results with citations."""
        k = k or self.default_k
        embedding = self._embedder.embed_query(query)
        matches = self._index.query(self.index_name, embedding, top_k=k, filters=filters)
        results = self._to_results(matches)
        logger.info("search returned %d results for %r", len(results), query)
        return results

    def _to_results(self, matches: list[IndexMatch]) -> list[RetrievalResult]:
        results: list[RetrievalResult] = []
        for match in matches:
            if match.score is not None and match.score < self.score_threshold:
                continue

            meta = match.metadata
            citation = Citation(
                doc_id=meta.get("docId"),
                chunk_id=meta.get("chunkId", match.id),
                source=meta.get("source", "text"),
                chunk_index=meta.get("chunkIndex"),
                score=match.score,
            )
            results.append(RetrievalResult(content=meta.get("text", ""), citation=citation))
        return results
