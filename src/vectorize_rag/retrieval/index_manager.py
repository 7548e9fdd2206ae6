"""Index lifecycle, duplicate detection and writes on top of a backend."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from vectorize_rag.config import settings
from vectorize_rag.errors import VectorIndexError
from vectorize_rag.retrieval.base import VectorIndexBase
from vectorize_rag.retrieval.models import IndexMatch, MetadataFilter

logger = logging.getLogger(__name__)


class VectorIndexManager:
    """Backend-agnostic operations the ingestion pipeline relies on.

    Every backend failure is re-raised as :class:`VectorIndexError`
    carrying the backend's message.

    Parameters
    ----------
    backend:
        A concrete vector-index backend.  When *None*, a default
        :class:`~vectorize_rag.retrieval.chroma_store.ChromaVectorIndex`
        is created from the global settings.
    verify_dimension:
        When ``True``, :meth:`ensure_index` rejects an existing index whose
        declared dimension differs from the requested one.  When ``False``
        an existing index is accepted whatever its dimension.
    """

    def __init__(
        self,
        backend: VectorIndexBase | None = None,
        *,
        verify_dimension: bool = settings.verify_index_dimension,
    ) -> None:
        if backend is None:
            from vectorize_rag.retrieval.chroma_store import ChromaVectorIndex

            backend = ChromaVectorIndex()
        self.backend = backend
        self.verify_dimension = verify_dimension

    def ensure_index(self, index_name: str, dimension: int) -> None:
        """Create *index_name* unless it already exists.  Idempotent."""
        try:
            self.backend.create_index(index_name, dimension)
        except Exception as exc:
            if "already exists" not in str(exc).lower():
                raise VectorIndexError(
                    f"Failed to create index: {exc}", index_name=index_name
                ) from exc
            logger.info("Using existing index %r", index_name)
            if self.verify_dimension:
                self._check_dimension(index_name, dimension)
            return
        logger.info("Index %r ready (dim=%d)", index_name, dimension)

    def _check_dimension(self, index_name: str, dimension: int) -> None:
        try:
            existing = self.backend.describe_index(index_name)
        except Exception as exc:
            raise VectorIndexError(
                f"Failed to describe index: {exc}", index_name=index_name
            ) from exc
        if existing is not None and existing != dimension:
            raise VectorIndexError(
                f"Index dimension mismatch: index has {existing}, vectors have {dimension}",
                index_name=index_name,
                details={"expected": existing, "actual": dimension},
            )

    def find_by_document_id(
        self,
        index_name: str,
        probe_vector: Sequence[float],
        doc_id: str,
    ) -> bool:
        """Return ``True`` if any entry of *doc_id* is already indexed."""
        matches = self.query(
            index_name,
            probe_vector,
            top_k=1,
            filters=[MetadataFilter.equals("docId", doc_id)],
        )
        return bool(matches)

    def query(
        self,
        index_name: str,
        query_vector: Sequence[float],
        *,
        top_k: int = 5,
        filters: list[MetadataFilter] | None = None,
    ) -> list[IndexMatch]:
        try:
            return self.backend.query(index_name, query_vector, top_k=top_k, filters=filters)
        except Exception as exc:
            raise VectorIndexError(f"Index query failed: {exc}", index_name=index_name) from exc

    def upsert(
        self,
        index_name: str,
        vectors: Sequence[Sequence[float]],
        metadata: Sequence[dict[str, Any]],
    ) -> None:
        """Write entry *i* as ``vectors[i]`` paired with ``metadata[i]``."""
        if len(vectors) != len(metadata):
            raise VectorIndexError(
                f"Got {len(vectors)} vectors but {len(metadata)} metadata rows",
                index_name=index_name,
            )
        if not vectors:
            return
        try:
            self.backend.upsert(index_name, vectors, metadata)
        except Exception as exc:
            raise VectorIndexError(f"Index upsert failed: {exc}", index_name=index_name) from exc

    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable."""
        return self.backend.health_check()

    def count(self, index_name: str) -> int:
        try:
            return self.backend.count(index_name)
        except Exception as exc:
            raise VectorIndexError(f"Index count failed: {exc}", index_name=index_name) from exc
