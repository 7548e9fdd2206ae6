"""Abstract base class for vector-index backends.

Adding a new backend (pgvector, Qdrant …) only requires subclassing
:class:`VectorIndexBase` and implementing the abstract methods.  The
index manager and the ingestion pipeline are backend-agnostic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from vectorize_rag.retrieval.models import IndexMatch, MetadataFilter


class VectorIndexBase(ABC):
    """Backend-agnostic vector-index interface.

    Implementations raise whatever their client raises; the
    :class:`~vectorize_rag.retrieval.index_manager.VectorIndexManager`
    translates failures into :class:`~vectorize_rag.errors.VectorIndexError`.
    """

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def create_index(self, index_name: str, dimension: int) -> None:
        """Create *index_name* with a fixed *dimension*.

        Must raise an exception whose message contains ``"already exists"``
        when the index is already present.
        """
        ...

    @abstractmethod
    def query(
        self,
        index_name: str,
        query_vector: Sequence[float],
        *,
        top_k: int = 5,
        filters: list[MetadataFilter] | None = None,
    ) -> list[IndexMatch]:
        """Return up to *top_k* matches, most similar first (possibly empty)."""
        ...

    @abstractmethod
    def upsert(
        self,
        index_name: str,
        vectors: Sequence[Sequence[float]],
        metadata: Sequence[dict[str, Any]],
    ) -> None:
        """Write one entry per vector, keyed by ``metadata[i]["chunkId"]``.

        Entries with an existing key are overwritten.  A failure must not
        leave part of the batch written.
        """
        ...

    @abstractmethod
    def count(self, index_name: str) -> int:
        """Return the number of entries stored in *index_name*."""
        ...

    # -- optional overrides ---------------------------------------------------

    def describe_index(self, index_name: str) -> int | None:
        """Return the declared dimension of *index_name*, if known."""
        return None

    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        return True
