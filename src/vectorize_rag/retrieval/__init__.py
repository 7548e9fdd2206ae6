"""
Retrieval — the vector index boundary and semantic search over it.

The ingestion pipeline only ever talks to :class:`VectorIndexManager`, so
the backing database can be swapped without touching ingestion code.

Public surface
--------------
- :class:`VectorIndexBase` — abstract backend (subclass for pgvector, etc.).
- :class:`ChromaVectorIndex` — default Chroma backend.
- :class:`VectorIndexManager` — idempotent index creation, dedupe probe, upsert.
- :class:`SemanticRetriever` — query-by-text with citations.
- :class:`Citation`, :class:`RetrievalResult`, :class:`MetadataFilter` — data models.
"""

from vectorize_rag.retrieval.base import VectorIndexBase
from vectorize_rag.retrieval.index_manager import VectorIndexManager
from vectorize_rag.retrieval.models import Citation, IndexMatch, MetadataFilter, RetrievalResult
from vectorize_rag.retrieval.retriever import SemanticRetriever

__all__ = [
    "Citation",
    "ChromaVectorIndex",
    "IndexMatch",
    "MetadataFilter",
    "RetrievalResult",
    "SemanticRetriever",
    "VectorIndexBase",
    "VectorIndexManager",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import ChromaVectorIndex to avoid pulling in chromadb at import time."""
    if name == "ChromaVectorIndex":
        from vectorize_rag.retrieval.chroma_store import ChromaVectorIndex

        return ChromaVectorIndex
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
