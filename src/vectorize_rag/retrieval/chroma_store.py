"""Chroma implementation of the vector-index abstraction."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import chromadb

from vectorize_rag.config import settings
from vectorize_rag.retrieval.base import VectorIndexBase
from vectorize_rag.retrieval.models import IndexMatch, MetadataFilter

logger = logging.getLogger(__name__)

_OP_MAP = {
    "eq": "$eq",
    "ne": "$ne",
    "gt": "$gt",
    "gte": "$gte",
    "lt": "$lt",
    "lte": "$lte",
    "in": "$in",
    "nin": "$nin",
}


def _build_chroma_where(filters: list[MetadataFilter]) -> dict[str, Any] | None:
    """Convert a list of :class:`MetadataFilter` to Chroma ``where`` syntax."""
    if not filters:
        return None

    clauses: list[dict[str, Any]] = []
    for f in filters:
        chroma_op = _OP_MAP.get(f.operator)
        if chroma_op is None:
            raise ValueError(f"Unsupported filter operator: {f.operator!r}")
        clauses.append({f.field: {chroma_op: f.value}})

    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def _flat_metadata(meta: dict[str, Any]) -> dict[str, Any]:
    # Chroma metadata values must be flat str/int/float/bool; text is stored
    # as the document body instead.
    return {
        k: v
        for k, v in meta.items()
        if k != "text" and isinstance(v, (str, int, float, bool))
    }


class ChromaVectorIndex(VectorIndexBase):
    """Chroma-backed vector index; one collection per index name.

    The declared dimension is stored in the collection metadata under
    ``"dimension"``.

    Parameters
    ----------
    client:
        A ready ``chromadb`` client.  When *None*, an ``HttpClient`` is
        created for *host* / *port*.
    host:
        Chroma server hostname.
    port:
        Chroma server port.
    distance_metric:
        Distance function for new collections (``cosine`` | ``l2`` | ``ip``).
    upsert_batch_size:
        Max records per upsert call.
    """

    def __init__(
        self,
        client: Any = None,
        *,
        host: str = settings.chroma_host,
        port: int = settings.chroma_port,
        distance_metric: str = settings.distance_metric,
        upsert_batch_size: int = settings.upsert_batch_size,
    ) -> None:
        self._client = client if client is not None else chromadb.HttpClient(host=host, port=port)
        self.distance_metric = distance_metric
        self.upsert_batch_size = upsert_batch_size

    def _collection(self, index_name: str) -> Any:
        return self._client.get_collection(name=index_name, embedding_function=None)

    # -- VectorIndexBase overrides --------------------------------------------

    def create_index(self, index_name: str, dimension: int) -> None:
        # create_collection raises "Collection ... already exists" on conflict.
        self._client.create_collection(
            name=index_name,
            metadata={"dimension": dimension, "hnsw:space": self.distance_metric},
            embedding_function=None,
        )
        logger.info("Created Chroma collection %r (dim=%d)", index_name, dimension)

    def query(
        self,
        index_name: str,
        query_vector: Sequence[float],
        *,
        top_k: int = 5,
        filters: list[MetadataFilter] | None = None,
    ) -> list[IndexMatch]:
        where = _build_chroma_where(filters) if filters else None

        results = self._collection(index_name).query(
            query_embeddings=[list(query_vector)],
            n_results=top_k,
            where=where,
            include=["documents", "metadatas", "distances"],
        )

        ids = (results.get("ids") or [[]])[0]
        docs = (results.get("documents") or [[]])[0]
        metas = (results.get("metadatas") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]

        matches: list[IndexMatch] = []
        for entry_id, content, meta, dist in zip(ids, docs, metas, distances):
            metadata = dict(meta or {})
            metadata.setdefault("text", content or "")
            matches.append(
                IndexMatch(
                    id=entry_id,
                    # Chroma returns distances; convert to a 0-1 similarity score.
                    score=1.0 / (1.0 + dist) if dist is not None else None,
                    metadata=metadata,
                )
            )
        return matches

    def upsert(
        self,
        index_name: str,
        vectors: Sequence[Sequence[float]],
        metadata: Sequence[dict[str, Any]],
    ) -> None:
        collection = self._collection(index_name)
        ids = [m["chunkId"] for m in metadata]
        documents = [m.get("text", "") for m in metadata]
        metadatas = [_flat_metadata(m) for m in metadata]
        embeddings = [list(v) for v in vectors]

        # All-or-nothing: a failed batch deletes the rows this call already wrote.
        written: list[str] = []
        try:
            for start in range(0, len(ids), self.upsert_batch_size):
                end = start + self.upsert_batch_size
                collection.upsert(
                    ids=ids[start:end],
                    embeddings=embeddings[start:end],
                    documents=documents[start:end],
                    metadatas=metadatas[start:end],
                )
                written.extend(ids[start:end])
                logger.debug("Upserted rows %d-%d into %r", start, min(end, len(ids)), index_name)
        except Exception:
            if written:
                logger.warning("Upsert into %r failed after %d rows; removing them",
                               index_name, len(written))
                collection.delete(ids=written)
            raise

    def count(self, index_name: str) -> int:
        return self._collection(index_name).count()

    def describe_index(self, index_name: str) -> int | None:
        meta = self._collection(index_name).metadata or {}
        dimension = meta.get("dimension")
        return int(dimension) if dimension is not None else None

    def health_check(self) -> bool:
        try:
            self._client.heartbeat()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False
