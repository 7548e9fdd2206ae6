"""Shared pytest configuration and fixtures."""

from __future__ import annotations

import hashlib
import math
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

import pytest
from langchain_core.embeddings import Embeddings

from vectorize_rag.ingestion.embedder import EmbeddingGenerator
from vectorize_rag.ingestion.loader import ContentAcquirer, FetchedResource
from vectorize_rag.ingestion.pipeline import IngestionPipeline
from vectorize_rag.retrieval.base import VectorIndexBase
from vectorize_rag.retrieval.index_manager import VectorIndexManager
from vectorize_rag.retrieval.models import IndexMatch, MetadataFilter

DIM = 8


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── Fakes ───────────────────────────────────────────────────────────────


class CountingEmbeddings(Embeddings):
    """Deterministic hash-based embeddings that record every call."""

    def __init__(self, size: int = DIM) -> None:
        self.size = size
        self.calls: list[list[str]] = []

    def _vector(self, text: str) -> list[float]:
        digest = hashlib.sha256(text.encode()).digest()
        return [(digest[i % len(digest)] - 128) / 128.0 for i in range(self.size)]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self._vector(t) for t in texts]

    def embed_query(self, text: str) -> list[float]:
        return self._vector(text)


class InMemoryVectorIndex(VectorIndexBase):
    """Dict-backed index with Chroma-like "already exists" semantics."""

    def __init__(self) -> None:
        self.indexes: dict[str, dict[str, Any]] = {}
        self.create_calls = 0
        self.query_calls = 0
        self.upsert_calls = 0

    def create_index(self, index_name: str, dimension: int) -> None:
        self.create_calls += 1
        if index_name in self.indexes:
            raise ValueError(f"Collection {index_name} already exists")
        self.indexes[index_name] = {"dimension": dimension, "rows": {}}

    def query(
        self,
        index_name: str,
        query_vector: Sequence[float],
        *,
        top_k: int = 5,
        filters: list[MetadataFilter] | None = None,
    ) -> list[IndexMatch]:
        self.query_calls += 1
        rows = self.indexes[index_name]["rows"]
        scored = []
        for row_id, (vector, meta) in rows.items():
            if filters and not all(f.matches(meta) for f in filters):
                continue
            dist = math.dist(vector, query_vector)
            scored.append(IndexMatch(id=row_id, score=1.0 / (1.0 + dist), metadata=dict(meta)))
        scored.sort(key=lambda m: m.score, reverse=True)
        return scored[:top_k]

    def upsert(
        self,
        index_name: str,
        vectors: Sequence[Sequence[float]],
        metadata: Sequence[dict[str, Any]],
    ) -> None:
        self.upsert_calls += 1
        rows = self.indexes[index_name]["rows"]
        for vector, meta in zip(vectors, metadata):
            rows[meta["chunkId"]] = (list(vector), dict(meta))

    def count(self, index_name: str) -> int:
        return len(self.indexes[index_name]["rows"])

    def describe_index(self, index_name: str) -> int | None:
        return self.indexes[index_name]["dimension"]


class FakeContentSource:
    """Serves canned responses keyed by URL."""

    def __init__(self, responses: dict[str, FetchedResource] | None = None) -> None:
        self.responses = responses or {}
        self.fetched: list[str] = []

    def add(self, url: str, text: str, status_code: int = 200, content_type: str = "") -> None:
        self.responses[url] = FetchedResource(
            url=url, status_code=status_code, text=text, content_type=content_type
        )

    def fetch(self, url: str) -> FetchedResource:
        self.fetched.append(url)
        return self.responses[url]


class FakeRenderSession:
    def __init__(self, text: str, fail_on_navigate: Exception | None = None) -> None:
        self.text = text
        self.fail_on_navigate = fail_on_navigate
        self.navigated: list[str] = []
        self.closed = False

    def navigate(self, url: str) -> None:
        self.navigated.append(url)
        if self.fail_on_navigate is not None:
            raise self.fail_on_navigate

    def extract_visible_text(self) -> str:
        return self.text

    def close(self) -> None:
        self.closed = True


class FakeRenderer:
    """Hands out :class:`FakeRenderSession` objects and keeps them for inspection."""

    def __init__(self, text: str = "Rendered text", fail_on_navigate: Exception | None = None) -> None:
        self.text = text
        self.fail_on_navigate = fail_on_navigate
        self.sessions: list[FakeRenderSession] = []

    @contextmanager
    def session(self) -> Iterator[FakeRenderSession]:
        session = FakeRenderSession(self.text, self.fail_on_navigate)
        self.sessions.append(session)
        try:
            yield session
        finally:
            session.close()


# ── Fixtures ────────────────────────────────────────────────────────────


@pytest.fixture()
def embeddings() -> CountingEmbeddings:
    return CountingEmbeddings()


@pytest.fixture()
def backend() -> InMemoryVectorIndex:
    return InMemoryVectorIndex()


@pytest.fixture()
def index(backend: InMemoryVectorIndex) -> VectorIndexManager:
    return VectorIndexManager(backend)


@pytest.fixture()
def source() -> FakeContentSource:
    return FakeContentSource()


@pytest.fixture()
def renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture()
def pipeline(
    index: VectorIndexManager,
    embeddings: CountingEmbeddings,
    source: FakeContentSource,
    renderer: FakeRenderer,
) -> IngestionPipeline:
    return IngestionPipeline(
        index,
        EmbeddingGenerator(embeddings),
        ContentAcquirer(source, renderer, render_html=True),
        index_name="embeddings",
        dimension=None,
        chunk_strategy="auto",
        chunk_size=64,
        chunk_overlap=8,
        chunk_separator=None,
        clock=lambda: datetime(2026, 1, 1, tzinfo=timezone.utc),
    )
