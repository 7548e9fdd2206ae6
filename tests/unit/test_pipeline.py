"""Unit tests for the ingestion orchestrator."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from conftest import CountingEmbeddings, FakeContentSource, FakeRenderer, InMemoryVectorIndex
from vectorize_rag.errors import AcquisitionError, EmbeddingError, ValidationError, VectorIndexError
from vectorize_rag.ingestion.embedder import EmbeddingGenerator
from vectorize_rag.ingestion.loader import ContentAcquirer
from vectorize_rag.ingestion.pipeline import IngestionPipeline
from vectorize_rag.retrieval.index_manager import VectorIndexManager

LONG_TEXT = "\n".join(f"Paragraph {i} talks about vector indexes." for i in range(20))
PAGE = "<html><body>" + "".join(f"<p>Para {i}</p>" for i in range(10)) + "</body></html>"


def _rows(backend: InMemoryVectorIndex) -> dict:
    return backend.indexes["embeddings"]["rows"]


class TestTextIngestion:
    def test_text_is_chunked_embedded_and_indexed(
        self, pipeline: IngestionPipeline, backend: InMemoryVectorIndex, embeddings: CountingEmbeddings
    ) -> None:
        result = pipeline.ingest(document_text=LONG_TEXT)

        assert result.chunk_length > 1
        assert not result.duplicate
        assert len(embeddings.calls) == 1
        assert len(embeddings.calls[0]) == result.chunk_length
        assert backend.count("embeddings") == result.chunk_length

    def test_index_created_with_vector_dimension(
        self, pipeline: IngestionPipeline, backend: InMemoryVectorIndex
    ) -> None:
        pipeline.ingest(document_text=LONG_TEXT)
        assert backend.indexes["embeddings"]["dimension"] == 8

    def test_markdown_scenario(self, pipeline: IngestionPipeline, backend: InMemoryVectorIndex) -> None:
        result = pipeline.ingest(document_text="# Title\n\nBody")

        assert result.doc_id == "markdown-1767225600000"
        rows = _rows(backend)
        assert len(rows) == result.chunk_length == 1
        _, meta = rows["markdown-1767225600000_0"]
        assert meta["docId"] == result.doc_id
        assert meta["chunkId"] == "markdown-1767225600000_0"
        assert meta["text"] == "# Title\n\nBody"
        assert meta["type"] == "markdown"
        assert meta["version"] == 1

    def test_every_chunk_carries_the_same_doc_id(
        self, pipeline: IngestionPipeline, backend: InMemoryVectorIndex
    ) -> None:
        result = pipeline.ingest(document_text=LONG_TEXT)
        doc_ids = {meta["docId"] for _, meta in _rows(backend).values()}
        assert doc_ids == {result.doc_id}
        assert sorted(meta["chunkIndex"] for _, meta in _rows(backend).values()) == list(
            range(result.chunk_length)
        )

    def test_empty_text_yields_zero_chunks_without_model_or_index(
        self, pipeline: IngestionPipeline, backend: InMemoryVectorIndex, embeddings: CountingEmbeddings
    ) -> None:
        result = pipeline.ingest(document_text="")

        assert result.chunk_length == 0
        assert embeddings.calls == []
        assert backend.create_calls == 0
        assert backend.upsert_calls == 0

    def test_text_ingested_at_different_times_is_not_deduplicated(
        self, index: VectorIndexManager, backend: InMemoryVectorIndex, embeddings: CountingEmbeddings
    ) -> None:
        times = iter([datetime(2026, 1, 1, tzinfo=timezone.utc), datetime(2026, 1, 2, tzinfo=timezone.utc)])
        pipeline = IngestionPipeline(
            index, EmbeddingGenerator(embeddings), ContentAcquirer(FakeContentSource(), FakeRenderer()),
            chunk_strategy="auto", chunk_size=64, chunk_overlap=8, chunk_separator=None,
            dimension=None, clock=lambda: next(times),
        )

        first = pipeline.ingest(document_text=LONG_TEXT)
        second = pipeline.ingest(document_text=LONG_TEXT)

        assert first.doc_id != second.doc_id
        assert not second.duplicate
        assert backend.count("embeddings") == first.chunk_length + second.chunk_length


class TestUrlIngestion:
    def test_reingesting_same_url_writes_nothing(
        self,
        pipeline: IngestionPipeline,
        source: FakeContentSource,
        renderer: FakeRenderer,
        backend: InMemoryVectorIndex,
    ) -> None:
        source.add("https://example.com/guide", PAGE, content_type="text/html")
        renderer.text = LONG_TEXT

        first = pipeline.ingest(document_url="https://example.com/guide")
        count_after_first = backend.count("embeddings")
        upserts_after_first = backend.upsert_calls

        second = pipeline.ingest(document_url="https://example.com/guide")

        assert first.chunk_length > 0
        assert second.duplicate
        assert second.chunk_length == first.chunk_length
        assert second.doc_id == first.doc_id
        assert backend.count("embeddings") == count_after_first
        assert backend.upsert_calls == upserts_after_first

    def test_url_metadata_records_source(
        self,
        pipeline: IngestionPipeline,
        source: FakeContentSource,
        backend: InMemoryVectorIndex,
    ) -> None:
        source.add("https://example.com/notes.md", "# Notes\n\nSome text", content_type="text/markdown")

        result = pipeline.ingest(document_url="https://example.com/notes.md")

        assert result.doc_id.startswith("url-")
        metas = [meta for _, meta in _rows(backend).values()]
        assert all(m["source"] == "https://example.com/notes.md" for m in metas)
        assert all(m["type"] == "markdown" for m in metas)

    def test_http_404_fails_before_embedding_or_index(
        self,
        pipeline: IngestionPipeline,
        source: FakeContentSource,
        backend: InMemoryVectorIndex,
        embeddings: CountingEmbeddings,
    ) -> None:
        source.add("https://example.com/missing", "Not Found", status_code=404)

        with pytest.raises(AcquisitionError, match="404"):
            pipeline.ingest(document_url="https://example.com/missing")

        assert embeddings.calls == []
        assert backend.create_calls == 0
        assert backend.query_calls == 0
        assert backend.upsert_calls == 0


class TestFailures:
    def test_missing_input_is_validation_error(
        self, pipeline: IngestionPipeline, source: FakeContentSource
    ) -> None:
        with pytest.raises(ValidationError):
            pipeline.ingest()
        assert source.fetched == []

    def test_both_inputs_are_validation_error(self, pipeline: IngestionPipeline) -> None:
        with pytest.raises(ValidationError):
            pipeline.ingest(document_url="https://example.com", document_text="x")

    def test_embedding_failure_leaves_index_untouched(self, backend: InMemoryVectorIndex) -> None:
        model = MagicMock()
        model.embed_documents.side_effect = TimeoutError("model timed out")
        pipeline = IngestionPipeline(
            VectorIndexManager(backend), EmbeddingGenerator(model),
            ContentAcquirer(FakeContentSource(), FakeRenderer()),
        )

        with pytest.raises(EmbeddingError, match="model timed out"):
            pipeline.ingest(document_text=LONG_TEXT)

        assert backend.create_calls == 0
        assert backend.upsert_calls == 0

    def test_index_failure_propagates(self, embeddings: CountingEmbeddings) -> None:
        backend = MagicMock()
        backend.query.side_effect = ConnectionError("chroma unreachable")
        pipeline = IngestionPipeline(
            VectorIndexManager(backend), EmbeddingGenerator(embeddings),
            ContentAcquirer(FakeContentSource(), FakeRenderer()),
        )

        with pytest.raises(VectorIndexError, match="chroma unreachable"):
            pipeline.ingest(document_text=LONG_TEXT)

        backend.upsert.assert_not_called()

    def test_declared_dimension_mismatch_fails_before_index(
        self, backend: InMemoryVectorIndex, embeddings: CountingEmbeddings
    ) -> None:
        pipeline = IngestionPipeline(
            VectorIndexManager(backend), EmbeddingGenerator(embeddings),
            ContentAcquirer(FakeContentSource(), FakeRenderer()),
            dimension=1024,
        )

        with pytest.raises(EmbeddingError, match="1024") as info:
            pipeline.ingest(document_text="hello world")

        assert info.value.details == {"expected": 1024, "actual": 8}
        assert backend.create_calls == 0
        assert backend.query_calls == 0
        assert backend.upsert_calls == 0

    def test_matching_declared_dimension_is_used_for_index(
        self, backend: InMemoryVectorIndex, embeddings: CountingEmbeddings
    ) -> None:
        pipeline = IngestionPipeline(
            VectorIndexManager(backend), EmbeddingGenerator(embeddings),
            ContentAcquirer(FakeContentSource(), FakeRenderer()),
            dimension=8,
        )

        pipeline.ingest(document_text="hello world")

        assert backend.indexes["embeddings"]["dimension"] == 8

    def test_validation_failure_is_logged_at_start_state(
        self, pipeline: IngestionPipeline, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.ERROR, logger="vectorize_rag.ingestion.pipeline"):
            with pytest.raises(ValidationError):
                pipeline.ingest()

        assert "Ingestion failed in state start: [validation]" in caplog.text

    def test_bad_chunk_config_fails_at_construction(
        self, index: VectorIndexManager, embeddings: CountingEmbeddings
    ) -> None:
        with pytest.raises(ValueError):
            IngestionPipeline(index, EmbeddingGenerator(embeddings), chunk_size=10, chunk_overlap=10)


def test_concurrent_ingestion_of_same_new_document_may_write_twice(
    index: VectorIndexManager, backend: InMemoryVectorIndex, embeddings: CountingEmbeddings
) -> None:
    """The dedupe probe is not atomic with the upsert: both ingestions write."""
    barrier = threading.Barrier(2)

    class BarrierIndex(VectorIndexManager):
        def find_by_document_id(self, *args, **kwargs):  # noqa: ANN002, ANN003
            found = super().find_by_document_id(*args, **kwargs)
            barrier.wait(timeout=5)
            return found

    # Same millisecond, so both requests derive the same docId.
    instant = datetime(2026, 1, 1, tzinfo=timezone.utc)

    pipeline = IngestionPipeline(
        BarrierIndex(backend), EmbeddingGenerator(embeddings),
        ContentAcquirer(FakeContentSource(), FakeRenderer()),
        chunk_size=64, chunk_overlap=8, clock=lambda: instant,
    )
    # Index exists up front so neither thread races on creation.
    index.ensure_index("embeddings", 8)

    results = []

    def run() -> None:
        results.append(pipeline.ingest(document_text=LONG_TEXT))

    threads = [threading.Thread(target=run) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert len(results) == 2
    assert all(r.chunk_length > 0 and not r.duplicate for r in results)
    assert results[0].doc_id == results[1].doc_id
    assert backend.upsert_calls == 2
    assert backend.count("embeddings") == results[0].chunk_length
