"""Ingestion orchestrator — acquire → classify → chunk → embed → index.

One call to :meth:`IngestionPipeline.ingest` walks a strictly sequential
state machine::

    START → ACQUIRE → CLASSIFY → CHUNK → EMBED → INDEX_ENSURE
          → DEDUPE_CHECK → UPSERT → DONE

Any failure ends in ``ERROR`` and is re-raised unchanged; nothing is
retried here and no index write happens after a failure.

Re-ingesting a document whose ``docId`` is already indexed is a no-op
that still reports the chunk count.  The dedupe probe and the later
upsert are not atomic: two concurrent ingestions of the same new
document can both pass the probe and both write.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum

from vectorize_rag.config import settings
from vectorize_rag.errors import EmbeddingError, IngestionError
from vectorize_rag.ingestion.chunker import build_splitter, chunk_text
from vectorize_rag.ingestion.classifier import classify_content, strategy_for
from vectorize_rag.ingestion.embedder import EmbeddingGenerator
from vectorize_rag.ingestion.loader import ContentAcquirer, normalize_text, validate_request
from vectorize_rag.ingestion.models import Document, IngestionResult, make_document_id
from vectorize_rag.retrieval.index_manager import VectorIndexManager

logger = logging.getLogger(__name__)


class IngestionState(str, Enum):
    START = "start"
    ACQUIRE = "acquire"
    CLASSIFY = "classify"
    CHUNK = "chunk"
    EMBED = "embed"
    INDEX_ENSURE = "index_ensure"
    DEDUPE_CHECK = "dedupe_check"
    UPSERT = "upsert"
    DONE = "done"
    ERROR = "error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IngestionPipeline:
    """Ingest one document per call into a vector index.

    All collaborators are passed in, so several pipelines (different
    models, different indexes) can coexist in one process.

    Parameters
    ----------
    index:
        Index manager receiving the vectors.
    embedder:
        Embedding generator; its output dimension must match the index.
    acquirer:
        Content acquisition.  Defaults to :class:`ContentAcquirer`.
    index_name:
        Target index.
    dimension:
        Dimension declared when creating the index.  ``None`` uses the
        length of the generated vectors; otherwise vectors of any other
        length are rejected before the index is touched.
    chunk_strategy:
        ``"auto"`` picks the strategy from the content type; any other
        value forces that strategy.
    chunk_size / chunk_overlap / chunk_separator:
        Chunking parameters.
    clock:
        Returns the ingestion timestamp used for text document ids.
    """

    def __init__(
        self,
        index: VectorIndexManager,
        embedder: EmbeddingGenerator,
        acquirer: ContentAcquirer | None = None,
        *,
        index_name: str = settings.index_name,
        dimension: int | None = settings.embedding_dimension,
        chunk_strategy: str = settings.chunk_strategy,
        chunk_size: int = settings.chunk_size,
        chunk_overlap: int = settings.chunk_overlap,
        chunk_separator: str | None = settings.chunk_separator,
        document_version: int = settings.document_version,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        # Fail on bad chunking config at construction, not mid-request.
        build_splitter(
            "recursive" if chunk_strategy == "auto" else chunk_strategy,
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            separator=chunk_separator,
        )
        self.index = index
        self.embedder = embedder
        self.acquirer = acquirer or ContentAcquirer()
        self.index_name = index_name
        self.dimension = dimension
        self.chunk_strategy = chunk_strategy
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.chunk_separator = chunk_separator
        self.document_version = document_version
        self._clock = clock

    def ingest(
        self,
        *,
        document_url: str | None = None,
        document_text: str | None = None,
    ) -> IngestionResult:
        """Ingest exactly one of *document_url* / *document_text*.

        Returns
        -------
        IngestionResult
            ``chunk_length`` is the number of chunks produced; ``duplicate``
            is ``True`` when the document was already indexed and nothing
            was written.

        Raises
        ------
        IngestionError
            ``ValidationError``, ``AcquisitionError``, ``EmbeddingError``
            or ``VectorIndexError`` from the failing step.
        """
        state = IngestionState.START
        try:
            validate_request(document_url, document_text)

            state = self._enter(IngestionState.ACQUIRE)
            acquired = self.acquirer.acquire(document_url=document_url, document_text=document_text)

            state = self._enter(IngestionState.CLASSIFY)
            content_type = classify_content(
                acquired.raw_content,
                from_url=acquired.source_url is not None,
                declared_type=acquired.declared_type,
            )
            document = Document(
                id=make_document_id(content_type, acquired.source_url, self._clock()),
                raw_content=acquired.raw_content,
                text=normalize_text(acquired.text),
                content_type=content_type,
                source=acquired.source_url,
                metadata={"type": content_type.value, "version": self.document_version},
            )
            logger.debug("Classified %s as %s", document.id, content_type.value)

            state = self._enter(IngestionState.CHUNK)
            strategy = (
                strategy_for(content_type) if self.chunk_strategy == "auto" else self.chunk_strategy
            )
            chunks = chunk_text(
                document.text,
                document.id,
                strategy=strategy,
                chunk_size=self.chunk_size,
                chunk_overlap=self.chunk_overlap,
                separator=self.chunk_separator,
            )

            state = self._enter(IngestionState.EMBED)
            vectors = self.embedder.embed([c.text for c in chunks])
            if not vectors:
                logger.info("Document %s produced no chunks; nothing to index", document.id)
                self._enter(IngestionState.DONE)
                return IngestionResult(chunk_length=0, doc_id=document.id)
            dimension = len(vectors[0])
            if self.dimension is not None and self.dimension != dimension:
                raise EmbeddingError(
                    f"Embedding model returned {dimension}-dim vectors, "
                    f"index {self.index_name!r} is declared with {self.dimension}",
                    details={"expected": self.dimension, "actual": dimension},
                )

            state = self._enter(IngestionState.INDEX_ENSURE)
            self.index.ensure_index(self.index_name, dimension)

            state = self._enter(IngestionState.DEDUPE_CHECK)
            if self.index.find_by_document_id(self.index_name, vectors[0], document.id):
                logger.info("Document %s already indexed in %r; skipping upsert",
                            document.id, self.index_name)
                self._enter(IngestionState.DONE)
                return IngestionResult(chunk_length=len(chunks), doc_id=document.id, duplicate=True)

            state = self._enter(IngestionState.UPSERT)
            self.index.upsert(
                self.index_name,
                vectors,
                [chunk.to_metadata(document) for chunk in chunks],
            )
        except IngestionError as exc:
            logger.error("Ingestion failed in state %s: [%s] %s", state.value, exc.kind, exc)
            self._enter(IngestionState.ERROR)
            raise

        self._enter(IngestionState.DONE)
        logger.info("Ingested %d chunks for %s into index %r",
                    len(chunks), document.id, self.index_name)
        return IngestionResult(chunk_length=len(chunks), doc_id=document.id)

    @staticmethod
    def _enter(state: IngestionState) -> IngestionState:
        logger.debug("→ %s", state.value)
        return state
