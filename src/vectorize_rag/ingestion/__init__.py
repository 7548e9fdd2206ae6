"""
Ingestion — acquisition, classification, chunking, embedding, and indexing.

This module turns one document (a URL or caller-supplied text) into
embedded chunks stored in a vector index.

Public surface
--------------
- :class:`IngestionPipeline` — the orchestrator; one call per document.
- :class:`ContentAcquirer` — caller text, HTTP fetch, headless rendering.
- :func:`classify_content` — pure content-type sniffing.
- :func:`chunk_text` — lossless separator-based chunking.
- :class:`EmbeddingGenerator` — batched embedding calls.
"""

from vectorize_rag.ingestion.chunker import SeparatorTextSplitter, chunk_text
from vectorize_rag.ingestion.classifier import classify_content, strategy_for
from vectorize_rag.ingestion.embedder import EmbeddingGenerator, get_embedding_function
from vectorize_rag.ingestion.loader import ContentAcquirer, HttpContentSource, PlaywrightRenderer
from vectorize_rag.ingestion.models import Chunk, ContentType, Document, IngestionResult
from vectorize_rag.ingestion.pipeline import IngestionPipeline, IngestionState

__all__ = [
    "Chunk",
    "ContentAcquirer",
    "ContentType",
    "Document",
    "EmbeddingGenerator",
    "HttpContentSource",
    "IngestionPipeline",
    "IngestionResult",
    "IngestionState",
    "PlaywrightRenderer",
    "SeparatorTextSplitter",
    "chunk_text",
    "classify_content",
    "get_embedding_function",
    "strategy_for",
]
