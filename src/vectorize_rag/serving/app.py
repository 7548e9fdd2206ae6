"""FastAPI application exposing the ingestion pipeline as a REST API."""

from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from vectorize_rag.config import settings
from vectorize_rag.errors import IngestionError
from vectorize_rag.ingestion.embedder import EmbeddingGenerator
from vectorize_rag.ingestion.pipeline import IngestionPipeline
from vectorize_rag.retrieval.index_manager import VectorIndexManager
from vectorize_rag.retrieval.retriever import SemanticRetriever

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Vectorize RAG API",
    version="0.1.0",
    description="Document ingestion into a vector index, and semantic search over it.",
)

_STATUS_BY_KIND = {
    "validation": 422,
    "acquisition": 502,
    "embedding": 502,
    "index": 503,
}


# ── Request / Response schemas ────────────────────────────────────────
class VectorizeRequest(BaseModel):
    """Exactly one of ``documentURL`` / ``documentText``."""

    model_config = ConfigDict(populate_by_name=True)

    document_url: str | None = Field(default=None, alias="documentURL")
    document_text: str | None = Field(default=None, alias="documentText")


class VectorizeResponse(BaseModel):
    chunkLength: int
    docId: str | None = None
    duplicate: bool = False


class SearchRequest(BaseModel):
    query: str
    k: int = Field(default=5, ge=1, le=100)


class SearchHit(BaseModel):
    content: str
    docId: str | None = None
    chunkId: str | None = None
    source: str
    score: float | None = None


class SearchResponse(BaseModel):
    results: list[SearchHit] = []


# ── Dependencies ──────────────────────────────────────────────────────
@lru_cache
def get_index() -> VectorIndexManager:
    return VectorIndexManager()


@lru_cache
def get_embedder() -> EmbeddingGenerator:
    return EmbeddingGenerator()


def get_pipeline(
    index: VectorIndexManager = Depends(get_index),
    embedder: EmbeddingGenerator = Depends(get_embedder),
) -> IngestionPipeline:
    return IngestionPipeline(index, embedder)


def get_retriever(
    index: VectorIndexManager = Depends(get_index),
    embedder: EmbeddingGenerator = Depends(get_embedder),
) -> SemanticRetriever:
    return SemanticRetriever(index, embedder)


# ── Errors ────────────────────────────────────────────────────────────
@app.exception_handler(IngestionError)
async def ingestion_error_handler(request: Request, exc: IngestionError) -> JSONResponse:
    return JSONResponse(
        status_code=_STATUS_BY_KIND.get(exc.kind, 500),
        content={"error": exc.kind, "message": exc.message},
    )


# ── Routes ────────────────────────────────────────────────────────────
@app.get("/health")
def health(index: VectorIndexManager = Depends(get_index)) -> JSONResponse:
    """Readiness probe: 503 while the vector index backend is unreachable."""
    if index.health_check():
        return JSONResponse(status_code=200, content={"status": "ok"})
    return JSONResponse(status_code=503, content={"status": "unavailable"})


# Sync handlers run in the threadpool: one worker thread per request.
@app.post("/vectorize", response_model=VectorizeResponse)
def vectorize(
    request: VectorizeRequest,
    pipeline: IngestionPipeline = Depends(get_pipeline),
) -> VectorizeResponse:
    """Fetch or accept a document, chunk, embed, and index it."""
    result = pipeline.ingest(document_url=request.document_url, document_text=request.document_text)
    return VectorizeResponse(
        chunkLength=result.chunk_length,
        docId=result.doc_id,
        duplicate=result.duplicate,
    )


@app.post("/search", response_model=SearchResponse)
def search(
    request: SearchRequest,
    retriever: SemanticRetriever = Depends(get_retriever),
) -> SearchResponse:
    """Return the chunks most similar to ``query``."""
    results = retriever.search(request.query, k=request.k)
    return SearchResponse(
        results=[
            SearchHit(
                content=r.content,
                docId=r.citation.doc_id,
                chunkId=r.citation.chunk_id,
                source=r.citation.source,
                score=r.citation.score,
            )
            for r in results
        ]
    )
