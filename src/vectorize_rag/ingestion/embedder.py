"""Embedding generation — one model call per ingestion batch.

Supports two providers:

1. **HuggingFace** (default) — a local sentence-transformer model.
2. **OpenAI-compatible** — OpenAI cloud, or a self-hosted endpoint such as
   a vLLM server exposing ``/v1/embeddings`` (set ``EMBEDDING_BASE_URL``).
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from typing import TYPE_CHECKING

from vectorize_rag.config import settings
from vectorize_rag.errors import EmbeddingError

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

logger = logging.getLogger(__name__)


def get_embedding_function(
    provider: str = settings.embedding_provider,
    model: str = settings.embedding_model,
) -> Embeddings:
    """Return the configured LangChain embedding model.

    Provider packages are imported lazily so only the selected one has to
    be importable.
    """
    if provider == "huggingface":
        from langchain_huggingface import HuggingFaceEmbeddings

        return HuggingFaceEmbeddings(model_name=model)

    if provider == "openai":
        from langchain_openai import OpenAIEmbeddings

        kwargs: dict = {"model": model, "timeout": settings.embedding_timeout}
        if settings.embedding_base_url:
            logger.info("Using OpenAI-compatible embedding endpoint: %s", settings.embedding_base_url)
            kwargs["base_url"] = settings.embedding_base_url
            # Self-hosted servers expect raw strings, not tiktoken ids.
            kwargs["check_embedding_ctx_length"] = False
            kwargs["api_key"] = settings.openai_api_key or "EMPTY"
        else:
            kwargs["api_key"] = settings.openai_api_key
        return OpenAIEmbeddings(**kwargs)

    raise ValueError(f"Unsupported embedding_provider={provider!r}. Choose from: huggingface, openai.")


class EmbeddingGenerator:
    """Turn chunk texts into vectors with a LangChain ``Embeddings`` model.

    Parameters
    ----------
    embeddings:
        The model to call.  When *None*, :func:`get_embedding_function`
        builds one from the global settings.
    """

    def __init__(self, embeddings: Embeddings | None = None) -> None:
        self._embeddings = embeddings if embeddings is not None else get_embedding_function()

    def embed(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed *texts* in a single model call, preserving order.

        An empty input returns ``[]`` without calling the model.

        Raises
        ------
        EmbeddingError
            If the call fails, or the model returns the wrong number of
            vectors or vectors of differing length.
        """
        if not texts:
            return []

        t0 = time.monotonic()
        try:
            vectors = self._embeddings.embed_documents(list(texts))
        except Exception as exc:
            raise EmbeddingError(f"Embedding call failed: {exc}") from exc
        elapsed = time.monotonic() - t0

        if len(vectors) != len(texts):
            raise EmbeddingError(
                f"Embedding model returned {len(vectors)} vectors for {len(texts)} texts"
            )
        dims = {len(v) for v in vectors}
        if len(dims) != 1:
            raise EmbeddingError(
                f"Embedding model returned vectors of mixed dimension: {sorted(dims)}"
            )

        logger.info("Embedded %d chunks (dim=%d) in %.2fs", len(vectors), dims.pop(), elapsed)
        return [list(v) for v in vectors]

    def embed_query(self, text: str) -> list[float]:
        """Embed a single search query."""
        try:
            return list(self._embeddings.embed_query(text))
        except Exception as exc:
            raise EmbeddingError(f"Embedding call failed: {exc}") from exc
