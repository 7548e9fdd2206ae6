"""Exception hierarchy for the ingestion pipeline.

Every failure surfaced to a caller is an :class:`IngestionError` subclass
carrying a stable ``kind`` string, so HTTP and CLI layers can report the
error category without inspecting types.
"""

from __future__ import annotations

from typing import Any


class IngestionError(Exception):
    """Base exception for all ingestion and indexing failures."""

    kind = "ingestion"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ValidationError(IngestionError):
    """Raised when an ingestion request is malformed.

    Neither or both of ``documentURL`` / ``documentText`` supplied, or a
    URL that is not an absolute http(s) URL.
    """

    kind = "validation"

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details)


class AcquisitionError(IngestionError):
    """Raised on a non-success HTTP response or a rendering failure."""

    kind = "acquisition"

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if url:
            details["url"] = url
        if status_code is not None:
            details["status_code"] = status_code
        self.status_code = status_code
        super().__init__(message, details)


class EmbeddingError(IngestionError):
    """Raised when the embedding model call fails or returns a bad batch."""

    kind = "embedding"


class VectorIndexError(IngestionError):
    """Raised when creating, querying, or writing the vector index fails."""

    kind = "index"

    def __init__(
        self,
        message: str,
        index_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if index_name:
            details["index_name"] = index_name
        super().__init__(message, details)
