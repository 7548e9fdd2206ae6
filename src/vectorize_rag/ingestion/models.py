"""Domain models flowing through the ingestion pipeline."""

from __future__ import annotations

import hashlib
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ContentType(str, Enum):
    """Content types recognised by the classifier."""

    HTML = "html"
    JSON = "json"
    MARKDOWN = "markdown"
    TEXT = "text"


class AcquiredContent(BaseModel):
    """Raw content as returned by acquisition.

    Attributes
    ----------
    raw_content:
        Text or markup exactly as received.
    text:
        Visible text to chunk.  Equal to ``raw_content`` except for
        rendered / extracted HTML pages.
    source_url:
        The URL the content was fetched from, ``None`` for caller text.
    declared_type:
        ``Content-Type`` header of the HTTP response, if any.
    """

    model_config = ConfigDict(frozen=True)

    raw_content: str
    text: str
    source_url: str | None = None
    declared_type: str | None = None


class Document(BaseModel):
    """A logical unit of ingestible content.  Immutable once classified."""

    model_config = ConfigDict(frozen=True)

    id: str
    raw_content: str
    text: str
    content_type: ContentType
    source: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class Chunk(BaseModel):
    """A contiguous slice of a document's normalised text."""

    model_config = ConfigDict(frozen=True)

    text: str
    index: int
    source_document_id: str
    start_index: int = 0

    @property
    def chunk_id(self) -> str:
        return f"{self.source_document_id}_{self.index}"

    def to_metadata(self, document: Document) -> dict[str, Any]:
        """Return the flat metadata row stored next to this chunk's vector."""
        meta: dict[str, Any] = {
            "docId": self.source_document_id,
            "chunkId": self.chunk_id,
            "text": self.text,
            "chunkIndex": self.index,
            "startIndex": self.start_index,
        }
        if document.source:
            meta["source"] = document.source
        for key, value in document.metadata.items():
            if isinstance(value, (str, int, float, bool)):
                meta.setdefault(key, value)
        return meta


class IngestionResult(BaseModel):
    """Summary returned for a successful (or skipped-duplicate) ingestion."""

    model_config = ConfigDict(populate_by_name=True)

    chunk_length: int = Field(serialization_alias="chunkLength")
    doc_id: str | None = Field(default=None, serialization_alias="docId")
    duplicate: bool = False


def make_document_id(content_type: ContentType, source_url: str | None, now: datetime) -> str:
    """Derive the stable document identifier.

    URL-sourced documents hash the URL so re-ingesting the same URL maps to
    the same id.  Caller-supplied text has no identity of its own and gets
    ``<type>-<epoch millis>``.
    """
    if source_url:
        return "url-" + hashlib.sha256(source_url.encode()).hexdigest()[:16]
    return f"{content_type.value}-{int(now.timestamp() * 1000)}"
