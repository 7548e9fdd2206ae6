"""Domain models for index queries and search results."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


class MetadataFilter(BaseModel):
    """Declarative metadata filter for vector-index queries.

    Attributes
    ----------
    field:
        The metadata key to filter on (e.g. ``"docId"``, ``"source"``).
    operator:
        Comparison operator — one of ``eq``, ``ne``, ``gt``, ``gte``,
        ``lt``, ``lte``, ``in``, ``nin``.
    value:
        The value (or list of values for ``in`` / ``nin``) to compare against.
    """

    field: str
    operator: str = "eq"
    value: Any = None

    @classmethod
    def equals(cls, field: str, value: Any) -> MetadataFilter:
        return cls(field=field, operator="eq", value=value)

    @classmethod
    def one_of(cls, field: str, values: list[Any]) -> MetadataFilter:
        return cls(field=field, operator="in", value=values)

    def matches(self, metadata: dict[str, Any]) -> bool:
        """Evaluate the filter against a metadata dict in-process."""
        actual = metadata.get(self.field)
        if self.operator == "eq":
            return actual == self.value
        if self.operator == "ne":
            return actual != self.value
        if self.operator == "in":
            return actual in self.value
        if self.operator == "nin":
            return actual not in self.value
        if actual is None:
            return False
        if self.operator == "gt":
            return actual > self.value
        if self.operator == "gte":
            return actual >= self.value
        if self.operator == "lt":
            return actual < self.value
        if self.operator == "lte":
            return actual <= self.value
        raise ValueError(f"Unsupported filter operator: {self.operator!r}")


class IndexMatch(BaseModel):
    """One row returned by a similarity query."""

    id: str
    score: float | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class Citation(BaseModel):
    """Provenance record linking a retrieved chunk back to its document.

    Attributes
    ----------
    doc_id:
        Stable identifier of the source document.
    chunk_id:
        ``<docId>_<chunkIndex>`` identifier of the chunk.
    source:
        URL of the document, or ``"text"`` for caller-supplied text.
    chunk_index:
        Ordinal position of the chunk within the source document.
    score:
        Similarity score returned by the index (higher = more similar).
    retrieved_at:
        UTC timestamp of when the retrieval happened.
    """

    doc_id: str | None = None
    chunk_id: str | None = None
    source: str = "text"
    chunk_index: int | None = None
    score: float | None = None
    retrieved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def short_ref(self) -> str:
        """Return a compact ``[source§chunk]`` reference string."""
        chunk = self.chunk_index if self.chunk_index is not None else "?"
        return f"[{self.source}§{chunk}]"


class RetrievalResult(BaseModel):
    """A single retrieved passage together with its citation."""

    content: str
    citation: Citation

    def __str__(self) -> str:  # noqa: D105
        return f"{self.citation.short_ref()} {self.content[:120]}…"
