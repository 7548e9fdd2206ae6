"""Text chunking strategies."""

from __future__ import annotations

from typing import Any

from langchain_text_splitters import TextSplitter

from vectorize_rag.config import settings
from vectorize_rag.ingestion.models import Chunk

STRATEGY_SEPARATORS: dict[str, str] = {
    "recursive": "\n",
    "paragraph": "\n\n",
    "character": "",
}


class SeparatorTextSplitter(TextSplitter):
    """Greedy separator-based splitter that never loses text.

    The input is cut into units that each end with the separator.  Units
    are packed into a chunk until the next one would push it past
    ``chunk_size``; the following chunk is then seeded with the trailing
    ``chunk_overlap`` characters of the previous one.  Every chunk is a
    contiguous slice of the input, so dropping each chunk's overlap and
    concatenating gives back the original text.

    A unit longer than ``chunk_size`` becomes its own oversized chunk.
    The overlap seed is shortened when it would push a chunk built from a
    fitting unit past ``chunk_size``.

    ``RecursiveCharacterTextSplitter`` is not a drop-in here: it overlaps
    whole units rather than characters, re-splits oversized units with
    finer separators, and trims whitespace between pieces, so its chunks
    cannot be stitched back into the input.  Only the ``TextSplitter``
    interface (``split_text``, ``split_documents``) is inherited.

    Parameters
    ----------
    separator:
        Split boundary.  An empty string splits into single characters,
        which yields fixed-size windows.
    chunk_size:
        Maximum number of characters per chunk.
    chunk_overlap:
        Number of characters shared with the preceding chunk.
    """

    def __init__(
        self,
        separator: str = "\n",
        chunk_size: int = 512,
        chunk_overlap: int = 50,
        **kwargs: Any,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size ({chunk_size}) must be > 0")
        if chunk_overlap < 0 or chunk_overlap >= chunk_size:
            raise ValueError(
                f"chunk_overlap ({chunk_overlap}) must be >= 0 and < chunk_size ({chunk_size})"
            )
        kwargs.setdefault("strip_whitespace", False)
        super().__init__(chunk_size=chunk_size, chunk_overlap=chunk_overlap, **kwargs)
        self.separator = separator
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    def _units(self, text: str) -> list[str]:
        if not self.separator:
            return list(text)
        parts = text.split(self.separator)
        units = [part + self.separator for part in parts[:-1]]
        if parts[-1]:
            units.append(parts[-1])
        return units

    def split_spans(self, text: str) -> list[tuple[int, int]]:
        """Return ``(start, end)`` character offsets of each chunk in *text*."""
        if not text:
            return []

        spans: list[tuple[int, int]] = []
        start = end = 0
        for unit in self._units(text):
            size = len(unit)
            if end > start and (end - start) + size > self.chunk_size:
                spans.append((start, end))
                overlap = min(self.chunk_overlap, max(self.chunk_size - size, 0))
                start = end - overlap
            end += size
        spans.append((start, end))
        return spans

    def split_text(self, text: str) -> list[str]:
        return [text[start:end] for start, end in self.split_spans(text)]


def build_splitter(
    strategy: str = "recursive",
    *,
    chunk_size: int = settings.chunk_size,
    chunk_overlap: int = settings.chunk_overlap,
    separator: str | None = None,
) -> SeparatorTextSplitter:
    """Return a splitter for a named strategy.

    *separator* overrides the strategy's default boundary.
    """
    if strategy not in STRATEGY_SEPARATORS:
        raise ValueError(
            f"Unsupported chunk strategy {strategy!r}. "
            f"Choose from: {', '.join(sorted(STRATEGY_SEPARATORS))}."
        )
    return SeparatorTextSplitter(
        separator=STRATEGY_SEPARATORS[strategy] if separator is None else separator,
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
    )


def chunk_text(
    text: str,
    document_id: str,
    *,
    strategy: str = "recursive",
    chunk_size: int = settings.chunk_size,
    chunk_overlap: int = settings.chunk_overlap,
    separator: str | None = None,
) -> list[Chunk]:
    """Split *text* into ordered :class:`Chunk` objects owned by *document_id*.

    Empty text yields an empty list.
    """
    splitter = build_splitter(
        strategy,
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
        separator=separator,
    )
    return [
        Chunk(text=text[start:end], index=idx, source_document_id=document_id, start_index=start)
        for idx, (start, end) in enumerate(splitter.split_spans(text))
    ]

