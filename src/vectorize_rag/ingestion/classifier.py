"""Content-type sniffing for acquired documents.

Pure functions only: the classifier never touches the network and never
alters content.  Its output selects the chunking strategy and the
document-id scheme.
"""

from __future__ import annotations

import re

from vectorize_rag.ingestion.models import ContentType

_HTML_MARKER = re.compile(r"<html[\s>]", re.IGNORECASE)

_DECLARED_TYPES = {
    "text/html": ContentType.HTML,
    "application/xhtml+xml": ContentType.HTML,
    "application/json": ContentType.JSON,
    "text/markdown": ContentType.MARKDOWN,
    "text/x-markdown": ContentType.MARKDOWN,
    "text/plain": ContentType.TEXT,
}

_STRATEGY_BY_TYPE = {
    ContentType.MARKDOWN: "paragraph",
    ContentType.HTML: "recursive",
    ContentType.JSON: "recursive",
    ContentType.TEXT: "recursive",
}


def _from_declared(declared_type: str | None) -> ContentType | None:
    if not declared_type:
        return None
    mime = declared_type.split(";", 1)[0].strip().lower()
    if mime.endswith("+json"):
        return ContentType.JSON
    return _DECLARED_TYPES.get(mime)


def classify_content(
    content: str,
    *,
    from_url: bool = False,
    declared_type: str | None = None,
) -> ContentType:
    """Assign a :class:`ContentType` to *content*.

    Rules, first match wins:

    1. an ``<html>`` marker anywhere → html
    2. starts with ``{`` or ``[`` → json
    3. starts with ``#`` → markdown
    4. a recognised *declared_type* (HTTP ``Content-Type``)
    5. URL-sourced → html, otherwise text
    """
    if _HTML_MARKER.search(content):
        return ContentType.HTML

    head = content.lstrip()
    if head.startswith(("{", "[")):
        return ContentType.JSON
    if head.startswith("#"):
        return ContentType.MARKDOWN

    declared = _from_declared(declared_type)
    if declared is not None:
        return declared
    return ContentType.HTML if from_url else ContentType.TEXT


def strategy_for(content_type: ContentType) -> str:
    """Return the chunking strategy name used for *content_type*."""
    return _STRATEGY_BY_TYPE[content_type]
