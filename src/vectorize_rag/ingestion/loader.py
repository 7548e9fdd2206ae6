"""Content acquisition — caller text, HTTP retrieval, and headless rendering.

URL-sourced HTML is handled by one deterministic rule: when the fetched
body classifies as html, the page is rendered in a headless browser and
its visible text extracted (``render_html=True``), or its markup is
stripped statically with BeautifulSoup (``render_html=False``).  All other
URL content is used as fetched.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Protocol

import requests
from bs4 import BeautifulSoup
from pydantic import BaseModel, HttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from vectorize_rag.config import settings
from vectorize_rag.errors import AcquisitionError, ValidationError
from vectorize_rag.ingestion.classifier import classify_content
from vectorize_rag.ingestion.models import AcquiredContent, ContentType

logger = logging.getLogger(__name__)

_INVISIBLE_TAGS = ["script", "style", "noscript"]

_STRIP_INVISIBLE_JS = (
    "() => document.querySelectorAll('script, style, noscript')"
    ".forEach((el) => el.remove())"
)

_URL_ADAPTER = TypeAdapter(HttpUrl)


# ── helpers ────────────────────────────────────────────────────────────


def normalize_text(text: str) -> str:
    """Unicode NFC, collapse whitespace, strip control chars."""
    text = unicodedata.normalize("NFC", text)
    text = re.sub(r"[^\S\n]+", " ", text)  # collapse spaces (keep \n)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)  # max two consecutive newlines
    text = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", text)
    return text.strip()


def extract_visible_text(html: str) -> str:
    """Strip invisible elements from *html* and return its text."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(_INVISIBLE_TAGS):
        tag.decompose()
    return soup.get_text(separator="\n", strip=True)


def validate_request(document_url: str | None, document_text: str | None) -> None:
    """Check that exactly one source is supplied and the URL is usable.

    Presence is what counts: ``document_text=""`` is a valid request.
    """
    if document_url is None and document_text is None:
        raise ValidationError("Either documentURL or documentText must be provided")
    if document_url is not None and document_text is not None:
        raise ValidationError("Provide only one of documentURL or documentText")
    if document_url is not None:
        try:
            _URL_ADAPTER.validate_python(document_url)
        except PydanticValidationError as exc:
            raise ValidationError(
                f"documentURL is not a valid http(s) URL: {document_url!r}",
                field="documentURL",
            ) from exc


# ── HTTP retrieval ─────────────────────────────────────────────────────


class FetchedResource(BaseModel):
    """Status and body of one HTTP retrieval."""

    url: str
    status_code: int
    text: str
    content_type: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class ContentSource(Protocol):
    """Anything that can retrieve a URL as text."""

    def fetch(self, url: str) -> FetchedResource: ...


class HttpContentSource:
    """Fetch URLs with :mod:`requests`.

    Parameters
    ----------
    timeout:
        Per-request timeout in seconds.
    headers:
        Extra HTTP headers merged over the default ``User-Agent``.
    """

    def __init__(
        self,
        *,
        timeout: float = settings.fetch_timeout,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.timeout = timeout
        self.headers = {"User-Agent": settings.user_agent, **(headers or {})}

    def fetch(self, url: str) -> FetchedResource:
        try:
            resp = requests.get(url, headers=self.headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise AcquisitionError(f"Failed to fetch {url}: {exc}", url=url) from exc
        return FetchedResource(
            url=url,
            status_code=resp.status_code,
            text=resp.text,
            content_type=resp.headers.get("content-type", ""),
        )


# ── headless rendering ─────────────────────────────────────────────────


class RenderSession(Protocol):
    """One page in an isolated browsing context."""

    def navigate(self, url: str) -> None: ...

    def extract_visible_text(self) -> str: ...

    def close(self) -> None: ...


class Renderer(Protocol):
    """Factory for scoped :class:`RenderSession` objects."""

    def session(self) -> Any: ...


class PlaywrightSession:
    """:class:`RenderSession` backed by a Playwright page."""

    def __init__(self, browser: Any, *, timeout_ms: float, user_agent: str) -> None:
        self._browser = browser
        self._context = browser.new_context(user_agent=user_agent)
        self._page = self._context.new_page()
        self._timeout_ms = timeout_ms
        self._closed = False

    def navigate(self, url: str) -> None:
        self._page.goto(url, wait_until="networkidle", timeout=self._timeout_ms)

    def extract_visible_text(self) -> str:
        self._page.evaluate(_STRIP_INVISIBLE_JS)
        return self._page.inner_text("body")

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._context.close()
        finally:
            self._browser.close()


class PlaywrightRenderer:
    """Render pages in headless Chromium via Playwright's sync API.

    Each :meth:`session` launches its own browser and tears it down on
    exit, so no browser state is shared between acquisitions.
    """

    def __init__(
        self,
        *,
        timeout: float = settings.render_timeout,
        user_agent: str = settings.user_agent,
    ) -> None:
        self.timeout = timeout
        self.user_agent = user_agent

    @contextmanager
    def session(self) -> Iterator[PlaywrightSession]:
        from playwright.sync_api import Error as PlaywrightError
        from playwright.sync_api import sync_playwright

        try:
            with sync_playwright() as pw:
                browser = pw.chromium.launch(headless=True)
                session = PlaywrightSession(
                    browser, timeout_ms=self.timeout * 1000, user_agent=self.user_agent
                )
                try:
                    yield session
                finally:
                    session.close()
        except PlaywrightError as exc:
            raise AcquisitionError(f"Rendering failed: {exc}") from exc


# ── acquisition ────────────────────────────────────────────────────────


class ContentAcquirer:
    """Obtain raw content from caller text or a URL.

    Parameters
    ----------
    source:
        HTTP retrieval backend.  Defaults to :class:`HttpContentSource`.
    renderer:
        Headless renderer for HTML pages.  Defaults to
        :class:`PlaywrightRenderer` (created lazily, only when needed).
    render_html:
        When ``False`` HTML pages are stripped with BeautifulSoup instead
        of being rendered.
    """

    def __init__(
        self,
        source: ContentSource | None = None,
        renderer: Renderer | None = None,
        *,
        render_html: bool = settings.render_html,
    ) -> None:
        self._source = source or HttpContentSource()
        self._renderer = renderer
        self.render_html = render_html

    def acquire(
        self,
        *,
        document_url: str | None = None,
        document_text: str | None = None,
    ) -> AcquiredContent:
        """Return the content for exactly one of *document_url* / *document_text*."""
        validate_request(document_url, document_text)

        if document_text is not None:
            return AcquiredContent(raw_content=document_text, text=document_text)

        resource = self._source.fetch(document_url)
        if not resource.ok:
            raise AcquisitionError(
                f"GET {document_url} returned HTTP {resource.status_code}",
                url=document_url,
                status_code=resource.status_code,
            )
        logger.info("Fetched %s (%d chars, %s)", document_url, len(resource.text),
                    resource.content_type or "no content-type")

        content_type = classify_content(
            resource.text, from_url=True, declared_type=resource.content_type
        )
        if content_type is ContentType.HTML:
            text = self._html_text(document_url, resource.text)
        else:
            text = resource.text

        return AcquiredContent(
            raw_content=resource.text,
            text=text,
            source_url=document_url,
            declared_type=resource.content_type or None,
        )

    def _html_text(self, url: str, markup: str) -> str:
        if not self.render_html:
            return extract_visible_text(markup)
        return self.render(url)

    def render(self, url: str) -> str:
        """Render *url* in a fresh session and return its visible text."""
        if self._renderer is None:
            self._renderer = PlaywrightRenderer()
        try:
            with self._renderer.session() as session:
                session.navigate(url)
                text = session.extract_visible_text()
        except AcquisitionError:
            raise
        except Exception as exc:
            raise AcquisitionError(f"Rendering {url} failed: {exc}", url=url) from exc
        logger.info("Rendered %s (%d chars visible)", url, len(text))
        return text
