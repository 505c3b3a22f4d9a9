"""Readable-content extraction for article pages."""

from __future__ import annotations

import threading

import httpx
from bs4 import BeautifulSoup
from readability import Document
from readability.readability import Unparseable

from .errors import ExtractionError
from .fetching import fetch_document

_HTML_CONTENT_TYPES = {"text/html", "application/xhtml+xml"}


def _is_html(content_type: str) -> bool:
    base = content_type.split(";", 1)[0].strip().lower()
    # A missing header is common enough on small sites to give the page a try.
    return not base or base in _HTML_CONTENT_TYPES


def readable_html(html: str | bytes, url: str | None = None) -> str:
    """
    Return the main article markup of `html`, without page chrome.

    Bytes are decoded by readability using the page's own meta charset.
    """
    try:
        summary = Document(html, url=url).summary(html_partial=True)
    except Unparseable as exc:
        raise ExtractionError(f"Could not parse {url or 'page'}: {exc}") from exc

    if not BeautifulSoup(summary, "html.parser").get_text(strip=True):
        raise ExtractionError(f"No readable content found in {url or 'page'}.")
    return summary


class ReadabilityExtractor:
    """
    Download a page and extract its readable content with readability-lxml.

    Best for: ordinary article pages. Pages that need JavaScript to render
    their body come back empty and are reported as ExtractionError.
    """

    def __init__(self, client: httpx.Client, timeout: float = 30.0, max_bytes: int = 10 * 1024 * 1024):
        self.client = client
        self.timeout = timeout
        self.max_bytes = max_bytes

    def extract(
        self,
        url: str,
        *,
        user_agent: str,
        cancel_event: threading.Event | None = None,
    ) -> str:
        """
        Return extracted HTML for `url`.

        Raises UnsupportedDocument for non-HTML responses, FetchError for
        failed downloads and ExtractionError when nothing readable is found.
        """
        document = fetch_document(
            self.client,
            url,
            user_agent=user_agent,
            timeout=self.timeout,
            max_bytes=self.max_bytes,
            cancel_event=cancel_event,
            accept=_is_html,
        )
        source = document.text if document.charset else document.content
        return readable_html(source, url=document.url)
