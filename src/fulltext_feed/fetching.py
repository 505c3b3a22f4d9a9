"""Bounded, cancellable document downloads over httpx."""

from __future__ import annotations

import codecs
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from .errors import DocumentTooLarge, FetchCancelled, FetchError, UnsupportedDocument


@dataclass
class FetchedDocument:
    url: str
    content: bytes
    content_type: str
    charset: Optional[str] = None

    @property
    def text(self) -> str:
        return self.content.decode(self.charset or "utf-8", errors="replace")


def build_client(timeout: float) -> httpx.Client:
    """Create the client shared by every download of one request."""
    return httpx.Client(timeout=timeout, follow_redirects=True)


def _header_charset(response: httpx.Response) -> Optional[str]:
    # Only a charset the server names counts; httpx would otherwise guess utf-8.
    charset = response.charset_encoding
    if not charset:
        return None
    try:
        return codecs.lookup(charset).name
    except LookupError:
        return None


def _ensure_not_cancelled(url: str, cancel_event: threading.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise FetchCancelled(f"Download of {url} was cancelled.")


def fetch_document(
    client: httpx.Client,
    url: str,
    *,
    user_agent: str,
    timeout: float,
    max_bytes: int,
    cancel_event: threading.Event | None = None,
    accept: Callable[[str], bool] | None = None,
) -> FetchedDocument:
    """
    GET `url` and return its body.

    `timeout` bounds the whole download, not just each socket operation, and
    the body is read in chunks so a set `cancel_event` or an oversized body
    aborts the transfer early. When `accept` rejects the response content type,
    UnsupportedDocument is raised before any of the body is read. Raises
    FetchError (or a subclass) on failure.
    """
    _ensure_not_cancelled(url, cancel_event)
    deadline = time.monotonic() + timeout
    try:
        with client.stream(
            "GET", url, headers={"User-Agent": user_agent}, timeout=timeout
        ) as response:
            response.raise_for_status()
            content_type = response.headers.get("content-type", "")
            if accept is not None and not accept(content_type):
                raise UnsupportedDocument(f"{url} returned {content_type!r}.")
            declared = response.headers.get("content-length")
            if declared and declared.isdigit() and int(declared) > max_bytes:
                raise DocumentTooLarge(
                    f"{url} declares {declared} bytes, limit is {max_bytes}."
                )

            chunks: list[bytes] = []
            received = 0
            for chunk in response.iter_bytes():
                _ensure_not_cancelled(url, cancel_event)
                if time.monotonic() > deadline:
                    raise FetchError(f"Download of {url} exceeded {timeout}s.")
                received += len(chunk)
                if received > max_bytes:
                    raise DocumentTooLarge(f"{url} is larger than {max_bytes} bytes.")
                chunks.append(chunk)

            return FetchedDocument(
                url=str(response.url),
                content=b"".join(chunks),
                content_type=content_type,
                charset=_header_charset(response),
            )
    except httpx.HTTPError as exc:
        raise FetchError(f"Download of {url} failed: {exc}") from exc
