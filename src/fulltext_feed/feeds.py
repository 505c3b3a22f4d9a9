"""Feed adapter: download a feed and normalize it.

RSS and Atom go through feedparser; JSON Feed bodies are read with the
pydantic models in `jsonfeed`.
"""

from __future__ import annotations

import re
import threading
import time
from datetime import datetime, timezone
from typing import Any, Optional

import feedparser
import httpx
from structlog.typing import FilteringBoundLogger

from .errors import FeedFetchError, FeedParseError, FetchError
from .fetching import FetchedDocument, fetch_document
from .jsonfeed import parse_json_feed
from .models import Author, Feed, FeedFormat, Item
from .observability import get_logger

_JSON_CONTENT_TYPES = {"application/json", "application/feed+json"}


def detect_format(version: str) -> FeedFormat:
    """Map a feedparser `version` string onto the format we answer with."""
    if version.startswith("atom"):
        return FeedFormat.ATOM
    return FeedFormat.RSS


def _to_datetime(value: Optional[time.struct_time]) -> Optional[datetime]:
    # feedparser normalizes every parsed date to a UTC struct_time.
    if value is None:
        return None
    return datetime(*value[:6], tzinfo=timezone.utc)


def _own(entry: Any, key: str) -> Any:
    # FeedParserDict falls back from `updated*` to `published*` on lookup;
    # membership tests do not, which keeps the two timestamps apart.
    return entry[key] if key in entry else None


def _parse_timestamp(raw: Any) -> Optional[datetime]:
    if not isinstance(raw, str) or not raw.strip():
        return None
    txt = raw.strip()
    # datetime.fromisoformat doesn't accept a trailing "Z" or offsets like "+0000".
    if txt.endswith(("Z", "z")):
        txt = f"{txt[:-1]}+00:00"
    else:
        txt = re.sub(r"([+-]\d{2})(\d{2})$", r"\1:\2", txt)
    try:
        parsed = datetime.fromisoformat(txt)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _timestamp(entry: Any, name: str) -> Optional[datetime]:
    """Return the `updated` or `published` time of a feed or entry."""
    parsed = _to_datetime(_own(entry, f"{name}_parsed"))
    if parsed is None:
        parsed = _parse_timestamp(_own(entry, name))
    return parsed


def _authors(entry: Any) -> list[Author]:
    authors: list[Author] = []
    for raw in entry.get("authors") or []:
        name = (raw.get("name") or "").strip()
        email = (raw.get("email") or "").strip() or None
        if name or email:
            authors.append(Author(name=name, email=email))
    if not authors and entry.get("author"):
        authors.append(Author(name=entry["author"]))
    return authors


def _content(entry: Any) -> str:
    blocks = entry.get("content") or []
    for block in blocks:
        value = block.get("value") or ""
        if value.strip():
            return value
    return ""


def _to_item(entry: Any) -> Item:
    return Item(
        id=entry.get("id") or "",
        title=entry.get("title") or "",
        link=entry.get("link") or "",
        description=entry.get("summary") or "",
        content=_content(entry),
        updated=_timestamp(entry, "updated"),
        published=_timestamp(entry, "published"),
        authors=_authors(entry),
    )


def _is_json(document: FetchedDocument) -> bool:
    content_type = document.content_type.split(";", 1)[0].strip().lower()
    # Plenty of JSON feeds are served as text/plain or octet-stream.
    return content_type in _JSON_CONTENT_TYPES or document.content.lstrip().startswith(b"{")


def parse_feed(document: FetchedDocument) -> Feed:
    """Parse a downloaded document into a Feed. Raises FeedParseError."""
    if _is_json(document):
        return parse_json_feed(document.content, source_url=document.url)

    parsed = feedparser.parse(
        document.content,
        response_headers={
            "content-type": document.content_type or "application/xml",
            "content-location": document.url,
        },
    )
    version = parsed.get("version") or ""
    if not version:
        reason = parsed.get("bozo_exception") or "unrecognized document"
        raise FeedParseError(f"{document.url} is not an RSS or Atom feed: {reason}")

    meta = parsed.feed
    return Feed(
        format=detect_format(version),
        title=meta.get("title") or "",
        link=meta.get("link") or "",
        description=meta.get("subtitle") or meta.get("description") or "",
        updated=_timestamp(meta, "updated"),
        published=_timestamp(meta, "published"),
        authors=_authors(meta),
        items=[_to_item(entry) for entry in parsed.entries],
        source_url=document.url,
    )


def fetch_feed(
    url: str,
    *,
    client: httpx.Client,
    user_agent: str,
    timeout: float,
    max_bytes: int,
    cancel_event: threading.Event | None = None,
    log: FilteringBoundLogger | None = None,
) -> Feed:
    """
    Download and parse the feed at `url`.

    Raises FeedFetchError when the document cannot be downloaded and
    FeedParseError when it is not a feed.
    """
    log = log or get_logger()
    try:
        document = fetch_document(
            client,
            url,
            user_agent=user_agent,
            timeout=timeout,
            max_bytes=max_bytes,
            cancel_event=cancel_event,
        )
    except FetchError as exc:
        raise FeedFetchError(str(exc)) from exc

    feed = parse_feed(document)
    log.info(
        "Feed downloaded",
        feed_url=url,
        feed_title=feed.title,
        feed_format=feed.format.value,
        feed_items_count=len(feed.items),
    )
    return feed
