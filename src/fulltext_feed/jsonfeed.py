"""JSON Feed documents (versions 1.0 and 1.1) and their mapping onto Feed."""

from __future__ import annotations

import html
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import FeedParseError
from .models import Author, Feed, FeedFormat, Item

JSON_FEED_VERSION = "https://jsonfeed.org/version/1.1"
JSON_FEED_VERSION_PREFIX = "https://jsonfeed.org/version/"


class JsonFeedAuthor(BaseModel):
    name: Optional[str] = None
    url: Optional[str] = None


class JsonFeedItem(BaseModel):
    id: str = ""
    url: Optional[str] = None
    external_url: Optional[str] = None
    title: Optional[str] = None
    content_html: Optional[str] = None
    content_text: Optional[str] = None
    summary: Optional[str] = None
    date_published: Optional[datetime] = None
    date_modified: Optional[datetime] = None
    authors: Optional[List[JsonFeedAuthor]] = None
    # JSON Feed 1.0 only knows a single author.
    author: Optional[JsonFeedAuthor] = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        # Numeric ids are common in 1.0 feeds.
        if value is None:
            return ""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("date_published", "date_modified", mode="wrap")
    @classmethod
    def _drop_bad_dates(cls, value: Any, handler: Any) -> Optional[datetime]:
        # An unparseable date drops the date, not the whole feed.
        try:
            return handler(value)
        except ValidationError:
            return None


class JsonFeedDocument(BaseModel):
    version: str = JSON_FEED_VERSION
    title: str = ""
    home_page_url: Optional[str] = None
    feed_url: Optional[str] = None
    description: Optional[str] = None
    authors: Optional[List[JsonFeedAuthor]] = None
    author: Optional[JsonFeedAuthor] = None
    items: List[JsonFeedItem] = Field(default_factory=list)


def _authors(
    authors: Optional[List[JsonFeedAuthor]], author: Optional[JsonFeedAuthor]
) -> List[Author]:
    converted: List[Author] = []
    for raw in authors or ([author] if author else []):
        url = raw.url or ""
        email = url[len("mailto:"):] if url.startswith("mailto:") else None
        if raw.name or email:
            converted.append(Author(name=raw.name or "", email=email))
    return converted


def _to_item(entry: JsonFeedItem) -> Item:
    content = entry.content_html or ""
    if not content.strip() and entry.content_text:
        content = html.escape(entry.content_text)
    return Item(
        id=entry.id,
        title=entry.title or "",
        link=entry.url or entry.external_url or "",
        description=entry.summary or "",
        content=content,
        updated=entry.date_modified,
        published=entry.date_published,
        authors=_authors(entry.authors, entry.author),
    )


def parse_json_feed(content: bytes, source_url: str = "") -> Feed:
    """Parse a JSON Feed body into a Feed. Raises FeedParseError."""
    where = source_url or "document"
    try:
        document = JsonFeedDocument.model_validate_json(content)
    except ValidationError as exc:
        raise FeedParseError(f"{where} is not a JSON feed: {exc}") from exc
    if "version" not in document.model_fields_set or not document.version.startswith(
        JSON_FEED_VERSION_PREFIX
    ):
        raise FeedParseError(f"{where} is not a JSON feed: unknown version.")

    return Feed(
        format=FeedFormat.JSON,
        title=document.title,
        link=document.home_page_url or "",
        description=document.description or "",
        authors=_authors(document.authors, document.author),
        items=[_to_item(entry) for entry in document.items],
        source_url=source_url,
    )
