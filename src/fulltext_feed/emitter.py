"""Feed emitter: write a Feed back out as RSS 2.0, Atom 1.0 or JSON Feed 1.1."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from feedgen.feed import FeedGenerator

from .errors import SerializationError
from .jsonfeed import JsonFeedAuthor, JsonFeedDocument, JsonFeedItem
from .models import Author, Feed, FeedFormat, Item


# --- Helpers --------------------------------------------------------------

def _aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _feed_link(feed: Feed) -> str:
    return feed.link or feed.source_url


def _item_id(item: Item) -> str:
    return item.id or item.link or item.title


def _author_fields(author: Author) -> dict[str, str]:
    fields = {"name": author.name or author.email or ""}
    if author.email:
        fields["email"] = author.email
    return fields


def _json_authors(authors: List[Author]) -> Optional[List[JsonFeedAuthor]]:
    converted = [
        JsonFeedAuthor(
            name=author.name or None,
            url=f"mailto:{author.email}" if author.email else None,
        )
        for author in authors
    ]
    return converted or None


def _build_generator(feed: Feed, title: str) -> FeedGenerator:
    link = _feed_link(feed)
    generator = FeedGenerator()
    generator.id(link)
    generator.title(title or link)
    generator.link(href=link, rel="alternate")
    generator.description(feed.description or title or link)
    if feed.updated:
        generator.updated(_aware(feed.updated))
    if feed.published:
        generator.pubDate(_aware(feed.published))
    for author in feed.authors:
        generator.author(_author_fields(author))

    for item in feed.items:
        entry = generator.add_entry(order="append")
        entry.id(_item_id(item))
        entry.title(item.title or item.link or _item_id(item))
        if item.link:
            entry.link(href=item.link, rel="alternate")
        if item.description:
            entry.description(item.description, isSummary=True)
        if item.content:
            entry.content(item.content, type="html")
        if item.updated or item.published:
            entry.updated(_aware(item.updated or item.published))
        if item.published:
            entry.published(_aware(item.published))
        for author in item.authors:
            entry.author(_author_fields(author))
    return generator


# --- Public API -----------------------------------------------------------

def to_rss(feed: Feed, title: str | None = None) -> bytes:
    try:
        return _build_generator(feed, title or feed.title).rss_str(pretty=True)
    except (ValueError, TypeError, KeyError) as exc:
        raise SerializationError(f"Can't serialize feed to RSS: {exc}") from exc


def to_atom(feed: Feed, title: str | None = None) -> bytes:
    try:
        return _build_generator(feed, title or feed.title).atom_str(pretty=True)
    except (ValueError, TypeError, KeyError) as exc:
        raise SerializationError(f"Can't serialize feed to Atom: {exc}") from exc


def to_json(feed: Feed, title: str | None = None) -> bytes:
    try:
        document = JsonFeedDocument(
            title=title or feed.title or _feed_link(feed),
            home_page_url=feed.link or None,
            feed_url=feed.source_url or None,
            description=feed.description or None,
            authors=_json_authors(feed.authors),
            items=[
                JsonFeedItem(
                    id=_item_id(item),
                    url=item.link or None,
                    title=item.title or None,
                    content_html=item.content or None,
                    summary=item.description or None,
                    date_published=item.published,
                    date_modified=item.updated,
                    authors=_json_authors(item.authors),
                )
                for item in feed.items
            ],
        )
        return document.model_dump_json(exclude_none=True, indent=2).encode("utf-8")
    except ValueError as exc:
        raise SerializationError(f"Can't serialize feed to JSON: {exc}") from exc


_SERIALIZERS = {
    FeedFormat.RSS: to_rss,
    FeedFormat.ATOM: to_atom,
    FeedFormat.JSON: to_json,
}


def serialize(feed: Feed, title: str | None = None) -> bytes:
    """Serialize `feed` in its own format, optionally under a different title."""
    return _SERIALIZERS[feed.format](feed, title)
