import json
from datetime import datetime, timezone

import pytest

from fulltext_feed.emitter import serialize, to_json, to_rss
from fulltext_feed.errors import SerializationError
from fulltext_feed.feeds import parse_feed
from fulltext_feed.fetching import FetchedDocument
from fulltext_feed.jsonfeed import JSON_FEED_VERSION
from fulltext_feed.models import Author, Feed, FeedFormat, Item

PUBLISHED = datetime(2023, 6, 1, 10, 0, tzinfo=timezone.utc)
UPDATED = datetime(2023, 6, 2, 10, 0, tzinfo=timezone.utc)


def _feed(fmt: FeedFormat) -> Feed:
    return Feed(
        format=fmt,
        title="Example News",
        link="https://example.com/",
        description="Latest stories",
        updated=UPDATED,
        authors=[Author(name="Desk", email="desk@example.com")],
        source_url="https://example.com/feed",
        items=[
            Item(
                id="urn:example:story-1",
                title="Enriched story",
                link="https://example.com/first",
                description="Teaser one",
                content="<p>Full text one.</p>",
                published=PUBLISHED,
                authors=[Author(name="Jane Writer")],
            ),
            Item(
                id="urn:example:story-2",
                title="Untouched story",
                link="https://example.com/second",
                description="Teaser two",
                published=PUBLISHED,
            ),
        ],
    )


def _reparse(body: bytes, content_type: str) -> Feed:
    return parse_feed(
        FetchedDocument(
            url="https://relay.test/feed",
            content=body,
            content_type=content_type,
        )
    )


def test_rss_output_parses_back_as_rss_with_item_order_and_content():
    body = serialize(_feed(FeedFormat.RSS))

    feed = _reparse(body, "application/rss+xml")

    assert feed.format is FeedFormat.RSS
    assert feed.title == "Example News"
    assert [item.title for item in feed.items] == ["Enriched story", "Untouched story"]
    assert "Full text one." in feed.items[0].content
    assert feed.items[1].content == ""
    assert feed.items[0].link == "https://example.com/first"
    assert feed.items[0].published == PUBLISHED


def test_atom_output_parses_back_as_atom():
    body = serialize(_feed(FeedFormat.ATOM))

    feed = _reparse(body, "application/atom+xml")

    assert feed.format is FeedFormat.ATOM
    assert [item.id for item in feed.items] == ["urn:example:story-1", "urn:example:story-2"]
    assert "Full text one." in feed.items[0].content
    assert feed.items[0].description == "Teaser one"
    assert feed.items[0].authors[0].name == "Jane Writer"


def test_json_output_is_a_json_feed():
    document = json.loads(serialize(_feed(FeedFormat.JSON)))

    assert document["version"] == JSON_FEED_VERSION
    assert document["title"] == "Example News"
    assert document["home_page_url"] == "https://example.com/"
    first, second = document["items"]
    assert first["id"] == "urn:example:story-1"
    assert first["content_html"] == "<p>Full text one.</p>"
    assert first["summary"] == "Teaser one"
    assert first["authors"] == [{"name": "Jane Writer"}]
    assert first["date_published"].startswith("2023-06-01T10:00:00")
    assert "content_html" not in second


def test_json_output_parses_back_as_json():
    feed = _reparse(serialize(_feed(FeedFormat.JSON)), "application/feed+json")

    assert feed.format is FeedFormat.JSON
    assert feed.title == "Example News"
    assert [item.id for item in feed.items] == ["urn:example:story-1", "urn:example:story-2"]
    assert feed.items[0].content == "<p>Full text one.</p>"
    assert feed.items[0].published == PUBLISHED
    assert feed.authors[0].email == "desk@example.com"


def test_title_override_and_fallbacks():
    feed = _feed(FeedFormat.JSON)
    feed.link = ""
    feed.items[1].id = ""

    document = json.loads(to_json(feed, title="Example News (full text)"))

    assert document["title"] == "Example News (full text)"
    assert "home_page_url" not in document
    assert document["feed_url"] == "https://example.com/feed"
    assert document["items"][1]["id"] == "https://example.com/second"


def test_rss_without_description_falls_back_to_title():
    feed = _feed(FeedFormat.RSS)
    feed.description = ""

    body = to_rss(feed)

    assert b"<description>Example News</description>" in body


def test_unserializable_content_raises_serialization_error():
    feed = _feed(FeedFormat.RSS)
    feed.items[0].content = "bad \x00 byte"

    with pytest.raises(SerializationError):
        serialize(feed)
