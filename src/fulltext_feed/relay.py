"""Request pipeline: parse the request, fetch the feed, enrich it, serialize it.

Steps run strictly in order:
- parse the feed URL and the selection window (no network I/O before this passes)
- fetch and parse the source feed
- select items and enrich them concurrently (blocking join)
- serialize the feed in its original format

Feed and serialization errors abort the request; per-item enrichment errors
never do. Collaborators (HTTP client, extractor, User-Agent pool, logger) can
be injected for tests or offline use.
"""

from __future__ import annotations

import ipaddress
import re
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional, Tuple
from urllib.parse import urlencode

import httpx
from pydantic import HttpUrl, TypeAdapter, ValidationError
from structlog.typing import FilteringBoundLogger

from .config import Settings, get_settings
from .emitter import serialize
from .enrichment import (
    ContentEnricher,
    EnrichmentCoordinator,
    EnrichmentReport,
    Extractor,
)
from .errors import InvalidFeedURL, InvalidParameter
from .extraction import ReadabilityExtractor
from .feeds import fetch_feed
from .fetching import build_client
from .models import Feed, SelectionWindow
from .observability import get_logger
from .selection import select_items
from .user_agents import UserAgentPool

FROM_TIME_PARAM = "from_time"
ITEMS_CAP_PARAM = "items_cap"
RELAY_PARAMS = frozenset({FROM_TIME_PARAM, ITEMS_CAP_PARAM})
FROM_TIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
_FROM_TIME_SHAPE = re.compile(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z", re.ASCII)

_HTTP_URL = TypeAdapter(HttpUrl)


@dataclass
class RelayResult:
    body: bytes
    media_type: str
    feed: Feed
    report: EnrichmentReport


# --- Request parsing -------------------------------------------------------

def _is_valid_host(host: str) -> bool:
    try:
        ipaddress.ip_address(host.strip("[]"))
        return True
    except ValueError:
        pass
    labels = host.rstrip(".").split(".")
    return len(labels) > 1 and all(labels)


def normalize_feed_url(
    path: str, extra_query: Iterable[Tuple[str, str]] = ()
) -> str:
    """
    Turn a request path like `/example.com/feed.xml` into an https feed URL.

    Query parameters that are not relay parameters belong to the source feed
    and are carried over. Raises InvalidFeedURL.
    """
    target = path.lstrip("/")
    if not target:
        raise InvalidFeedURL("No feed URL given in the path.")

    query = [(k, v) for k, v in extra_query if k not in RELAY_PARAMS]
    feed_url = f"https://{target}"
    if query:
        feed_url = f"{feed_url}?{urlencode(query)}"

    try:
        parsed = _HTTP_URL.validate_python(feed_url)
    except ValidationError as exc:
        raise InvalidFeedURL(f"{feed_url} is not a valid URL.") from exc
    if not parsed.host or not _is_valid_host(parsed.host):
        raise InvalidFeedURL(f"{feed_url} has no valid host.")
    return feed_url


def parse_from_time(raw: str) -> datetime:
    """Parse a strict `YYYY-MM-DDTHH:MM:SSZ` timestamp into an aware UTC datetime."""
    message = f"Can't parse `{FROM_TIME_PARAM}` query param value"
    # strptime alone also takes unpadded fields like 2023-1-1T0:0:0Z.
    if not _FROM_TIME_SHAPE.fullmatch(raw):
        raise InvalidParameter(message)
    try:
        return datetime.strptime(raw, FROM_TIME_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError as exc:
        raise InvalidParameter(message) from exc


def parse_items_cap(raw: str, ceiling: int) -> int:
    """Parse a positive integer cap no larger than `ceiling`."""
    # Plain ASCII digits only: int() would also take "+5", "1_0" or " 5 ".
    if not (raw.isascii() and raw.isdigit()):
        raise InvalidParameter(f"Can't parse `{ITEMS_CAP_PARAM}` query param value")
    cap = int(raw)
    if cap < 1:
        raise InvalidParameter(f"`{ITEMS_CAP_PARAM}` must be a positive integer")
    if cap > ceiling:
        raise InvalidParameter(f"`{ITEMS_CAP_PARAM}` must not exceed {ceiling}")
    return cap


def build_window(
    from_time_raw: Optional[str],
    items_cap_raw: Optional[str],
    settings: Settings,
    now: Optional[datetime] = None,
) -> SelectionWindow:
    """Build the selection window from raw query values, falling back to defaults."""
    if from_time_raw is not None:
        from_time = parse_from_time(from_time_raw)
    else:
        now = now or datetime.now(timezone.utc)
        from_time = now - timedelta(days=settings.from_days_ago)

    if items_cap_raw is not None:
        items_cap = parse_items_cap(items_cap_raw, settings.max_items_cap)
    else:
        items_cap = min(settings.items_cap, settings.max_items_cap)

    return SelectionWindow(from_time=from_time, items_cap=items_cap)


# --- Pipeline --------------------------------------------------------------

def relay_feed(
    feed_url: str,
    window: SelectionWindow,
    *,
    settings: Optional[Settings] = None,
    client: Optional[httpx.Client] = None,
    user_agents: Optional[UserAgentPool] = None,
    extractor: Optional[Extractor] = None,
    log: Optional[FilteringBoundLogger] = None,
    cancel_event: Optional[threading.Event] = None,
) -> RelayResult:
    """
    Fetch `feed_url`, enrich the items inside `window`, and serialize the result.

    Raises FeedError when the source feed cannot be fetched or parsed and
    SerializationError when the result cannot be written.
    """
    settings = settings or get_settings()
    user_agents = user_agents or UserAgentPool()
    log = (log or get_logger()).bind(
        feed_url=feed_url,
        from_time=window.from_time.isoformat(),
        items_cap=window.items_cap,
    )
    log.info("Request with RSS URL received")

    owns_client = client is None
    client = client or build_client(settings.http_timeout)
    try:
        feed = fetch_feed(
            feed_url,
            client=client,
            user_agent=user_agents.pick(),
            timeout=settings.http_timeout,
            max_bytes=settings.max_document_bytes,
            cancel_event=cancel_event,
            log=log,
        )
        log = log.bind(feed_title=feed.title)

        selected = select_items(feed.items, window.from_time, window.items_cap, log=log)
        enricher = ContentEnricher(
            extractor
            or ReadabilityExtractor(
                client,
                timeout=settings.http_timeout,
                max_bytes=settings.max_document_bytes,
            ),
            user_agents,
            log=log,
        )
        coordinator = EnrichmentCoordinator(
            enricher, max_workers=settings.fetch_concurrency, log=log
        )
        report = coordinator.enrich_all(selected, cancel_event=cancel_event)
    finally:
        if owns_client:
            client.close()

    title = f"{feed.title}{settings.title_suffix}" if settings.title_suffix else None
    body = serialize(feed, title=title)
    log.info("New feed serialized", feed_format=feed.format.value, bytes=len(body))
    return RelayResult(
        body=body,
        media_type=feed.format.media_type,
        feed=feed,
        report=report,
    )
