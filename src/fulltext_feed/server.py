"""FastAPI service exposing the full-text feed relay."""

from __future__ import annotations

import asyncio
import threading
from typing import Dict

from fastapi import FastAPI, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, PlainTextResponse, Response

from .config import Settings, get_settings
from .errors import FeedError, InvalidRequest, SerializationError
from .models import SelectionWindow
from .observability import configure_logging, get_logger
from .relay import (
    FROM_TIME_PARAM,
    ITEMS_CAP_PARAM,
    RelayResult,
    build_window,
    normalize_feed_url,
    relay_feed,
)

BADGE_PAGE = """
<div style="font-family:sans-serif">

<p><code>fulltext-feed</code> adds full content to the items in RSS / Atom / JSON feeds.</p>
<p>
    To use the API, add a feed URL without a schema to the root endpoint:
    <pre>&lt;fulltext-feed-domain&gt;/&lt;feed-url-without-schema&gt;</pre>
    For example, <a href="/news.ycombinator.com/rss"><code>&lt;this-domain&gt;/news.ycombinator.com/rss</code></a>.
    You can use this new URL in a feed reader or download the feed with a HTTP GET request.
</p>
<p>
Query parameters:
    <ul>
    <li><code>from_time</code>: only enrich items newer than this UTC time, e.g. <code>2024-01-01T00:00:00Z</code> (default: 30 days ago)</li>
    <li><code>items_cap</code>: enrich at most this many items</li>
    </ul>
</p>
<p>
Note:
    <ul>
    <li>the schema <code>https://</code> is assumed for a feed URL</li>
    <li>the new feed is returned in the format of the original feed (RSS / Atom / JSON)</li>
    <li>there is no cache support at the moment</li>
    </ul>
</p>
</div>
"""

DISCONNECT_POLL_SECONDS = 0.5

_settings = get_settings()
configure_logging(_settings.log_level, json=_settings.log_json)

app = FastAPI(title="Full-text Feed Relay")


def _relay_feed(
    feed_url: str,
    window: SelectionWindow,
    settings: Settings,
    cancel_event: threading.Event,
) -> RelayResult:
    """Seam for tests: run the blocking pipeline."""
    return relay_feed(feed_url, window, settings=settings, cancel_event=cancel_event)


async def _watch_disconnect(request: Request, cancel_event: threading.Event) -> None:
    """Set `cancel_event` once the client goes away so downloads can stop early."""
    while not cancel_event.is_set():
        if await request.is_disconnected():
            cancel_event.set()
            return
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


def _first(request: Request, name: str) -> str | None:
    values = request.query_params.getlist(name)
    return values[0] if values else None


@app.get("/", response_class=HTMLResponse)
def index() -> str:
    return BADGE_PAGE


@app.get("/favicon.ico")
def favicon() -> PlainTextResponse:
    return PlainTextResponse("Not found", status_code=status.HTTP_404_NOT_FOUND)


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/{feed_path:path}")
async def relay(feed_path: str, request: Request) -> Response:
    log = get_logger(remote_address=request.client.host if request.client else None)
    settings = get_settings()

    try:
        feed_url = normalize_feed_url(feed_path, request.query_params.multi_items())
        window = build_window(
            _first(request, FROM_TIME_PARAM),
            _first(request, ITEMS_CAP_PARAM),
            settings,
        )
    except InvalidRequest as exc:
        log.warning("Invalid request", path=request.url.path, err=str(exc))
        return PlainTextResponse(str(exc), status_code=status.HTTP_400_BAD_REQUEST)

    cancel_event = threading.Event()
    watcher = asyncio.create_task(_watch_disconnect(request, cancel_event))
    try:
        result = await run_in_threadpool(
            _relay_feed, feed_url, window, settings, cancel_event
        )
    except FeedError as exc:
        log.error("Can't fetch the feed", feed_url=feed_url, err=str(exc))
        return Response(status_code=status.HTTP_502_BAD_GATEWAY)
    except SerializationError as exc:
        log.error("Can't serialize new feed", feed_url=feed_url, err=str(exc))
        return PlainTextResponse(
            "Server error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        )
    finally:
        watcher.cancel()

    return Response(content=result.body, media_type=result.media_type)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "fulltext_feed.server:app",
        host=_settings.ip,
        port=_settings.port,
    )
