"""Selection policy deciding which feed items get enriched."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Sequence

from structlog.typing import FilteringBoundLogger

from .models import Item
from .observability import get_logger


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def item_timestamp(item: Item) -> Optional[datetime]:
    """Return the time used for recency checks: updated, else published."""
    stamp = item.updated or item.published
    return _as_utc(stamp) if stamp is not None else None


def select_items(
    items: Sequence[Item],
    from_time: datetime,
    cap: int,
    *,
    log: FilteringBoundLogger | None = None,
) -> list[Item]:
    """
    Pick, in source order, at most `cap` items that need enrichment.

    Items that already have content, have no timestamp, or are older than
    `from_time` are skipped and do not count against the cap. Scanning stops
    once the cap is reached. Returns references to the given items.
    """
    log = log or get_logger()
    from_time = _as_utc(from_time)
    selected: list[Item] = []

    for item in items:
        if len(selected) >= cap:
            log.info("Items cap reached", items_cap=cap, feed_items_count=len(items))
            break

        if item.content:
            log.debug("The item has content, skipping", item=item.title)
            continue

        stamp = item_timestamp(item)
        if stamp is None:
            log.debug("The item has no time set in it, skipping", item=item.title)
            continue
        if stamp < from_time:
            log.debug(
                "The item's time is outside the time window, skipping",
                item=item.title,
                item_time=stamp.isoformat(),
            )
            continue

        selected.append(item)

    return selected
