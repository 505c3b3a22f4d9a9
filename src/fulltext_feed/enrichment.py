"""Concurrent enrichment of selected feed items with full article content.

`ContentEnricher` handles one item and never raises: whatever goes wrong is
logged and the item keeps its previous content. `EnrichmentCoordinator` runs
the enricher over the selected items on a bounded thread pool and returns only
after every item has finished.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, Sequence

from structlog.typing import FilteringBoundLogger

from .errors import FetchCancelled
from .models import Item
from .observability import get_logger
from .user_agents import UserAgentPool


class Extractor(Protocol):
    def extract(
        self,
        url: str,
        *,
        user_agent: str,
        cancel_event: threading.Event | None = None,
    ) -> str: ...


class EnrichmentOutcome(str, Enum):
    ENRICHED = "enriched"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class EnrichmentReport:
    selected: int = 0
    enriched: int = 0
    failed: int = 0
    cancelled: int = 0

    def record(self, outcome: EnrichmentOutcome) -> None:
        if outcome is EnrichmentOutcome.ENRICHED:
            self.enriched += 1
        elif outcome is EnrichmentOutcome.CANCELLED:
            self.cancelled += 1
        else:
            self.failed += 1


class ContentEnricher:
    """Replace one item's content with the readable text of its linked page."""

    def __init__(
        self,
        extractor: Extractor,
        user_agents: UserAgentPool,
        *,
        log: FilteringBoundLogger | None = None,
    ):
        self.extractor = extractor
        self.user_agents = user_agents
        self.log = log or get_logger()

    def enrich(
        self, item: Item, cancel_event: threading.Event | None = None
    ) -> EnrichmentOutcome:
        log = self.log.bind(item=item.title, item_link=item.link)

        if cancel_event is not None and cancel_event.is_set():
            log.info("Request cancelled, not fetching content for the item")
            return EnrichmentOutcome.CANCELLED
        if not item.link:
            log.warning("The item has no link, skipping")
            return EnrichmentOutcome.FAILED

        log.debug("Fetching content for the item")
        try:
            content = self.extractor.extract(
                item.link,
                user_agent=self.user_agents.pick(),
                cancel_event=cancel_event,
            )
        except FetchCancelled:
            log.info("Request cancelled while fetching content for the item")
            return EnrichmentOutcome.CANCELLED
        except Exception as exc:
            log.error(
                "Failed to parse a page for the item",
                err=str(exc),
                err_type=type(exc).__name__,
            )
            return EnrichmentOutcome.FAILED

        item.content = content
        return EnrichmentOutcome.ENRICHED


class EnrichmentCoordinator:
    """
    Fan the enricher out over selected items and wait for all of them.

    `max_workers` caps how many pages are fetched at once; it is independent
    of how many items were selected.
    """

    def __init__(
        self,
        enricher: ContentEnricher,
        *,
        max_workers: int = 8,
        log: FilteringBoundLogger | None = None,
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1.")
        self.enricher = enricher
        self.max_workers = max_workers
        self.log = log or get_logger()

    def enrich_all(
        self,
        items: Sequence[Item],
        cancel_event: threading.Event | None = None,
    ) -> EnrichmentReport:
        report = EnrichmentReport(selected=len(items))
        if not items:
            return report

        worker_count = min(self.max_workers, len(items))
        self.log.info(
            "Fetching items for the feed",
            items_selected=len(items),
            workers=worker_count,
        )

        with ThreadPoolExecutor(
            max_workers=worker_count, thread_name_prefix="enrich"
        ) as executor:
            future_map = {
                executor.submit(self.enricher.enrich, item, cancel_event): item
                for item in items
            }
            for future in as_completed(future_map):
                item = future_map[future]
                try:
                    outcome = future.result()
                except Exception as exc:
                    self.log.error(
                        "Enrichment crashed for the item",
                        item=item.title,
                        item_link=item.link,
                        err=str(exc),
                    )
                    outcome = EnrichmentOutcome.FAILED
                report.record(outcome)

        self.log.info(
            "All items has been fetched",
            items_fetched_count=report.selected,
            items_enriched=report.enriched,
            items_failed=report.failed,
            items_cancelled=report.cancelled,
        )
        return report
