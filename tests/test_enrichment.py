import random
import threading
import time

import pytest

from fulltext_feed.enrichment import (
    ContentEnricher,
    EnrichmentCoordinator,
    EnrichmentOutcome,
    EnrichmentReport,
)
from fulltext_feed.errors import ExtractionError, FetchCancelled, FetchError
from fulltext_feed.models import Item
from fulltext_feed.user_agents import USER_AGENTS, UserAgentPool


class FakeExtractor:
    def __init__(self, pages=None, errors=None, delay=0.0):
        self.pages = pages or {}
        self.errors = errors or {}
        self.delay = delay
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def extract(self, url, *, user_agent, cancel_event=None):
        with self._lock:
            self.calls.append((url, user_agent))
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            if url in self.errors:
                raise self.errors[url]
            return self.pages.get(url, f"<p>full text of {url}</p>")
        finally:
            with self._lock:
                self.in_flight -= 1


def _item(name, content=""):
    return Item(id=name, title=name, link=f"https://example.com/{name}", content=content)


def _pool():
    return UserAgentPool(rng=random.Random(7))


def test_enrich_replaces_content_on_success(log_capture):
    item = _item("a")
    extractor = FakeExtractor(pages={item.link: "<p>Article body</p>"})
    enricher = ContentEnricher(extractor, _pool(), log=log_capture.log)

    outcome = enricher.enrich(item)

    assert outcome is EnrichmentOutcome.ENRICHED
    assert item.content == "<p>Article body</p>"
    assert extractor.calls[0][1] in USER_AGENTS


def test_enrich_failure_leaves_item_unchanged_and_logs(log_capture):
    item = _item("a", content="")
    extractor = FakeExtractor(errors={item.link: FetchError("connection reset")})
    enricher = ContentEnricher(extractor, _pool(), log=log_capture.log)

    outcome = enricher.enrich(item)

    assert outcome is EnrichmentOutcome.FAILED
    assert item.content == ""
    errors = log_capture.events("error")
    assert len(errors) == 1
    assert errors[0]["item_link"] == item.link
    assert "connection reset" in errors[0]["err"]


def test_enrich_swallows_unexpected_errors():
    item = _item("a")
    extractor = FakeExtractor(errors={item.link: RuntimeError("boom")})
    enricher = ContentEnricher(extractor, _pool())

    assert enricher.enrich(item) is EnrichmentOutcome.FAILED
    assert item.content == ""


def test_enrich_without_link_does_not_fetch():
    item = Item(id="x", title="No link")
    extractor = FakeExtractor()

    outcome = ContentEnricher(extractor, _pool()).enrich(item)

    assert outcome is EnrichmentOutcome.FAILED
    assert extractor.calls == []


def test_enrich_skips_fetch_when_already_cancelled():
    cancel = threading.Event()
    cancel.set()
    extractor = FakeExtractor()
    item = _item("a")

    outcome = ContentEnricher(extractor, _pool()).enrich(item, cancel)

    assert outcome is EnrichmentOutcome.CANCELLED
    assert extractor.calls == []
    assert item.content == ""


def test_enrich_reports_cancellation_during_fetch():
    item = _item("a")
    extractor = FakeExtractor(errors={item.link: FetchCancelled("gone")})

    outcome = ContentEnricher(extractor, _pool()).enrich(item)

    assert outcome is EnrichmentOutcome.CANCELLED
    assert item.content == ""


def test_seeded_pool_makes_user_agents_reproducible():
    first = FakeExtractor()
    second = FakeExtractor()
    items = [_item(str(i)) for i in range(5)]

    for extractor in (first, second):
        enricher = ContentEnricher(extractor, UserAgentPool(rng=random.Random(3)))
        for item in items:
            enricher.enrich(item.model_copy())

    assert [ua for _, ua in first.calls] == [ua for _, ua in second.calls]


def test_coordinator_isolates_failures(log_capture):
    items = [_item("a"), _item("b"), _item("c")]
    extractor = FakeExtractor(errors={items[1].link: ExtractionError("empty page")})
    enricher = ContentEnricher(extractor, _pool(), log=log_capture.log)
    coordinator = EnrichmentCoordinator(enricher, max_workers=4, log=log_capture.log)

    report = coordinator.enrich_all(items)

    assert report == EnrichmentReport(selected=3, enriched=2, failed=1, cancelled=0)
    assert items[0].content == f"<p>full text of {items[0].link}</p>"
    assert items[1].content == ""
    assert items[2].content == f"<p>full text of {items[2].link}</p>"
    assert "All items has been fetched" in log_capture.messages("info")


def test_coordinator_bounds_concurrent_fetches():
    items = [_item(str(i)) for i in range(8)]
    extractor = FakeExtractor(delay=0.05)
    coordinator = EnrichmentCoordinator(
        ContentEnricher(extractor, _pool()), max_workers=2
    )

    report = coordinator.enrich_all(items)

    assert report.enriched == 8
    assert extractor.max_in_flight <= 2
    assert all(item.content for item in items)


def test_coordinator_survives_crashing_enricher(log_capture):
    class CrashingEnricher:
        def enrich(self, item, cancel_event=None):
            raise RuntimeError("unexpected")

    coordinator = EnrichmentCoordinator(
        CrashingEnricher(), max_workers=2, log=log_capture.log
    )
    items = [_item("a"), _item("b")]

    report = coordinator.enrich_all(items)

    assert report.failed == 2
    assert len(log_capture.events("error")) == 2
    assert [item.content for item in items] == ["", ""]


def test_coordinator_with_no_items_returns_empty_report():
    extractor = FakeExtractor()
    coordinator = EnrichmentCoordinator(ContentEnricher(extractor, _pool()))

    assert coordinator.enrich_all([]) == EnrichmentReport()
    assert extractor.calls == []


def test_coordinator_rejects_non_positive_worker_count():
    with pytest.raises(ValueError):
        EnrichmentCoordinator(ContentEnricher(FakeExtractor(), _pool()), max_workers=0)
