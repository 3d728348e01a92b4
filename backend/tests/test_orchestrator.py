"""Tests for strategy selection, escalation, caching and progress."""

from typing import List, Optional

import httpx
import pytest
from playwright.async_api import Error as PlaywrightError

from conftest import FakeBrowserManager, ebay_card, listing_page
from scrapeflow.cache import StrategyCache
from scrapeflow.exceptions import FetchFailedError, RenderFailedError, UpstreamApiError
from scrapeflow.models import ScrapeJob, ScrapedData, ScrapedItem, ScrapeMetadata, StrategyType
from scrapeflow.orchestrator import ScrapeOrchestrator
from scrapeflow.strategies import LightweightStrategy, RenderedStrategy


class FakeStrategy:
    """Returns a canned result or raises a canned error."""

    def __init__(self, strategy_type: StrategyType, item_count: int = 5, error: Optional[Exception] = None):
        self.strategy_type = strategy_type
        self.item_count = item_count
        self.error = error
        self.calls: List[ScrapeJob] = []

    def get_type(self) -> StrategyType:
        return self.strategy_type

    async def scrape(self, job, cancel_event=None, deadline=None) -> ScrapedData:
        self.calls.append(job)
        if self.error is not None:
            raise self.error
        items = [ScrapedItem(title=f"{self.strategy_type.value} {i}", url=f"https://x.test/{i}") for i in range(self.item_count)]
        return ScrapedData(
            items=items,
            metadata=ScrapeMetadata(
                source=job.source,
                query=job.query_text,
                strategy_used=self.strategy_type,
                execution_time_ms=5,
                pages_scraped=1,
            ),
        )


class ProgressRecorder:
    def __init__(self):
        self.events = []

    def __call__(self, job_id, percent, status, item_count=None):
        self.events.append((percent, status, item_count))

    @property
    def percents(self):
        return [e[0] for e in self.events]


@pytest.fixture
def recorder():
    return ProgressRecorder()


def make_orchestrator(registry, recorder, lightweight=None, rendered=None, direct=None, cache=None, browser=None):
    strategies = {
        StrategyType.LIGHTWEIGHT: lightweight or FakeStrategy(StrategyType.LIGHTWEIGHT),
        StrategyType.RENDERED: rendered or FakeStrategy(StrategyType.RENDERED),
        StrategyType.DIRECT_API: direct or FakeStrategy(StrategyType.DIRECT_API),
    }
    return ScrapeOrchestrator(
        registry=registry,
        browser_manager=browser or FakeBrowserManager(),
        strategies=strategies,
        cache=cache,
        progress_sink=recorder,
    ), strategies


# ============================================================================
# TESTS: STRATEGY SELECTION
# ============================================================================

class TestStrategySelection:
    """Tests for the initial strategy choice."""

    async def test_static_domain_uses_lightweight(self, registry, recorder):
        orchestrator, strategies = make_orchestrator(registry, recorder)
        result = await orchestrator.scrape(ScrapeJob(source="ebay.fr", query="x", job_id="j1"))

        assert result.metadata.strategy_used is StrategyType.LIGHTWEIGHT
        assert len(strategies[StrategyType.RENDERED].calls) == 0
        assert orchestrator.cache.get("ebay.fr") is StrategyType.LIGHTWEIGHT

    async def test_js_domain_starts_rendered(self, registry, recorder):
        orchestrator, strategies = make_orchestrator(registry, recorder)
        result = await orchestrator.scrape(ScrapeJob(source="autoscout24", query="golf"))

        assert result.metadata.strategy_used is StrategyType.RENDERED
        assert len(strategies[StrategyType.LIGHTWEIGHT].calls) == 0

    async def test_cached_strategy_wins(self, registry, recorder):
        cache = StrategyCache()
        cache.set("www.ebay.fr", StrategyType.RENDERED)
        orchestrator, strategies = make_orchestrator(registry, recorder, cache=cache)

        result = await orchestrator.scrape(ScrapeJob(source="https://www.ebay.fr/sch/i.html", query="x"))

        assert result.metadata.strategy_used is StrategyType.RENDERED
        assert len(strategies[StrategyType.LIGHTWEIGHT].calls) == 0

    async def test_direct_api_is_never_escalated(self, registry, recorder):
        direct = FakeStrategy(StrategyType.DIRECT_API, item_count=0)
        orchestrator, strategies = make_orchestrator(registry, recorder, direct=direct)

        result = await orchestrator.scrape(ScrapeJob(source="leboncoin", query="golf"))

        assert result.metadata.strategy_used is StrategyType.DIRECT_API
        assert result.items == []
        assert len(strategies[StrategyType.RENDERED].calls) == 0
        assert len(strategies[StrategyType.LIGHTWEIGHT].calls) == 0

    async def test_direct_api_error_surfaces(self, registry, recorder):
        direct = FakeStrategy(StrategyType.DIRECT_API, error=UpstreamApiError("leboncoin", "HTTP 500", 500))
        orchestrator, _ = make_orchestrator(registry, recorder, direct=direct)

        with pytest.raises(UpstreamApiError):
            await orchestrator.scrape(ScrapeJob(source="leboncoin", query="golf"))
        assert recorder.events[-1][1] == "failed"


# ============================================================================
# TESTS: ESCALATION
# ============================================================================

class TestEscalation:
    """Tests for lightweight-to-rendered escalation."""

    async def test_insufficient_result_escalates(self, registry, recorder):
        lightweight = FakeStrategy(StrategyType.LIGHTWEIGHT, item_count=1)
        orchestrator, strategies = make_orchestrator(registry, recorder, lightweight=lightweight)

        result = await orchestrator.scrape(ScrapeJob(source="ebay.fr", query="x", job_id="j2"))

        assert result.metadata.strategy_used is StrategyType.RENDERED
        assert all(item.title.startswith("rendered") for item in result.items)
        assert orchestrator.cache.get("ebay.fr") is StrategyType.RENDERED
        assert recorder.percents == [0, 10, 35, 85, 60, 70, 90, 100]

    async def test_lightweight_failure_retries_rendered_once(self, registry, recorder):
        lightweight = FakeStrategy(StrategyType.LIGHTWEIGHT, error=FetchFailedError("https://ebay.fr", "HTTP 403", 403))
        orchestrator, strategies = make_orchestrator(registry, recorder, lightweight=lightweight)

        result = await orchestrator.scrape(ScrapeJob(source="ebay.fr", query="x"))

        assert result.metadata.strategy_used is StrategyType.RENDERED
        assert len(strategies[StrategyType.RENDERED].calls) == 1

    async def test_rendered_failure_after_escalation_propagates(self, registry, recorder):
        lightweight = FakeStrategy(StrategyType.LIGHTWEIGHT, item_count=0)
        rendered = FakeStrategy(StrategyType.RENDERED, error=RenderFailedError("https://ebay.fr", "crashed"))
        orchestrator, _ = make_orchestrator(registry, recorder, lightweight=lightweight, rendered=rendered)

        with pytest.raises(RenderFailedError):
            await orchestrator.scrape(ScrapeJob(source="ebay.fr", query="x"))
        assert "ebay.fr" not in orchestrator.cache

    async def test_browser_launch_failure_is_typed(self, registry, recorder):
        browser = FakeBrowserManager()

        async def acquire():
            raise PlaywrightError("Executable doesn't exist")

        browser.acquire = acquire
        lightweight = FakeStrategy(StrategyType.LIGHTWEIGHT, item_count=0)
        orchestrator, strategies = make_orchestrator(registry, recorder, lightweight=lightweight, browser=browser)

        with pytest.raises(RenderFailedError, match="could not launch browser"):
            await orchestrator.scrape(ScrapeJob(source="ebay.fr", query="x"))
        assert len(strategies[StrategyType.RENDERED].calls) == 0
        assert recorder.events[-1] == (100, "failed", None)

        await orchestrator.cleanup()
        assert browser.release_calls == 0

    async def test_empty_rendered_result_is_returned(self, registry, recorder):
        """Test an empty escalated result is success, not an error."""
        lightweight = FakeStrategy(StrategyType.LIGHTWEIGHT, item_count=0)
        rendered = FakeStrategy(StrategyType.RENDERED, item_count=0)
        orchestrator, _ = make_orchestrator(registry, recorder, lightweight=lightweight, rendered=rendered)

        result = await orchestrator.scrape(ScrapeJob(source="ebay.fr", query="x"))

        assert result.items == []
        assert recorder.events[-1] == (100, "completed", 0)

    async def test_title_only_static_page_escalates_to_rendered(self, registry, recorder, fake_sleep):
        """Test a single static item without a link is re-scraped in the browser."""
        title_only = (
            '<li class="s-item">'
            '<div class="s-item__title">Vélo sans lien</div>'
            '<span class="s-item__price">50,00 EUR</span>'
            "</li>"
        )
        static_html = listing_page([title_only])
        rendered_html = listing_page(
            [ebay_card(f"Vélo {i}", "120,00 EUR", f"https://www.ebay.fr/itm/{i}") for i in range(4)]
        )
        requested = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            return httpx.Response(200, text=static_html)

        browser = FakeBrowserManager(default_html=rendered_html)
        orchestrator = ScrapeOrchestrator(
            registry=registry,
            browser_manager=browser,
            strategies={
                StrategyType.LIGHTWEIGHT: LightweightStrategy(
                    registry, transport=httpx.MockTransport(handler), sleep=fake_sleep
                ),
                StrategyType.RENDERED: RenderedStrategy(browser, registry, sleep=fake_sleep),
            },
            progress_sink=recorder,
        )

        result = await orchestrator.scrape(ScrapeJob(source="ebay.fr", query="velo"))

        assert len(requested) == 1
        assert result.metadata.strategy_used is StrategyType.RENDERED
        assert result.item_count == 4
        assert all(item.url.startswith("https://www.ebay.fr/itm/") for item in result.items)
        assert orchestrator.cache.get("ebay.fr") is StrategyType.RENDERED
        assert 60 in recorder.percents


# ============================================================================
# TESTS: PROGRESS AND CLEANUP
# ============================================================================

class TestProgressAndCleanup:
    """Tests for progress reporting and cleanup()."""

    async def test_progress_sequence_without_escalation(self, registry, recorder):
        orchestrator, _ = make_orchestrator(registry, recorder)
        await orchestrator.scrape(ScrapeJob(source="ebay.fr", query="x", job_id="j3"))

        assert recorder.percents == [0, 10, 35, 85, 100]
        assert recorder.events[-1] == (100, "completed", 5)

    async def test_async_sink_and_failing_sink(self, registry):
        received = []

        async def async_sink(job_id, percent, status, item_count=None):
            received.append(percent)
            if percent == 35:
                raise RuntimeError("sink down")

        orchestrator, _ = make_orchestrator(registry, None)
        orchestrator.progress._sink = async_sink

        result = await orchestrator.scrape(ScrapeJob(source="ebay.fr", query="x"))

        assert result.item_count == 5
        assert received == [0, 10, 35, 85, 100]

    async def test_cleanup_releases_browser_and_clears_cache(self, registry, recorder):
        browser = FakeBrowserManager()
        orchestrator, _ = make_orchestrator(registry, recorder, browser=browser)

        await orchestrator.scrape(ScrapeJob(source="autoscout24", query="golf"))
        await orchestrator.scrape(ScrapeJob(source="amazon.fr", query="casque"))
        assert browser.acquire_calls == 1
        assert len(orchestrator.cache) == 2

        await orchestrator.cleanup()
        await orchestrator.cleanup()

        assert browser.release_calls == 1
        assert browser.holders == 0
        assert len(orchestrator.cache) == 0
