"""Base extraction strategy interface.

All strategies take a ScrapeJob and return a ScrapedData. The two HTML
strategies share the page loop through PagedHtmlStrategy and differ only
in how a URL becomes a parsed document.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import AsyncContextManager, List, Optional

import structlog

from scrapeflow.extractors import BaseExtractor, build_extractor_chain, get_extractor
from scrapeflow.models import DomainConfig, ScrapeJob, ScrapedData, ScrapeMetadata, StrategyType
from scrapeflow.pagination import PageFetcher, PaginationController, PaginationOutcome
from scrapeflow.registry import DomainRegistry, get_domain_registry, normalize_domain


class BaseStrategy(ABC):
    """Abstract base class for extraction strategies."""

    strategy_type: StrategyType

    def __init__(self, registry: Optional[DomainRegistry] = None):
        self.registry = registry or get_domain_registry()
        self.logger = structlog.get_logger(strategy=self.strategy_type.value)

    def get_type(self) -> StrategyType:
        return self.strategy_type

    @abstractmethod
    async def scrape(
        self,
        job: ScrapeJob,
        cancel_event: Optional[asyncio.Event] = None,
        deadline: Optional[float] = None,
    ) -> ScrapedData:
        """Execute the job and return all items gathered.

        Args:
            job: Job to execute
            cancel_event: Checked at page boundaries; partial results are returned
            deadline: time.monotonic() value after which no new page is started

        Raises:
            StrategyError: If the strategy cannot produce any result
        """
        pass

    def build_result(
        self,
        job: ScrapeJob,
        outcome: PaginationOutcome,
        started_at: float,
    ) -> ScrapedData:
        elapsed_ms = int((time.perf_counter() - started_at) * 1000)
        return ScrapedData(
            items=list(outcome.items),
            title=outcome.title,
            metadata=ScrapeMetadata(
                source=normalize_domain(job.source),
                query=job.query_text,
                strategy_used=self.strategy_type,
                execution_time_ms=elapsed_ms,
                pages_scraped=outcome.pages_scraped,
                stop_reason=outcome.stop_reason,
            ),
        )


class PagedHtmlStrategy(BaseStrategy):
    """HTML strategy driven by the pagination controller.

    Subclasses implement open_fetcher(), an async context manager that
    holds the job's resources and yields the page fetcher.
    """

    def __init__(
        self,
        registry: Optional[DomainRegistry] = None,
        extractors: Optional[List[BaseExtractor]] = None,
        sleep=asyncio.sleep,
    ):
        super().__init__(registry)
        self.extractors = extractors or build_extractor_chain(self.registry)
        self._sleep = sleep

    @abstractmethod
    def open_fetcher(self, config: DomainConfig) -> AsyncContextManager[PageFetcher]:
        pass

    async def scrape(
        self,
        job: ScrapeJob,
        cancel_event: Optional[asyncio.Event] = None,
        deadline: Optional[float] = None,
    ) -> ScrapedData:
        started_at = time.perf_counter()
        config = self.registry.get_config(job.source)
        extractor = get_extractor(job.source, self.extractors)
        self.logger.info(
            "strategy_started",
            source=job.source,
            domain=config.domain,
            extractor=extractor.name,
            page_count=job.page_count,
        )

        async with self.open_fetcher(config) as fetch_page:
            controller = PaginationController(extractor, config, fetch_page, sleep=self._sleep)
            outcome = await controller.run(job, cancel_event=cancel_event, deadline=deadline)

        return self.build_result(job, outcome, started_at)
