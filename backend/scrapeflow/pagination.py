"""Pagination controller shared by the HTML strategies.

Drives the page loop of one job:

    START -> FETCH_PAGE -> EVALUATE -> CONTINUE -> FETCH_PAGE ...
                                    -> STOP

Items accumulate append-only in page order. A failure on the first page
propagates; a failure on a later page stops the loop and keeps what was
collected. Cancellation and the job deadline are checked at page
boundaries only.
"""

import asyncio
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional

import structlog
from bs4 import BeautifulSoup

from scrapeflow.config import settings
from scrapeflow.extractors.base import BaseExtractor
from scrapeflow.models import DomainConfig, ScrapeJob, ScrapedItem

logger = structlog.get_logger(__name__)

PageFetcher = Callable[[str], Awaitable[BeautifulSoup]]


class PageState(str, Enum):
    START = "start"
    FETCH_PAGE = "fetch_page"
    EVALUATE = "evaluate"
    CONTINUE = "continue"
    STOP = "stop"


# Stop reasons
PAGE_COUNT_REACHED = "page_count_reached"
LAST_PAGE = "last_page"
NO_NEXT_SELECTOR = "no_next_selector"
NO_NEXT_PAGE = "no_next_page"
PAGE_FAILED = "page_failed"
CANCELLED = "cancelled"
DEADLINE_EXCEEDED = "deadline_exceeded"


@dataclass
class PaginationOutcome:
    """Items gathered across pages and why the loop ended."""

    items: List[ScrapedItem] = field(default_factory=list)
    pages_scraped: int = 0
    title: Optional[str] = None
    stop_reason: Optional[str] = None


class PaginationController:
    """Runs the page loop for one job against one page fetcher.

    Args:
        extractor: Builds URLs and extracts items for the site family
        config: Domain selectors and options
        fetch_page: Coroutine returning the parsed document for a URL
        sleep: Awaitable sleep, injectable for tests
        rng: Uniform random source for the inter-page delay
        clock: Monotonic clock used for the deadline
    """

    def __init__(
        self,
        extractor: BaseExtractor,
        config: DomainConfig,
        fetch_page: PageFetcher,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Callable[[float, float], float] = random.uniform,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.extractor = extractor
        self.config = config
        self.fetch_page = fetch_page
        self._sleep = sleep
        self._rng = rng
        self._clock = clock
        self.state = PageState.START

    async def run(
        self,
        job: ScrapeJob,
        cancel_event: Optional[asyncio.Event] = None,
        deadline: Optional[float] = None,
    ) -> PaginationOutcome:
        """Fetch pages until a stop condition holds.

        Args:
            job: Job being executed
            cancel_event: Set to stop at the next page boundary
            deadline: Value of clock() after which no new page is started

        Returns:
            PaginationOutcome with the accumulated items
        """
        log = logger.bind(source=job.source, extractor=self.extractor.name, job_id=job.job_id)
        outcome = PaginationOutcome()
        selectors = self.config.selectors
        query = job.query_text
        page = 1
        self.state = PageState.FETCH_PAGE

        while self.state is not PageState.STOP:
            if cancel_event is not None and cancel_event.is_set():
                outcome.stop_reason = CANCELLED
                break
            if deadline is not None and self._clock() >= deadline:
                outcome.stop_reason = DEADLINE_EXCEEDED
                break

            # FETCH_PAGE
            url = self.extractor.build_url(job.source, query, page, job)
            try:
                document = await self.fetch_page(url)
            except Exception as e:
                if page == 1:
                    raise
                log.warning("page_fetch_failed", page=page, url=url, error=str(e))
                outcome.stop_reason = PAGE_FAILED
                break

            page_items = self.extractor.extract_items(document, selectors, url)
            outcome.items.extend(page_items)
            outcome.pages_scraped = page
            if page == 1:
                outcome.title = self.extractor.page_title(document)
            log.info("page_scraped", page=page, items=len(page_items), total=len(outcome.items))

            self.state = PageState.EVALUATE
            outcome.stop_reason = self._evaluate(job, page, document)
            if outcome.stop_reason:
                break

            self.state = PageState.CONTINUE
            await self._delay()
            page += 1
            self.state = PageState.FETCH_PAGE

        self.state = PageState.STOP
        log.info(
            "pagination_stopped",
            reason=outcome.stop_reason,
            pages=outcome.pages_scraped,
            items=len(outcome.items),
        )
        return outcome

    def _evaluate(self, job: ScrapeJob, page: int, document: BeautifulSoup) -> Optional[str]:
        """Return a stop reason, or None to continue."""
        if page >= job.page_count:
            return PAGE_COUNT_REACHED

        if self.extractor.self_paginating:
            if not self.extractor.handle_pagination(page, job.page_count, job):
                return LAST_PAGE
            return None

        next_selector = self.config.selectors.get("next_page")
        if not next_selector:
            return NO_NEXT_SELECTOR
        if document.select_one(next_selector) is None:
            return NO_NEXT_PAGE
        return None

    async def _delay(self) -> None:
        low, high = self.config.delay_range(settings.get_page_delay_range())
        await self._sleep(self._rng(low, high) / 1000.0)
