"""Scrape orchestration.

Chooses a strategy per job, escalates from the lightweight strategy to the
rendered one when the static result is insufficient, remembers what worked
per domain, and reports progress along the way.
"""

import asyncio
import time
from typing import Callable, Dict, Optional

import structlog
from playwright.async_api import Error as PlaywrightError

from scrapeflow import progress
from scrapeflow.cache import StrategyCache
from scrapeflow.config import settings
from scrapeflow.exceptions import RenderFailedError, ScrapeFlowError
from scrapeflow.heuristics import escalation_reason
from scrapeflow.models import DomainConfig, ScrapeJob, ScrapedData, StrategyType
from scrapeflow.progress import ProgressEmitter, ProgressSink
from scrapeflow.registry import GENERIC_DOMAIN, DomainRegistry, get_domain_registry, normalize_domain
from scrapeflow.strategies import BaseStrategy, DirectApiStrategy, LightweightStrategy, RenderedStrategy
from scrapeflow.utils.browser_manager import BrowserManager, get_browser_manager

logger = structlog.get_logger(__name__)


class ScrapeOrchestrator:
    """Top-level entry point for executing scrape jobs.

    Strategy selection:
    1. Domains configured for the direct API use it exclusively.
    2. Otherwise start from the cached strategy for the domain, or from
       the domain default (rendered if it requires JavaScript).
    3. A failed lightweight run is retried once with the rendered strategy.
    4. A lightweight result judged insufficient by the heuristic is
       discarded and the job re-run with the rendered strategy.

    The strategy that produced the returned result is cached for the domain.
    """

    def __init__(
        self,
        registry: Optional[DomainRegistry] = None,
        browser_manager: Optional[BrowserManager] = None,
        strategies: Optional[Dict[StrategyType, BaseStrategy]] = None,
        cache: Optional[StrategyCache] = None,
        progress_sink: Optional[ProgressSink] = None,
        job_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.registry = registry or get_domain_registry()
        self.browser = browser_manager or get_browser_manager()
        self.cache = cache if cache is not None else StrategyCache()
        self.progress = ProgressEmitter(progress_sink)
        self.job_timeout = job_timeout if job_timeout is not None else settings.JOB_TIMEOUT_SECONDS
        self._clock = clock
        self._strategies: Dict[StrategyType, BaseStrategy] = dict(strategies or {})
        self._browser_held = False
        self._browser_lock = asyncio.Lock()
        self.logger = logger.bind(service="scrape_orchestrator")

    def get_strategy(self, strategy_type: StrategyType) -> BaseStrategy:
        """Get or lazily create the strategy instance for a type."""
        strategy = self._strategies.get(strategy_type)
        if strategy is None:
            if strategy_type is StrategyType.LIGHTWEIGHT:
                strategy = LightweightStrategy(self.registry)
            elif strategy_type is StrategyType.RENDERED:
                strategy = RenderedStrategy(self.browser, self.registry)
            else:
                strategy = DirectApiStrategy(self.registry)
            self._strategies[strategy_type] = strategy
        return strategy

    async def scrape(self, job: ScrapeJob, cancel_event: Optional[asyncio.Event] = None) -> ScrapedData:
        """Execute a job end to end.

        Args:
            job: Job to execute
            cancel_event: Set to stop at the next page boundary with partial results

        Returns:
            ScrapedData from the strategy that succeeded

        Raises:
            StrategyError: If the final attempt fails
        """
        await self.progress.emit(job.job_id, 0, progress.STARTED)

        config = self.registry.get_config(job.source)
        domain = self._cache_key(job, config)
        log = self.logger.bind(job_id=job.job_id, domain=domain)
        deadline = self._clock() + self.job_timeout if self.job_timeout else None

        try:
            if config.default_strategy is StrategyType.DIRECT_API:
                log.info("strategy_selected", strategy=StrategyType.DIRECT_API.value, reason="direct_api")
                await self.progress.emit(job.job_id, 10, progress.STRATEGY_SELECTED)
                await self.progress.emit(job.job_id, 35, progress.EXECUTING)
                result = await self._execute(StrategyType.DIRECT_API, job, cancel_event, deadline)
                await self.progress.emit(job.job_id, 85, progress.RESULT_AVAILABLE, result.item_count)
            else:
                cached = self.cache.get(domain)
                if cached is not None:
                    initial, reason = cached, "cached"
                elif config.requires_javascript:
                    initial, reason = StrategyType.RENDERED, "requires_javascript"
                else:
                    initial, reason = StrategyType.LIGHTWEIGHT, "default"
                log.info("strategy_selected", strategy=initial.value, reason=reason)
                await self.progress.emit(job.job_id, 10, progress.STRATEGY_SELECTED)
                result = await self._run_html(initial, job, cancel_event, deadline, log)
        except Exception as e:
            log.error("scrape_failed", error=str(e), error_type=type(e).__name__)
            await self.progress.emit(job.job_id, 100, progress.FAILED)
            raise

        self.cache.set(domain, result.metadata.strategy_used)
        log.info(
            "scrape_completed",
            strategy=result.metadata.strategy_used.value,
            items=result.item_count,
            pages=result.metadata.pages_scraped,
            execution_time_ms=result.metadata.execution_time_ms,
        )
        await self.progress.emit(job.job_id, 100, progress.COMPLETED, result.item_count)
        return result

    @staticmethod
    def _cache_key(job: ScrapeJob, config: DomainConfig) -> str:
        # Unknown sites share the generic config but are cached per site
        if config.domain == GENERIC_DOMAIN:
            return normalize_domain(job.source)
        return config.domain

    async def _run_html(
        self,
        initial: StrategyType,
        job: ScrapeJob,
        cancel_event: Optional[asyncio.Event],
        deadline: Optional[float],
        log,
    ) -> ScrapedData:
        await self.progress.emit(job.job_id, 35, progress.EXECUTING)

        if initial is StrategyType.RENDERED:
            result = await self._execute(StrategyType.RENDERED, job, cancel_event, deadline)
            await self.progress.emit(job.job_id, 85, progress.RESULT_AVAILABLE, result.item_count)
            return result

        try:
            result = await self._execute(StrategyType.LIGHTWEIGHT, job, cancel_event, deadline)
        except ScrapeFlowError as e:
            log.warning("lightweight_failed_escalating", error=str(e))
            return await self._escalate(job, cancel_event, deadline)

        await self.progress.emit(job.job_id, 85, progress.RESULT_AVAILABLE, result.item_count)

        if cancel_event is not None and cancel_event.is_set():
            return result

        reason = escalation_reason(result)
        if reason is None:
            return result
        log.info("lightweight_insufficient_escalating", reason=reason, items=result.item_count)
        return await self._escalate(job, cancel_event, deadline)

    async def _escalate(
        self,
        job: ScrapeJob,
        cancel_event: Optional[asyncio.Event],
        deadline: Optional[float],
    ) -> ScrapedData:
        await self.progress.emit(job.job_id, 60, progress.ESCALATING)
        await self.progress.emit(job.job_id, 70, progress.EXECUTING)
        result = await self._execute(StrategyType.RENDERED, job, cancel_event, deadline)
        await self.progress.emit(job.job_id, 90, progress.RESULT_AVAILABLE, result.item_count)
        return result

    async def _execute(
        self,
        strategy_type: StrategyType,
        job: ScrapeJob,
        cancel_event: Optional[asyncio.Event],
        deadline: Optional[float],
    ) -> ScrapedData:
        if strategy_type is StrategyType.RENDERED:
            await self._hold_browser(job)
        strategy = self.get_strategy(strategy_type)
        return await strategy.scrape(job, cancel_event=cancel_event, deadline=deadline)

    async def _hold_browser(self, job: ScrapeJob) -> None:
        # One hold per orchestrator keeps the browser alive between jobs until cleanup()
        async with self._browser_lock:
            if not self._browser_held:
                try:
                    await self.browser.acquire()
                except PlaywrightError as e:
                    raise RenderFailedError(job.source, f"could not launch browser: {e}") from e
                self._browser_held = True

    async def cleanup(self) -> None:
        """Release the browser handle and clear the strategy cache. Idempotent."""
        async with self._browser_lock:
            if self._browser_held:
                self._browser_held = False
                await self.browser.release()
        self.cache.clear()
        self.logger.info("orchestrator_cleaned_up")
