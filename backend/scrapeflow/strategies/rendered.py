"""Rendered strategy: headless Chromium via the shared BrowserManager."""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from scrapeflow.config import settings
from scrapeflow.exceptions import RenderFailedError, RenderTimeoutError
from scrapeflow.extractors import BaseExtractor
from scrapeflow.models import DomainConfig, StrategyType
from scrapeflow.pagination import PageFetcher
from scrapeflow.registry import DomainRegistry
from scrapeflow.strategies.base import PagedHtmlStrategy
from scrapeflow.utils.browser_manager import BrowserManager, get_browser_manager


DEFAULT_SCROLL = {
    "distance": 100,
    "max_scrolls": 80,
    "delay_ms": 200,
    "max_height": 8000,
    "pause_after_ms": 1000,
}

# Scrolls until the page bottom, the height cap or the tick cap is reached
AUTO_SCROLL_JS = """
async ({ distance, maxScrolls, delay, maxHeight }) => {
    await new Promise((resolve) => {
        let total = 0;
        let count = 0;
        const timer = setInterval(() => {
            window.scrollBy(0, distance);
            total += distance;
            count += 1;
            if (total >= document.body.scrollHeight || total >= maxHeight || count >= maxScrolls) {
                clearInterval(timer);
                resolve();
            }
        }, delay);
    });
}
"""


class RenderedStrategy(PagedHtmlStrategy):
    """Renders each listing page in Chromium before extraction.

    Each page gets its own context and is closed after reading. The browser
    itself is shared and held for the duration of the job.
    """

    strategy_type = StrategyType.RENDERED

    def __init__(
        self,
        browser_manager: Optional[BrowserManager] = None,
        registry: Optional[DomainRegistry] = None,
        extractors: Optional[List[BaseExtractor]] = None,
        timeout_ms: Optional[int] = None,
        selector_timeout_ms: Optional[int] = None,
        sleep=asyncio.sleep,
    ):
        super().__init__(registry, extractors, sleep)
        self.browser = browser_manager or get_browser_manager()
        self.timeout_ms = timeout_ms or settings.RENDER_TIMEOUT_MS
        self.selector_timeout_ms = selector_timeout_ms or settings.SELECTOR_TIMEOUT_MS

    @asynccontextmanager
    async def open_fetcher(self, config: DomainConfig) -> AsyncIterator[PageFetcher]:
        try:
            await self.browser.acquire()
        except PlaywrightError as e:
            self.logger.error("browser_launch_failed", domain=config.domain, error=str(e))
            raise RenderFailedError(config.domain, f"could not launch browser: {e}") from e
        try:

            async def fetch_page(url: str) -> BeautifulSoup:
                return await self.render(url, config)

            yield fetch_page
        finally:
            await self.browser.release()

    async def render(self, url: str, config: DomainConfig) -> BeautifulSoup:
        """Load url, wait for items, scroll, and parse the final DOM.

        Raises:
            RenderTimeoutError: If navigation exceeds timeout_ms
            RenderFailedError: On a page setup, navigation or read failure
        """
        try:
            page = await self.browser.new_page({"Accept-Language": settings.ACCEPT_LANGUAGE})
        except PlaywrightError as e:
            self.logger.warning("page_setup_failed", url=url, error=str(e))
            raise RenderFailedError(url, f"could not open page: {e}") from e
        try:
            try:
                await page.goto(url, wait_until="networkidle", timeout=self.timeout_ms)
            except PlaywrightTimeoutError as e:
                self.logger.warning("render_timeout", url=url, timeout_ms=self.timeout_ms)
                raise RenderTimeoutError(url, self.timeout_ms) from e
            except PlaywrightError as e:
                self.logger.warning("render_navigation_failed", url=url, error=str(e))
                raise RenderFailedError(url, str(e)) from e

            container = config.selectors.get("container")
            if container:
                try:
                    await page.wait_for_selector(container, timeout=self.selector_timeout_ms)
                except PlaywrightTimeoutError:
                    # An empty listing is a valid result
                    self.logger.warning("container_not_found", url=url, selector=container)

            await self.auto_scroll(page, config.options.get("scroll"))

            try:
                html = await page.content()
            except PlaywrightError as e:
                raise RenderFailedError(url, f"could not read page content: {e}") from e
        finally:
            await self.browser.close_page(page)

        return BeautifulSoup(html, "html.parser")

    async def auto_scroll(self, page: Any, overrides: Optional[Dict[str, int]] = None) -> None:
        """Scroll to trigger lazy-loaded items, then pause for them to settle."""
        scroll = {**DEFAULT_SCROLL, **(overrides or {})}
        try:
            await page.evaluate(
                AUTO_SCROLL_JS,
                {
                    "distance": scroll["distance"],
                    "maxScrolls": scroll["max_scrolls"],
                    "delay": scroll["delay_ms"],
                    "maxHeight": scroll["max_height"],
                },
            )
        except PlaywrightError as e:
            self.logger.warning("auto_scroll_failed", error=str(e))
            return
        await self._sleep(scroll["pause_after_ms"] / 1000.0)
