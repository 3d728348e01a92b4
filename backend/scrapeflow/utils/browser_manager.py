"""Playwright browser lifecycle manager with anti-detection.

One Chromium process is shared by every job. Jobs acquire the manager
before rendering and release it afterwards; the browser is launched on
first acquire and closed when the last holder releases it, or when
stop() is called.
"""

import asyncio
from typing import Dict, Optional

import structlog
from playwright.async_api import async_playwright, Browser, BrowserContext, Page, Playwright, Route

from scrapeflow.config import settings
from scrapeflow.utils.user_agents import get_random_user_agent

logger = structlog.get_logger(__name__)


BLOCKED_RESOURCE_TYPES = frozenset({"image", "font", "media"})


class BrowserManager:
    """Manages a shared Playwright browser with anti-detection features.

    Creates per-page contexts with:
    - User-agent rotation per context
    - Stealth JS injection to mask automation signals
    - Resource blocking (images/fonts/media) for faster scraping
    - Locale headers matching the target sites
    """

    def __init__(self, headless: Optional[bool] = None, block_resources: bool = True):
        self._headless = settings.BROWSER_HEADLESS if headless is None else headless
        self._block_resources = block_resources
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()
        self._holders = 0

    @property
    def is_running(self) -> bool:
        return self._browser is not None

    @property
    def holders(self) -> int:
        return self._holders

    async def start(self) -> None:
        """Launch the browser if it is not running."""
        async with self._lock:
            await self._launch()

    async def _launch(self) -> None:
        if self._browser:
            return
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self._headless,
            args=[
                "--disable-blink-features=AutomationControlled",
                "--disable-dev-shm-usage",
                "--no-sandbox",
            ],
        )
        logger.info("browser_started", headless=self._headless)

    async def acquire(self) -> "BrowserManager":
        """Register a holder, launching the browser on first use."""
        async with self._lock:
            await self._launch()
            self._holders += 1
            logger.debug("browser_acquired", holders=self._holders)
        return self

    async def release(self) -> None:
        """Drop a holder; the last release closes the browser."""
        async with self._lock:
            if self._holders > 0:
                self._holders -= 1
            logger.debug("browser_released", holders=self._holders)
            if self._holders == 0:
                await self._shutdown()

    async def stop(self) -> None:
        """Close the browser regardless of outstanding holders. Idempotent."""
        async with self._lock:
            self._holders = 0
            await self._shutdown()

    async def _shutdown(self) -> None:
        if self._browser:
            await self._browser.close()
            self._browser = None
            logger.info("browser_stopped")
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

    async def new_page(self, extra_headers: Optional[Dict[str, str]] = None) -> Page:
        """Open a page in a fresh context.

        Closing the page via close_page() also closes its context.
        """
        if not self._browser:
            await self.start()

        context: BrowserContext = await self._browser.new_context(
            user_agent=get_random_user_agent(),
            viewport={"width": 1920, "height": 1080},
            locale="fr-FR",
            timezone_id="Europe/Paris",
            java_script_enabled=True,
            extra_http_headers=extra_headers or {"Accept-Language": settings.ACCEPT_LANGUAGE},
        )

        # Inject stealth script to avoid detection
        await context.add_init_script(STEALTH_JS)

        if self._block_resources:
            await context.route("**/*", _block_heavy_resources)

        return await context.new_page()

    async def close_page(self, page: Page) -> None:
        """Close a page opened with new_page() and its context."""
        context = page.context
        await page.close()
        await context.close()


async def _block_heavy_resources(route: Route) -> None:
    if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


# Minimal stealth JS to mask automation signals
STEALTH_JS = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'languages', { get: () => ['fr-FR', 'fr', 'en-US', 'en'] });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
window.chrome = { runtime: {} };
"""


# Singleton instance
_browser_manager: Optional[BrowserManager] = None


def get_browser_manager() -> BrowserManager:
    """Get the global BrowserManager singleton."""
    global _browser_manager
    if _browser_manager is None:
        _browser_manager = BrowserManager()
    return _browser_manager
