"""Lightweight strategy: plain HTTP GET parsed with BeautifulSoup."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

import httpx
from bs4 import BeautifulSoup

from scrapeflow.config import settings
from scrapeflow.exceptions import FetchFailedError
from scrapeflow.extractors import BaseExtractor
from scrapeflow.heuristics import js_shell_markers
from scrapeflow.models import DomainConfig, StrategyType
from scrapeflow.pagination import PageFetcher
from scrapeflow.registry import DomainRegistry
from scrapeflow.strategies.base import PagedHtmlStrategy
from scrapeflow.utils.user_agents import build_headers


class LightweightStrategy(PagedHtmlStrategy):
    """Fetches static HTML without executing scripts.

    One httpx client with a rotated User-Agent is used for all pages of a
    job. Non-2xx responses and transport errors raise FetchFailedError.
    """

    strategy_type = StrategyType.LIGHTWEIGHT

    def __init__(
        self,
        registry: Optional[DomainRegistry] = None,
        extractors: Optional[List[BaseExtractor]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
        sleep=asyncio.sleep,
    ):
        super().__init__(registry, extractors, sleep)
        self._transport = transport
        self._timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT_SECONDS

    @asynccontextmanager
    async def open_fetcher(self, config: DomainConfig) -> AsyncIterator[PageFetcher]:
        async with httpx.AsyncClient(
            headers=build_headers(),
            timeout=self._timeout,
            follow_redirects=True,
            transport=self._transport,
        ) as client:

            async def fetch_page(url: str) -> BeautifulSoup:
                return await self.fetch(client, url)

            yield fetch_page

    async def fetch(self, client: httpx.AsyncClient, url: str) -> BeautifulSoup:
        """GET url and parse the body.

        Raises:
            FetchFailedError: On transport error or non-2xx status
        """
        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            self.logger.warning("fetch_transport_error", url=url, error=str(e))
            raise FetchFailedError(url, str(e) or type(e).__name__) from e

        if not response.is_success:
            self.logger.warning("fetch_bad_status", url=url, status=response.status_code)
            raise FetchFailedError(url, f"HTTP {response.status_code}", status_code=response.status_code)

        html = response.text
        document = BeautifulSoup(html, "html.parser")

        markers = js_shell_markers(html, document)
        if markers:
            self.logger.debug("js_shell_markers", url=url, markers=markers)
        return document
