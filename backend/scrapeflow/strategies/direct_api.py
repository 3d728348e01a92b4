"""Direct-API strategy for sources with a structured JSON search API.

Currently backs leboncoin.fr through its finder search endpoint. The job
query is either free text (mapped to a keyword filter) or a JSON object
of search parameters. An optional ``passes`` list holds sub-queries that
are deep-merged over the base parameters and run one after another.
"""

import asyncio
import copy
import json
import random
import time
from typing import Any, Dict, List, Optional

import httpx

from scrapeflow.config import settings
from scrapeflow.exceptions import UpstreamApiError
from scrapeflow.models import ScrapeJob, ScrapedData, ScrapedItem, StrategyType
from scrapeflow.pagination import CANCELLED, DEADLINE_EXCEEDED, PaginationOutcome
from scrapeflow.registry import DomainRegistry
from scrapeflow.strategies.base import BaseStrategy
from scrapeflow.utils.retry import api_retry
from scrapeflow.utils.user_agents import get_random_user_agent

PLATFORM = "leboncoin"
AD_URL_TEMPLATE = "https://www.leboncoin.fr/voitures/{list_id}.htm"

# Stop reasons specific to API paging
SHORT_PAGE = "short_page"
PAGE_COUNT_REACHED = "page_count_reached"


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def parse_query(query: Any) -> Dict[str, Any]:
    """Turn a job query into finder search parameters.

    Examples:
        {"filters": {...}} -> used as is
        '{"filters": {...}}' -> decoded
        "golf gti" -> {"filters": {"keywords": {"text": "golf gti"}}}
    """
    if isinstance(query, dict):
        return copy.deepcopy(query)
    text = (query or "").strip()
    if text.startswith("{"):
        try:
            decoded = json.loads(text)
        except json.JSONDecodeError as e:
            raise UpstreamApiError(PLATFORM, f"query is not valid JSON: {e}") from e
        if isinstance(decoded, dict):
            return decoded
    if not text:
        return {}
    return {"filters": {"keywords": {"text": text}}}


def map_ad(ad: Dict[str, Any]) -> ScrapedItem:
    """Map one finder ad to a ScrapedItem."""
    list_id = ad.get("list_id")
    prices = ad.get("price") or []
    images = (ad.get("images") or {}).get("urls") or []
    return ScrapedItem(
        title=ad.get("subject"),
        description=ad.get("body"),
        price=prices[0] if prices else None,
        url=AD_URL_TEMPLATE.format(list_id=list_id) if list_id is not None else ad.get("url"),
        image=images[0] if images else None,
        extra={
            "id": list_id,
            "images": images,
            "category": ad.get("category_name"),
            "publication_date": ad.get("first_publication_date"),
            "expiration_date": ad.get("expiration_date"),
            "status": ad.get("status"),
        },
    )


class DirectApiStrategy(BaseStrategy):
    """Pages through the finder API with explicit offsets.

    A pass ends when page_count pages were read or a page returns fewer
    ads than the page limit. Any HTTP or transport failure that survives
    the retries raises UpstreamApiError.
    """

    strategy_type = StrategyType.DIRECT_API

    def __init__(
        self,
        registry: Optional[DomainRegistry] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        sleep=asyncio.sleep,
    ):
        super().__init__(registry)
        self._transport = transport
        self.api_url = api_url or settings.LEBONCOIN_API_URL
        self.api_key = api_key if api_key is not None else settings.LEBONCOIN_API_KEY
        self._sleep = sleep

    def _headers(self) -> Dict[str, str]:
        return {
            "accept": "*/*",
            "accept-language": settings.ACCEPT_LANGUAGE,
            "api_key": self.api_key,
            "cache-control": "no-cache",
            "content-type": "application/json",
            "origin": "https://www.leboncoin.fr",
            "pragma": "no-cache",
            "referer": "https://www.leboncoin.fr",
            "user-agent": get_random_user_agent(),
        }

    async def scrape(
        self,
        job: ScrapeJob,
        cancel_event: Optional[asyncio.Event] = None,
        deadline: Optional[float] = None,
    ) -> ScrapedData:
        started_at = time.perf_counter()
        if not self.api_key:
            raise UpstreamApiError(PLATFORM, "LEBONCOIN_API_KEY is not configured")

        config = self.registry.get_config(job.source)
        base_params = parse_query(job.query)
        passes = base_params.pop("passes", None) or [{}]
        default_limit = int(config.options.get("page_limit", settings.LEBONCOIN_PAGE_LIMIT))
        page_delay = config.delay_range((1000, 1000))
        pass_delay = config.options.get("delay_between_passes") or {"min": 2000, "max": 2000}

        outcome = PaginationOutcome()
        log = self.logger.bind(source=job.source, job_id=job.job_id, passes=len(passes))

        async with httpx.AsyncClient(
            headers=self._headers(),
            timeout=settings.REQUEST_TIMEOUT_SECONDS,
            transport=self._transport,
        ) as client:
            for index, sub_query in enumerate(passes):
                if index > 0:
                    await self._sleep(random.uniform(pass_delay["min"], pass_delay["max"]) / 1000.0)
                params = deep_merge(base_params, sub_query)
                limit = int(params.get("limit") or default_limit)
                params["limit"] = limit

                for page_index in range(job.page_count):
                    if cancel_event is not None and cancel_event.is_set():
                        outcome.stop_reason = CANCELLED
                        break
                    if deadline is not None and time.monotonic() >= deadline:
                        outcome.stop_reason = DEADLINE_EXCEEDED
                        break
                    if page_index > 0:
                        await self._sleep(random.uniform(*page_delay) / 1000.0)

                    body = {**params, "offset": page_index * limit}
                    ads = await self.search(client, body)
                    outcome.items.extend(map_ad(ad) for ad in ads)
                    outcome.pages_scraped += 1
                    log.info("api_page_fetched", pass_index=index, page=page_index + 1, ads=len(ads))

                    if len(ads) < limit:
                        outcome.stop_reason = SHORT_PAGE
                        break
                else:
                    outcome.stop_reason = PAGE_COUNT_REACHED

                if outcome.stop_reason in (CANCELLED, DEADLINE_EXCEEDED):
                    break

        log.info("api_scrape_completed", items=len(outcome.items), pages=outcome.pages_scraped)
        return self.build_result(job, outcome, started_at)

    async def search(self, client: httpx.AsyncClient, body: Dict[str, Any]) -> List[Dict[str, Any]]:
        """POST one search request and return its ads.

        Raises:
            UpstreamApiError: On non-2xx status, malformed body or transport failure
        """
        try:
            response = await self._post(client, body)
        except httpx.HTTPError as e:
            self.logger.error("api_request_failed", error=str(e))
            raise UpstreamApiError(PLATFORM, str(e) or type(e).__name__) from e

        if response.status_code == 401 or response.status_code == 403:
            self.logger.error("api_auth_failed", status=response.status_code)
            raise UpstreamApiError(PLATFORM, "authentication rejected", status_code=response.status_code)
        if not response.is_success:
            self.logger.error("api_error", status=response.status_code, body=response.text[:200])
            raise UpstreamApiError(PLATFORM, f"HTTP {response.status_code}", status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamApiError(PLATFORM, "response is not JSON") from e
        if not isinstance(payload, dict):
            self.logger.error("api_unexpected_payload", payload_type=type(payload).__name__)
            raise UpstreamApiError(PLATFORM, "unexpected response shape")
        return payload.get("ads") or []

    @api_retry
    async def _post(self, client: httpx.AsyncClient, body: Dict[str, Any]) -> httpx.Response:
        return await client.post(self.api_url, json=body)
