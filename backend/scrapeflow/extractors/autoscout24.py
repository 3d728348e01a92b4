"""AutoScout24 vehicle listing extractor.

Listing pages are paginated purely through the ``page`` URL parameter,
so this extractor is self-paginating. Each card yields mileage and the
seller line split into name, postal code and city.
"""

import re
from typing import Dict, Optional

from bs4 import Tag

from scrapeflow.extractors.base import BaseExtractor
from scrapeflow.models import ScrapeJob, ScrapedItem
from scrapeflow.registry import normalize_domain
from scrapeflow.utils.normalizer import (
    PriceNormalizer,
    clean_text,
    extract_number,
    resolve_url,
    set_query_params,
)

CONFIG_DOMAIN = "autoscout24.fr"
SITE_ROOT = "https://www.autoscout24.fr"

# "Garage Dupont • FR-01630 SAINT-GENIS-POUILLY"
DEALER_PATTERN = re.compile(r"^(.*?)(?:\s+•\s+(?:FR-(\d+)\s+)?(.*))?$")


def parse_dealer(raw: Optional[str]) -> Dict[str, Optional[str]]:
    """Split a seller line into seller_name, postal_code and city."""
    if not raw:
        return {}
    match = DEALER_PATTERN.match(raw.strip())
    if not match:
        return {"seller_name": raw.strip()}
    name, postal_code, city = match.groups()
    return {
        "seller_name": clean_text(name),
        "postal_code": postal_code,
        "city": clean_text(city),
    }


class AutoScout24Extractor(BaseExtractor):
    """Search results under ``/lst`` with ``page``, ``zip`` and ``zipr`` params."""

    name = "autoscout24"
    self_paginating = True

    def can_handle(self, source: str) -> bool:
        return "autoscout24" in normalize_domain(source)

    @property
    def options(self) -> dict:
        return self.registry.get_config(CONFIG_DOMAIN).options

    def build_url(self, source: str, query: str, page: int, job: Optional[ScrapeJob] = None) -> str:
        options = self.options
        source = source.strip()
        if source.lower().startswith(("http://", "https://")) and "/lst" in source:
            base = source
        elif query:
            base = set_query_params(options.get("base_url", f"{SITE_ROOT}/lst"), {"q": query})
        else:
            base = options.get("default_search_url", f"{SITE_ROOT}/lst")

        params = {"page": page}
        if job is not None and job.zip:
            params["zip"] = job.zip
            params["zipr"] = job.zipr
        return set_query_params(base, params)

    def handle_pagination(self, current_page: int, page_count: int, job: Optional[ScrapeJob] = None) -> bool:
        max_pages = self.options.get("max_pages")
        last_page = min(page_count, max_pages) if max_pages else page_count
        return current_page < last_page

    def parse_item(self, block: Tag, selectors: Dict[str, str], base_url: str) -> Optional[ScrapedItem]:
        base_url = base_url or SITE_ROOT

        title_el = self.select_element(block, selectors.get("title")) or self.select_element(
            block, selectors.get("fallback_title")
        )
        title = clean_text(title_el.get_text(" ")) if title_el is not None else None

        if title_el is not None and title_el.name == "a":
            url = resolve_url(title_el.get("href"), base_url)
        else:
            url = self.select_href(block, selectors.get("url"), base_url)

        price_text = self.select_text(block, selectors.get("price")) or self.select_text(
            block, selectors.get("fallback_price")
        )

        item = ScrapedItem(
            title=title,
            description=self.select_text(block, selectors.get("description")),
            price=PriceNormalizer.clean_price(price_text),
            url=url,
            image=self.select_image(block, selectors.get("image"), base_url),
        )

        mileage = extract_number(self.select_text(block, selectors.get("mileage")))
        if mileage is not None:
            item.extra["mileage"] = mileage

        dealer_raw = self.select_text(block, selectors.get("city"))
        if dealer_raw:
            item.extra["dealer"] = dealer_raw
            item.extra.update({k: v for k, v in parse_dealer(dealer_raw).items() if v})
        return item
