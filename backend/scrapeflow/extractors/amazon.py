"""Amazon search results extractor."""

import re
from typing import Dict, Optional
from urllib.parse import quote_plus

from bs4 import Tag

from scrapeflow.extractors.base import BaseExtractor
from scrapeflow.models import ScrapeJob, ScrapedItem
from scrapeflow.registry import normalize_domain
from scrapeflow.utils.normalizer import set_query_params

RATING_PATTERN = re.compile(r"(\d+(?:[.,]\d+)?)")


class AmazonExtractor(BaseExtractor):
    """Search results at ``/s?k=...&page=N`` with star ratings."""

    name = "amazon"

    def can_handle(self, source: str) -> bool:
        domain = normalize_domain(source)
        return domain == "amazon" or domain.startswith("amazon.")

    def build_url(self, source: str, query: str, page: int, job: Optional[ScrapeJob] = None) -> str:
        if source.strip().lower().startswith(("http://", "https://")):
            return set_query_params(source.strip(), {"page": page})
        domain = normalize_domain(source)
        if domain == "amazon":
            domain = self.registry.get_config(domain).domain
        return f"https://www.{domain}/s?k={quote_plus(query or '')}&page={page}"

    def parse_item(self, block: Tag, selectors: Dict[str, str], base_url: str) -> Optional[ScrapedItem]:
        item = super().parse_item(block, selectors, base_url)
        rating = self.parse_rating(self.select_element(block, selectors.get("rating")))
        if rating is not None:
            item.extra["rating"] = rating
        return item

    @staticmethod
    def parse_rating(element: Optional[Tag]) -> Optional[float]:
        """Read "4,5 sur 5 étoiles" style ratings from aria-label or text."""
        if element is None:
            return None
        label = element.get("aria-label") or element.get_text(" ")
        match = RATING_PATTERN.search(label or "")
        if not match:
            return None
        return float(match.group(1).replace(",", "."))
