"""Catch-all extractor for sites without a dedicated family."""

from typing import Optional
from urllib.parse import quote_plus

from scrapeflow.extractors.base import BaseExtractor
from scrapeflow.models import ScrapeJob
from scrapeflow.registry import normalize_domain
from scrapeflow.utils.normalizer import set_query_params


class GenericExtractor(BaseExtractor):
    """Handles any source using the loose generic selectors.

    URL building:
    - full URL source: set ``q`` and ``page`` on it
    - amazon.*: ``/s?k=...&page=N``
    - google.*: ``/search?q=...&start=(N-1)*10``
    - otherwise: ``https://{domain}/search?q=...&page=N``
    """

    name = "generic"

    def can_handle(self, source: str) -> bool:
        return True

    def build_url(self, source: str, query: str, page: int, job: Optional[ScrapeJob] = None) -> str:
        source = source.strip()
        if source.lower().startswith(("http://", "https://")):
            params = {"page": page}
            if query:
                params["q"] = query
            return set_query_params(source, params)

        domain = normalize_domain(source)
        encoded = quote_plus(query or "")
        if domain.startswith("amazon."):
            return f"https://www.{domain}/s?k={encoded}&page={page}"
        if domain.startswith("google."):
            return f"https://www.{domain}/search?q={encoded}&start={(page - 1) * 10}"
        return f"https://{domain}/search?q={encoded}&page={page}"
