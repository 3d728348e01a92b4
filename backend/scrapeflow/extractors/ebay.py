"""eBay listing extractor (ebay.com, ebay.fr and other country sites)."""

from typing import Optional
from urllib.parse import quote_plus

from scrapeflow.extractors.base import BaseExtractor
from scrapeflow.models import ScrapeJob
from scrapeflow.registry import normalize_domain
from scrapeflow.utils.normalizer import set_query_params


class EbayExtractor(BaseExtractor):
    """Search results at ``/sch/i.html?_nkw=...&_pgn=N``.

    A zip code maps to ``_stpos`` and a radius to ``_sadis``.
    """

    name = "ebay"

    def can_handle(self, source: str) -> bool:
        domain = normalize_domain(source)
        return domain == "ebay" or domain.startswith("ebay.") or ".ebay." in domain

    def build_url(self, source: str, query: str, page: int, job: Optional[ScrapeJob] = None) -> str:
        geo = {}
        if job is not None and job.zip:
            geo["_stpos"] = job.zip
            if job.zipr is not None:
                geo["_sadis"] = job.zipr

        if source.strip().lower().startswith(("http://", "https://")):
            return set_query_params(source.strip(), {"_pgn": page, **geo})

        domain = normalize_domain(source)
        if domain == "ebay":
            domain = self.registry.get_config(domain).domain
        url = f"https://www.{domain}/sch/i.html?_nkw={quote_plus(query or '')}&_pgn={page}"
        if geo:
            url = set_query_params(url, geo)
        return url
