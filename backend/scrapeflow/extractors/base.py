"""Base extractor interface.

An extractor knows how to build listing URLs for a family of sites and
how to pull items out of a parsed listing page using the selectors the
domain registry holds for it. Extractors never raise on missing fields.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import structlog
from bs4 import BeautifulSoup, Tag

from scrapeflow.models import ScrapeJob, ScrapedItem
from scrapeflow.registry import DomainRegistry, get_domain_registry
from scrapeflow.utils.normalizer import PriceNormalizer, clean_text, resolve_url


class BaseExtractor(ABC):
    """Abstract base class for site-family extractors.

    Subclasses set ``name`` and implement can_handle() and build_url().
    parse_item() may be overridden for site-specific fields.

    Extractors with ``self_paginating = True`` advance pages purely by
    URL increment; the pagination controller then asks handle_pagination()
    instead of looking for a next-page element.
    """

    name: str = "base"
    self_paginating: bool = False

    def __init__(self, registry: Optional[DomainRegistry] = None):
        self.registry = registry or get_domain_registry()
        self.logger = structlog.get_logger(extractor=self.name)

    @abstractmethod
    def can_handle(self, source: str) -> bool:
        """Whether this extractor serves the given site identifier or URL."""
        pass

    @abstractmethod
    def build_url(
        self,
        source: str,
        query: str,
        page: int,
        job: Optional[ScrapeJob] = None,
    ) -> str:
        """Build the listing URL for a 1-based page number.

        Args:
            source: Site identifier or full URL from the job
            query: Free-text search query
            page: Page number, starting at 1
            job: Originating job, for zip/zipr refinements

        Returns:
            Absolute URL
        """
        pass

    def handle_pagination(self, current_page: int, page_count: int, job: Optional[ScrapeJob] = None) -> bool:
        """Whether another page should be fetched after current_page."""
        return current_page < page_count

    def extract_items(
        self,
        document: BeautifulSoup,
        selectors: Dict[str, str],
        base_url: str = "",
    ) -> List[ScrapedItem]:
        """Extract every meaningful item from a parsed listing page.

        Args:
            document: Parsed page
            selectors: Domain selectors; "container" delimits one item
            base_url: Page URL used to resolve relative links

        Returns:
            Items having at least a title or a URL, in document order
        """
        container = selectors.get("container")
        if not container:
            return []

        items: List[ScrapedItem] = []
        for block in document.select(container):
            item = self.parse_item(block, selectors, base_url)
            if item is not None and item.is_meaningful():
                items.append(item)
        return items

    def parse_item(self, block: Tag, selectors: Dict[str, str], base_url: str) -> Optional[ScrapedItem]:
        """Read the standard fields from one container block."""
        price_text = self.select_text(block, selectors.get("price"))
        return ScrapedItem(
            title=self.select_text(block, selectors.get("title")),
            description=self.select_text(block, selectors.get("description")),
            price=PriceNormalizer.clean_price(price_text),
            url=self.select_href(block, selectors.get("url"), base_url),
            image=self.select_image(block, selectors.get("image"), base_url),
        )

    # ------------------------------------------------------------------
    # Field helpers
    # ------------------------------------------------------------------

    @staticmethod
    def select_element(block: Tag, selector: Optional[str]) -> Optional[Tag]:
        if not selector:
            return None
        return block.select_one(selector)

    @classmethod
    def select_text(cls, block: Tag, selector: Optional[str]) -> Optional[str]:
        element = cls.select_element(block, selector)
        if element is None:
            return None
        return clean_text(element.get_text(" "))

    @classmethod
    def select_href(cls, block: Tag, selector: Optional[str], base_url: str = "") -> Optional[str]:
        element = cls.select_element(block, selector)
        if element is None:
            return None
        if element.name != "a" and not element.get("href"):
            element = element.find("a", href=True) or element
        return resolve_url(element.get("href"), base_url)

    @classmethod
    def select_image(cls, block: Tag, selector: Optional[str], base_url: str = "") -> Optional[str]:
        """Image URL from src, then data-src, then the first srcset entry."""
        element = cls.select_element(block, selector)
        if element is None:
            return None
        src = element.get("src") or element.get("data-src")
        if not src or src.startswith("data:"):
            srcset = element.get("srcset") or element.get("data-srcset")
            src = srcset.split(",")[0].strip().split(" ")[0] if srcset else None
        return resolve_url(src, base_url)

    @staticmethod
    def page_title(document: BeautifulSoup) -> Optional[str]:
        if document.title is None:
            return None
        return clean_text(document.title.get_text())
