"""Domain configuration registry.

Maps a normalized site identifier to the selectors and options the
extractors and strategies use. Lookups never fail: an unknown domain
resolves to a generic configuration.
"""

import copy
import threading
from typing import Dict, List, Optional

import structlog

from scrapeflow.exceptions import ConfigurationAbsentError
from scrapeflow.models import DomainConfig, StrategyType


logger = structlog.get_logger(__name__)


GENERIC_DOMAIN = "generic"

# Bare identifiers without a TLD
DOMAIN_ALIASES: Dict[str, str] = {
    "autoscout24": "autoscout24.fr",
    "ebay": "ebay.fr",
    "amazon": "amazon.fr",
    "leboncoin": "leboncoin.fr",
}

GENERIC_CONFIG = DomainConfig(
    domain=GENERIC_DOMAIN,
    selectors={
        "container": 'article, .product, .item, .card, div[class*="product"], div[class*="item"]',
        "title": 'h1, h2, h3, .title, [class*="title"]',
        "description": 'p, .description, [class*="description"]',
        "price": '.price, [class*="price"]',
        "url": "a",
        "image": "img",
    },
    requires_javascript=False,
    default_strategy=StrategyType.LIGHTWEIGHT,
)

AUTOSCOUT24_SEARCH_URL = (
    "https://www.autoscout24.fr/lst?atype=C&cy=F&desc=0&kmto=90000"
    "&mmmv=47%7C%7C%7C%2C13%7C%7C%7C%2C9%7C%7C%7C&page=1&powertype=kw"
    "&pricefrom=5000&priceto=100000&search_id=1wz8gihtx2n&sort=standard"
    "&source=listpage_pagination&ustate=N%2CU"
)

_EBAY_SELECTORS = {
    "container": ".s-item",
    "title": ".s-item__title",
    "price": ".s-item__price",
    "url": ".s-item__link",
    "image": ".s-item__image-img",
    "next_page": ".pagination__next",
}

DEFAULT_CONFIGS: List[DomainConfig] = [
    DomainConfig(
        domain="amazon.fr",
        selectors={
            "container": ".s-result-item",
            "title": ".a-text-normal",
            "description": ".a-size-base",
            "price": ".a-price .a-offscreen",
            "url": ".a-link-normal",
            "image": ".s-image",
            "rating": ".a-icon-star-small, .a-icon-star",
            "next_page": ".s-pagination-next",
        },
        requires_javascript=True,
        default_strategy=StrategyType.RENDERED,
    ),
    DomainConfig(
        domain="ebay.com",
        selectors=dict(_EBAY_SELECTORS),
        requires_javascript=False,
        default_strategy=StrategyType.LIGHTWEIGHT,
    ),
    DomainConfig(
        domain="ebay.fr",
        selectors=dict(_EBAY_SELECTORS),
        requires_javascript=False,
        default_strategy=StrategyType.LIGHTWEIGHT,
    ),
    DomainConfig(
        domain="autoscout24.fr",
        selectors={
            "container": "article",
            "title": ".ListItem_title__znV2I",
            "price": '[data-testid="regular-price"]',
            "url": "a.ListItem_title__znV2I",
            "image": "img.CardImage_img__nbdLB",
            "next_page": '.scr-pagination a[data-testid="pagination-nav-next"]',
            "mileage": '[data-testid="VehicleDetails-mileage_road"]',
            "description": ".VehicleDetailTable_container__mUUbY",
            "city": '[data-testid="sellerinfo-address"], [class^="SellerInfo_private_"]',
            "fallback_title": "h2",
            "fallback_price": '[data-testid="price"]',
        },
        requires_javascript=True,
        default_strategy=StrategyType.RENDERED,
        options={
            "base_url": "https://www.autoscout24.fr/lst",
            "default_search_url": AUTOSCOUT24_SEARCH_URL,
            "max_pages": 15,
            "scroll": {
                "distance": 100,
                "max_scrolls": 50,
                "delay_ms": 100,
                "pause_after_ms": 1000,
            },
            "delay_between_pages": {"min": 1500, "max": 2500},
        },
    ),
    DomainConfig(
        domain="leboncoin.fr",
        selectors={"container": "[data-qa-id='aditem_container']"},
        requires_javascript=False,
        default_strategy=StrategyType.DIRECT_API,
        options={
            "api": "leboncoin",
            "page_limit": 35,
            "delay_between_pages": {"min": 1000, "max": 1000},
            "delay_between_passes": {"min": 2000, "max": 2000},
        },
    ),
]


def normalize_domain(value: str) -> str:
    """Normalize a site identifier or URL to a registry key.

    Lowercases, strips the scheme and a leading ``www.``, and truncates
    at the first path, query or fragment delimiter. Idempotent.

    Examples:
        "https://www.AutoScout24.fr/lst?x=1" -> "autoscout24.fr"
        "ebay" -> "ebay"
    """
    if not value:
        return ""
    normalized = value.strip().lower()
    for prefix in ("https://", "http://"):
        if normalized.startswith(prefix):
            normalized = normalized[len(prefix):]
            break
    while normalized.startswith("www."):
        normalized = normalized[4:]
    for delimiter in ("/", "?", "#"):
        index = normalized.find(delimiter)
        if index != -1:
            normalized = normalized[:index]
    return normalized


class DomainRegistry:
    """Registry of per-domain selectors and options.

    Writes are serialized with a lock; reads are plain dict lookups since
    configurations are registered at startup and replaced whole.
    """

    def __init__(self, configs: Optional[List[DomainConfig]] = None):
        self._configs: Dict[str, DomainConfig] = {}
        self._lock = threading.Lock()
        for config in configs if configs is not None else DEFAULT_CONFIGS:
            self.register_domain(config)

    def register_domain(self, config: DomainConfig) -> None:
        """Add or replace the configuration for a domain.

        Args:
            config: Domain configuration; its domain is normalized before storing
        """
        key = normalize_domain(config.domain)
        stored = copy.deepcopy(config)
        stored.domain = key
        with self._lock:
            replaced = key in self._configs
            self._configs[key] = stored
        logger.debug(
            "domain_registered",
            domain=key,
            replaced=replaced,
            default_strategy=stored.default_strategy.value,
        )

    def lookup(self, domain: str) -> DomainConfig:
        """Strict resolution without the generic fallback.

        Raises:
            ConfigurationAbsentError: If no registered domain matches
        """
        normalized = normalize_domain(domain)
        configs = self._configs

        if normalized in configs:
            return configs[normalized]

        alias = DOMAIN_ALIASES.get(normalized)
        if alias and alias in configs:
            return configs[alias]

        # Subdomain tolerance, longest registered key wins
        candidates = [
            key for key in configs
            if normalized.endswith("." + key) or key in normalized
        ]
        if candidates:
            return configs[max(candidates, key=len)]

        raise ConfigurationAbsentError(normalized)

    def get_config(self, domain: str) -> DomainConfig:
        """Resolve the configuration for a domain, never failing.

        Resolution order: exact match, bare-name alias, subdomain or
        substring match, then the generic fallback.

        Args:
            domain: Site identifier or URL

        Returns:
            DomainConfig for the domain (a copy of the generic config if unknown)
        """
        try:
            return self.lookup(domain)
        except ConfigurationAbsentError as e:
            logger.debug("domain_config_fallback", domain=e.domain)
            return copy.deepcopy(GENERIC_CONFIG)

    def list_domains(self) -> List[str]:
        """Get the registered domain keys.

        Returns:
            List of normalized domain strings
        """
        return list(self._configs.keys())


# Global registry instance
domain_registry = DomainRegistry()


def get_domain_registry() -> DomainRegistry:
    """Get the global domain registry instance."""
    return domain_registry
