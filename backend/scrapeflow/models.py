"""Data structures shared by the registry, strategies and orchestrator."""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class StrategyType(str, Enum):
    """Closed set of extraction strategies."""

    LIGHTWEIGHT = "lightweight"
    RENDERED = "rendered"
    DIRECT_API = "direct_api"


@dataclass(frozen=True)
class ScrapeJob:
    """Immutable description of one scrape request."""

    source: str  # Site identifier or full URL
    query: Union[str, Dict[str, Any]] = ""
    page_count: int = 1
    zip: Optional[str] = None  # Postal code for geo-radius searches
    zipr: Optional[int] = None  # Radius in km around zip
    job_id: Optional[str] = None

    def __post_init__(self):
        """Validate data after initialization."""
        if not self.source or not str(self.source).strip():
            raise ValueError("source is required")
        if not isinstance(self.page_count, int) or self.page_count < 1:
            raise ValueError("page_count must be an integer >= 1")
        if self.zipr is not None and self.zipr < 0:
            raise ValueError("zipr must be non-negative")

    @property
    def query_text(self) -> str:
        """Query rendered as text for URL building and metadata."""
        if isinstance(self.query, dict):
            return json.dumps(self.query, ensure_ascii=False, sort_keys=True)
        return self.query or ""


@dataclass
class DomainConfig:
    """Selectors and options for one normalized domain."""

    domain: str
    selectors: Dict[str, str]
    requires_javascript: bool = False
    default_strategy: StrategyType = StrategyType.LIGHTWEIGHT
    options: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.domain:
            raise ValueError("domain is required")
        if not self.selectors.get("container"):
            raise ValueError("selectors must include a container selector")

    def delay_range(self, default: tuple) -> tuple:
        """Inter-page delay window (min_ms, max_ms) for this domain."""
        delay = self.options.get("delay_between_pages")
        if not delay:
            return default
        low = int(delay.get("min", default[0]))
        high = int(delay.get("max", default[1]))
        return low, max(low, high)


@dataclass
class ScrapedItem:
    """One extracted record.

    ``price`` is a float once cleaned, or the raw text when it could not be
    parsed. Source-specific fields (rating, mileage, city, ...) go in ``extra``.
    """

    title: Optional[str] = None
    description: Optional[str] = None
    price: Union[float, str, None] = None
    url: Optional[str] = None
    image: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def is_meaningful(self) -> bool:
        """An item is kept only if it has a title or a URL."""
        return bool(self.title) or bool(self.url)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "title": self.title,
            "description": self.description,
            "price": self.price,
            "url": self.url,
            "image": self.image,
        }
        for key, value in self.extra.items():
            data.setdefault(key, value)
        return data


@dataclass(frozen=True)
class ScrapeMetadata:
    """Provenance of a ScrapedData result."""

    source: str
    query: str
    strategy_used: StrategyType
    execution_time_ms: int
    pages_scraped: int = 0
    stop_reason: Optional[str] = None
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "query": self.query,
            "timestamp": self.timestamp,
            "strategy_used": self.strategy_used.value,
            "execution_time_ms": self.execution_time_ms,
            "pages_scraped": self.pages_scraped,
            "stop_reason": self.stop_reason,
        }


@dataclass(frozen=True)
class ScrapedData:
    """Aggregated result of one scrape() call."""

    items: List[ScrapedItem]
    metadata: ScrapeMetadata
    title: Optional[str] = None

    @property
    def item_count(self) -> int:
        return len(self.items)

    def to_dict(self) -> Dict[str, Any]:
        """Plain-dict form for persistence by the caller."""
        return {
            "title": self.title,
            "items": [item.to_dict() for item in self.items],
            "metadata": self.metadata.to_dict(),
        }
