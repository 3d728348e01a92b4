"""Adaptive multi-strategy scraping engine.

This package provides:
- A domain configuration registry of selectors and options
- Site-family extractors and a pagination controller
- Lightweight, rendered and direct-API extraction strategies
- An orchestrator that escalates between strategies and reports progress
- A sliding-window rate limiter for inbound job requests
"""

from .models import ScrapeJob, ScrapedData, ScrapedItem, ScrapeMetadata, DomainConfig, StrategyType
from .registry import DomainRegistry, domain_registry, get_domain_registry, normalize_domain
from .cache import StrategyCache
from .heuristics import needs_escalation
from .orchestrator import ScrapeOrchestrator
from .rate_limiter import SlidingWindowRateLimiter, get_rate_limiter

__all__ = [
    # Data structures
    "ScrapeJob",
    "ScrapedData",
    "ScrapedItem",
    "ScrapeMetadata",
    "DomainConfig",
    "StrategyType",
    # Registry
    "DomainRegistry",
    "domain_registry",
    "get_domain_registry",
    "normalize_domain",
    # Engine
    "StrategyCache",
    "needs_escalation",
    "ScrapeOrchestrator",
    "SlidingWindowRateLimiter",
    "get_rate_limiter",
]
