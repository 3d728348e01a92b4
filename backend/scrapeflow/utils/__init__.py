"""Shared utilities for fetching and normalizing scraped data."""

from .normalizer import PriceNormalizer, clean_text, extract_number, resolve_url, set_query_params
from .user_agents import USER_AGENTS, build_headers, get_random_user_agent
from .retry import api_retry

__all__ = [
    # Normalization
    "PriceNormalizer",
    "clean_text",
    "extract_number",
    "resolve_url",
    "set_query_params",
    # Request headers
    "USER_AGENTS",
    "build_headers",
    "get_random_user_agent",
    # Retry
    "api_retry",
]
