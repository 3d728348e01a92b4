"""Extraction strategies."""

from scrapeflow.models import StrategyType

from .base import BaseStrategy, PagedHtmlStrategy
from .lightweight import LightweightStrategy
from .rendered import RenderedStrategy
from .direct_api import DirectApiStrategy

__all__ = [
    "StrategyType",
    "BaseStrategy",
    "PagedHtmlStrategy",
    "LightweightStrategy",
    "RenderedStrategy",
    "DirectApiStrategy",
]
