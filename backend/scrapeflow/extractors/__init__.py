"""Site-family extractors and the first-match selection chain."""

from typing import List, Optional

from scrapeflow.registry import DomainRegistry

from .base import BaseExtractor
from .autoscout24 import AutoScout24Extractor, parse_dealer
from .ebay import EbayExtractor
from .amazon import AmazonExtractor
from .generic import GenericExtractor

# Order matters: the generic catch-all must stay last
EXTRACTOR_CLASSES = [
    AutoScout24Extractor,
    EbayExtractor,
    AmazonExtractor,
    GenericExtractor,
]


def build_extractor_chain(registry: Optional[DomainRegistry] = None) -> List[BaseExtractor]:
    """Instantiate the ordered extractor chain."""
    return [cls(registry) for cls in EXTRACTOR_CLASSES]


def get_extractor(source: str, chain: Optional[List[BaseExtractor]] = None) -> BaseExtractor:
    """Return the first extractor in the chain that handles source."""
    for extractor in chain or build_extractor_chain():
        if extractor.can_handle(source):
            return extractor
    return GenericExtractor()


__all__ = [
    "BaseExtractor",
    "AutoScout24Extractor",
    "EbayExtractor",
    "AmazonExtractor",
    "GenericExtractor",
    "EXTRACTOR_CLASSES",
    "build_extractor_chain",
    "get_extractor",
    "parse_dealer",
]
