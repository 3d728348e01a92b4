"""Per-domain memory of the last strategy that produced a result."""

import threading
from typing import Dict, Optional

from scrapeflow.models import StrategyType
from scrapeflow.registry import normalize_domain


class StrategyCache:
    """Maps normalized domain -> last successful StrategyType.

    Purely an optimization: losing it only costs a possible extra escalation.
    """

    def __init__(self):
        self._entries: Dict[str, StrategyType] = {}
        self._lock = threading.Lock()

    def get(self, domain: str) -> Optional[StrategyType]:
        return self._entries.get(normalize_domain(domain))

    def set(self, domain: str, strategy: StrategyType) -> None:
        with self._lock:
            self._entries[normalize_domain(domain)] = strategy

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, domain: str) -> bool:
        return normalize_domain(domain) in self._entries
