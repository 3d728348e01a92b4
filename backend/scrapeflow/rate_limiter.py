"""Sliding-window rate limiter for inbound job-creation requests."""

import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

import structlog

from scrapeflow.config import settings

logger = structlog.get_logger(__name__)


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass
class RateLimitEntry:
    """Request count within the window starting at timestamp (ms)."""

    count: int
    timestamp: float
    pending: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)


class SlidingWindowRateLimiter:
    """Allows ``limit`` requests per ``interval_ms`` for each client key.

    The window restarts on the first request after it expires. Rejected
    requests still count. Entries whose window started more than
    ``cleanup_ms`` ago are dropped on each check, except entries that
    another thread is updating.

    A map-level lock guards the entry table and the pending claims; each
    entry has its own lock for the counter update.
    """

    def __init__(
        self,
        limit: Optional[int] = None,
        interval_ms: Optional[float] = None,
        cleanup_ms: Optional[float] = None,
        clock: Callable[[], float] = _monotonic_ms,
    ):
        self.limit = limit if limit is not None else settings.RATE_LIMIT_MAX_REQUESTS
        self.interval_ms = interval_ms if interval_ms is not None else settings.RATE_LIMIT_INTERVAL_MS
        self.cleanup_ms = cleanup_ms if cleanup_ms is not None else settings.RATE_LIMIT_CLEANUP_MS
        if self.limit < 1:
            raise ValueError("limit must be >= 1")
        if self.interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        self._clock = clock
        self._entries: Dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    def check_rate_limit(self, key: str) -> bool:
        """Record a request for key and report whether it is allowed.

        Args:
            key: Client identifier (e.g. remote address)

        Returns:
            True if the request is within the limit
        """
        now = self._clock()
        with self._lock:
            self._cleanup(now)
            entry = self._entries.get(key)
            if entry is None:
                entry = RateLimitEntry(count=0, timestamp=now)
                self._entries[key] = entry
            entry.pending += 1

        try:
            with entry.lock:
                if entry.count == 0 or now - entry.timestamp > self.interval_ms:
                    entry.count = 1
                    entry.timestamp = now
                else:
                    entry.count += 1
                count = entry.count
        finally:
            with self._lock:
                entry.pending -= 1

        allowed = count <= self.limit
        if not allowed:
            logger.info("rate_limit_exceeded", key=key, count=count, limit=self.limit)
        return allowed

    def _cleanup(self, now: float) -> None:
        stale = [
            key for key, entry in self._entries.items()
            if now - entry.timestamp > self.cleanup_ms and entry.pending == 0
        ]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug("rate_limit_entries_purged", count=len(stale))

    def get_entry(self, key: str) -> Optional[RateLimitEntry]:
        return self._entries.get(key)

    def __len__(self) -> int:
        return len(self._entries)


# Global limiter instance
_rate_limiter: Optional[SlidingWindowRateLimiter] = None


def get_rate_limiter() -> SlidingWindowRateLimiter:
    """Get the global rate limiter configured from settings."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = SlidingWindowRateLimiter()
    return _rate_limiter
