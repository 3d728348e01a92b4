"""Custom exception classes for the scraping engine."""

from typing import Optional


class ScrapeFlowError(Exception):
    """Base exception for all engine errors."""

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class ConfigurationAbsentError(ScrapeFlowError):
    """Raised by strict registry lookups when no domain config exists."""

    def __init__(self, domain: str):
        self.domain = domain
        super().__init__(f"No configuration registered for '{domain}'")


class StrategyError(ScrapeFlowError):
    """Raised when an extraction strategy cannot produce a result."""

    def __init__(self, strategy: str, message: str):
        self.strategy = strategy
        super().__init__(f"{strategy} strategy failed: {message}")


class FetchFailedError(StrategyError):
    """Raised when the lightweight fetch gets a transport error or non-2xx status."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        super().__init__("lightweight", f"{url}: {message}")


class RenderFailedError(StrategyError):
    """Raised when the headless browser cannot load or read a page."""

    def __init__(self, url: str, message: str):
        self.url = url
        super().__init__("rendered", f"{url}: {message}")


class RenderTimeoutError(RenderFailedError):
    """Raised when page navigation exceeds the render timeout."""

    def __init__(self, url: str, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(url, f"navigation timed out after {timeout_ms}ms")


class UpstreamApiError(StrategyError):
    """Raised when a direct-API source returns an error or is unreachable."""

    def __init__(self, platform: str, message: str, status_code: Optional[int] = None):
        self.platform = platform
        self.status_code = status_code
        super().__init__("direct_api", f"{platform}: {message}")
