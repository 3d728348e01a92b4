"""Engine configuration via Pydantic Settings."""

from typing import Optional, Tuple

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # App
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Lightweight fetch
    REQUEST_TIMEOUT_SECONDS: float = 10.0
    USER_AGENT: str = ""  # Empty means rotate from the built-in pool
    ACCEPT_LANGUAGE: str = "fr-FR,fr;q=0.9,en-US;q=0.8,en;q=0.7"

    # Rendered fetch
    BROWSER_HEADLESS: bool = True
    RENDER_TIMEOUT_MS: int = 30000
    SELECTOR_TIMEOUT_MS: int = 10000

    # Pagination
    DEFAULT_PAGE_DELAY_MIN_MS: int = 1000
    DEFAULT_PAGE_DELAY_MAX_MS: int = 2000
    JOB_TIMEOUT_SECONDS: Optional[float] = None

    # Inbound job-creation rate limiting
    RATE_LIMIT_MAX_REQUESTS: int = 5
    RATE_LIMIT_INTERVAL_MS: int = 10000
    RATE_LIMIT_CLEANUP_MS: int = 60000

    # Leboncoin finder API
    LEBONCOIN_API_URL: str = "https://api.leboncoin.fr/finder/search"
    LEBONCOIN_API_KEY: str = ""
    LEBONCOIN_PAGE_LIMIT: int = 35

    @model_validator(mode="after")
    def check_page_delay(self) -> "Settings":
        """Keep the default delay window ordered."""
        if self.DEFAULT_PAGE_DELAY_MAX_MS < self.DEFAULT_PAGE_DELAY_MIN_MS:
            self.DEFAULT_PAGE_DELAY_MAX_MS = self.DEFAULT_PAGE_DELAY_MIN_MS
        return self

    def get_page_delay_range(self) -> Tuple[int, int]:
        """Default inter-page delay window in milliseconds."""
        return self.DEFAULT_PAGE_DELAY_MIN_MS, self.DEFAULT_PAGE_DELAY_MAX_MS


settings = Settings()
