# core/config.py
import logging

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration, read from the environment (and ``.env``)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    DATABASE_URL: str = "sqlite:///./manga_scraper.db"
    DEBUG: bool = False
    API_KEY: str = ""
    LOG_LEVEL: str = "INFO"

    # Fetcher
    SCRAPE_REQUEST_TIMEOUT: int = 30
    FETCH_JITTER_MIN: float = 2.0
    FETCH_JITTER_MAX: float = 5.0
    FETCH_BACKOFF_DELAYS: list[float] = [2.0, 5.0, 10.0]

    # Scrape jobs
    SCRAPE_MAX_RETRIES: int = 3
    DEFAULT_SOURCE: str = "lekmanga"
    SCRAPE_BYPASS_ON_CHALLENGE: bool = False
    SCRAPE_JOB_STALE_AFTER_SECONDS: int = 600

    # Background download queue
    QUEUE_BATCH_SIZE: int = 3
    QUEUE_TIME_BUDGET_SECONDS: float = 45.0
    QUEUE_STALE_AFTER_SECONDS: int = 300
    QUEUE_ITEM_DELAY_SECONDS: float = 1.5
    QUEUE_CHAIN_DELAY_SECONDS: float = 3.0
    QUEUE_MAX_ATTEMPTS: int = 3

    # Cloudflare bypass
    FIRECRAWL_API_KEY: str = ""
    FIRECRAWL_API_URL: str = "https://api.firecrawl.dev/v1/scrape"
    BYPASS_TIMEOUT_MS: int = 60000
    BYPASS_MIN_HTML_BYTES: int = 20000
    FLARESOLVERR_URL: str = ""
    BYPASS_BROWSER_ENABLED: bool = False

    # AI metadata extraction
    LLM_API_KEY: str = ""
    LLM_GATEWAY_URL: str = "https://ai.gateway.lovable.dev/v1/chat/completions"
    LLM_MODEL: str = "google/gemini-3-flash-preview"


settings = Settings()


def configure_logging(level: str | None = None) -> None:
    """Apply LOG_LEVEL to the root logger. Safe to call more than once."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
