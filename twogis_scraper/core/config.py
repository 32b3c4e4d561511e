"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from urllib.parse import quote

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


class ConfigError(RuntimeError):
    """Raised when scrape configuration is missing or contradictory."""


@dataclass(frozen=True)
class Settings:
    base_url: str = "https://2gis.ru"
    city: str = "moscow"
    data_dir: str = "data"
    delay_ms: int = 2000
    max_records: int = 50
    max_retries: int = 3
    max_reviews: int = 100
    headless: bool = True
    navigation_timeout_ms: int = 30000
    search_timeout_ms: int = 60000
    state_timeout_ms: int = 5000
    log_level: str = "INFO"

    def firm_url(self, firm_id: str) -> str:
        return f"{self.base_url.rstrip('/')}/{self.city}/firm/{firm_id}"

    def reviews_url(self, firm_id: str) -> str:
        return f"{self.firm_url(firm_id)}/tab/reviews"

    def search_url(self, query: str) -> str:
        return f"{self.base_url.rstrip('/')}/{self.city}/search/{quote(query, safe='')}"


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("%s=%r is not an integer; using default %s", name, raw, default)
        return default


TRUE_VALUES = {"1", "true", "yes"}
FALSE_VALUES = {"0", "false", "no"}


def parse_bool(value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    raise ValueError(f"{value!r} is not a boolean (expected one of true/false, yes/no, 1/0)")


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return parse_bool(raw)
    except ValueError:
        logger.warning("%s=%r is not a boolean; using default %s", name, raw, default)
        return default


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    return Settings(
        base_url=os.getenv("TWOGIS_BASE_URL", "https://2gis.ru"),
        city=os.getenv("TWOGIS_CITY", "moscow"),
        data_dir=os.getenv("SCRAPER_DATA_DIR", "data"),
        delay_ms=_int_env("SCRAPER_DELAY_MS", 2000),
        max_records=_int_env("SCRAPER_MAX_RECORDS", 50),
        max_retries=_int_env("SCRAPER_MAX_RETRIES", 3),
        max_reviews=_int_env("SCRAPER_MAX_REVIEWS", 100),
        headless=_bool_env("SCRAPER_HEADLESS", True),
        navigation_timeout_ms=_int_env("SCRAPER_NAVIGATION_TIMEOUT_MS", 30000),
        search_timeout_ms=_int_env("SCRAPER_SEARCH_TIMEOUT_MS", 60000),
        state_timeout_ms=_int_env("SCRAPER_STATE_TIMEOUT_MS", 5000),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
