import sys
from pathlib import Path

import pytest

# Ensure the `twogis_scraper` package is importable when running pytest from a checkout.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from twogis_scraper.core import config, retry  # noqa: E402


@pytest.fixture(autouse=True)
def _isolated_settings():
    config.get_settings.cache_clear()
    yield
    config.get_settings.cache_clear()


@pytest.fixture
def no_backoff(monkeypatch):
    monkeypatch.setattr(retry, "RETRY_BACKOFF_SECONDS", 0)
