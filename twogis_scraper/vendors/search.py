"""Search listing helpers: firm link discovery and list-mode records."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from twogis_scraper.models import OrganizationRecord

logger = logging.getLogger(__name__)

FIRM_ID_REGEX = re.compile(r"firm/(\d+)")
MAX_SEARCH_LINKS = 50


def firm_link_selector(city: str) -> str:
    return f'a[href*="/{city}/firm/"]'


def extract_firm_id(href: Optional[str]) -> Optional[str]:
    match = FIRM_ID_REGEX.search(href or "")
    return match.group(1) if match else None


def extract_firm_urls(html: str, city: str, base_url: str, limit: int = MAX_SEARCH_LINKS) -> List[str]:
    """Absolute firm URLs from a search page, one per firm id in page order."""
    soup = BeautifulSoup(html, "html.parser")
    urls: List[str] = []
    seen = set()
    for anchor in soup.select(firm_link_selector(city)):
        href = (anchor.get("href") or "").strip()
        firm_id = extract_firm_id(href)
        if not firm_id or firm_id in seen:
            continue
        seen.add(firm_id)
        urls.append(urljoin(base_url, href))
        if len(urls) >= limit:
            break
    return urls


def extract_listing_entries(html: str, city: str, limit: int) -> List[Dict[str, Any]]:
    """Minimal identifying data for up to ``limit`` distinct firms, read straight from the listing DOM."""
    soup = BeautifulSoup(html, "html.parser")
    entries: List[Dict[str, Any]] = []
    seen = set()
    for anchor in soup.select(firm_link_selector(city)):
        if len(entries) >= limit:
            break
        href = anchor.get("href")
        firm_id = extract_firm_id(href)
        if not firm_id or firm_id in seen:
            continue
        seen.add(firm_id)
        container = anchor.find_parent(attrs={"data-id": True}) or anchor.find_parent("article") or anchor.parent
        entries.append(
            {
                "firm_id": firm_id,
                "url": href,
                "name": anchor.get_text(strip=True),
                "container": str(container) if container is not None else "",
            }
        )
    return entries


def to_listing_record(entry: Dict[str, Any]) -> OrganizationRecord:
    return OrganizationRecord(name=entry.get("name") or "", address="", rubrics=[], firm_id=entry.get("firm_id"))
