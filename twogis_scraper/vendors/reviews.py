"""Review collection for one organization: embedded state first, then "load more" pagination."""

from __future__ import annotations

import hashlib
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from bs4 import BeautifulSoup
from playwright.async_api import Page

from twogis_scraper.core.config import Settings, get_settings
from twogis_scraper.models import Review
from twogis_scraper.vendors.page_state import read_state, wait_for_state

logger = logging.getLogger(__name__)

# Markup hooks on the reviews tab. These are build-generated class names and drift over time.
REVIEW_TEXT_SELECTOR = "a._1msln3t"
REVIEW_AUTHOR_SELECTOR = "._1pi8bc0"
REVIEW_DATE_SELECTOR = "._a5f6uz"
OFFICIAL_RESPONSE_SELECTOR = "._1evjsdb"
FILLED_STAR_SELECTOR = 'svg[fill="currentColor"]'
LOAD_MORE_SELECTOR = 'button:has-text("Загрузить ещё")'

MAX_LOAD_MORE_CLICKS = 20
CLICK_SETTLE_MS = 1000
STATE_SETTLE_MS = 500
CONTAINER_SEARCH_DEPTH = 10

ZERO_WIDTH_SPACE = "\u200b"
AUTHOR_REGEX = re.compile(r"^(.+?)\u200b(\d+)\s+отзыв")


class ReviewCollector:
    """Id-keyed review accumulator that never grows past ``limit``."""

    def __init__(self, limit: int) -> None:
        self.limit = max(0, limit)
        self._reviews: List[Review] = []
        self._ids = set()

    def __len__(self) -> int:
        return len(self._reviews)

    @property
    def full(self) -> bool:
        return len(self._reviews) >= self.limit

    def add(self, reviews: Iterable[Review]) -> int:
        """Add unseen reviews until the cap is hit; returns how many were new."""
        added = 0
        for review in reviews:
            if self.full:
                break
            if review.id in self._ids:
                continue
            self._ids.add(review.id)
            self._reviews.append(review)
            added += 1
        return added

    def result(self) -> List[Review]:
        return list(self._reviews[: self.limit])


def reviews_from_state(state: Optional[Dict[str, Any]]) -> List[Review]:
    """Reviews embedded in ``initialState.data.review`` (the first page the site renders)."""
    review_map = ((state or {}).get("data") or {}).get("review")
    if not isinstance(review_map, dict):
        return []

    reviews: List[Review] = []
    for review_id, wrapper in review_map.items():
        data = wrapper.get("data") if isinstance(wrapper, dict) else None
        if not isinstance(data, dict):
            continue
        user = data.get("user") or {}
        reviews.append(
            Review(
                id=str(review_id),
                text=data.get("text") or "",
                rating=data.get("rating") or 0,
                date_created=data.get("date_created") or "",
                date_edited=data.get("date_edited"),
                author=user.get("name"),
                author_id=user.get("id"),
                comments_count=data.get("comments_count"),
                source=data.get("source"),
                likes=data.get("likes_count"),
                dislikes=data.get("dislikes_count"),
            )
        )
    return reviews


def dom_review_id(author: str, date_created: str, text: str) -> str:
    """Stable id for a DOM-rendered review, which carries no native id."""
    digest = hashlib.sha1(f"{author}|{date_created}|{text[:20]}".encode("utf-8")).hexdigest()
    return f"dom_{digest[:16]}"


def _parse_author(raw: str) -> str:
    match = AUTHOR_REGEX.match(raw)
    if match:
        return match.group(1)
    return raw.split(ZERO_WIDTH_SPACE)[0]


def parse_dom_reviews(html: str) -> List[Review]:
    """Reviews currently rendered on the reviews tab, skipping the business's official replies."""
    soup = BeautifulSoup(html, "html.parser")
    reviews: List[Review] = []
    seen_texts = set()

    for link in soup.select(REVIEW_TEXT_SELECTOR):
        text = link.get_text(strip=True)
        if not text or text in seen_texts:
            continue

        container = None
        for depth, parent in enumerate(link.parents):
            if depth >= CONTAINER_SEARCH_DEPTH:
                break
            if parent.select_one(REVIEW_AUTHOR_SELECTOR) is not None:
                container = parent
                break
        if container is None:
            continue
        if container.select_one(OFFICIAL_RESPONSE_SELECTOR) is not None:
            continue

        author_el = container.select_one(REVIEW_AUTHOR_SELECTOR)
        author = _parse_author(author_el.get_text(strip=True) if author_el else "")
        date_el = container.select_one(REVIEW_DATE_SELECTOR)
        date_created = date_el.get_text(strip=True) if date_el else ""
        rating = min(len(container.select(FILLED_STAR_SELECTOR)), 5)

        reviews.append(
            Review(
                id=dom_review_id(author, date_created, text),
                text=text,
                rating=rating,
                date_created=date_created,
                author=author or None,
            )
        )
        seen_texts.add(text)

    return reviews


async def _load_more_visible(page: Page) -> bool:
    try:
        return await page.locator(LOAD_MORE_SELECTOR).first.is_visible()
    except Exception:  # noqa: BLE001
        return False


async def paginate_dom(
    page: Page,
    collector: ReviewCollector,
    *,
    max_clicks: int = MAX_LOAD_MORE_CLICKS,
    settle_ms: int = CLICK_SETTLE_MS,
) -> int:
    """Click "load more" until the cap, the click bound, or a click that yields nothing new."""
    clicks = 0
    while not collector.full and clicks < max_clicks:
        if not await _load_more_visible(page):
            logger.debug("No more 'load more' button, stopping pagination")
            break

        await page.locator(LOAD_MORE_SELECTOR).first.click()
        clicks += 1
        await page.wait_for_timeout(settle_ms)

        added = collector.add(parse_dom_reviews(await page.content()))
        logger.debug("Click %s: added %s new reviews (total: %s)", clicks, added, len(collector))
        if added == 0:
            logger.debug("No new reviews after pagination, stopping")
            break
    return clicks


async def scrape_reviews(
    page: Page,
    firm_id: str,
    max_reviews: int,
    settings: Optional[Settings] = None,
) -> List[Review]:
    """Collect up to ``max_reviews`` unique reviews; failures return what was gathered so far."""
    settings = settings or get_settings()
    collector = ReviewCollector(max_reviews)
    if collector.full:
        return []

    try:
        reviews_url = settings.reviews_url(firm_id)
        logger.debug("Navigating to reviews: %s", reviews_url)
        await page.goto(reviews_url, wait_until="domcontentloaded", timeout=settings.navigation_timeout_ms)
        await wait_for_state(page, settings.state_timeout_ms)
        await page.wait_for_timeout(STATE_SETTLE_MS)

        collector.add(reviews_from_state(await read_state(page)))
        logger.debug("Extracted %s reviews from initialState", len(collector))

        if not collector.full:
            await paginate_dom(page, collector)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Failed to extract reviews for %s: %s", firm_id, exc)

    reviews = collector.result()
    logger.debug("Extracted %s total reviews for %s", len(reviews), firm_id)
    return reviews
