"""Playwright session management for the 2GIS scraper."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, Response, Route, async_playwright

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/143.0.0.0 Safari/537.36"
)
BLOCKED_RESOURCE_TYPES = frozenset({"image", "font", "media", "stylesheet"})
BLOCKED_URL_MARKERS = (
    "google-analytics",
    "googletagmanager",
    "yandex.ru/metrika",
    "mc.yandex.ru",
    "doubleclick.net",
    "/ads/",
    "/metrics/",
)
CATALOG_API_MARKER = "catalog.api.2gis"
DETAIL_API_MARKER = "/items/byid"


def should_block(resource_type: str, url: str) -> bool:
    """Return True for traffic the scraper never needs (media, styling, trackers)."""
    if resource_type in BLOCKED_RESOURCE_TYPES:
        return True
    return any(marker in url for marker in BLOCKED_URL_MARKERS)


def is_detail_api_response(url: str) -> bool:
    return CATALOG_API_MARKER in url and DETAIL_API_MARKER in url


@dataclass
class BrowserSession:
    """One browser context and page, plus the buffer of intercepted catalog responses."""

    playwright: Playwright
    browser: Browser
    context: BrowserContext
    page: Page
    captured: List[Dict[str, Any]] = field(default_factory=list)

    def clear_captured(self) -> None:
        self.captured.clear()


async def _route_filter(route: Route) -> None:
    request = route.request
    if should_block(request.resource_type, request.url):
        await route.abort()
        return
    await route.continue_()


async def open_session(headless: bool, *, capture_api: bool = False) -> BrowserSession:
    """Launch Chromium, open one page and install the request filter."""
    playwright = await async_playwright().start()
    browser: Optional[Browser] = None
    try:
        browser = await playwright.chromium.launch(headless=headless)
        context = await browser.new_context(user_agent=USER_AGENT)
        page = await context.new_page()
        await page.route("**/*", _route_filter)
    except Exception:
        try:
            if browser is not None:
                await browser.close()
        finally:
            await playwright.stop()
        raise

    session = BrowserSession(playwright=playwright, browser=browser, context=context, page=page)
    logger.debug("Request blocking enabled (images, fonts, analytics)")

    if capture_api:

        async def _capture(response: Response) -> None:
            if not is_detail_api_response(response.url):
                return
            try:
                payload = await response.json()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Failed to parse catalog API response %s: %s", response.url[:80], exc)
                return
            session.captured.append(payload)
            logger.debug("Captured catalog API response for %s", response.url[:80])

        page.on("response", _capture)

    return session


async def close_session(session: Optional[BrowserSession]) -> None:
    if session is None:
        return
    try:
        await session.browser.close()
    finally:
        await session.playwright.stop()
    logger.debug("Browser closed")


@asynccontextmanager
async def browser_session(headless: bool, *, capture_api: bool = False) -> AsyncIterator[BrowserSession]:
    """Scoped session: the browser is closed on every exit path."""
    session = await open_session(headless, capture_api=capture_api)
    try:
        yield session
    finally:
        await close_session(session)
