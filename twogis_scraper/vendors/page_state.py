"""Read organization payloads out of 2GIS client state or intercepted catalog responses."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional

from playwright.async_api import Page

from twogis_scraper.models import SOURCE_INTERCEPTED, SOURCE_STATE, RawItem

logger = logging.getLogger(__name__)

STATE_READY_SCRIPT = "() => typeof window.initialState !== 'undefined'"
STATE_READ_SCRIPT = "() => window.initialState ?? null"


class PageStateError(RuntimeError):
    """Raised when a loaded page carries no organization payload."""


async def wait_for_state(page: Page, timeout_ms: int) -> None:
    """Block until ``window.initialState`` exists; raises Playwright's TimeoutError otherwise."""
    await page.wait_for_function(STATE_READY_SCRIPT, timeout=timeout_ms)


def item_from_api_response(payload: Any) -> Optional[Dict[str, Any]]:
    """First item of a ``/items/byid`` catalog response."""
    if not isinstance(payload, dict):
        return None
    items = (payload.get("result") or {}).get("items")
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return None


def item_from_state(state: Any) -> Optional[Dict[str, Any]]:
    """Data payload of the first entry in ``initialState.data.entity.profile``."""
    if not isinstance(state, dict):
        return None
    profile = ((state.get("data") or {}).get("entity") or {}).get("profile")
    if not isinstance(profile, dict) or not profile:
        return None
    first = next(iter(profile.values()))
    if isinstance(first, dict) and isinstance(first.get("data"), dict):
        return first["data"]
    return None


async def read_state(page: Page) -> Optional[Dict[str, Any]]:
    state = await page.evaluate(STATE_READ_SCRIPT)
    return state if isinstance(state, dict) else None


async def extract_raw_item(
    page: Page,
    captured: Optional[Iterable[Dict[str, Any]]] = None,
    url: Optional[str] = None,
) -> Optional[RawItem]:
    """Return the page's organization payload, or ``None`` when the page has none.

    Intercepted detail responses win over the embedded state when present.
    """
    for payload in captured or ():
        item = item_from_api_response(payload)
        if item is not None:
            logger.debug("Using intercepted catalog API response")
            return RawItem(item=item, source=SOURCE_INTERCEPTED, url=url, full_data=payload)

    try:
        state = await read_state(page)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Failed to read initialState: %s", exc)
        return None

    item = item_from_state(state)
    if item is None:
        return None
    logger.debug("Extracted data from initialState")
    return RawItem(item=item, source=SOURCE_STATE, url=url, full_data=state)
