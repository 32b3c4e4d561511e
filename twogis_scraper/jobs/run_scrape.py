"""CLI job that drives a Playwright session through 2GIS pages and persists the results."""

import argparse
import asyncio
import logging
import time
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Dict, List, Optional, Sequence, Tuple

from twogis_scraper.core.browser import BrowserSession, browser_session
from twogis_scraper.core.config import ConfigError, Settings, get_settings, parse_bool
from twogis_scraper.core.repository import InvalidListFileError, RunMetadata, ScrapeRepository
from twogis_scraper.core.retry import with_retry
from twogis_scraper.etl.transform import to_organization_record
from twogis_scraper.models import (
    MODE_FULL_WITH_REVIEWS,
    MODE_LIST,
    SCRAPING_MODES,
    OrganizationRecord,
    ScrapeOptions,
)
from twogis_scraper.vendors.page_state import PageStateError, extract_raw_item, wait_for_state
from twogis_scraper.vendors.reviews import scrape_reviews
from twogis_scraper.vendors.search import (
    MAX_SEARCH_LINKS,
    extract_firm_id,
    extract_firm_urls,
    extract_listing_entries,
    firm_link_selector,
    to_listing_record,
)

logger = logging.getLogger(__name__)


@dataclass
class ScrapeResult:
    """Index-aligned output: ``raw_items[i]`` is the audit payload behind ``records[i]``."""

    records: List[OrganizationRecord] = field(default_factory=list)
    raw_items: List[Dict[str, Any]] = field(default_factory=list)
    succeeded: int = 0
    failed: int = 0

    def add(self, record: OrganizationRecord, raw_item: Dict[str, Any]) -> None:
        self.records.append(record)
        self.raw_items.append(raw_item)
        self.succeeded += 1


def validate_options(options: ScrapeOptions) -> None:
    """Reject target/mode combinations before any browser resource is opened."""
    if not (options.query or options.org_id or options.from_list):
        raise ConfigError("Either --query, --org-id or --from-list must be provided")
    if options.mode not in SCRAPING_MODES:
        raise ConfigError(f"Invalid mode {options.mode!r}. Must be one of: {', '.join(SCRAPING_MODES)}")
    if options.mode == MODE_LIST and (options.org_id or options.from_list):
        raise ConfigError("List mode requires --query, not --org-id or --from-list")
    if options.max_records < 1:
        raise ConfigError("--max-records must be positive")
    if options.max_retries < 1:
        raise ConfigError("--max-retries must be at least 1")
    if options.max_reviews < 0:
        raise ConfigError("--max-reviews must not be negative")
    if options.delay_ms < 0:
        raise ConfigError("--delay must not be negative")


async def scrape_organization(
    session: BrowserSession,
    url: str,
    options: ScrapeOptions,
    settings: Settings,
) -> Tuple[OrganizationRecord, Dict[str, Any]]:
    """Navigate to one firm page and return its record with the raw audit payload.

    Raises when the page never exposes client state or carries no organization,
    so the retry wrapper can try again.
    """
    page = session.page
    session.clear_captured()
    started = time.monotonic()

    await page.goto(url, wait_until="domcontentloaded", timeout=settings.navigation_timeout_ms)
    await wait_for_state(page, settings.state_timeout_ms)

    raw_item = await extract_raw_item(page, session.captured, url)
    if raw_item is None:
        raise PageStateError(f"No data found for {url}")

    record = to_organization_record(raw_item.item)

    firm_id = raw_item.item.get("id")
    if options.mode == MODE_FULL_WITH_REVIEWS and firm_id:
        record.reviews = await scrape_reviews(page, str(firm_id), options.max_reviews, settings)
        logger.debug("Collected %s reviews for %s", len(record.reviews), firm_id)

    logger.debug("Page time for %s: %.0fms", url, (time.monotonic() - started) * 1000)
    return record, raw_item.to_audit_dict()


async def _scrape_targets(
    session: BrowserSession,
    urls: Sequence[str],
    options: ScrapeOptions,
    settings: Settings,
    result: ScrapeResult,
) -> None:
    total = len(urls)
    for index, url in enumerate(urls, start=1):
        if index > 1 and options.delay_ms > 0:
            await asyncio.sleep(options.delay_ms / 1000)

        label = extract_firm_id(url) or url
        logger.info("[%d/%d] Processing organization %s", index, total, label)
        outcome = await with_retry(
            partial(scrape_organization, session, url, options, settings),
            options.max_retries,
            f"Scraping organization {label}",
        )
        if outcome is None:
            logger.error("Failed to scrape organization %s", label)
            result.failed += 1
            continue

        record, raw_item = outcome
        result.add(record, raw_item)
        logger.info("%s | Phone: %s | Rating: %s", record.name, record.phone or "-", record.rating or "-")


async def _load_search_results(session: BrowserSession, options: ScrapeOptions, settings: Settings) -> Optional[str]:
    page = session.page
    search_url = settings.search_url(options.query or "")
    logger.info("Navigating to 2GIS search for %r", options.query)

    async def _navigate() -> bool:
        await page.goto(search_url, wait_until="domcontentloaded", timeout=settings.search_timeout_ms)
        return True

    async def _wait_for_results() -> bool:
        await page.wait_for_selector(firm_link_selector(settings.city), timeout=settings.navigation_timeout_ms)
        return True

    if not await with_retry(_navigate, options.max_retries, "Search page navigation"):
        logger.error("Failed to load search page")
        return None
    if not await with_retry(_wait_for_results, options.max_retries, "Waiting for search results"):
        logger.error("No search results found for %r", options.query)
        return None
    return await page.content()


async def run_scrape(
    options: ScrapeOptions,
    settings: Optional[Settings] = None,
    *,
    session_factory=browser_session,
) -> ScrapeResult:
    """Run one scrape in the mode selected by ``options``.

    Per-target failures are counted and skipped. The browser session is opened
    after validation and closed on every exit path.
    """
    validate_options(options)
    settings = settings or get_settings()
    logger.info(
        "Starting scraper: mode=%s max_records=%s delay=%sms retries=%s headless=%s max_reviews=%s",
        options.mode,
        options.max_records,
        options.delay_ms,
        options.max_retries,
        options.headless,
        options.max_reviews,
    )

    firm_ids: Optional[List[str]] = None
    if options.from_list:
        listing = ScrapeRepository.read_list_file(options.from_list)
        firm_ids = listing.firm_ids[: options.max_records]
        logger.info("Found %d organizations in %s, will scrape %d", listing.total_results, options.from_list, len(firm_ids))
    elif options.org_id:
        firm_ids = [options.org_id]

    result = ScrapeResult()
    capture_api = firm_ids is None and options.mode != MODE_LIST
    async with session_factory(options.headless, capture_api=capture_api) as session:
        if firm_ids is not None:
            urls = [settings.firm_url(firm_id) for firm_id in firm_ids]
            await _scrape_targets(session, urls, options, settings, result)
        else:
            html = await _load_search_results(session, options, settings)
            if html is None:
                return result

            if options.mode == MODE_LIST:
                entries = extract_listing_entries(html, settings.city, options.max_records)
                logger.info("List mode: extracted %d results from the listing", len(entries))
                for entry in entries:
                    result.add(to_listing_record(entry), entry)
            else:
                urls = extract_firm_urls(html, settings.city, settings.base_url, MAX_SEARCH_LINKS)
                logger.info("Found %d results, will scrape %d", len(urls), min(len(urls), options.max_records))
                await _scrape_targets(session, urls[: options.max_records], options, settings, result)

    logger.info("Scraping complete: %d succeeded, %d failed", result.succeeded, result.failed)
    return result


def _cli_bool(value: str) -> bool:
    try:
        return parse_bool(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Scrape 2GIS organizations with Playwright")
    parser.add_argument("--query", dest="query", help="Search query, e.g. 'кальян'")
    parser.add_argument("--org-id", dest="org_id", help="Scrape a single organization by firm id")
    parser.add_argument("--from-list", dest="from_list", help="List-mode output file whose firms should be scraped")
    parser.add_argument("--delay", dest="delay_ms", type=int, default=settings.delay_ms, help="Delay between targets (ms)")
    parser.add_argument("--max-records", dest="max_records", type=int, default=settings.max_records)
    parser.add_argument("--max-retries", dest="max_retries", type=int, default=settings.max_retries)
    parser.add_argument("--headless", dest="headless", type=_cli_bool, default=settings.headless)
    parser.add_argument("--mode", dest="mode", default="full", help=f"One of: {', '.join(SCRAPING_MODES)}")
    parser.add_argument("--max-reviews", dest="max_reviews", type=int, default=settings.max_reviews)
    return parser


def options_from_args(args: argparse.Namespace) -> ScrapeOptions:
    return ScrapeOptions(
        query=(args.query or "").strip() or None,
        org_id=(args.org_id or "").strip() or None,
        from_list=args.from_list or None,
        delay_ms=args.delay_ms,
        max_records=args.max_records,
        max_retries=args.max_retries,
        headless=args.headless,
        mode=args.mode,
        max_reviews=args.max_reviews,
    )


def save_results(repository: ScrapeRepository, options: ScrapeOptions, result: ScrapeResult, elapsed_ms: int) -> None:
    metadata = RunMetadata(
        query=options.target_label,
        mode=options.mode,
        elapsed_ms=elapsed_ms,
        total_results=len(result.records),
    )
    repository.save_run(metadata, result.records, result.raw_items)
    if options.mode == MODE_FULL_WITH_REVIEWS:
        repository.save_reviews(metadata, result.records)


def main(argv: Optional[Sequence[str]] = None) -> None:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    args = build_parser().parse_args(argv)
    options = options_from_args(args)

    try:
        validate_options(options)
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc

    started = time.monotonic()
    try:
        result = asyncio.run(run_scrape(options, settings))
    except InvalidListFileError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc
    except Exception as exc:  # pragma: no cover - CLI fallback
        logger.error("Scrape failed: %s", exc, exc_info=True)
        raise SystemExit(1) from exc

    elapsed_ms = int((time.monotonic() - started) * 1000)
    logger.info("Scraped %d organizations in %.1fs", len(result.records), elapsed_ms / 1000)
    save_results(ScrapeRepository(settings.data_dir), options, result, elapsed_ms)


if __name__ == "__main__":
    main()
