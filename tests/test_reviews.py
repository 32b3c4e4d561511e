import pytest

from fakes import SETTINGS, FakePage, reviews_html
from twogis_scraper.models import Review
from twogis_scraper.vendors import reviews

FIRM_ID = "70000001"
REVIEWS_URL = SETTINGS.reviews_url(FIRM_ID)


def _reviews(prefix, count, start=0):
    return [Review(id=f"{prefix}{i}", text=f"text {i}", rating=5, date_created="2024-01-01") for i in range(start, start + count)]


def _state_with_reviews(count):
    return {
        "data": {
            "review": {
                f"r{i}": {"data": {"text": f"state review {i}", "rating": 4, "date_created": "2024-01-01", "user": {"name": f"User {i}", "id": f"u{i}"}, "likes_count": i}}
                for i in range(count)
            }
        }
    }


def _dom_rows(count, start=0):
    return [(f"Author {i}", "1 января 2024", f"DOM review number {i} with long text", 3) for i in range(start, start + count)]


def test_collector_dedups_and_caps_at_sixty():
    collector = reviews.ReviewCollector(60)

    assert collector.add(_reviews("id", 50)) == 50
    dom_batch = _reviews("id", 5, start=45) + _reviews("id", 10, start=50)
    assert collector.add(dom_batch) == 10

    result = collector.result()
    assert len(result) == 60
    assert len({review.id for review in result}) == 60
    assert collector.full


def test_collector_never_exceeds_cap():
    collector = reviews.ReviewCollector(5)
    collector.add(_reviews("a", 4))
    assert collector.add(_reviews("b", 4)) == 1
    assert len(collector.result()) == 5


def test_reviews_from_state_maps_fields():
    parsed = reviews.reviews_from_state(_state_with_reviews(2))

    assert [review.id for review in parsed] == ["r0", "r1"]
    assert parsed[1].author == "User 1"
    assert parsed[1].author_id == "u1"
    assert parsed[1].likes == 1
    assert reviews.reviews_from_state(None) == []


def test_parse_dom_reviews_counts_stars_and_skips_official_answers():
    html = reviews_html(
        [
            ("Anna", "2 марта 2024", "Great hookah and service", 4),
            ("Owner", "3 марта 2024", "Thanks for the feedback", 0, True),
            ("Boris", "4 марта 2024", "No stars rendered", 0),
        ]
    )

    parsed = reviews.parse_dom_reviews(html)

    assert [review.author for review in parsed] == ["Anna", "Boris"]
    assert parsed[0].rating == 4
    assert parsed[1].rating == 0
    assert parsed[0].date_created == "2 марта 2024"
    assert parsed[0].id == reviews.dom_review_id("Anna", "2 марта 2024", "Great hookah and service")


def test_dom_review_id_is_deterministic():
    first = reviews.dom_review_id("Anna", "2 марта 2024", "Great hookah and service")
    assert first == reviews.dom_review_id("Anna", "2 марта 2024", "Great hookah and service")
    assert first.startswith("dom_")
    assert first != reviews.dom_review_id("Anna", "3 марта 2024", "Great hookah and service")


@pytest.mark.asyncio
async def test_scrape_reviews_bulk_then_dom_reaches_cap():
    batch = reviews_html(_dom_rows(15))
    page = FakePage(states={REVIEWS_URL: _state_with_reviews(50)}, dom_batches=[batch])

    collected = await reviews.scrape_reviews(page, FIRM_ID, 60, SETTINGS)

    assert len(collected) == 60
    assert len({review.id for review in collected}) == 60
    assert page.clicks == 1
    assert page.visited == [REVIEWS_URL]


@pytest.mark.asyncio
async def test_scrape_reviews_stays_in_state_when_cap_reached():
    page = FakePage(states={REVIEWS_URL: _state_with_reviews(50)}, dom_batches=[reviews_html(_dom_rows(5))])

    collected = await reviews.scrape_reviews(page, FIRM_ID, 20, SETTINGS)

    assert len(collected) == 20
    assert page.clicks == 0


@pytest.mark.asyncio
async def test_pagination_stops_one_click_after_feed_is_exhausted():
    feed_clicks = 3
    batches = [reviews_html(_dom_rows(5 * (n + 1))) for n in range(feed_clicks)]
    page = FakePage(dom_batches=batches, always_visible=True)
    collector = reviews.ReviewCollector(1000)

    clicks = await reviews.paginate_dom(page, collector, settle_ms=0)

    assert clicks == feed_clicks + 1
    assert len(collector) == 15


@pytest.mark.asyncio
async def test_pagination_respects_click_bound():
    batches = [reviews_html(_dom_rows(2 * (n + 1))) for n in range(50)]
    page = FakePage(dom_batches=batches)
    collector = reviews.ReviewCollector(1000)

    clicks = await reviews.paginate_dom(page, collector, max_clicks=4, settle_ms=0)

    assert clicks == 4
    assert len(collector) == 8


@pytest.mark.asyncio
async def test_scrape_reviews_navigation_failure_returns_empty_list():
    page = FakePage(goto_errors={REVIEWS_URL: TimeoutError("Timeout 30000ms exceeded")})

    assert await reviews.scrape_reviews(page, FIRM_ID, 10, SETTINGS) == []
