import pytest

from fakes import FakePage, profile_state
from twogis_scraper.vendors import page_state

URL = "https://2gis.ru/moscow/firm/1"


def test_item_from_state_takes_first_profile_entry():
    state = profile_state({"id": "1", "name": "Cafe"})
    assert page_state.item_from_state(state) == {"id": "1", "name": "Cafe"}


@pytest.mark.parametrize(
    "state",
    [None, {}, {"data": {}}, {"data": {"entity": {"profile": {}}}}, {"data": {"entity": {"profile": {"1": {}}}}}],
)
def test_item_from_state_missing_profile(state):
    assert page_state.item_from_state(state) is None


def test_item_from_api_response():
    assert page_state.item_from_api_response({"result": {"items": [{"id": "9"}]}}) == {"id": "9"}
    assert page_state.item_from_api_response({"result": {"items": []}}) is None
    assert page_state.item_from_api_response("nope") is None


@pytest.mark.asyncio
async def test_extract_prefers_intercepted_response():
    page = FakePage(states={URL: profile_state({"id": "1", "name": "From state"})})
    page.url = URL
    captured = [{"result": {"items": [{"id": "1", "name": "From API"}]}}]

    raw = await page_state.extract_raw_item(page, captured, URL)

    assert raw.source == "intercepted"
    assert raw.item["name"] == "From API"


@pytest.mark.asyncio
async def test_extract_falls_back_to_state_and_builds_audit_payload():
    state = profile_state({"id": "1", "name": "From state"})
    page = FakePage(states={URL: state})
    page.url = URL

    raw = await page_state.extract_raw_item(page, [{"result": {"items": []}}], URL)

    assert raw.source == "state"
    assert raw.item["name"] == "From state"
    audit = raw.to_audit_dict()
    assert audit["url"] == URL
    assert audit["data"] == {"meta": {"code": 200}, "result": {"items": [raw.item]}}


@pytest.mark.asyncio
async def test_extract_returns_none_when_page_has_no_organization():
    page = FakePage(states={URL: {"data": {"entity": {}}}})
    page.url = URL

    assert await page_state.extract_raw_item(page, None, URL) is None


@pytest.mark.asyncio
async def test_extract_returns_none_when_evaluate_fails():
    class BrokenPage(FakePage):
        async def evaluate(self, script):
            raise RuntimeError("Execution context was destroyed")

    assert await page_state.extract_raw_item(BrokenPage(), None, URL) is None
