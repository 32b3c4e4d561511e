import pytest

from twogis_scraper.core.retry import with_retry


@pytest.mark.asyncio
async def test_always_failing_operation_is_attempted_exactly_max_retries():
    calls = []

    async def operation():
        calls.append(1)
        raise TimeoutError("navigation timed out")

    result = await with_retry(operation, 4, "Navigation", base_delay=0)

    assert result is None
    assert len(calls) == 4


@pytest.mark.asyncio
async def test_returns_first_success_after_failures():
    attempts = []

    async def operation():
        attempts.append(1)
        if len(attempts) < 3:
            raise RuntimeError("flaky")
        return "ok"

    assert await with_retry(operation, 3, "Flaky", base_delay=0) == "ok"
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_backoff_is_linear(monkeypatch):
    from twogis_scraper.core import retry

    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    monkeypatch.setattr(retry.asyncio, "sleep", fake_sleep)

    async def operation():
        raise RuntimeError("down")

    await with_retry(operation, 3, "Linear", base_delay=1.5)

    assert sleeps == [1.5, 3.0]


@pytest.mark.asyncio
async def test_logs_each_attempt(caplog):
    async def operation():
        raise RuntimeError("boom")

    with caplog.at_level("WARNING"):
        await with_retry(operation, 2, "Search page navigation", base_delay=0)

    messages = " ".join(caplog.messages)
    assert "Search page navigation attempt 1/2 failed" in messages
    assert "Search page navigation failed after 2 attempts" in messages
