import pytest

from app.infra.rate_limit import allow


@pytest.mark.asyncio
async def test_rate_limit_allows_within_budget():
    assert await allow("like", "u5", limit=2, window_seconds=60)
    assert await allow("like", "u5", limit=2, window_seconds=60)


@pytest.mark.asyncio
async def test_rate_limit_blocks_when_budget_exhausted():
    await allow("comment", "u6", limit=1, window_seconds=60)
    assert not await allow("comment", "u6", limit=1, window_seconds=60)


@pytest.mark.asyncio
async def test_rate_limit_windows_are_independent():
    assert await allow("follow", "u7", limit=1, window_seconds=60, now=120.0)
    assert await allow("follow", "u7", limit=1, window_seconds=60, now=180.0)


@pytest.mark.asyncio
async def test_rate_limit_zero_budget_always_blocks(fake_redis):
    assert not await allow("otp", "a@b.co", limit=0, window_seconds=3600)
    assert await fake_redis.keys("rl:otp:*") == []
