"""Unit tests for the rate limit sweeper."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from remitdesk.core.exceptions import IdempotencyStorageError
from remitdesk.infrastructure.security.rate_limiting import RateLimitSweeper, SlidingWindowRateLimiter


@pytest.mark.asyncio
async def test_run_once_evicts_stale_windows(clock):
    limiter = SlidingWindowRateLimiter(clock=clock)
    limiter.check_rate_limit("ip_1.1.1.1", 5, 60)
    clock.advance(601)
    limiter.check_rate_limit("ip_2.2.2.2", 5, 60)
    sweeper = RateLimitSweeper(limiter, interval_seconds=300, retention_seconds=600)

    evicted = await sweeper.run_once()

    assert evicted == 1
    assert limiter.get_window("ip_1.1.1.1") is None
    assert limiter.get_window("ip_2.2.2.2") is not None


@pytest.mark.asyncio
async def test_run_once_purges_expired_idempotency_records():
    limiter = MagicMock()
    limiter.evict_stale.return_value = 0
    repository = MagicMock()
    repository.purge_expired = AsyncMock(return_value=3)
    sweeper = RateLimitSweeper(limiter, idempotency_repository=repository)

    await sweeper.run_once()

    repository.purge_expired.assert_awaited_once()


@pytest.mark.asyncio
async def test_purge_failure_is_absorbed():
    limiter = MagicMock()
    limiter.evict_stale.return_value = 2
    repository = MagicMock()
    repository.purge_expired = AsyncMock(side_effect=IdempotencyStorageError(detail="db down"))
    sweeper = RateLimitSweeper(limiter, idempotency_repository=repository)

    assert await sweeper.run_once() == 2


@pytest.mark.asyncio
async def test_start_and_stop():
    limiter = MagicMock()
    limiter.evict_stale.return_value = 0
    sweeper = RateLimitSweeper(limiter, interval_seconds=0.01, retention_seconds=600)

    sweeper.start()
    assert sweeper.running is True
    await asyncio.sleep(0.1)
    await sweeper.stop()

    assert sweeper.running is False
    assert limiter.evict_stale.call_count >= 1
    limiter.evict_stale.assert_called_with(600)


@pytest.mark.asyncio
async def test_loop_survives_sweep_errors():
    limiter = MagicMock()
    limiter.evict_stale.side_effect = [RuntimeError("boom")] + [0] * 100
    sweeper = RateLimitSweeper(limiter, interval_seconds=0.01)

    sweeper.start()
    await asyncio.sleep(0.1)
    assert sweeper.running is True
    await sweeper.stop()

    assert limiter.evict_stale.call_count >= 2


@pytest.mark.asyncio
async def test_stop_without_start_is_noop():
    sweeper = RateLimitSweeper(MagicMock())
    await sweeper.stop()
    assert sweeper.running is False


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        RateLimitSweeper(MagicMock(), interval_seconds=0)
