"""Tests for the booking rate limiter."""

from unittest.mock import MagicMock

import pytest
import redis

from seledental import rate_limiter


@pytest.fixture(autouse=True)
def clean_cache():
    rate_limiter.memory_cache.clear()
    yield
    rate_limiter.memory_cache.clear()


def test_memory_only_counts_until_limit():
    results = [rate_limiter.check_rate_limit("booking:1.2.3.4", 3, 60, None)[0] for _ in range(4)]
    assert results == [True, True, True, False]


def test_keys_are_independent():
    for _ in range(2):
        rate_limiter.check_rate_limit("booking:a", 2, 60, None)
    assert rate_limiter.check_rate_limit("booking:a", 2, 60, None)[0] is False
    assert rate_limiter.check_rate_limit("booking:b", 2, 60, None)[0] is True


def test_resumes_window_from_redis():
    client = MagicMock()
    client.get.return_value = "5"
    client.ttl.return_value = 30

    allowed, count, ttl = rate_limiter.check_rate_limit("booking:x", 5, 60, client)

    assert allowed is False
    assert count == 5
    assert 0 < ttl <= 30


def test_redis_errors_fall_back_to_memory():
    client = MagicMock()
    client.get.side_effect = redis.ConnectionError("down")
    client.set.side_effect = redis.ConnectionError("down")

    allowed, count, _ = rate_limiter.check_rate_limit("booking:y", 2, 60, client)

    assert allowed is True
    assert count == 1


@pytest.mark.asyncio
async def test_dependency_is_noop_when_disabled(monkeypatch):
    monkeypatch.setattr(rate_limiter, "RATE_LIMIT_ENABLED", False)
    request = MagicMock()
    assert await rate_limiter.rate_limit_dependency(request, 1, 60) is None
    request.headers.get.assert_not_called()


@pytest.mark.asyncio
async def test_dependency_raises_429(monkeypatch):
    from fastapi import HTTPException

    monkeypatch.setattr(rate_limiter, "RATE_LIMIT_ENABLED", True)
    monkeypatch.setattr(rate_limiter, "get_redis_client", lambda: None)
    request = MagicMock()
    request.client.host = "10.0.0.1"
    request.headers.get.return_value = None

    limiter = rate_limiter.create_rate_limiter(limit=1, window_seconds=60, key_prefix="booking")
    await limiter(request)
    with pytest.raises(HTTPException) as exc:
        await limiter(request)
    assert exc.value.status_code == 429
    assert "Retry-After" in exc.value.headers
