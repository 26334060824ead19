"""
Fixed-window rate limiting.
"""
import redis
from fastapi.testclient import TestClient

from kneecare.core.rate_limit import RateLimiter
from kneecare.main import create_app


class FakeRedis:
    """Just enough of a Redis client for INCR/EXPIRE counting."""

    def __init__(self):
        self.counts = {}
        self.expiries = {}

    def incr(self, key):
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    def expire(self, key, seconds):
        self.expiries[key] = seconds


class DownRedis:
    def incr(self, key):
        raise redis.ConnectionError("connection refused")


def test_requests_within_window_are_counted():
    fake = FakeRedis()
    limiter = RateLimiter(fake, window_seconds=60, max_requests=2)

    assert limiter.hit("1.2.3.4", now=0) == (True, 1)
    assert limiter.hit("1.2.3.4", now=30) == (True, 0)
    assert limiter.hit("1.2.3.4", now=59) == (False, 0)
    assert list(fake.expiries.values()) == [60]


def test_new_window_resets_the_count():
    limiter = RateLimiter(FakeRedis(), window_seconds=60, max_requests=1)
    assert limiter.hit("ip", now=10)[0]
    assert not limiter.hit("ip", now=20)[0]
    assert limiter.hit("ip", now=61)[0]


def test_clients_are_counted_separately():
    limiter = RateLimiter(FakeRedis(), window_seconds=60, max_requests=1)
    assert limiter.hit("a", now=0)[0]
    assert limiter.hit("b", now=0)[0]


def test_unreachable_redis_allows_requests():
    limiter = RateLimiter(DownRedis(), window_seconds=60, max_requests=1)
    assert limiter.hit("ip") == (True, 1)
    assert limiter.hit("ip") == (True, 1)


def test_api_answers_429_over_the_limit(settings):
    settings.RATE_LIMIT_ENABLED = True
    app = create_app(settings, rate_limiter=RateLimiter(FakeRedis(), 900, 2))

    with TestClient(app) as client:
        first = client.get("/api/v1/health/live")
        assert first.status_code == 200
        assert first.headers["X-RateLimit-Limit"] == "2"
        assert client.get("/api/v1/health/live").status_code == 200

        limited = client.get("/api/v1/health/live")
        assert limited.status_code == 429
        assert limited.json()["error"] == "rate_limited"

        # Non-API paths are not limited
        assert client.get("/").status_code == 200
