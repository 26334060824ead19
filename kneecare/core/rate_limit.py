"""
Fixed-window request rate limiting backed by Redis.
"""
import logging
import time
from typing import Optional, Tuple

import redis

logger = logging.getLogger(__name__)


class RateLimiter:
    """Counts requests per key in fixed windows using INCR/EXPIRE."""

    def __init__(self, client, window_seconds: int = 900, max_requests: int = 100, prefix: str = "ratelimit"):
        self.client = client
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, window_seconds: int, max_requests: int) -> "RateLimiter":
        return cls(redis.from_url(url, socket_connect_timeout=1, socket_timeout=1), window_seconds, max_requests)

    def _key(self, identifier: str, now: float) -> str:
        window = int(now // self.window_seconds)
        return f"{self.prefix}:{identifier}:{window}"

    def hit(self, identifier: str, now: Optional[float] = None) -> Tuple[bool, int]:
        """Count one request. Returns (allowed, remaining).

        When Redis is unreachable the request is allowed and a warning logged.
        """
        now = time.time() if now is None else now
        key = self._key(identifier, now)
        try:
            count = self.client.incr(key)
            if count == 1:
                self.client.expire(key, self.window_seconds)
        except redis.RedisError as e:
            logger.warning(f"Rate limiter unavailable, allowing request: {e}")
            return True, self.max_requests
        remaining = max(0, self.max_requests - count)
        return count <= self.max_requests, remaining
