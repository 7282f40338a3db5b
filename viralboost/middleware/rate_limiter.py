"""
Rate Limiter - Redis sliding window over the costly endpoints.

The AI endpoints and payment intent creation call paid upstreams, so every
client IP gets a budget per window and scope ("ai", "payment").

One Lua script trims the window, counts and records the request atomically
on a sorted set. Without Redis (not configured, down, erroring) the limiter
fails open unless RATE_LIMIT_FAIL_OPEN is false.

Usage:
    decision = await rate_limiter.check("ai", "203.0.113.7", limit=20)
    if not decision.allowed:
        ...  # 429, Retry-After: decision.retry_after
"""

import time
from dataclasses import dataclass

from viralboost.config import settings
from viralboost.infrastructure.observability.logging import get_logger
from viralboost.services.redis_client import RedisClient, redis_client

logger = get_logger(__name__)

# KEYS[1] sorted set; ARGV limit, window, now, member
# Returns {allowed, count, oldest score or 0}
SLIDING_WINDOW_LUA = """
local key = KEYS[1]
local limit = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local now = tonumber(ARGV[3])

redis.call('ZREMRANGEBYSCORE', key, 0, now - window)
local count = redis.call('ZCARD', key)

if count >= limit then
    local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
    return {0, count, tonumber(oldest[2]) or 0}
end

redis.call('ZADD', key, now, ARGV[4])
redis.call('EXPIRE', key, window * 2)
return {1, count + 1, 0}
"""


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after: int | None = None
    error: str | None = None


class RateLimiter:
    """
    Sliding window: with 20 req/min and 20 requests at 10:00:00, the next
    request from that client is accepted from 10:01:00 on.
    """

    def __init__(self, redis: RedisClient, window_seconds: int = 60, fail_open: bool = True):
        self.redis = redis
        self.window_seconds = window_seconds
        self.fail_open = fail_open

    @staticmethod
    def key_for(scope: str, client: str) -> str:
        return f"ratelimit:{scope}:ip:{client}"

    async def check(self, scope: str, client: str, limit: int) -> RateLimitDecision:
        """Count one request of ``client`` against the ``scope`` budget."""
        if not self.redis.client:
            return self._unavailable(limit, "redis_not_initialized")

        now = int(time.time())
        try:
            allowed, count, oldest = await self.redis.client.eval(
                SLIDING_WINDOW_LUA,
                1,
                self.key_for(scope, client),
                limit,
                self.window_seconds,
                now,
                f"{now}:{time.time_ns()}",
            )
        except Exception as e:
            logger.error(
                "Rate limiter Redis error",
                scope=scope,
                error=str(e),
                error_type=type(e).__name__,
            )
            return self._unavailable(limit, "rate_limiter_error")

        if int(allowed):
            return RateLimitDecision(allowed=True, limit=limit, remaining=max(0, limit - int(count)))

        oldest = int(oldest or 0)
        retry_after = max(1, oldest + self.window_seconds - now) if oldest else self.window_seconds
        return RateLimitDecision(allowed=False, limit=limit, remaining=0, retry_after=retry_after)

    def _unavailable(self, limit: int, error: str) -> RateLimitDecision:
        if self.fail_open:
            return RateLimitDecision(allowed=True, limit=limit, remaining=limit, error=error)
        return RateLimitDecision(
            allowed=False, limit=limit, remaining=0, retry_after=self.window_seconds, error=error
        )


# Global singleton
rate_limiter = RateLimiter(
    redis_client,
    window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
    fail_open=settings.RATE_LIMIT_FAIL_OPEN,
)
