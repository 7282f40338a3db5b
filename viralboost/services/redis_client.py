import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from viralboost.config import settings
from viralboost.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class RedisClient:
    """Pooled Redis connection used by the rate limiter. Optional: no URL, no client."""

    def __init__(self, url: str | None = None):
        self.url = url
        self.pool = None
        self.client = None
        self._initialized = False

    @property
    def configured(self) -> bool:
        return bool(self.url)

    async def initialize(self):
        """Open the pool and ping. Without a URL this is a no-op."""
        if self._initialized or not self.url:
            return

        try:
            self.pool = ConnectionPool.from_url(
                self.url,
                max_connections=20,
                retry_on_timeout=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                health_check_interval=30,
                decode_responses=True,
            )
            self.client = redis.Redis(connection_pool=self.pool)

            result = await self.client.ping()
            logger.info("Redis ping successful", result=result)

            self._initialized = True
        except Exception as e:
            logger.error("Failed to initialize Redis client", error=str(e))
            self.client = None
            self._initialized = False
            raise RuntimeError("Redis initialization failed") from e

    async def close(self):
        try:
            if self.client:
                await self.client.aclose()
            if self.pool:
                await self.pool.disconnect()
            logger.info("Redis client closed")
        except Exception as e:
            logger.error("Error closing Redis client", error=str(e))
        finally:
            self.client = None
            self._initialized = False

    async def ping(self) -> bool:
        if not self.client:
            return False
        try:
            return bool(await self.client.ping())
        except Exception as e:
            logger.error("Redis ping failed", error=str(e))
            return False


# Global instance
redis_client = RedisClient(settings.REDIS_URL)
