"""
Redis connection for booking sessions and the persistence outbox.

Callers get None while Redis is unreachable and use their in-memory
fallback instead. After a failed connect no new attempt is made for
`redis_reconnect_interval` seconds, so an outage costs one connect
timeout per interval rather than one per message.
"""

import logging
import time
from typing import Optional

from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import RedisError

from agendabot.config import settings

logger = logging.getLogger(__name__)

# Namespace for every key this app writes
APP_PREFIX = "agendabot:v1:"


class RedisClient:
    """Process-wide Redis connection with a reconnect cooldown."""

    _client: Optional[Redis] = None
    _connected: bool = False
    _failed_at: Optional[float] = None

    @classmethod
    def _cooling_down(cls) -> bool:
        if cls._failed_at is None:
            return False
        return time.monotonic() - cls._failed_at < settings.redis_reconnect_interval

    @classmethod
    async def get_client(cls) -> Optional[Redis]:
        """
        Return the connected client, connecting on first use.

        Returns:
            Redis client, or None while Redis is unavailable
        """
        if cls._client is not None and cls._connected:
            return cls._client
        if cls._cooling_down():
            return None

        client = Redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=settings.redis_connect_timeout,
            socket_timeout=settings.redis_connect_timeout,
            retry=Retry(ExponentialBackoff(), retries=2),
            health_check_interval=30,
        )
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            cls._failed_at = time.monotonic()
            cls._connected = False
            cls._client = None
            logger.warning(
                f"Redis unavailable ({e}); using in-memory storage, "
                f"next attempt in {settings.redis_reconnect_interval:.0f}s"
            )
            await client.aclose()
            return None

        cls._client = client
        cls._connected = True
        cls._failed_at = None
        logger.info("Redis connection established")
        return client

    @classmethod
    async def close(cls) -> None:
        """Close the connection and forget any previous failure."""
        client, cls._client = cls._client, None
        cls._connected = False
        cls._failed_at = None
        if client is None:
            return
        try:
            await client.aclose()
        except RedisError as e:
            logger.error(f"Error closing Redis connection: {e}")

    @classmethod
    async def mark_unavailable(cls, error: Exception) -> None:
        """Drop a connection that failed mid-use and start the reconnect cooldown."""
        client, cls._client = cls._client, None
        cls._connected = False
        cls._failed_at = time.monotonic()
        logger.warning(f"Redis connection lost ({error}); using in-memory storage")
        if client is not None:
            try:
                await client.aclose()
            except RedisError as e:
                logger.debug(f"Error closing failed Redis connection: {e}")

    @classmethod
    def is_connected(cls) -> bool:
        return cls._connected


async def get_redis() -> Optional[Redis]:
    """Shared Redis client, or None when unavailable."""
    return await RedisClient.get_client()


async def mark_redis_unavailable(error: Exception) -> None:
    await RedisClient.mark_unavailable(error)


async def check_redis_health() -> bool:
    """Ping Redis. Returns False when unavailable."""
    client = await get_redis()
    if client is None:
        return False
    try:
        return bool(await client.ping())
    except RedisError as e:
        logger.warning(f"Redis health check failed: {e}")
        return False
