# coding: utf-8
"""
Redis Manager - shared async client for the link code store

Redis is optional for the API: when it is down, writes report False and
reads report a miss, and the caller decides how degraded that is.
"""
import json
from typing import Any, Optional

from redis.asyncio import Redis, ConnectionPool
from redis.exceptions import RedisError, ConnectionError as RedisConnectionError
from loguru import logger

from config.cache_config import RedisConfig


class RedisManager:
    """
    Pooled Redis client storing JSON values with a TTL

    Usage:
        >>> redis_mgr = get_redis_manager()
        >>> await redis_mgr.initialize()
        >>> await redis_mgr.set("maxxit:lazy_trading:link_code:LT1", {"wallet": "0xabc"}, ttl=600)
        >>> await redis_mgr.get("maxxit:lazy_trading:link_code:LT1")
        {'wallet': '0xabc'}
    """

    def __init__(self, client: Optional[Redis] = None):
        """
        Args:
            client: Ready client (tests); otherwise initialize() connects to REDIS_URL
        """
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[Redis] = client
        self._is_available = client is not None
        self._stats = {"reads": 0, "writes": 0, "errors": 0}

    async def initialize(self) -> bool:
        """
        Connect and ping

        Returns:
            True if Redis answered, False otherwise (the API still starts)
        """
        if not RedisConfig.ENABLED:
            logger.info("Redis disabled by REDIS_ENABLED=false, link codes will not be stored")
            return False

        try:
            self._pool = ConnectionPool.from_url(
                RedisConfig.URL,
                max_connections=RedisConfig.MAX_CONNECTIONS,
                decode_responses=True,
                socket_connect_timeout=RedisConfig.SOCKET_CONNECT_TIMEOUT,
                socket_timeout=RedisConfig.SOCKET_TIMEOUT,
            )
            self._client = Redis(connection_pool=self._pool)
            await self._client.ping()

        except RedisConnectionError as e:
            logger.warning(f"Redis unreachable: {e}. Link codes will not be stored.")
            self._is_available = False
            return False

        except (RedisError, ValueError) as e:
            logger.error(f"Redis initialization failed: {e}")
            self._is_available = False
            return False

        self._is_available = True
        logger.info(f"Redis connected (max_connections={RedisConfig.MAX_CONNECTIONS})")
        return True

    async def close(self) -> None:
        if self._client is not None:
            try:
                await self._client.aclose()
            except RedisError as e:
                logger.error(f"Error closing Redis client: {e}")

        if self._pool is not None:
            try:
                await self._pool.aclose()
            except RedisError as e:
                logger.error(f"Error closing Redis pool: {e}")

        self._is_available = False
        logger.info("Redis connection closed")

    async def get(self, key: str) -> Optional[Any]:
        """
        Read a value

        Returns:
            Decoded JSON (raw string if it is not JSON), None on a miss or when Redis is down
        """
        if not self._is_available:
            return None

        try:
            raw = await self._client.get(key)
        except RedisError as e:
            self._on_error("GET", key, e)
            return None

        self._stats["reads"] += 1
        if raw is None:
            logger.debug(f"Redis miss: {key}")
            return None

        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return raw

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        """
        Write a value with SETEX (single atomic insert-or-overwrite)

        Returns:
            True if written, False when Redis is down or rejected the write
        """
        if not self._is_available:
            return False

        payload = value if isinstance(value, str) else json.dumps(value)

        try:
            await self._client.setex(key, ttl, payload)
        except RedisError as e:
            self._on_error("SETEX", key, e)
            return False

        self._stats["writes"] += 1
        logger.debug(f"Redis SETEX {key} (TTL={ttl}s)")
        return True

    def _on_error(self, command: str, key: str, error: RedisError) -> None:
        self._stats["errors"] += 1
        logger.warning(f"Redis {command} failed for '{key}': {error}")
        if RedisConfig.RAISE_ON_ERROR:
            raise error

    def get_stats(self) -> dict:
        return {**self._stats, "is_available": self._is_available}

    def is_available(self) -> bool:
        return self._is_available


# Global Redis manager instance
_redis_manager: Optional[RedisManager] = None


def get_redis_manager() -> RedisManager:
    """Global RedisManager (singleton); the API lifespan initializes it"""
    global _redis_manager
    if _redis_manager is None:
        _redis_manager = RedisManager()
    return _redis_manager
