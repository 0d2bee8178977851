"""Redis-backed key-value cache.

Every operation degrades to a cold-cache answer (None, False, [] or 0) when
Redis is unavailable; callers never see a Redis error.
"""
import asyncio
import json
import logging
from typing import Any, List, Optional

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from shopfinity.config import RedisSettings

logger = logging.getLogger(__name__)

PRODUCTS_TTL = 30 * 60
SESSION_TTL = 24 * 60 * 60
CART_TTL = 7 * 24 * 60 * 60
DEFAULT_TTL = 3600


class RedisCache:
    def __init__(self, settings: Optional[RedisSettings] = None, client: Optional[Redis] = None):
        self.settings = settings or RedisSettings.from_env()
        self._pool: Optional[ConnectionPool] = None
        self._client = client
        self.is_connected = False

    async def connect(self) -> None:
        if self._client is None:
            self._pool = ConnectionPool.from_url(
                self.settings.url,
                socket_connect_timeout=self.settings.connect_timeout,
                decode_responses=True,
            )
            self._client = Redis(connection_pool=self._pool)
        try:
            await self._client.ping()
        except (RedisError, OSError) as exc:
            self.is_connected = False
            raise ConnectionError(f"Redis unavailable: {exc}") from exc
        self.is_connected = True
        logger.info("Redis connected successfully")

    async def connect_with_retry(self, attempts: Optional[int] = None, delay: Optional[float] = None) -> bool:
        attempts = attempts if attempts is not None else self.settings.connect_attempts
        delay = delay if delay is not None else self.settings.connect_delay
        for attempt in range(1, attempts + 1):
            try:
                await self.connect()
                return True
            except ConnectionError as exc:
                logger.warning("Redis connection attempt %d/%d failed: %s", attempt, attempts, exc)
                if attempt < attempts:
                    await asyncio.sleep(delay)
        logger.error("Redis connection failed after %d attempts, continuing without Redis", attempts)
        return False

    async def disconnect(self) -> None:
        self.is_connected = False
        if self._client is not None:
            try:
                await self._client.aclose()
            except (RedisError, OSError) as exc:
                logger.error("Error closing Redis connection: %s", exc)
        self._client = None
        self._pool = None

    async def get(self, key: str) -> Any:
        if not self.is_connected:
            return None
        try:
            value = await self._client.get(key)
            return json.loads(value) if value else None
        except (RedisError, ValueError) as exc:
            # A value that does not decode is treated as a miss.
            return self._failed("get", key, exc, None)

    async def set(self, key: str, value: Any, ttl: int = DEFAULT_TTL) -> bool:
        if not self.is_connected:
            return False
        try:
            await self._client.setex(key, ttl, json.dumps(value, default=str))
        except RedisError as exc:
            return self._failed("set", key, exc, False)
        return True

    async def delete(self, key: str) -> bool:
        if not self.is_connected:
            return False
        try:
            await self._client.delete(key)
        except RedisError as exc:
            return self._failed("delete", key, exc, False)
        return True

    async def exists(self, key: str) -> bool:
        if not self.is_connected:
            return False
        try:
            return await self._client.exists(key) == 1
        except RedisError as exc:
            return self._failed("exists", key, exc, False)

    async def expire(self, key: str, ttl: int) -> bool:
        if not self.is_connected:
            return False
        try:
            await self._client.expire(key, ttl)
        except RedisError as exc:
            return self._failed("expire", key, exc, False)
        return True

    async def mget(self, keys: List[str]) -> List[Any]:
        if not self.is_connected or not keys:
            return []
        try:
            values = await self._client.mget(keys)
            return [json.loads(value) if value else None for value in values]
        except (RedisError, ValueError) as exc:
            return self._failed("mget", ",".join(keys), exc, [])

    async def incr(self, key: str) -> int:
        if not self.is_connected:
            return 0
        try:
            return await self._client.incr(key)
        except RedisError as exc:
            return self._failed("incr", key, exc, 0)

    async def flush_all(self) -> bool:
        if not self.is_connected:
            return False
        try:
            await self._client.flushall()
        except RedisError as exc:
            return self._failed("flush", "*", exc, False)
        return True

    # Typed helpers for the storefront's read-through caches.

    async def cache_products(self, products: List[dict], category: str = "all") -> bool:
        return await self.set(f"products:{category}", products, PRODUCTS_TTL)

    async def get_cached_products(self, category: str = "all") -> Optional[List[dict]]:
        return await self.get(f"products:{category}")

    async def cache_user_session(self, user_id: str, session: dict) -> bool:
        return await self.set(f"session:{user_id}", session, SESSION_TTL)

    async def get_cached_user_session(self, user_id: str) -> Optional[dict]:
        return await self.get(f"session:{user_id}")

    async def cache_cart(self, user_id: str, cart: dict) -> bool:
        return await self.set(f"cart:{user_id}", cart, CART_TTL)

    async def get_cached_cart(self, user_id: str) -> Optional[dict]:
        return await self.get(f"cart:{user_id}")

    @staticmethod
    def _failed(operation: str, key: str, exc: Exception, fallback: Any) -> Any:
        logger.error("Cache %s error for %s: %s", operation, key, exc)
        return fallback
