import asyncio
import logging
from typing import Any, TypeVar

import redis.asyncio as redis
from pydantic import TypeAdapter, ValidationError
from redis.exceptions import RedisError

from pos.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

_adapters: dict[Any, TypeAdapter] = {}


def _adapter(value_type: Any) -> TypeAdapter:
    adapter = _adapters.get(value_type)
    if adapter is None:
        adapter = _adapters[value_type] = TypeAdapter(value_type)
    return adapter


class CacheStore:
    """
    Typed cache-aside store backed by Redis.

    All public methods are safe to call even when Redis is unavailable:
    ``get`` reports a miss and writes/deletes are skipped, so a cache
    outage degrades to a database round-trip instead of a failed request.
    Values are JSON, encoded and decoded through pydantic ``TypeAdapter``
    so that a stored payload either validates as the requested type or is
    treated as absent.

    Every call is bounded by ``CACHE_OPERATION_TIMEOUT``; cancellation of
    the calling task propagates untouched.
    """

    def __init__(
        self,
        client: redis.Redis | None = None,
        operation_timeout: float | None = None,
    ) -> None:
        self._redis = client
        self._timeout = (
            operation_timeout if operation_timeout is not None
            else settings.CACHE_OPERATION_TIMEOUT
        )
        self._hits: int = 0
        self._misses: int = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the connection pool.  Called once at application startup."""
        self._redis = redis.from_url(
            settings.REDIS_URL,
            db=settings.REDIS_DB,
            decode_responses=True,
            socket_connect_timeout=settings.REDIS_CONNECT_TIMEOUT,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
        )
        # Ping to surface mis-configuration early (non-fatal).
        try:
            await self._redis.ping()
            logger.info("Redis connected: %s db=%d", settings.REDIS_URL, settings.REDIS_DB)
        except (RedisError, OSError) as exc:  # pragma: no cover
            logger.warning("Redis ping failed, cache degraded: %s", exc)

    async def disconnect(self) -> None:
        """Close the connection pool.  Called once at application shutdown."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    # ------------------------------------------------------------------
    # Core cache operations
    # ------------------------------------------------------------------

    async def get(self, key: str, value_type: type[T] | Any) -> tuple[T | None, bool]:
        """
        Return ``(value, True)`` on a hit, ``(None, False)`` otherwise.

        Missing keys, store errors, timeouts, bytes the client cannot decode
        and payloads that fail to validate as *value_type* are all misses.
        """
        if not self._redis:
            self._misses += 1
            return None, False
        try:
            raw = await asyncio.wait_for(self._redis.get(key), self._timeout)
        except (RedisError, OSError, asyncio.TimeoutError, ValueError) as exc:
            logger.debug("Cache GET error for key=%r: %s", key, exc)
            self._misses += 1
            return None, False

        if raw is None:
            self._misses += 1
            return None, False

        try:
            value = _adapter(value_type).validate_json(raw)
        except (ValidationError, ValueError) as exc:
            logger.debug("Cache payload for key=%r could not be decoded: %s", key, exc)
            self._misses += 1
            return None, False

        self._hits += 1
        return value, True

    async def set(
        self, key: str, value: Any, ttl: int | None = None, value_type: Any = None
    ) -> None:
        """
        Persist *value* under *key* with *ttl* seconds (``CACHE_TTL`` by default).

        *value_type* selects the encoder; it defaults to ``type(value)`` and
        is needed for containers such as ``list[MerchantResponse]``.

        Failures are logged and never propagated.
        """
        if not self._redis:
            return
        ttl = ttl if ttl is not None else settings.CACHE_TTL
        try:
            payload = _adapter(value_type or type(value)).dump_json(value)
            await asyncio.wait_for(self._redis.set(key, payload, ex=ttl), self._timeout)
        except (RedisError, OSError, asyncio.TimeoutError, ValueError) as exc:
            logger.debug("Cache SET error for key=%r: %s", key, exc)

    async def delete(self, *keys: str) -> None:
        if not self._redis or not keys:
            return
        try:
            await asyncio.wait_for(self._redis.delete(*keys), self._timeout)
            logger.debug("Cache invalidated %s", keys)
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            logger.debug("Cache DELETE error for keys=%r: %s", keys, exc)

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    @property
    def stats(self) -> dict:
        """Return a snapshot of hit/miss counters for metrics endpoints."""
        total = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }
