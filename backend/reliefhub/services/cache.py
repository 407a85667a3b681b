"""Cache-aside memoization for slow or rate-limited lookups.

Entries carry their own `expires_at`; an expired entry is a miss even when it
is still physically stored. Failed computations are never cached.
"""

from __future__ import annotations

import base64
import json
import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Protocol

import redis.asyncio as redis_asyncio
from redis.exceptions import RedisError

from reliefhub.core.errors import StoreError
from reliefhub.core.logging import get_logger
from reliefhub.core.time import isoformat, parse_instant, utcnow

if TYPE_CHECKING:
    from reliefhub.db.store import DurableStore

logger = get_logger(__name__)

DEFAULT_TTL_SECONDS = 3600
CACHE_TABLE = "cache"
_REDIS_KEY_PREFIX = "reliefhub:cache:"


def encode_text(text: str) -> str:
    """Stable, key-safe encoding of free-text request content."""
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii")


def cache_key(prefix: str, *parts: object) -> str:
    """Join key parts with `:`; free-text parts should go through `encode_text` first."""
    return ":".join([prefix, *(str(part) for part in parts)])


@dataclass(frozen=True)
class CacheEntry:
    """Cached value with its absolute expiry instant (naive UTC)."""

    key: str
    value: Any
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


class CacheBackend(Protocol):
    """Physical storage used by `CacheAside`."""

    async def read(self, key: str) -> CacheEntry | None: ...

    async def write(self, entry: CacheEntry) -> None: ...

    async def remove(self, key: str) -> None: ...


class StoreCacheBackend:
    """Cache slots kept in the durable store's `cache` table."""

    def __init__(self, store: DurableStore, *, table: str = CACHE_TABLE) -> None:
        self._store = store
        self._table = table

    async def read(self, key: str) -> CacheEntry | None:
        record = await self._store.get(self._table, key)
        if record is None:
            return None
        expires_at = parse_instant(record.get("expires_at"))
        if expires_at is None:
            return None
        return CacheEntry(key=key, value=record.get("value"), expires_at=expires_at)

    async def write(self, entry: CacheEntry) -> None:
        await self._store.upsert(
            self._table,
            {"key": entry.key, "value": entry.value, "expires_at": entry.expires_at},
        )

    async def remove(self, key: str) -> None:
        await self._store.delete(self._table, key)


class RedisCacheBackend:
    """Cache slots kept in Redis as JSON envelopes.

    Redis expiry is only a cleanup hint; freshness is decided from the
    envelope's `expires_at` like every other backend.
    """

    def __init__(
        self,
        client: redis_asyncio.Redis,
        *,
        key_prefix: str = _REDIS_KEY_PREFIX,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._client = client
        self._key_prefix = key_prefix
        self._clock = clock

    @classmethod
    def from_url(cls, redis_url: str) -> RedisCacheBackend:
        return cls(redis_asyncio.Redis.from_url(redis_url, decode_responses=True))

    def _redis_key(self, key: str) -> str:
        return f"{self._key_prefix}{key}"

    async def read(self, key: str) -> CacheEntry | None:
        raw = await self._client.get(self._redis_key(key))
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        try:
            envelope: dict[str, Any] = json.loads(raw)
        except ValueError:
            logger.warning("cache.redis.corrupt_entry", extra={"key": key})
            return None
        expires_at = parse_instant(envelope.get("expires_at"))
        if expires_at is None:
            return None
        return CacheEntry(key=key, value=envelope.get("value"), expires_at=expires_at)

    async def write(self, entry: CacheEntry) -> None:
        remaining = (entry.expires_at - self._clock()).total_seconds()
        envelope = json.dumps(
            {"value": entry.value, "expires_at": isoformat(entry.expires_at)},
            default=str,
        )
        await self._client.set(
            self._redis_key(entry.key),
            envelope,
            ex=max(1, math.ceil(remaining)),
        )

    async def remove(self, key: str) -> None:
        await self._client.delete(self._redis_key(key))

    async def close(self) -> None:
        await self._client.aclose()


class CacheAside:
    """TTL-backed memoization shared by all concurrent requests.

    Concurrent writers of one key race with last-writer-wins semantics.
    """

    def __init__(
        self,
        backend: CacheBackend,
        *,
        default_ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if default_ttl_seconds <= 0:
            raise ValueError("default_ttl_seconds must be positive")
        self._backend = backend
        self._default_ttl_seconds = default_ttl_seconds
        self._clock = clock

    @property
    def backend(self) -> CacheBackend:
        return self._backend

    async def _read(self, key: str) -> CacheEntry | None:
        try:
            return await self._backend.read(key)
        except (StoreError, RedisError) as exc:
            logger.warning("cache.read_failed", extra={"key": key, "error": str(exc)})
            return None

    async def _write(self, entry: CacheEntry) -> None:
        try:
            await self._backend.write(entry)
        except (StoreError, RedisError) as exc:
            logger.warning("cache.write_failed", extra={"key": entry.key, "error": str(exc)})

    async def get_or_compute(
        self,
        key: str,
        compute_fn: Callable[[], Awaitable[Any]],
        ttl_seconds: float | None = None,
    ) -> tuple[Any, bool]:
        """Return `(value, was_cached)`, computing and storing the value on a miss.

        Exceptions raised by `compute_fn` propagate unchanged and leave no entry.
        """
        ttl = self._default_ttl_seconds if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            raise ValueError("ttl_seconds must be positive")

        entry = await self._read(key)
        if entry is not None and not entry.is_expired(self._clock()):
            logger.debug("cache.hit", extra={"key": key})
            return entry.value, True

        logger.debug("cache.miss", extra={"key": key, "expired": entry is not None})
        value = await compute_fn()
        expires_at = self._clock() + timedelta(seconds=ttl)
        await self._write(CacheEntry(key=key, value=value, expires_at=expires_at))
        logger.debug("cache.store", extra={"key": key, "ttl_seconds": ttl})
        return value, False

    async def invalidate(self, key: str) -> None:
        """Drop a slot so the next lookup recomputes."""
        try:
            await self._backend.remove(key)
        except (StoreError, RedisError) as exc:
            logger.warning("cache.invalidate_failed", extra={"key": key, "error": str(exc)})
