"""Read-through cache for indexed servers with single-flight indexing.

The cache is an optimization only: every backend failure is logged and the
caller carries on as if the entry were missing.
"""

import asyncio
import fnmatch
import time
from collections.abc import Awaitable, Callable
from typing import Protocol

import redis.asyncio as redis
import structlog
from pydantic import ValidationError
from redis.exceptions import RedisError

from mxindex.config.constants import CACHE_KEY_PREFIXES
from mxindex.models.server import ServerRecord
from mxindex.utils.errors import CacheUnavailableError

log = structlog.get_logger()

IndexFn = Callable[[str], Awaitable[ServerRecord]]


def cache_key(prefix: str, *parts: str) -> str:
    return ":".join([prefix, *parts])


def _describe(error: Exception) -> str:
    return str(error) or type(error).__name__


class CacheBackend(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl: int) -> None: ...

    async def invalidate_pattern(self, pattern: str) -> None: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


class RedisCacheBackend:
    """String values with per-key expiry in Redis."""

    def __init__(self, client: redis.Redis):
        self._client = client

    @classmethod
    def from_url(cls, url: str, *, timeout: float = 2.0) -> "RedisCacheBackend":
        client = redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
        )
        return cls(client)

    async def get(self, key: str) -> str | None:
        try:
            return await self._client.get(key)
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(str(e)) from e

    async def set(self, key: str, value: str, ttl: int) -> None:
        try:
            await self._client.set(key, value, ex=ttl)
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(str(e)) from e

    async def invalidate_pattern(self, pattern: str) -> None:
        try:
            keys = [key async for key in self._client.scan_iter(match=pattern, count=100)]
            if keys:
                await self._client.delete(*keys)
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(str(e)) from e

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except (RedisError, OSError):
            return False

    async def close(self) -> None:
        await self._client.aclose()


class MemoryCacheBackend:
    """In-process backend used when no Redis URL is configured, and in tests.

    Expired entries are purged on every write. Past ``max_entries`` the oldest
    write is evicted first.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        *,
        max_entries: int = 10_000,
    ):
        self._entries: dict[str, tuple[float, str]] = {}
        self._clock = clock
        self.max_entries = max_entries

    async def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at <= self._clock():
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl: int) -> None:
        now = self._clock()
        self._purge_expired(now)
        self._entries.pop(key, None)
        while len(self._entries) >= self.max_entries:
            del self._entries[next(iter(self._entries))]
        self._entries[key] = (now + ttl, value)

    def _purge_expired(self, now: float) -> None:
        for key in [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]:
            del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)

    async def invalidate_pattern(self, pattern: str) -> None:
        for key in [k for k in self._entries if fnmatch.fnmatchcase(k, pattern)]:
            del self._entries[key]

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._entries.clear()


class ServerCache:
    """Cache Layer: TTL'd server records plus per-domain single-flight indexing."""

    def __init__(
        self,
        backend: CacheBackend | None,
        *,
        ttl: int = 300,
        timeout: float = 2.0,
    ):
        self.backend = backend
        self.ttl = ttl
        # bounds every backend call so a stalled cache reads as a miss
        self.timeout = timeout
        # bumped on every pattern invalidation; lets readers detect a racing write
        self.invalidations = 0
        self._inflight: dict[str, asyncio.Future[ServerRecord]] = {}

    async def get_or_index(
        self,
        domain: str,
        index_fn: IndexFn,
        *,
        force_refresh: bool = False,
    ) -> ServerRecord:
        """Return the cached record, or run ``index_fn`` once for all concurrent callers.

        A forced refresh skips the cache read but still joins an indexing run
        that is already in flight for the same domain.
        """
        if not force_refresh:
            cached = await self._read_record(domain)
            if cached is not None:
                log.debug("server_cache_hit", domain=domain)
                return cached

        flight = self._inflight.get(domain)
        if flight is None:
            flight = asyncio.ensure_future(self._index_and_store(domain, index_fn))
            self._inflight[domain] = flight
            flight.add_done_callback(lambda f: self._release(domain, f))
        else:
            log.debug("index_joined_inflight", domain=domain)

        # shield: a cancelled caller must not cancel the run other callers share
        return await asyncio.shield(flight)

    def _release(self, domain: str, flight: asyncio.Future[ServerRecord]) -> None:
        if self._inflight.get(domain) is flight:
            del self._inflight[domain]
        if not flight.cancelled():
            # Marks the exception retrieved even if every waiter was cancelled
            flight.exception()

    async def _index_and_store(self, domain: str, index_fn: IndexFn) -> ServerRecord:
        record = await index_fn(domain)
        key = cache_key(CACHE_KEY_PREFIXES["server"], domain)
        await self.write(key, record.model_dump_json(), self.ttl)
        return record

    async def _read_record(self, domain: str) -> ServerRecord | None:
        raw = await self.read(cache_key(CACHE_KEY_PREFIXES["server"], domain))
        if raw is None:
            return None
        try:
            return ServerRecord.model_validate_json(raw)
        except ValidationError as e:
            log.warning("server_cache_corrupt", domain=domain, error=str(e))
            return None

    async def read(self, key: str) -> str | None:
        if self.backend is None:
            return None
        try:
            async with asyncio.timeout(self.timeout):
                return await self.backend.get(key)
        except (CacheUnavailableError, TimeoutError) as e:
            log.warning("cache_unavailable", op="get", key=key, error=_describe(e))
            return None

    async def write(self, key: str, value: str, ttl: int) -> None:
        if self.backend is None:
            return
        try:
            async with asyncio.timeout(self.timeout):
                await self.backend.set(key, value, ttl)
        except (CacheUnavailableError, TimeoutError) as e:
            log.warning("cache_unavailable", op="set", key=key, error=_describe(e))

    async def invalidate_pattern(self, pattern: str) -> None:
        self.invalidations += 1
        if self.backend is None:
            return
        try:
            async with asyncio.timeout(self.timeout):
                await self.backend.invalidate_pattern(pattern)
        except (CacheUnavailableError, TimeoutError) as e:
            log.warning(
                "cache_unavailable", op="invalidate", pattern=pattern, error=_describe(e)
            )

    async def ping(self) -> bool | None:
        """None when no backend is configured."""
        if self.backend is None:
            return None
        try:
            async with asyncio.timeout(self.timeout):
                return await self.backend.ping()
        except TimeoutError:
            return False
