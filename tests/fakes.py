"""Test doubles shared across the unit tests."""

import asyncio
import itertools
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta

import httpx

from mxindex.models.server import SearchFilters, ServerRecord
from mxindex.utils.errors import CacheUnavailableError, NotFoundError


def make_response(status_code: int, **kwargs) -> httpx.Response:
    """Create an httpx.Response with a request attached."""
    request = httpx.Request("GET", "https://test")
    return httpx.Response(status_code, request=request, **kwargs)


class FakeGet:
    """Answers httpx.AsyncClient.get calls from a URL -> outcome map.

    Patch with ``side_effect=fake.get``. An outcome is an httpx.Response, an
    exception to raise, or a coroutine function to await (for slow responses).
    Unknown URLs get a 404.
    """

    def __init__(self, routes: Mapping[str, object]):
        self.routes = dict(routes)
        self.calls: list[tuple[str, dict | None]] = []

    async def get(self, url: str, params: dict | None = None, **kwargs) -> httpx.Response:
        self.calls.append((url, params))
        outcome = self.routes.get(url)
        if outcome is None:
            return make_response(404, json={"errcode": "M_UNRECOGNIZED"})
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return await outcome()
        return outcome

    def urls(self) -> list[str]:
        return [url for url, _ in self.calls]


class FakeRepository:
    """In-memory ServerRepository with the same upsert semantics."""

    def __init__(self, start: datetime | None = None):
        self.rows: dict[str, ServerRecord] = {}
        self.upsert_calls = 0
        self._ids = itertools.count(1)
        self._now = start or datetime(2026, 1, 1, tzinfo=UTC)

    def _tick(self) -> datetime:
        self._now += timedelta(seconds=1)
        return self._now

    async def upsert(self, record: ServerRecord) -> ServerRecord:
        self.upsert_calls += 1
        await asyncio.sleep(0)
        now = self._tick()
        existing = self.rows.get(record.domain)
        if existing is None:
            update = {"id": next(self._ids), "created_at": now, "updated_at": now}
        else:
            update = {"id": existing.id, "created_at": existing.created_at, "updated_at": now}
        stored = record.model_copy(update=update)
        self.rows[record.domain] = stored
        return stored

    async def exists(self, domain: str) -> bool:
        return domain in self.rows

    async def get_by_domain(self, domain: str) -> ServerRecord:
        if domain not in self.rows:
            raise NotFoundError(f"Server {domain} is not indexed", domain=domain)
        return self.rows[domain]

    async def list_filtered(self, filters: SearchFilters) -> tuple[list[ServerRecord], int]:
        rows = sorted(self.rows.values(), key=lambda r: r.domain)
        return rows[filters.offset : filters.offset + filters.limit], len(rows)

    async def ping(self) -> bool:
        return True


class BrokenCacheBackend:
    """Cache backend whose every operation fails, like an unreachable Redis."""

    def __init__(self):
        self.attempts = 0

    async def _fail(self, *args, **kwargs):
        self.attempts += 1
        raise CacheUnavailableError("Connection refused")

    get = set = invalidate_pattern = _fail

    async def ping(self) -> bool:
        return False

    async def close(self) -> None:
        pass


class FakeConnection:
    """Just enough of asyncpg.Connection for read transactions."""

    def __init__(self, total: int, rows: list[dict]):
        self.total = total
        self.rows = rows
        self.queries: list[tuple[str, tuple]] = []
        self.transaction_kwargs: dict | None = None

    def transaction(self, **kwargs):
        self.transaction_kwargs = kwargs
        return _NullContext()

    async def fetchval(self, sql: str, *args):
        self.queries.append((sql, args))
        return self.total

    async def fetch(self, sql: str, *args):
        self.queries.append((sql, args))
        return self.rows


class FakePool:
    def __init__(self, conn: FakeConnection):
        self.conn = conn

    def acquire(self):
        return _NullContext(self.conn)


class _NullContext:
    def __init__(self, value=None):
        self.value = value

    async def __aenter__(self):
        return self.value

    async def __aexit__(self, *exc):
        return False


class StalledCacheBackend:
    """Cache backend that never answers, like a Redis host dropping packets."""

    async def _hang(self, *args, **kwargs):
        await asyncio.Event().wait()

    get = set = invalidate_pattern = ping = _hang

    async def close(self) -> None:
        pass
