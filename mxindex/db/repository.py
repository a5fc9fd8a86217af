import asyncpg
import structlog

from mxindex.db.errors import storage_errors
from mxindex.db.query_builder import build_search_query
from mxindex.models.server import FETCHED_FIELDS, SearchFilters, ServerRecord
from mxindex.utils.errors import NotFoundError, StorageUnavailableError

log = structlog.get_logger()

_WRITE_COLUMNS = ("domain", "delegated_server", *FETCHED_FIELDS)
_PLACEHOLDERS = ", ".join(f"${i}" for i in range(1, len(_WRITE_COLUMNS) + 1))
_INSERT = f"INSERT INTO servers ({', '.join(_WRITE_COLUMNS)}) VALUES ({_PLACEHOLDERS})"

# created_at is never part of the update set
UPSERT_SQL = f"""
    {_INSERT}
    ON CONFLICT (domain) DO UPDATE SET
        {", ".join(f"{col} = EXCLUDED.{col}" for col in _WRITE_COLUMNS[1:])},
        updated_at = GREATEST(clock_timestamp(), servers.updated_at)
    RETURNING *
"""


def _record_args(record: ServerRecord) -> list[object]:
    return [getattr(record, col) for col in _WRITE_COLUMNS]


def _to_record(row: asyncpg.Record) -> ServerRecord:
    return ServerRecord(**dict(row))


class ServerRepository:
    """Persistence for server records, keyed by domain."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def upsert(self, record: ServerRecord) -> ServerRecord:
        """Insert or fully replace the fetched fields of ``record.domain``.

        The uniqueness constraint on ``domain`` settles concurrent first
        inserts inside PostgreSQL: the losing statement takes the update path.
        """
        with storage_errors():
            row = await self.pool.fetchrow(UPSERT_SQL, *_record_args(record))
        if row is None:
            raise StorageUnavailableError("Upsert returned no row", domain=record.domain)
        stored = _to_record(row)
        log.info(
            "server_upserted",
            domain=stored.domain,
            created=stored.created_at == stored.updated_at,
        )
        return stored

    async def get_by_domain(self, domain: str) -> ServerRecord:
        with storage_errors():
            row = await self.pool.fetchrow("SELECT * FROM servers WHERE domain = $1", domain)
        if row is None:
            raise NotFoundError(f"Server {domain} is not indexed", domain=domain)
        return _to_record(row)

    async def exists(self, domain: str) -> bool:
        with storage_errors():
            found = await self.pool.fetchval("SELECT 1 FROM servers WHERE domain = $1", domain)
        return found is not None

    async def list_filtered(self, filters: SearchFilters) -> tuple[list[ServerRecord], int]:
        """Return one page of matching records and the unpaginated match count."""
        query = build_search_query(filters)
        with storage_errors():
            async with self.pool.acquire() as conn:
                async with conn.transaction(isolation="repeatable_read", readonly=True):
                    total = await conn.fetchval(query.count_sql, *query.count_args)
                    rows = await conn.fetch(query.page_sql, *query.page_args)
        return [_to_record(row) for row in rows], int(total)

    async def ping(self) -> bool:
        with storage_errors():
            return await self.pool.fetchval("SELECT 1") == 1
