from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from asyncpg.exceptions import ConnectionDoesNotExistError

from mxindex.db.repository import UPSERT_SQL, ServerRepository
from mxindex.models.server import SearchFilters, ServerRecord
from mxindex.utils.errors import NotFoundError, StorageUnavailableError
from tests.fakes import FakeConnection, FakePool

CREATED = datetime(2026, 1, 1, tzinfo=UTC)


def _row(**overrides) -> dict:
    row = {
        "id": 7,
        "domain": "example.org",
        "delegated_server": None,
        "name": "Example",
        "description": None,
        "logo_url": None,
        "theme": None,
        "registration_open": True,
        "public_rooms_count": 3,
        "room_versions": ["9", "10"],
        "version": None,
        "federation_version": None,
        "created_at": CREATED,
        "updated_at": CREATED,
    }
    row.update(overrides)
    return row


def _pool(**methods) -> MagicMock:
    pool = MagicMock()
    for name, mock in methods.items():
        setattr(pool, name, mock)
    return pool


def test_upsert_sql_keeps_created_at_and_resolves_conflicts_on_domain():
    assert "ON CONFLICT (domain) DO UPDATE SET" in UPSERT_SQL
    assert "created_at =" not in UPSERT_SQL
    assert "updated_at = GREATEST(clock_timestamp(), servers.updated_at)" in UPSERT_SQL
    assert "RETURNING *" in UPSERT_SQL


async def test_upsert_binds_every_column():
    fetchrow = AsyncMock(return_value=_row())
    repo = ServerRepository(_pool(fetchrow=fetchrow))
    record = ServerRecord(
        domain="example.org",
        name="Example",
        registration_open=True,
        public_rooms_count=3,
        room_versions=["9", "10"],
    )

    stored = await repo.upsert(record)

    sql, *args = fetchrow.await_args.args
    assert sql == UPSERT_SQL
    assert args[0] == "example.org"
    assert args.count(None) == 6
    assert ["9", "10"] in args
    assert stored.id == 7
    assert stored.created_at == CREATED


async def test_upsert_without_returned_row_is_storage_error():
    repo = ServerRepository(_pool(fetchrow=AsyncMock(return_value=None)))

    with pytest.raises(StorageUnavailableError):
        await repo.upsert(ServerRecord(domain="example.org"))


async def test_get_by_domain_not_found():
    repo = ServerRepository(_pool(fetchrow=AsyncMock(return_value=None)))

    with pytest.raises(NotFoundError):
        await repo.get_by_domain("missing.org")


async def test_get_by_domain_returns_record():
    repo = ServerRepository(_pool(fetchrow=AsyncMock(return_value=_row())))

    record = await repo.get_by_domain("example.org")

    assert record.domain == "example.org"
    assert record.room_versions == ["9", "10"]
    assert record.version is None


@pytest.mark.parametrize(
    "error",
    [ConnectionRefusedError("refused"), ConnectionDoesNotExistError("closed"), TimeoutError()],
)
async def test_connection_failures_become_storage_unavailable(error):
    repo = ServerRepository(_pool(fetchrow=AsyncMock(side_effect=error)))

    with pytest.raises(StorageUnavailableError):
        await repo.upsert(ServerRecord(domain="example.org", name="Example"))


async def test_exists():
    repo = ServerRepository(_pool(fetchval=AsyncMock(return_value=1)))
    assert await repo.exists("example.org") is True

    repo = ServerRepository(_pool(fetchval=AsyncMock(return_value=None)))
    assert await repo.exists("example.org") is False


async def test_list_filtered_counts_and_pages_in_one_read_transaction():
    conn = FakeConnection(total=240, rows=[_row(), _row(id=8, domain="other.org")])
    repo = ServerRepository(FakePool(conn))

    records, total = await repo.list_filtered(SearchFilters(registration_open=True, limit=2))

    assert total == 240
    assert [r.domain for r in records] == ["example.org", "other.org"]
    assert conn.transaction_kwargs == {"isolation": "repeatable_read", "readonly": True}
    (count_sql, count_args), (page_sql, page_args) = conn.queries
    assert count_sql.startswith("SELECT COUNT(*)")
    assert count_args == (True,)
    assert page_args == (True, 2, 0)
