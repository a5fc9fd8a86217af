"""Apply SQL migrations from db/migrations/ in sorted order."""

import asyncio
from pathlib import Path

import asyncpg
import structlog

from mxindex.config.settings import get_settings
from mxindex.utils.logger import setup_logging

log = structlog.get_logger()

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"


async def apply_migrations(
    conn: asyncpg.Connection, migrations_dir: Path = MIGRATIONS_DIR
) -> list[str]:
    """Apply pending migrations, each in its own transaction. Returns applied names."""
    await conn.execute("""
        CREATE TABLE IF NOT EXISTS _migrations (
            name TEXT PRIMARY KEY,
            applied_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    applied: list[str] = []
    for path in sorted(migrations_dir.glob("*.sql")):
        name = path.name
        if await conn.fetchval("SELECT 1 FROM _migrations WHERE name = $1", name):
            log.info("migration_skipped", name=name)
            continue
        async with conn.transaction():
            await conn.execute(path.read_text())
            await conn.execute("INSERT INTO _migrations (name) VALUES ($1)", name)
        log.info("migration_applied", name=name)
        applied.append(name)
    return applied


async def run_migrations() -> None:
    conn = await asyncpg.connect(get_settings().database_url)
    try:
        applied = await apply_migrations(conn)
    finally:
        await conn.close()
    log.info("migrations_complete", applied=len(applied))


def main() -> None:
    setup_logging()
    asyncio.run(run_migrations())


if __name__ == "__main__":
    main()
