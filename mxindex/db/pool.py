import asyncpg
import structlog

from mxindex.config.settings import get_settings
from mxindex.db.errors import STORAGE_ERRORS
from mxindex.utils.errors import StorageUnavailableError

log = structlog.get_logger()

_pool: asyncpg.Pool | None = None


async def get_pool() -> asyncpg.Pool:
    global _pool
    if _pool is None:
        settings = get_settings()
        try:
            _pool = await asyncpg.create_pool(
                settings.database_url,
                min_size=settings.db_pool_min_size,
                max_size=settings.db_pool_max_size,
                command_timeout=settings.db_command_timeout,
            )
        except STORAGE_ERRORS as e:
            log.error("db_pool_unavailable", error=str(e))
            raise StorageUnavailableError(f"Cannot connect to database: {e}") from e
        log.info("db_pool_created", max_size=settings.db_pool_max_size)
    return _pool


async def close_pool() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None
