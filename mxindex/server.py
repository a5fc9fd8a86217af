from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI

from mxindex import __version__
from mxindex.api.dependencies import build_services
from mxindex.api.errors import register_exception_handlers
from mxindex.api.router import api_router
from mxindex.config.constants import API_DESCRIPTION
from mxindex.config.settings import get_settings
from mxindex.db.pool import close_pool, get_pool
from mxindex.services.cache import CacheBackend, MemoryCacheBackend, RedisCacheBackend
from mxindex.utils.logger import setup_logging

log = structlog.get_logger()


def create_cache_backend(redis_url: str, timeout: float = 2.0) -> CacheBackend:
    if redis_url:
        return RedisCacheBackend.from_url(redis_url, timeout=timeout)
    log.info("cache_backend_memory")
    return MemoryCacheBackend()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    setup_logging()
    settings = get_settings()
    pool = await get_pool()
    backend = create_cache_backend(settings.redis_url, settings.cache_timeout)
    client = httpx.AsyncClient(
        follow_redirects=True,
        headers={"User-Agent": settings.user_agent, "Accept": "application/json"},
    )
    app.state.services = build_services(pool, client, backend, settings)
    log.info("app_started", version=__version__)
    try:
        yield
    finally:
        await client.aclose()
        await backend.close()
        await close_pool()


app = FastAPI(
    title="mxindex",
    version=__version__,
    description=API_DESCRIPTION,
    lifespan=lifespan,
)

register_exception_handlers(app)
app.include_router(api_router)


def main() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "mxindex.server:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
