import hashlib

import structlog
from pydantic import ValidationError

from mxindex.config.constants import CACHE_KEY_PREFIXES
from mxindex.db.repository import ServerRepository
from mxindex.models.server import SearchFilters, ServerPage, ServerRecord
from mxindex.services.cache import ServerCache, cache_key
from mxindex.utils.url import normalize_domain

log = structlog.get_logger()


def search_cache_key(filters: SearchFilters) -> str:
    digest = hashlib.sha256(filters.model_dump_json().encode()).hexdigest()[:32]
    return cache_key(CACHE_KEY_PREFIXES["search"], digest)


class CatalogService:
    """Read side of the index: lookups and filtered, paginated search."""

    def __init__(self, repository: ServerRepository, cache: ServerCache, *, search_ttl: int = 60):
        self.repository = repository
        self.cache = cache
        self.search_ttl = search_ttl

    async def get(self, domain: str) -> ServerRecord:
        return await self.repository.get_by_domain(normalize_domain(domain))

    async def search(self, filters: SearchFilters) -> ServerPage:
        key = search_cache_key(filters)
        raw = await self.cache.read(key)
        if raw is not None:
            try:
                return ServerPage.model_validate_json(raw)
            except ValidationError as e:
                log.warning("search_cache_corrupt", key=key, error=str(e))

        generation = self.cache.invalidations
        servers, total = await self.repository.list_filtered(filters)
        page = ServerPage(servers=servers, total=total, limit=filters.limit, offset=filters.offset)
        # an upsert finished while we queried: the page may predate it
        if self.cache.invalidations == generation:
            await self.cache.write(key, page.model_dump_json(), self.search_ttl)
        return page
