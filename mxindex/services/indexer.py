import asyncio
import time

import structlog

from mxindex.config.constants import CACHE_KEY_PREFIXES
from mxindex.db.repository import ServerRepository
from mxindex.models.server import ServerRecord
from mxindex.services.aggregator import merge
from mxindex.services.cache import ServerCache, cache_key
from mxindex.services.delegation import DelegationResolver
from mxindex.services.fetcher import MetadataFetcher
from mxindex.utils.errors import ConflictError, UnreachableDomainError
from mxindex.utils.url import normalize_domain

log = structlog.get_logger()


class ServerIndexer:
    """Runs resolve -> fetch -> merge -> upsert for a domain, through the cache."""

    def __init__(
        self,
        repository: ServerRepository,
        resolver: DelegationResolver,
        fetcher: MetadataFetcher,
        cache: ServerCache,
        *,
        deadline: float = 22.0,
    ):
        self.repository = repository
        self.resolver = resolver
        self.fetcher = fetcher
        self.cache = cache
        self.deadline = deadline

    async def add(self, domain: str, *, refresh: bool = False) -> ServerRecord:
        """Index a domain on behalf of a creation request.

        Without ``refresh`` an already indexed domain is a ConflictError and no
        probe is sent. With ``refresh`` the domain is re-indexed, bypassing the
        cached copy.
        """
        domain = normalize_domain(domain)
        if not refresh and await self.repository.exists(domain):
            raise ConflictError("Server already exists in the index", domain=domain)
        return await self.index(domain, force_refresh=refresh)

    async def index(self, domain: str, *, force_refresh: bool = False) -> ServerRecord:
        domain = normalize_domain(domain)
        return await self.cache.get_or_index(
            domain, self._run_pipeline, force_refresh=force_refresh
        )

    async def _run_pipeline(self, domain: str) -> ServerRecord:
        start = time.time()
        try:
            async with asyncio.timeout(self.deadline):
                delegation = await self.resolver.resolve(domain)
                partial = await self.fetcher.fetch_all(domain, delegation.target_host)
        except TimeoutError as e:
            log.warning("index_deadline_exceeded", domain=domain, deadline=self.deadline)
            raise UnreachableDomainError(
                f"Indexing {domain} exceeded {self.deadline}s", domain=domain
            ) from e

        try:
            record = merge(domain, delegation, partial)
        except UnreachableDomainError:
            log.warning("server_unreachable", domain=domain)
            raise

        stored = await self.repository.upsert(record)
        await self.cache.invalidate_pattern(cache_key(CACHE_KEY_PREFIXES["search"], "*"))

        log.info(
            "server_indexed",
            domain=domain,
            delegated_server=stored.delegated_server,
            probes_ok=[kind.value for kind in partial.succeeded()],
            duration_ms=int((time.time() - start) * 1000),
        )
        return stored
