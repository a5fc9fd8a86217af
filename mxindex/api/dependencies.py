from dataclasses import dataclass

import asyncpg
import httpx
from fastapi import Request

from mxindex.config.settings import Settings
from mxindex.db.repository import ServerRepository
from mxindex.services.cache import CacheBackend, ServerCache
from mxindex.services.catalog import CatalogService
from mxindex.services.delegation import DelegationResolver
from mxindex.services.fetcher import MetadataFetcher
from mxindex.services.indexer import ServerIndexer
from mxindex.services.status import StatusChecker


@dataclass
class Services:
    repository: ServerRepository
    cache: ServerCache
    indexer: ServerIndexer
    catalog: CatalogService
    status: StatusChecker


def build_services(
    pool: asyncpg.Pool,
    client: httpx.AsyncClient,
    backend: CacheBackend | None,
    settings: Settings,
) -> Services:
    repository = ServerRepository(pool)
    cache = ServerCache(
        backend, ttl=settings.server_cache_ttl, timeout=settings.cache_timeout
    )
    indexer = ServerIndexer(
        repository,
        DelegationResolver(client, timeout=settings.delegation_timeout),
        MetadataFetcher(
            client,
            timeout=settings.probe_timeout,
            public_rooms_limit=settings.public_rooms_limit,
        ),
        cache,
        deadline=settings.pipeline_deadline,
    )
    return Services(
        repository=repository,
        cache=cache,
        indexer=indexer,
        catalog=CatalogService(repository, cache, search_ttl=settings.search_cache_ttl),
        status=StatusChecker(
            client, cache, timeout=settings.probe_timeout, ttl=settings.status_cache_ttl
        ),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_indexer(request: Request) -> ServerIndexer:
    return get_services(request).indexer


def get_catalog(request: Request) -> CatalogService:
    return get_services(request).catalog


def get_status_checker(request: Request) -> StatusChecker:
    return get_services(request).status
