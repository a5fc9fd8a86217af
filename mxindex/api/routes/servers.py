from fastapi import APIRouter, Depends

from mxindex.api.dependencies import get_catalog, get_indexer, get_status_checker
from mxindex.models.api import CreateServerRequest, ServerStatus
from mxindex.models.server import SearchFilters, ServerPage, ServerRecord
from mxindex.services.catalog import CatalogService
from mxindex.services.indexer import ServerIndexer
from mxindex.services.status import StatusChecker

router = APIRouter(prefix="/servers")


@router.get("", response_model=ServerPage)
async def list_servers(catalog: CatalogService = Depends(get_catalog)) -> ServerPage:
    return await catalog.search(SearchFilters())


@router.post("", response_model=ServerRecord)
async def add_server(
    request: CreateServerRequest,
    indexer: ServerIndexer = Depends(get_indexer),
) -> ServerRecord:
    return await indexer.add(request.domain, refresh=request.refresh)


# Declared before /{domain} so "search" is never taken for a domain
@router.get("/search", response_model=ServerPage)
async def search_servers(
    search: str | None = None,
    text: str | None = None,
    registration_open: str | None = None,
    has_rooms: str | None = None,
    room_version: str | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
    limit: str | None = None,
    offset: str | None = None,
    catalog: CatalogService = Depends(get_catalog),
) -> ServerPage:
    # Raw strings go through SearchFilters so bad values surface as invalid_filter
    raw = {
        "search": search if search is not None else text,
        "registration_open": registration_open,
        "has_rooms": has_rooms,
        "room_version": room_version,
        "sort_by": sort_by,
        "sort_order": sort_order,
        "limit": limit,
        "offset": offset,
    }
    filters = SearchFilters.parse({k: v for k, v in raw.items() if v is not None})
    return await catalog.search(filters)


@router.get("/{domain}", response_model=ServerRecord)
async def get_server(domain: str, catalog: CatalogService = Depends(get_catalog)) -> ServerRecord:
    return await catalog.get(domain)


@router.get("/{domain}/status", response_model=ServerStatus)
async def get_server_status(
    domain: str,
    checker: StatusChecker = Depends(get_status_checker),
) -> ServerStatus:
    return await checker.check(domain)
