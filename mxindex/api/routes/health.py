from fastapi import APIRouter, Depends

from mxindex import __version__
from mxindex.api.dependencies import Services, get_services
from mxindex.config.constants import API_DESCRIPTION, API_NAME
from mxindex.models.api import ApiInfo, HealthResponse
from mxindex.utils.errors import StorageUnavailableError

router = APIRouter()


@router.get("/", response_model=ApiInfo)
async def index() -> ApiInfo:
    return ApiInfo(name=API_NAME, version=__version__, description=API_DESCRIPTION)


@router.get("/health", response_model=HealthResponse)
async def health(services: Services = Depends(get_services)) -> HealthResponse:
    db_status = "disconnected"
    try:
        if await services.repository.ping():
            db_status = "connected"
    except StorageUnavailableError:
        pass

    cache_ok = await services.cache.ping()
    if cache_ok is None:
        cache_status = "disabled"
    else:
        cache_status = "connected" if cache_ok else "disconnected"

    status = "ok" if db_status == "connected" else "degraded"
    return HealthResponse(status=status, database=db_status, cache=cache_status)
