import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from mxindex.models.api import ErrorResponse
from mxindex.utils.errors import (
    ConflictError,
    FilterValidationError,
    InvalidDomainError,
    MxIndexError,
    NotFoundError,
    StorageUnavailableError,
    UnreachableDomainError,
)

log = structlog.get_logger()

ERROR_STATUS: dict[type[MxIndexError], tuple[int, str]] = {
    InvalidDomainError: (400, "invalid_domain"),
    FilterValidationError: (400, "invalid_filter"),
    NotFoundError: (404, "not_found"),
    ConflictError: (409, "server_exists"),
    UnreachableDomainError: (502, "discovery_failed"),
    StorageUnavailableError: (503, "database_unavailable"),
}


def error_status(exc: MxIndexError) -> tuple[int, str]:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 500, "internal_error"


async def handle_mxindex_error(request: Request, exc: MxIndexError) -> JSONResponse:
    status_code, code = error_status(exc)
    if status_code >= 500:
        log.error("request_failed", path=request.url.path, error=code, message=str(exc))
    body = ErrorResponse(error=code, message=str(exc))
    return JSONResponse(status_code=status_code, content=body.model_dump())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MxIndexError, handle_mxindex_error)  # type: ignore[arg-type]
