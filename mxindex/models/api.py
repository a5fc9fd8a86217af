from pydantic import BaseModel, Field


class ApiInfo(BaseModel):
    name: str
    version: str
    description: str


class HealthResponse(BaseModel):
    status: str
    database: str
    cache: str


class ErrorResponse(BaseModel):
    error: str
    message: str


class CreateServerRequest(BaseModel):
    domain: str = Field(min_length=1, max_length=253)
    # False: an already indexed domain is a conflict. True: re-index it.
    refresh: bool = False


class ServerStatus(BaseModel):
    server: str
    status: str
    version: str | None = None
    error: str | None = None
