from fastapi import APIRouter

from mxindex.api.routes import health, servers

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(servers.router, tags=["servers"])
