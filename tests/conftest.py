import httpx
import pytest

from mxindex.services.cache import MemoryCacheBackend, ServerCache
from tests.fakes import FakeRepository, make_response

EXAMPLE_ROUTES = {
    "https://example.org/.well-known/matrix/client": make_response(
        200,
        json={"m.homeserver": {"base_url": "https://matrix.example.org"}, "name": "Example"},
    ),
    "https://example.org/_matrix/client/v3/capabilities": make_response(
        200,
        json={
            "capabilities": {
                "m.registration": {"enabled": True},
                "m.room_versions": {"default": "10", "available": {"9": "stable", "10": "stable"}},
            }
        },
    ),
    "https://example.org/_matrix/client/v3/publicRooms": make_response(
        200,
        json={
            "chunk": [
                {"room_id": "!a:example.org", "num_joined_members": 12},
                {"room_id": "!b:example.org", "num_joined_members": 4},
                {"room_id": "!c:example.org", "num_joined_members": 1},
            ]
        },
    ),
    "https://example.org/_matrix/federation/v1/version": httpx.ReadTimeout("timed out"),
}


@pytest.fixture
def example_routes() -> dict[str, object]:
    return dict(EXAMPLE_ROUTES)


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def memory_cache() -> ServerCache:
    return ServerCache(MemoryCacheBackend(), ttl=300)


@pytest.fixture
async def http_client():
    client = httpx.AsyncClient()
    yield client
    await client.aclose()
