from unittest.mock import patch

import httpx
import pytest

from mxindex.services.delegation import DelegationResolver
from tests.fakes import FakeGet, make_response

WELL_KNOWN = "https://example.org/.well-known/matrix/server"


async def _resolve(http_client, outcome) -> tuple:
    fake = FakeGet({WELL_KNOWN: outcome})
    with patch.object(httpx.AsyncClient, "get", side_effect=fake.get):
        delegation = await DelegationResolver(http_client, timeout=1.0).resolve("example.org")
    return delegation, fake


async def test_resolve_uses_declared_server(http_client):
    delegation, fake = await _resolve(
        http_client, make_response(200, json={"m.server": "matrix.example.org:8448"})
    )

    assert delegation.target_host == "matrix.example.org:8448"
    assert delegation.delegated_server == "matrix.example.org:8448"
    assert fake.urls() == [WELL_KNOWN]


@pytest.mark.parametrize(
    "outcome",
    [
        make_response(404, json={"errcode": "M_NOT_FOUND"}),
        make_response(200, text="<html>not json</html>"),
        make_response(200, json={"m.homeserver": {"base_url": "https://example.org"}}),
        make_response(200, json={"m.server": "https://matrix.example.org/"}),
        make_response(200, json={"m.server": 8448}),
        make_response(200, json={"m.server": "[:]"}),
        make_response(200, json={"m.server": "[1.2.3]"}),
        httpx.ConnectError("Name or service not known"),
        httpx.ReadTimeout("timed out"),
    ],
)
async def test_resolve_falls_back_to_domain(http_client, outcome):
    delegation, _ = await _resolve(http_client, outcome)

    assert delegation.target_host == "example.org"
    assert delegation.delegated_server is None
