import asyncio
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel

from mxindex.utils.errors import ProbeFailure

M = TypeVar("M", bound=BaseModel)


async def fetch_document(
    client: httpx.AsyncClient,
    url: str,
    model: type[M],
    *,
    timeout: float,
    probe: str,
    params: dict[str, Any] | None = None,
) -> M:
    """GET a JSON document and validate it, raising ProbeFailure on any problem.

    ``timeout`` bounds the whole exchange (connect, redirects and body), not
    just individual socket operations.
    """
    try:
        async with asyncio.timeout(timeout):
            response = await client.get(url, params=params)
    except TimeoutError as e:
        raise ProbeFailure(f"Timed out after {timeout}s", probe=probe) from e
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise ProbeFailure(f"{type(e).__name__}: {e}", probe=probe) from e

    if not response.is_success:
        raise ProbeFailure(f"HTTP {response.status_code}", probe=probe)

    try:
        return model.model_validate(response.json())
    except ValueError as e:
        # json.JSONDecodeError and pydantic.ValidationError are both ValueErrors
        raise ProbeFailure(f"Malformed body: {e}", probe=probe) from e
