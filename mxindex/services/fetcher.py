import asyncio
from typing import Any

import httpx
import structlog
from pydantic import BaseModel

from mxindex.config.constants import (
    CAPABILITIES_PATH,
    CLIENT_VERSIONS_PATH,
    FEDERATION_VERSION_PATH,
    PUBLIC_ROOMS_PATH,
    WELL_KNOWN_CLIENT_PATH,
)
from mxindex.models.discovery import (
    CapabilitiesResponse,
    ClientVersionsResponse,
    FederationVersionResponse,
    PartialResult,
    ProbeKind,
    PublicRoomsResponse,
    WellKnownClient,
)
from mxindex.services.probe import fetch_document
from mxindex.utils.errors import ProbeFailure
from mxindex.utils.url import build_url

log = structlog.get_logger()


class MetadataFetcher:
    """Runs every metadata probe for a homeserver concurrently."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        timeout: float = 10.0,
        public_rooms_limit: int = 100,
    ):
        self._client = client
        self.timeout = timeout
        self.public_rooms_limit = public_rooms_limit

    def _plan(
        self, domain: str, target_host: str
    ) -> list[tuple[ProbeKind, str, type[BaseModel], dict[str, Any] | None]]:
        # The client well-known document always lives on the canonical domain
        return [
            (
                ProbeKind.CLIENT_WELL_KNOWN,
                build_url(domain, WELL_KNOWN_CLIENT_PATH),
                WellKnownClient,
                None,
            ),
            (
                ProbeKind.CAPABILITIES,
                build_url(target_host, CAPABILITIES_PATH),
                CapabilitiesResponse,
                None,
            ),
            (
                ProbeKind.PUBLIC_ROOMS,
                build_url(target_host, PUBLIC_ROOMS_PATH),
                PublicRoomsResponse,
                {"limit": self.public_rooms_limit},
            ),
            (
                ProbeKind.CLIENT_VERSIONS,
                build_url(target_host, CLIENT_VERSIONS_PATH),
                ClientVersionsResponse,
                None,
            ),
            (
                ProbeKind.FEDERATION_VERSION,
                build_url(target_host, FEDERATION_VERSION_PATH),
                FederationVersionResponse,
                None,
            ),
        ]

    async def fetch_all(self, domain: str, target_host: str) -> PartialResult:
        """Return one outcome per probe once every probe has finished."""
        plan = self._plan(domain, target_host)
        async with asyncio.TaskGroup() as tg:
            tasks = {
                kind: tg.create_task(self._probe(kind, domain, url, model, params))
                for kind, url, model, params in plan
            }

        result = PartialResult(**{kind.value: task.result() for kind, task in tasks.items()})
        succeeded = result.succeeded()
        log.info(
            "probes_completed",
            domain=domain,
            target_host=target_host,
            succeeded=[kind.value for kind in succeeded],
            failed=[kind.value for kind in ProbeKind if kind not in succeeded],
        )
        return result

    async def _probe(
        self,
        kind: ProbeKind,
        domain: str,
        url: str,
        model: type[BaseModel],
        params: dict[str, Any] | None,
    ) -> BaseModel | None:
        try:
            return await fetch_document(
                self._client, url, model, timeout=self.timeout, probe=kind.value, params=params
            )
        except ProbeFailure as e:
            log.warning("probe_failed", probe=kind.value, domain=domain, url=url, error=str(e))
            return None
