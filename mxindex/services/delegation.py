import httpx
import structlog

from mxindex.config.constants import WELL_KNOWN_SERVER_PATH
from mxindex.models.discovery import Delegation, WellKnownServer
from mxindex.services.probe import fetch_document
from mxindex.utils.errors import ProbeFailure
from mxindex.utils.url import build_url, parse_server_name

log = structlog.get_logger()


class DelegationResolver:
    """Finds the host that serves a domain's federation traffic."""

    def __init__(self, client: httpx.AsyncClient, *, timeout: float = 10.0):
        self._client = client
        self.timeout = timeout

    async def resolve(self, domain: str) -> Delegation:
        """Read ``m.server`` from the server well-known document.

        Any failure means "no delegation": the domain serves itself.
        """
        url = build_url(domain, WELL_KNOWN_SERVER_PATH)
        try:
            document = await fetch_document(
                self._client,
                url,
                WellKnownServer,
                timeout=self.timeout,
                probe="well_known_server",
            )
        except ProbeFailure as e:
            log.debug("delegation_absent", domain=domain, error=str(e))
            return Delegation(target_host=domain)

        server = parse_server_name(document.m_server)
        if server is None:
            log.warning("delegation_invalid", domain=domain, m_server=document.m_server)
            return Delegation(target_host=domain)

        log.info("delegation_resolved", domain=domain, delegated_server=server)
        return Delegation(target_host=server, delegated_server=server)
