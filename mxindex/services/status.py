import httpx
import structlog
from pydantic import ValidationError

from mxindex.config.constants import CACHE_KEY_PREFIXES, CLIENT_VERSIONS_PATH
from mxindex.models.api import ServerStatus
from mxindex.models.discovery import ClientVersionsResponse
from mxindex.services.cache import ServerCache, cache_key
from mxindex.services.probe import fetch_document
from mxindex.utils.errors import ProbeFailure
from mxindex.utils.url import build_url, normalize_domain

log = structlog.get_logger()

_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "name resolution",
    "getaddrinfo",
)


def classify_failure(error: ProbeFailure) -> str:
    cause = error.__cause__
    if isinstance(cause, (TimeoutError, httpx.TimeoutException)):
        return "timeout"
    if isinstance(cause, httpx.ConnectError):
        message = str(cause).lower()
        if any(marker in message for marker in _DNS_MARKERS):
            return "dns_error"
        return "connection_error"
    return "server_error"


class StatusChecker:
    """Live reachability check of a homeserver's client API."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: ServerCache,
        *,
        timeout: float = 10.0,
        ttl: int = 60,
    ):
        self._client = client
        self.cache = cache
        self.timeout = timeout
        self.ttl = ttl

    async def check(self, domain: str) -> ServerStatus:
        domain = normalize_domain(domain)
        key = cache_key(CACHE_KEY_PREFIXES["status"], domain)
        raw = await self.cache.read(key)
        if raw is not None:
            try:
                return ServerStatus.model_validate_json(raw)
            except ValidationError as e:
                log.warning("status_cache_corrupt", domain=domain, error=str(e))

        try:
            versions = await fetch_document(
                self._client,
                build_url(domain, CLIENT_VERSIONS_PATH),
                ClientVersionsResponse,
                timeout=self.timeout,
                probe="client_versions",
            )
            status = ServerStatus(server=domain, status="online", version=versions.summary)
        except ProbeFailure as e:
            status = ServerStatus(server=domain, status="offline", error=classify_failure(e))
            log.info("server_offline", domain=domain, error=status.error, detail=str(e))

        await self.cache.write(key, status.model_dump_json(), self.ttl)
        return status
