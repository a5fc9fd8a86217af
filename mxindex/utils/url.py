import ipaddress
import re

from mxindex.utils.errors import InvalidDomainError

_LABEL_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")
_SERVER_NAME_RE = re.compile(
    r"^(?P<host>\[[0-9a-fA-F:.]+\]|[A-Za-z0-9.-]+)(?::(?P<port>\d{1,5}))?$"
)


def is_valid_hostname(host: str) -> bool:
    if not host or len(host) > 253:
        return False
    return all(_LABEL_RE.match(label) for label in host.split("."))


def normalize_domain(domain: str) -> str:
    """Validate a caller-supplied domain and return its canonical form.

    Domains are bare hostnames: no scheme, path or port. Case is folded and a
    trailing dot is dropped so that ``Example.org.`` and ``example.org`` map to
    the same catalog entry.
    """
    candidate = domain.strip().lower().rstrip(".")
    if not candidate or "/" in candidate or ":" in candidate:
        raise InvalidDomainError(
            "Domain must be a valid domain name without path or port", domain=domain
        )
    if not is_valid_hostname(candidate):
        raise InvalidDomainError(f"Invalid domain name: {domain!r}", domain=domain)
    return candidate


def parse_server_name(value: str) -> str | None:
    """Validate a delegated ``host[:port]`` server name; None if malformed."""
    match = _SERVER_NAME_RE.match(value.strip())
    if match is None:
        return None
    host = match.group("host")
    if host.startswith("["):
        try:
            ipaddress.IPv6Address(host[1:-1])
        except ValueError:
            return None
    elif not is_valid_hostname(host.lower().rstrip(".")):
        return None
    port = match.group("port")
    if port is not None and not 0 < int(port) <= 65535:
        return None
    return value.strip()


def build_url(host: str, path: str) -> str:
    """Build the https URL for a Matrix endpoint on ``host`` (may carry a port)."""
    return f"https://{host}{path}"
