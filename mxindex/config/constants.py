WELL_KNOWN_CLIENT_PATH = "/.well-known/matrix/client"
WELL_KNOWN_SERVER_PATH = "/.well-known/matrix/server"
CAPABILITIES_PATH = "/_matrix/client/v3/capabilities"
PUBLIC_ROOMS_PATH = "/_matrix/client/v3/publicRooms"
CLIENT_VERSIONS_PATH = "/_matrix/client/versions"
FEDERATION_VERSION_PATH = "/_matrix/federation/v1/version"

CACHE_KEY_PREFIXES: dict[str, str] = {
    "server": "server",
    "search": "servers:search",
    "status": "server:status",
}

DEFAULT_PAGE_LIMIT = 50
MAX_PAGE_LIMIT = 100

API_NAME = "mxindex"
API_DESCRIPTION = "Matrix homeserver index API"
