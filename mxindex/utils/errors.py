class MxIndexError(Exception):
    """Base exception for indexing and catalog errors."""

    def __init__(self, message: str, domain: str = ""):
        self.domain = domain
        super().__init__(message)


class ProbeFailure(MxIndexError):
    """Raised when a single metadata probe fails (timeout, status, body)."""

    def __init__(self, message: str, probe: str = "", **kwargs: str):
        self.probe = probe
        super().__init__(message, **kwargs)


class UnreachableDomainError(MxIndexError):
    """Raised when no probe returned usable data for a domain."""


class ConflictError(MxIndexError):
    """Raised when creating a server that is already indexed."""


class NotFoundError(MxIndexError):
    """Raised when no server is indexed under the requested domain."""


class InvalidDomainError(MxIndexError):
    """Raised when a supplied domain is not a bare hostname."""


class FilterValidationError(MxIndexError):
    """Raised when a search filter value has the wrong type or range."""

    def __init__(self, message: str, errors: list[dict] | None = None):
        self.errors = errors or []
        super().__init__(message)


class StorageUnavailableError(MxIndexError):
    """Raised when the database cannot be reached."""


class CacheUnavailableError(MxIndexError):
    """Raised by cache backends; always absorbed by callers."""
