from collections.abc import Iterator
from contextlib import contextmanager

from asyncpg.exceptions import (
    CannotConnectNowError,
    InterfaceError,
    PostgresConnectionError,
    TooManyConnectionsError,
)

from mxindex.utils.errors import StorageUnavailableError

# Failures that mean "the database is not reachable", as opposed to bad SQL or
# constraint violations, which stay as asyncpg errors.
STORAGE_ERRORS: tuple[type[BaseException], ...] = (
    OSError,
    TimeoutError,
    PostgresConnectionError,
    CannotConnectNowError,
    TooManyConnectionsError,
    InterfaceError,
)


@contextmanager
def storage_errors() -> Iterator[None]:
    try:
        yield
    except STORAGE_ERRORS as e:
        raise StorageUnavailableError(f"Database unavailable: {e}") from e
