"""
Custom exceptions for the Crawl Column Store client.

Provides a structured taxonomy so callers can tell deterministic failures
(never retried) from transport failures (retried per policy) and pool
backpressure signals.
"""

import socket
from typing import Iterable


class CCSOperationalError(Exception):
    """Base operational error for the crawl column store client."""

    pass


class InvalidInput(CCSOperationalError):
    """Malformed URL or record field; deterministic, never retried."""

    pass


class EncodingError(InvalidInput):
    """A string field could not be encoded with the configured codec."""

    pass


class ConfigurationError(CCSOperationalError):
    """Settings could not be turned into a usable client configuration."""

    pass


class ConnectFailed(CCSOperationalError):
    """Transport could not be opened within the handshake retry ceiling."""

    def __init__(self, host: str, port: int, attempts: int, message: str = ""):
        self.host = host
        self.port = port
        self.attempts = attempts
        super().__init__(
            message or f"could not connect to {host}:{port} after {attempts} attempt(s)"
        )


class NoReachableSeeds(CCSOperationalError):
    """Ring resolution failed against every seed node."""

    def __init__(self, seeds):
        self.seeds = list(seeds)
        super().__init__(f"Cannot get token ranges from any of the seeds: {self.seeds}")


class RetryableError(CCSOperationalError):
    """Temporary errors that may be retried."""

    pass


class TransportError(RetryableError):
    """Transport-level failure during an in-flight RPC."""

    pass


class StoreUnavailable(RetryableError):
    """The store reported a transient server-side failure; the connection is still good."""

    pass


class WriteError(CCSOperationalError):
    """The store rejected a submission; not a transport problem."""

    pass


class PoolError(CCSOperationalError):
    """Base for writer pool backpressure signals."""

    pass


class PoolExhausted(PoolError):
    """No writer became available within the borrow wait ceiling."""

    pass


class PoolClosed(PoolError):
    """The pool has been closed; no more writers will be lent."""

    pass


def map_rpc_error(e: Exception, retryable_names: Iterable[str] = ()) -> CCSOperationalError:
    """Translate an RPC failure into the client taxonomy.

    Exceptions whose class name is in ``retryable_names`` (for example the
    store's ``TimedOutException``) become StoreUnavailable.
    """
    from thrift.transport.TTransport import TTransportException

    if isinstance(e, CCSOperationalError):
        return e
    if type(e).__name__ in retryable_names:
        return StoreUnavailable(f"{type(e).__name__}: {e}")
    if isinstance(e, (TTransportException, socket.timeout, EOFError, OSError)):
        return TransportError(f"{type(e).__name__}: {e}")
    return WriteError(f"{type(e).__name__}: {e}")
