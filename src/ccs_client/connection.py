"""
One live transport to one store node.

The connection retries its own handshake a bounded number of times. It
never retries RPC calls; a caller that sees a transport failure marks the
connection failed, closes it and reconnects before resubmitting.
"""

from __future__ import annotations

import time
from typing import Callable, Optional

from loguru import logger
from thrift.protocol import TBinaryProtocol
from thrift.transport import TSocket, TTransport

from .errors import ConnectFailed, TransportError, map_rpc_error
from .models import ClusterConfig
from .rpc import RpcClient

ClientFactory = Callable[[TBinaryProtocol.TBinaryProtocol], RpcClient]

DEFAULT_CONNECT_ATTEMPTS = 3
DEFAULT_CONNECT_RETRY_DELAY_MS = 1000


class Connection:
    """Transport bound to ``host:port``; optionally pinned to a keyspace.

    States: closed -> open -> closed. ``connect()`` is a no-op while open;
    ``close()`` is always safe.
    """

    def __init__(
        self,
        host: str,
        port: int,
        client_factory: ClientFactory,
        *,
        keyspace: Optional[str] = None,
        framed: bool = False,
        attempts: int = DEFAULT_CONNECT_ATTEMPTS,
        retry_delay_ms: int = DEFAULT_CONNECT_RETRY_DELAY_MS,
        timeout_ms: Optional[int] = None,
    ):
        if attempts < 1:
            raise ValueError("attempts must be >= 1")
        self._host = host
        self._port = port
        self._keyspace = keyspace
        self._factory = client_factory
        self._framed = framed
        self._attempts = attempts
        self._retry_delay_ms = retry_delay_ms
        self._timeout_ms = timeout_ms

        self._transport: Optional[TTransport.TTransportBase] = None
        self._client: Optional[RpcClient] = None
        self._failed = False

    @classmethod
    def for_endpoint(
        cls,
        host: str,
        config: ClusterConfig,
        client_factory: ClientFactory,
        *,
        bind_keyspace: bool = True,
    ) -> "Connection":
        return cls(
            host,
            config.port,
            client_factory,
            keyspace=config.keyspace if bind_keyspace else None,
            framed=config.framed_transport,
            attempts=config.connect_attempts,
            retry_delay_ms=config.connect_retry_delay_ms,
            timeout_ms=config.socket_timeout_ms,
        )

    # ---------- state ----------

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    def is_open(self) -> bool:
        return (
            not self._failed
            and self._transport is not None
            and self._transport.isOpen()
        )

    @property
    def client(self) -> RpcClient:
        if not self.is_open() or self._client is None:
            raise TransportError(f"connection to {self._host}:{self._port} is not open")
        return self._client

    def mark_failed(self) -> None:
        """Record that an RPC over this transport failed."""
        self._failed = True

    # ---------- lifecycle ----------

    def connect(self, deadline: Optional[float] = None) -> None:
        """Open the transport, retrying the handshake up to the attempt ceiling.

        ``deadline`` (a ``time.monotonic()`` value) stops further attempts once
        the next retry delay would pass it; a single handshake is still bounded
        only by the socket timeout.
        """
        if self.is_open():
            return
        # a failed-but-open transport must be torn down before reopening
        self.close()

        last_exc: Optional[Exception] = None
        attempt = 0
        while attempt < self._attempts:
            attempt += 1
            try:
                self._open()
                self._failed = False
                logger.debug(f"Connected to {self._host}:{self._port} (attempt {attempt})")
                return
            except Exception as exc:
                last_exc = exc
                self.close()
                logger.error(
                    f"Connect to {self._host}:{self._port} failed "
                    f"(attempt {attempt}/{self._attempts}): {type(exc).__name__}: {exc}"
                )
                if attempt >= self._attempts:
                    break
                delay = self._retry_delay_ms / 1000.0
                if deadline is not None and time.monotonic() + delay >= deadline:
                    break
                if delay > 0:
                    time.sleep(delay)

        raise ConnectFailed(self._host, self._port, attempt) from last_exc

    def close(self) -> None:
        transport, self._transport, self._client = self._transport, None, None
        if transport is None:
            return
        try:
            transport.close()
        except Exception as exc:
            logger.debug(f"Error closing transport to {self._host}:{self._port}: {exc}")

    def _open(self) -> None:
        socket = TSocket.TSocket(self._host, self._port)
        if self._timeout_ms is not None:
            socket.setTimeout(self._timeout_ms)
        if self._framed:
            transport = TTransport.TFramedTransport(socket)
        else:
            transport = TTransport.TBufferedTransport(socket)
        transport.open()
        self._transport = transport
        client = self._factory(TBinaryProtocol.TBinaryProtocol(transport))
        self._client = client
        if self._keyspace:
            try:
                client.set_keyspace(self._keyspace)
            except Exception as exc:
                raise map_rpc_error(exc) from exc

    # ---------- context manager ----------

    def __enter__(self) -> "Connection":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "open" if self.is_open() else "closed"
        return f"Connection({self._host}:{self._port}, {state})"
