"""
Pooled writer bound to one Connection, plus the factory the pool uses to
make and destroy writers.
"""

from __future__ import annotations

import time
from typing import Callable, Optional, TypeVar

from loguru import logger

from ccs_client.connection import ClientFactory, Connection
from ccs_client.errors import ConnectFailed, RetryableError, TransportError, map_rpc_error
from ccs_client.mapper import RecordMapper
from ccs_client.models import ClusterConfig, CrawlRecord, MutationBatch
from ccs_client.rowkey import derive_row_key
from ccs_client.rpc import (
    WRITE_CONSISTENCY,
    ColumnParent,
    build_mutation_map,
    existence_predicate,
    row_path,
)
from ccs_client.transforms import ByteTransform

from ..metrics.registry import metrics_registry
from .policy import RetryPolicy

R = TypeVar("R")


class ColumnWriter:
    """Writes mapped records over its own Connection.

    A writer is used by exactly one borrower at a time; nothing here is
    shared between threads.
    """

    def __init__(
        self,
        connection: Connection,
        mapper: RecordMapper,
        retry_policy: RetryPolicy,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._conn = connection
        self._mapper = mapper
        self._policy = retry_policy
        self._sleep = sleep

    @property
    def connection(self) -> Connection:
        return self._conn

    @property
    def endpoint(self) -> str:
        return self._conn.host

    @property
    def config(self) -> ClusterConfig:
        return self._mapper.config

    def is_usable(self) -> bool:
        return self._conn.is_open()

    # --------------------------- public API

    def write(self, record: CrawlRecord) -> MutationBatch:
        """Map ``record`` and commit it, deleting the row if the mapper says so.

        Mapping errors propagate immediately. Transport failures reconnect to
        the same endpoint and resubmit according to the retry policy; transient
        store failures resubmit over the same connection.
        """
        batch = self._mapper.map(record)
        if batch.delete:
            self._submit(
                f"remove '{batch.row_key!r}'",
                lambda client: client.remove(
                    batch.row_key, row_path(batch), batch.timestamp, WRITE_CONSISTENCY
                ),
            )
        else:
            mutation_map = build_mutation_map(batch)
            self._submit(
                f"batch_mutate '{batch.row_key!r}'",
                lambda client: client.batch_mutate(mutation_map, WRITE_CONSISTENCY),
            )
        return batch

    def exists(self, url: str) -> bool:
        """True iff the row for ``url`` holds at least one column."""
        key = derive_row_key(url, self.config.encoding)
        parent = ColumnParent(column_family=self.config.column_family)
        count = self._submit(
            f"get_count '{key!r}'",
            lambda client: client.get_count(key, parent, existence_predicate(), WRITE_CONSISTENCY),
        )
        return count > 0

    def close(self) -> None:
        self._conn.close()

    # --------------------------- internals

    def _submit(self, what: str, call: Callable[..., R]) -> R:
        attempt = 0
        while True:
            attempt += 1
            try:
                return call(self._conn.client)
            except Exception as exc:
                err = map_rpc_error(exc, self.config.retryable_errors)
                if not isinstance(err, RetryableError):
                    logger.error(f"{what} on {self.endpoint} rejected: {err}")
                    raise err from exc
                broken = isinstance(err, TransportError)
                if broken:
                    self._conn.mark_failed()
                if not self._policy.should_retry(attempt, err):
                    logger.error(
                        f"{what} on {self.endpoint} failed after {attempt} attempt(s): {err}"
                    )
                    raise err from exc
                logger.error(
                    f"The following exception was encountered while running {what} "
                    f"on {self.endpoint} (attempt {attempt}): {err}"
                )
                if broken:
                    self._reconnect()
                self._sleep(self._policy.next_backoff_ms(attempt) / 1000.0)

    def _reconnect(self) -> None:
        self._conn.close()
        try:
            self._conn.connect()
        except ConnectFailed as e:
            metrics_registry.reconnects_total.labels(outcome="failure").inc()
            logger.error(f"Reconnect to {self.endpoint} failed: {e}")
            return
        metrics_registry.reconnects_total.labels(outcome="success").inc()
        logger.warning(f"Reconnected to {self.endpoint}")

    def __repr__(self) -> str:
        return f"ColumnWriter({self._conn!r})"


class ColumnWriterFactory:
    """Makes and destroys ColumnWriters for the pool.

    ``new_handle`` opens a Connection to the given endpoint (raising
    ConnectFailed when the handshake ceiling is hit); ``close_handle`` tears
    it down.
    """

    def __init__(
        self,
        config: ClusterConfig,
        client_factory: ClientFactory,
        *,
        transform: Optional[ByteTransform] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._cfg = config
        self._client_factory = client_factory
        self._mapper = RecordMapper(config, transform)
        self._policy = retry_policy or RetryPolicy.from_config(config)
        self._sleep = sleep

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._policy

    def new_handle(self, endpoint: str, *, deadline: Optional[float] = None) -> ColumnWriter:
        """``deadline`` is a ``time.monotonic()`` value bounding the handshake retries."""
        conn = Connection.for_endpoint(endpoint, self._cfg, self._client_factory)
        conn.connect(deadline=deadline)
        return ColumnWriter(conn, self._mapper, self._policy, sleep=self._sleep)

    def close_handle(self, handle: ColumnWriter) -> None:
        logger.debug(f"Closing {handle!r}")
        handle.close()
