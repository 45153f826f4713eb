"""
Pipeline-facing session: one entry point per harvested record.

The session resolves the ring, owns the rotator and the writer pool, and
turns per-record failures into annotated results so a single bad record
never stops the crawl. Only startup-time topology failures propagate.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from loguru import logger
from pydantic import ValidationError

from ccs_client.connection import ClientFactory
from ccs_client.errors import CCSOperationalError, InvalidInput, PoolClosed
from ccs_client.models import ClusterConfig, CrawlRecord, MutationBatch
from ccs_client.ring import RingResolver
from ccs_client.transforms import ByteTransform

from .metrics.registry import metrics_registry
from .pool.policy import RetryPolicy
from .pool.rotator import EndpointRotator
from .pool.writer import ColumnWriterFactory
from .pool.writer_pool import WriterPool

ANNOTATION_UNWRITTEN = "unwritten"


@dataclass(frozen=True)
class SubmitResult:
    """Outcome of one submit_record call.

    Attributes:
        written: columns were committed
        deleted: the row was removed (missing page)
        skipped: nothing was attempted (failed fetch, empty record, known URL)
        bytes_written: column payload bytes committed
        finished: the session's byte quota has been reached
        error: the failure, when the record could not be committed
        annotation: "unwritten" when the pipeline should mark the record as such
    """

    written: bool = False
    deleted: bool = False
    skipped: bool = False
    bytes_written: int = 0
    finished: bool = False
    error: Optional[CCSOperationalError] = None
    annotation: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ColumnStoreSession:
    """Resilient write session against one cluster.

    Args:
        config: Validated cluster configuration
        client_factory: Builds an RpcClient over an open thrift protocol
        transform: Optional byte transform overriding ``config.serializer``
        retry_policy: Overrides the policy derived from ``config.retry_mode``
        skip_existing: Skip records whose row already exists
        max_total_bytes: Report ``finished`` past this many payload bytes (0 = no limit)

    Example:
        with ColumnStoreSession(cfg, client_factory) as session:
            result = session.submit_record(url, ip, fetch_ms, False, "", "", req, resp, 200)
            if not result.ok:
                mark(result.annotation)
    """

    def __init__(
        self,
        config: ClusterConfig,
        client_factory: ClientFactory,
        *,
        transform: Optional[ByteTransform] = None,
        retry_policy: Optional[RetryPolicy] = None,
        skip_existing: bool = False,
        max_total_bytes: int = 0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._cfg = config
        self._client_factory = client_factory
        self._transform = transform
        self._retry_policy = retry_policy
        self._skip_existing = skip_existing
        self._max_total_bytes = max_total_bytes
        self._sleep = sleep

        self._lock = threading.Lock()
        self._pool: Optional[WriterPool] = None
        self._resolver = RingResolver(config, client_factory)
        self._total_bytes = 0

    # --------------------------- lifecycle

    def start(self) -> "ColumnStoreSession":
        """Resolve the ring and build the writer pool.

        Raises:
            NoReachableSeeds: no seed could describe the ring; abort startup.
        """
        with self._lock:
            if self._pool is not None:
                return self
            endpoints = self._resolver.resolve()
            factory = ColumnWriterFactory(
                self._cfg,
                self._client_factory,
                transform=self._transform,
                retry_policy=self._retry_policy,
                sleep=self._sleep,
            )
            self._pool = WriterPool(
                factory,
                EndpointRotator(endpoints),
                max_active=self._cfg.pool_max_active,
                max_wait_ms=self._cfg.pool_max_wait_ms,
            )
        logger.info(
            f"Session started: keyspace={self._cfg.keyspace} cf={self._cfg.column_family} "
            f"endpoints={len(endpoints)} pool_max_active={self._cfg.pool_max_active}"
        )
        return self

    def close(self) -> None:
        with self._lock:
            pool = self._pool
        if pool is not None:
            pool.close()

    def refresh_ring(self) -> None:
        self._require_pool().refresh_endpoints(self._resolver)

    @property
    def pool(self) -> WriterPool:
        return self._require_pool()

    @property
    def total_bytes_written(self) -> int:
        with self._lock:
            return self._total_bytes

    @property
    def quota_reached(self) -> bool:
        with self._lock:
            return self._quota_reached_locked()

    def __enter__(self) -> "ColumnStoreSession":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --------------------------- pipeline entry points

    def submit_record(
        self,
        url: str,
        remote_ip: str,
        fetch_timestamp_ms: int,
        is_seed: bool,
        path_from_seed: Optional[str],
        via: Optional[str],
        request: bytes,
        response: bytes,
        http_status: int,
    ) -> SubmitResult:
        try:
            record = CrawlRecord(
                url=url,
                remote_ip=remote_ip,
                fetch_time_ms=fetch_timestamp_ms,
                is_seed=is_seed,
                path_from_seed=path_from_seed,
                via=via,
                request=request,
                response=response,
                http_status=http_status,
            )
        except ValidationError as e:
            err = InvalidInput(f"Malformed record for {url!r}: {e}")
            logger.error(f"Failed write of Record: {url!r}: {err}")
            metrics_registry.submit_total.labels(outcome="failure").inc()
            return SubmitResult(error=err, annotation=ANNOTATION_UNWRITTEN)
        return self.submit(record)

    def submit(self, record: CrawlRecord) -> SubmitResult:
        """Commit ``record``; failures are logged and returned, never raised."""
        if not self.should_write(record):
            logger.info(f"Does not write {record.url}")
            metrics_registry.submit_total.labels(outcome="skipped").inc()
            return SubmitResult(skipped=True, finished=self.quota_reached)

        start = time.perf_counter()
        try:
            if self._skip_existing and self.check_exists(record.url):
                logger.info(f"Skipping known URL {record.url}")
                metrics_registry.submit_total.labels(outcome="skipped").inc()
                return SubmitResult(skipped=True, finished=self.quota_reached)
            batch = self.write_record(record)
        except CCSOperationalError as e:
            logger.error(f"Failed write of Record: {record.url}: {type(e).__name__}: {e}")
            metrics_registry.submit_total.labels(outcome="failure").inc()
            return SubmitResult(
                error=e, annotation=ANNOTATION_UNWRITTEN, finished=self.quota_reached
            )
        finally:
            metrics_registry.submit_latency.observe(time.perf_counter() - start)

        outcome = "deleted" if batch.delete else "written"
        metrics_registry.submit_total.labels(outcome=outcome).inc()
        return SubmitResult(
            written=not batch.delete,
            deleted=batch.delete,
            bytes_written=batch.payload_size,
            finished=self.quota_reached,
        )

    def write_record(self, record: CrawlRecord) -> MutationBatch:
        """Raising variant of ``submit``: borrow, write, always return the writer."""
        with self._require_pool().lease() as writer:
            batch = writer.write(record)
        self._account(batch.payload_size)
        return batch

    def check_exists(self, url: str) -> bool:
        """True iff the row for ``url`` already holds columns."""
        with self._require_pool().lease() as writer:
            return writer.exists(url)

    @staticmethod
    def should_write(record: CrawlRecord) -> bool:
        # fetch never completed, or nothing at all was recorded
        if record.http_status <= 0:
            return False
        return record.recorded_size > 0

    # --------------------------- internals

    def _account(self, nbytes: int) -> None:
        with self._lock:
            self._total_bytes += nbytes
        metrics_registry.bytes_written_total.inc(nbytes)

    def _quota_reached_locked(self) -> bool:
        return 0 < self._max_total_bytes <= self._total_bytes

    def _require_pool(self) -> WriterPool:
        with self._lock:
            pool = self._pool
        if pool is None:
            raise PoolClosed("Session not started; call start() first")
        return pool
