"""
Bounded pool of ready-to-use ColumnWriters.

The pool lends at most ``max_active`` writers at once. Free writers are
recycled; when none is free and the pool is below its ceiling a new one is
built against the next endpoint from the rotator. Building, closing and
rotating all happen outside the pool lock, and the pool never holds its
lock while calling into the rotator.
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, List, Optional, Set

from loguru import logger

from ccs_client.errors import CCSOperationalError, PoolClosed, PoolExhausted
from ccs_client.ring import RingResolver

from ..metrics.registry import metrics_registry
from .rotator import EndpointRotator
from .writer import ColumnWriter, ColumnWriterFactory


@dataclass(frozen=True)
class PoolStats:
    live: int
    idle: int
    borrowed: int
    max_active: int
    closed: bool


class WriterPool:
    """Thread-safe bounded object pool of ColumnWriters.

    Example:
        pool = WriterPool(factory, rotator, max_active=4, max_wait_ms=2000)
        with pool.lease() as writer:
            writer.write(record)
        pool.close()
    """

    def __init__(
        self,
        factory: ColumnWriterFactory,
        rotator: EndpointRotator,
        *,
        max_active: int = 5,
        max_wait_ms: int = 5000,
    ):
        if max_active < 1:
            raise ValueError("max_active must be >= 1")
        if max_wait_ms < 0:
            raise ValueError("max_wait_ms must be >= 0")
        self._factory = factory
        self._rotator = rotator
        self._max_active = max_active
        self._max_wait = max_wait_ms / 1000.0

        self._cond = threading.Condition()
        self._idle: List[ColumnWriter] = []
        self._borrowed: Set[int] = set()
        self._live = 0  # idle + borrowed + under construction
        self._closed = False

    @property
    def rotator(self) -> EndpointRotator:
        return self._rotator

    # --------------------------- public API

    def borrow(self, timeout_ms: Optional[int] = None) -> ColumnWriter:
        """Lend a writer, waiting up to the pool's wait ceiling.

        Raises:
            PoolClosed: if the pool is (or becomes) closed.
            PoolExhausted: if no writer could be lent before the deadline.
        """
        wait = self._max_wait if timeout_ms is None else timeout_ms / 1000.0
        deadline = time.monotonic() + wait
        last_error: Optional[Exception] = None

        while True:
            with self._cond:
                handle = self._acquire_locked(deadline)
                if handle is not None:
                    return handle
                # slot reserved; build outside the lock

            try:
                handle = self._build(deadline)
            except CCSOperationalError as e:
                last_error = e
                with self._cond:
                    self._live -= 1
                    self._update_gauges_locked()
                    self._cond.notify()
                if time.monotonic() >= deadline:
                    raise PoolExhausted(
                        f"Could not build a writer within {wait:.3f}s: {e}"
                    ) from last_error
                continue

            with self._cond:
                if self._closed:
                    self._live -= 1
                    self._update_gauges_locked()
                    self._cond.notify_all()
                    closed = True
                else:
                    self._borrowed.add(id(handle))
                    self._update_gauges_locked()
                    closed = False
            if closed:
                self._factory.close_handle(handle)
                raise PoolClosed("WriterPool closed while a writer was being built")
            logger.debug(f"Lent new {handle!r}")
            return handle

    def release(self, handle: ColumnWriter) -> None:
        """Return a borrowed writer; unusable or late writers are destroyed."""
        destroy = False
        with self._cond:
            if id(handle) not in self._borrowed:
                raise ValueError(f"{handle!r} was not borrowed from this pool")
            self._borrowed.discard(id(handle))
            if self._closed or not handle.is_usable():
                self._live -= 1
                destroy = True
            else:
                self._idle.append(handle)
            self._update_gauges_locked()
            self._cond.notify()

        if destroy:
            if not self._closed:
                logger.warning(f"Destroying unusable {handle!r}")
            self._factory.close_handle(handle)
        else:
            logger.debug(f"Returned {handle!r}")

    @contextmanager
    def lease(self, timeout_ms: Optional[int] = None) -> Iterator[ColumnWriter]:
        handle = self.borrow(timeout_ms)
        try:
            yield handle
        finally:
            self.release(handle)

    def close(self) -> None:
        """Close idle writers now; borrowed ones are closed when returned."""
        with self._cond:
            if self._closed:
                return
            self._closed = True
            idle, self._idle = self._idle, []
            self._live -= len(idle)
            self._update_gauges_locked()
            self._cond.notify_all()

        for handle in idle:
            self._factory.close_handle(handle)
        logger.info(f"WriterPool closed ({len(idle)} idle writer(s) closed)")

    def refresh_endpoints(self, resolver: RingResolver) -> List[str]:
        """Re-resolve the ring and rotate over the new endpoint set."""
        endpoints = resolver.resolve()
        self._rotator.replace(endpoints)
        logger.info(f"Endpoint set refreshed: {self._rotator.snapshot()}")
        return endpoints

    def stats(self) -> PoolStats:
        with self._cond:
            return PoolStats(
                live=self._live,
                idle=len(self._idle),
                borrowed=len(self._borrowed),
                max_active=self._max_active,
                closed=self._closed,
            )

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "WriterPool":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --------------------------- internals

    def _acquire_locked(self, deadline: float) -> Optional[ColumnWriter]:
        """Pop an idle writer, or reserve a construction slot (returns None).

        Caller holds ``self._cond``.
        """
        while True:
            if self._closed:
                raise PoolClosed("WriterPool is closed")
            if self._idle:
                handle = self._idle.pop()
                self._borrowed.add(id(handle))
                self._update_gauges_locked()
                return handle
            if self._live < self._max_active:
                self._live += 1
                return None
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise PoolExhausted(
                    f"No writer available: {self._max_active} of {self._max_active} in use"
                )
            self._cond.wait(remaining)

    def _build(self, deadline: float) -> ColumnWriter:
        endpoint = self._rotator.next()
        logger.debug(f"Building writer for endpoint {endpoint}")
        return self._factory.new_handle(endpoint, deadline=deadline)

    def _update_gauges_locked(self) -> None:
        metrics_registry.pool_live.set(self._live)
        metrics_registry.pool_borrowed.set(len(self._borrowed))
