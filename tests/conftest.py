"""
Pytest configuration and fixtures for crawl-column-store.

Provides an in-memory fake column store reachable through patched thrift
sockets, so Connection, RingResolver and the writer pool run their real
code paths without a cluster.
"""

import threading
from collections import defaultdict

import pytest
from thrift.transport import TSocket
from thrift.transport.TTransport import TTransportException

from ccs_client.models import ClusterConfig, CrawlRecord
from ccs_client.rpc import TokenRange


class FakeStore:
    """Shared state behind every fake socket and fake client."""

    def __init__(self):
        self.rings: dict[str, list[TokenRange]] = {}
        self.down: set[str] = set()
        self.rejecting: set[str] = set()
        self.failures: list[Exception] = []  # raised, in order, by the next RPCs
        self.opened: list[str] = []
        self.keyspaces: list[tuple[str, str]] = []
        self.batches: list[tuple[str, dict, int]] = []
        self.removes: list[tuple[str, bytes, object, int, int]] = []
        self.rows: dict[bytes, int] = defaultdict(int)
        self.open_attempts: dict[str, int] = defaultdict(int)
        self._lock = threading.Lock()
        self._local = threading.local()

    # ---- helpers used by tests

    def ring(self, seed: str, *endpoint_groups: list[str]) -> None:
        self.rings[seed] = [
            TokenRange(start_token=str(i), end_token=str(i + 1), endpoints=list(group))
            for i, group in enumerate(endpoint_groups)
        ]

    def fail_next(self, *excs: Exception) -> None:
        with self._lock:
            self.failures.extend(excs)

    def _pop_failure(self):
        with self._lock:
            return self.failures.pop(0) if self.failures else None

    # ---- thrift seams

    def socket_class(self):
        store = self

        class FakeSocket:
            def __init__(self, host="localhost", port=9090, *args, **kwargs):
                self.host = host
                self.port = port
                self._open = False
                self.timeout_ms = None

            def setTimeout(self, ms):
                self.timeout_ms = ms

            def isOpen(self):
                return self._open

            def open(self):
                with store._lock:
                    store.open_attempts[self.host] += 1
                if self.host in store.down:
                    raise TTransportException(
                        TTransportException.NOT_OPEN, f"Could not connect to {self.host}"
                    )
                self._open = True
                with store._lock:
                    store.opened.append(self.host)
                store._local.host = self.host

            def close(self):
                self._open = False

        return FakeSocket

    def client_factory(self, protocol):
        return FakeClient(self, self._local.host)


class FakeClient:
    def __init__(self, store: FakeStore, host: str):
        self.store = store
        self.host = host

    def _maybe_fail(self):
        exc = self.store._pop_failure()
        if exc is not None:
            raise exc

    def set_keyspace(self, keyspace):
        self.store.keyspaces.append((self.host, keyspace))

    def describe_ring(self, keyspace):
        self._maybe_fail()
        if self.host in self.store.rejecting:
            raise RuntimeError(f"InvalidRequestException: keyspace {keyspace} unknown")
        return self.store.rings.get(self.host, [])

    def batch_mutate(self, mutation_map, consistency_level):
        self._maybe_fail()
        with self.store._lock:
            self.store.batches.append((self.host, mutation_map, consistency_level))
            for key, by_cf in mutation_map.items():
                for mutations in by_cf.values():
                    self.store.rows[key] += len(mutations)

    def remove(self, key, column_path, timestamp, consistency_level):
        self._maybe_fail()
        with self.store._lock:
            self.store.removes.append((self.host, key, column_path, timestamp, consistency_level))
            self.store.rows.pop(key, None)

    def get_count(self, key, column_parent, predicate, consistency_level):
        self._maybe_fail()
        return self.store.rows.get(key, 0)


@pytest.fixture
def fake_store(monkeypatch):
    """FakeStore wired in place of thrift's TSocket."""
    store = FakeStore()
    monkeypatch.setattr(TSocket, "TSocket", store.socket_class())
    return store


@pytest.fixture
def client_factory(fake_store):
    return fake_store.client_factory


@pytest.fixture
def cluster_config():
    """Config with every delay zeroed for fast tests."""
    return ClusterConfig(
        seeds=["h1", "h2"],
        keyspace="crawler",
        connect_retry_delay_ms=0,
        submit_retry_delay_ms=0,
        pool_max_active=2,
        pool_max_wait_ms=200,
    )


@pytest.fixture
def make_record():
    def _make(**overrides):
        values = dict(
            url="http://www.example.com/a",
            remote_ip="93.184.216.34",
            fetch_time_ms=1_700_000_000_123,
            is_seed=False,
            path_from_seed="L",
            via="http://www.example.com/",
            request=b"GET /a HTTP/1.1\r\n\r\n",
            response=b"HTTP/1.1 200 OK\r\n\r\nhello",
            http_status=200,
        )
        values.update(overrides)
        return CrawlRecord(**values)

    return _make
