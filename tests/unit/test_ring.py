"""
Unit tests for RingResolver.
"""

import pytest
from thrift.transport.TTransport import TTransportException

from ccs_client.errors import NoReachableSeeds
from ccs_client.ring import RingResolver


def test_unreachable_seed_is_skipped(fake_store, client_factory, cluster_config):
    """h1 down, h2 reports {h2, h3}: resolver returns {h2, h3}."""
    fake_store.down.add("h1")
    fake_store.ring("h2", ["h2", "h3"], ["h3", "h2"])

    endpoints = RingResolver(cluster_config, client_factory).resolve()

    assert sorted(endpoints) == ["h2", "h3"]
    assert len(endpoints) == 2


def test_union_of_all_token_ranges(fake_store, client_factory, cluster_config):
    fake_store.ring("h1", ["a", "b"], ["b", "c"], ["d"])

    endpoints = RingResolver(cluster_config, client_factory).resolve()

    assert endpoints == ["a", "b", "c", "d"]


def test_first_answering_seed_wins(fake_store, client_factory, cluster_config):
    fake_store.ring("h1", ["x"])
    fake_store.ring("h2", ["y"])

    assert RingResolver(cluster_config, client_factory).resolve() == ["x"]
    assert fake_store.open_attempts["h2"] == 0


def test_rejecting_seed_is_skipped(fake_store, client_factory, cluster_config):
    fake_store.rejecting.add("h1")
    fake_store.ring("h2", ["h2"])

    assert RingResolver(cluster_config, client_factory).resolve() == ["h2"]


def test_transport_error_during_query_is_skipped(fake_store, client_factory, cluster_config):
    fake_store.ring("h1", ["h1"])
    fake_store.ring("h2", ["h2"])
    fake_store.fail_next(TTransportException(TTransportException.END_OF_FILE, "reset"))

    assert RingResolver(cluster_config, client_factory).resolve() == ["h2"]


def test_seed_connections_are_not_bound_to_keyspace(fake_store, client_factory, cluster_config):
    fake_store.ring("h1", ["h1"])
    RingResolver(cluster_config, client_factory).resolve()
    assert fake_store.keyspaces == []


def test_all_seeds_failing_is_fatal(fake_store, client_factory, cluster_config):
    fake_store.down.update({"h1"})
    fake_store.ring("h2")  # reachable, but empty ring

    with pytest.raises(NoReachableSeeds) as exc_info:
        RingResolver(cluster_config, client_factory).resolve()

    assert exc_info.value.seeds == ["h1", "h2"]
