"""
Unit tests for wire-shape helpers.
"""

import pytest

from ccs_client.mapper import map_record
from ccs_client.models import ClusterConfig, MutationBatch
from ccs_client.rpc import RpcClient, build_mutation_map, existence_predicate, row_path


def test_flat_batch_is_one_mutation_per_column(make_record):
    cfg = ClusterConfig(seeds="h1", keyspace="crawler")
    batch = map_record(make_record(), cfg)

    mm = build_mutation_map(batch)

    assert list(mm) == [batch.row_key]
    mutations = mm[batch.row_key]["crawl"]
    assert len(mutations) == len(batch.columns)
    first = mutations[0].column_or_supercolumn.column
    assert first.name == b"curi:url"
    assert first.timestamp == batch.timestamp


def test_nested_batch_groups_into_super_columns(make_record):
    cfg = ClusterConfig(seeds="h1", keyspace="crawler", layout="nested")
    batch = map_record(make_record(), cfg)

    mutations = build_mutation_map(batch)[batch.row_key]["crawl"]

    supers = [m.column_or_supercolumn.super_column for m in mutations]
    assert [s.name for s in supers] == [b"curi", b"content"]
    assert [c.name for c in supers[1].columns] == [b"raw_data"]
    assert sum(len(s.columns) for s in supers) == len(batch.columns)


def test_delete_batch_cannot_be_mutated():
    batch = MutationBatch(row_key=b"k", column_family="crawl", timestamp=1, delete=True)
    with pytest.raises(ValueError):
        build_mutation_map(batch)
    assert row_path(batch).column_family == "crawl"


def test_existence_predicate_stops_after_one_column():
    assert existence_predicate().slice_range.count == 1


def test_rpc_client_protocol_is_structural():
    class Client:
        def set_keyspace(self, keyspace): ...

        def describe_ring(self, keyspace): ...

        def batch_mutate(self, mutation_map, consistency_level): ...

        def remove(self, key, column_path, timestamp, consistency_level): ...

        def get_count(self, key, column_parent, predicate, consistency_level): ...

    assert isinstance(Client(), RpcClient)
    assert not isinstance(object(), RpcClient)
