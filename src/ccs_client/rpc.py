"""
Wire-level shapes and the RPC client interface of a Thrift-style column store.

The dataclasses mirror the structs of a column store IDL (Column,
SuperColumn, Mutation, ColumnPath, ...). RpcClient is the subset of calls
this client issues; a generated Thrift client, or an adapter around one,
satisfies it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional, Protocol, runtime_checkable

from .models import MutationBatch


class ConsistencyLevel(IntEnum):
    ONE = 1
    QUORUM = 2
    LOCAL_QUORUM = 3
    EACH_QUORUM = 4
    ALL = 5
    ANY = 6
    TWO = 7
    THREE = 8


# Single-replica acknowledgement for every write, delete and count.
WRITE_CONSISTENCY = ConsistencyLevel.ONE


@dataclass
class Column:
    name: bytes
    value: bytes
    timestamp: int


@dataclass
class SuperColumn:
    name: bytes
    columns: List[Column]


@dataclass
class ColumnOrSuperColumn:
    column: Optional[Column] = None
    super_column: Optional[SuperColumn] = None


@dataclass
class Mutation:
    column_or_supercolumn: ColumnOrSuperColumn


@dataclass
class ColumnPath:
    column_family: str
    super_column: Optional[bytes] = None
    column: Optional[bytes] = None


@dataclass
class ColumnParent:
    column_family: str
    super_column: Optional[bytes] = None


@dataclass
class SliceRange:
    start: bytes = b""
    finish: bytes = b""
    reversed: bool = False
    count: int = 100


@dataclass
class SlicePredicate:
    column_names: Optional[List[bytes]] = None
    slice_range: Optional[SliceRange] = None


@dataclass
class TokenRange:
    start_token: str
    end_token: str
    endpoints: List[str] = field(default_factory=list)


MutationMap = Dict[bytes, Dict[str, List[Mutation]]]


@runtime_checkable
class RpcClient(Protocol):
    """Calls issued against one store node."""

    def set_keyspace(self, keyspace: str) -> None: ...

    def describe_ring(self, keyspace: str) -> List[TokenRange]: ...

    def batch_mutate(self, mutation_map: MutationMap, consistency_level: int) -> None: ...

    def remove(
        self, key: bytes, column_path: ColumnPath, timestamp: int, consistency_level: int
    ) -> None: ...

    def get_count(
        self,
        key: bytes,
        column_parent: ColumnParent,
        predicate: SlicePredicate,
        consistency_level: int,
    ) -> int: ...


def build_mutation_map(batch: MutationBatch) -> MutationMap:
    """Shape a write batch as the argument of a single ``batch_mutate`` call.

    Flat columns become one Mutation each. Nested columns are grouped into
    one SuperColumn per group, in first-seen order.
    """
    if batch.delete:
        raise ValueError("delete batches are submitted with remove(), not batch_mutate()")

    mutations: List[Mutation] = []
    supers: Dict[bytes, SuperColumn] = {}
    for cv in batch.columns:
        col = Column(name=cv.name, value=cv.value, timestamp=cv.timestamp)
        if cv.super_column is None:
            mutations.append(Mutation(ColumnOrSuperColumn(column=col)))
            continue
        sc = supers.get(cv.super_column)
        if sc is None:
            sc = supers[cv.super_column] = SuperColumn(name=cv.super_column, columns=[])
            mutations.append(Mutation(ColumnOrSuperColumn(super_column=sc)))
        sc.columns.append(col)

    return {batch.row_key: {batch.column_family: mutations}}


def row_path(batch: MutationBatch) -> ColumnPath:
    """ColumnPath addressing the whole row within the batch's column family."""
    return ColumnPath(column_family=batch.column_family)


def existence_predicate() -> SlicePredicate:
    """Cheapest predicate for a count query: stop after one column."""
    return SlicePredicate(slice_range=SliceRange(count=1))
