"""
Crawl Column Store Client Library

Turns harvested crawl records into column mutations for a ring-partitioned,
Thrift-style column store.

Usage:
    from ccs_client import ClusterConfig, CrawlRecord, RecordMapper, create_key

    cfg = ClusterConfig(seeds="node1,node2", keyspace="crawler")
    batch = RecordMapper(cfg).map(CrawlRecord(url="http://www.example.com/", ...))
"""

from .connection import Connection
from .errors import (
    CCSOperationalError,
    ConfigurationError,
    ConnectFailed,
    EncodingError,
    InvalidInput,
    NoReachableSeeds,
    PoolClosed,
    PoolError,
    PoolExhausted,
    RetryableError,
    StoreUnavailable,
    TransportError,
    WriteError,
)
from .mapper import RecordMapper, map_record
from .models import ClusterConfig, ColumnNames, ColumnValue, CrawlRecord, MutationBatch
from .ring import RingResolver
from .rowkey import create_key, derive_row_key

__version__ = "1.0.0"
__all__ = [
    "ClusterConfig",
    "ColumnNames",
    "ColumnValue",
    "CrawlRecord",
    "MutationBatch",
    "RecordMapper",
    "map_record",
    "create_key",
    "derive_row_key",
    "Connection",
    "RingResolver",
    "CCSOperationalError",
    "ConfigurationError",
    "ConnectFailed",
    "EncodingError",
    "InvalidInput",
    "NoReachableSeeds",
    "PoolClosed",
    "PoolError",
    "PoolExhausted",
    "RetryableError",
    "StoreUnavailable",
    "TransportError",
    "WriteError",
]
