"""
Pydantic data models for the Crawl Column Store client.

ClusterConfig is the immutable session configuration; CrawlRecord is one
harvested item; ColumnValue and MutationBatch describe what gets committed
for a single row.
"""

from __future__ import annotations

import codecs
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_THRIFT_PORT = 9160
CRAWL_COLUMN_FAMILY = "crawl"
ENCODING_SCHEME = "utf-8"

Layout = Literal["flat", "nested"]
SerializerName = Literal["identity", "gzip", "zlib"]
RetryMode = Literal["unbounded", "bounded"]


class ColumnNames(BaseModel):
    """Logical column groups and the qualifier used for each record field."""

    model_config = ConfigDict(frozen=True)

    curi_prefix: str = "curi"
    content_prefix: str = "content"

    url: str = "url"
    ip: str = "ip"
    is_seed: str = "is-seed"
    path_from_seed: str = "path-from-seed"
    via: str = "via"
    processed_at: str = "processed_at"
    request: str = "request"
    content: str = "raw_data"

    @field_validator("*")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("column names must not be blank")
        return v

    def group_of(self, field: str) -> str:
        return self.content_prefix if field == "content" else self.curi_prefix

    def flat_name(self, field: str) -> str:
        return f"{self.group_of(field)}:{getattr(self, field)}"


class ClusterConfig(BaseModel):
    """Immutable settings for one crawl/write session."""

    model_config = ConfigDict(frozen=True)

    seeds: list[str]
    port: int = DEFAULT_THRIFT_PORT
    keyspace: str
    column_family: str = CRAWL_COLUMN_FAMILY
    columns: ColumnNames = Field(default_factory=ColumnNames)
    encoding: str = ENCODING_SCHEME
    framed_transport: bool = False
    remove_missing_pages: bool = False
    layout: Layout = "flat"
    serializer: SerializerName = "identity"

    # ---- pool ----
    pool_max_active: int = 5
    pool_max_wait_ms: int = 5000

    # ---- connection handshake ----
    connect_attempts: int = 3
    connect_retry_delay_ms: int = 1000
    socket_timeout_ms: Optional[int] = None

    # ---- submission retry ----
    # unbounded: legacy "never give up" loop; bounded: fail after max_submit_attempts
    retry_mode: RetryMode = "unbounded"
    max_submit_attempts: int = 3
    submit_retry_delay_ms: int = 5000
    # multiplier 1.0 keeps the legacy fixed delay; None caps growth at submit_retry_delay_ms
    submit_backoff_multiplier: float = 1.0
    submit_max_backoff_ms: Optional[int] = None
    submit_retry_jitter: bool = False
    # store exception class names retried without reconnecting
    retryable_errors: tuple[str, ...] = ("TimedOutException", "UnavailableException")

    @field_validator("seeds", mode="before")
    @classmethod
    def _split_seeds(cls, v):
        if isinstance(v, str):
            v = v.split(",")
        return [s.strip() for s in v if s and s.strip()]

    @field_validator("seeds")
    @classmethod
    def _seeds_non_empty(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("A seed list was never set; at least one seed host is required")
        return v

    @field_validator("keyspace", "column_family")
    @classmethod
    def _required_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("keyspace and column family must be non-empty")
        return v.strip()

    @field_validator("port")
    @classmethod
    def _valid_port(cls, v: int) -> int:
        if not (0 < v < 65536):
            raise ValueError(f"Invalid port: {v}")
        return v

    @field_validator("encoding")
    @classmethod
    def _known_codec(cls, v: str) -> str:
        try:
            codecs.lookup(v)
        except LookupError:
            raise ValueError(f"Unknown encoding: {v}")
        return v

    @field_validator("pool_max_active", "connect_attempts", "max_submit_attempts")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("pool_max_wait_ms", "connect_retry_delay_ms", "submit_retry_delay_ms")
    @classmethod
    def _non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @field_validator("submit_backoff_multiplier")
    @classmethod
    def _valid_multiplier(cls, v: float) -> float:
        if v < 1.0:
            raise ValueError("submit_backoff_multiplier must be >= 1.0")
        return v

    @field_validator("retryable_errors", mode="before")
    @classmethod
    def _split_names(cls, v):
        if isinstance(v, str):
            v = v.split(",")
        return tuple(s.strip() for s in v if s and s.strip())

    @model_validator(mode="after")
    def _backoff_cap(self) -> "ClusterConfig":
        cap = self.submit_max_backoff_ms
        if cap is not None and cap < self.submit_retry_delay_ms:
            raise ValueError("submit_max_backoff_ms must be >= submit_retry_delay_ms")
        return self


class CrawlRecord(BaseModel):
    """One harvested item as handed over by the crawl pipeline."""

    url: str
    remote_ip: str = ""
    fetch_time_ms: int
    is_seed: bool = False
    path_from_seed: Optional[str] = None
    via: Optional[str] = None
    request: bytes = b""
    response: bytes = b""
    http_status: int = 0

    @field_validator("fetch_time_ms")
    @classmethod
    def _representable_time(cls, v: int) -> int:
        try:
            datetime.fromtimestamp(v / 1000.0, tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            raise ValueError(f"fetch_time_ms out of range: {v}")
        return v

    @property
    def recorded_size(self) -> int:
        return len(self.request) + len(self.response)


class ColumnValue(BaseModel):
    """One (name, bytes, timestamp) unit to commit."""

    model_config = ConfigDict(frozen=True)

    name: bytes
    value: bytes
    timestamp: int  # microseconds
    super_column: Optional[bytes] = None


class MutationBatch(BaseModel):
    """Column values, or a single delete instruction, for one row."""

    model_config = ConfigDict(frozen=True)

    row_key: bytes
    column_family: str
    timestamp: int
    columns: tuple[ColumnValue, ...] = ()
    delete: bool = False

    @model_validator(mode="after")
    def _write_xor_delete(self):
        if self.delete and self.columns:
            raise ValueError("a delete batch cannot carry column values")
        if not self.delete and not self.columns:
            raise ValueError("a write batch needs at least one column value")
        return self

    @property
    def payload_size(self) -> int:
        return sum(len(c.value) for c in self.columns)
