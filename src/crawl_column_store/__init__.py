"""Crawl Column Store runtime

Pooled, retrying writers and the pipeline-facing session built on
``ccs_client``.
"""

from .pool import (
    ColumnWriter,
    ColumnWriterFactory,
    EndpointRotator,
    PoolStats,
    RetryPolicy,
    WriterPool,
    default_retry_classifier,
)
from .session import ANNOTATION_UNWRITTEN, ColumnStoreSession, SubmitResult

__all__ = [
    "ColumnStoreSession",
    "SubmitResult",
    "ANNOTATION_UNWRITTEN",
    "ColumnWriter",
    "ColumnWriterFactory",
    "EndpointRotator",
    "PoolStats",
    "RetryPolicy",
    "WriterPool",
    "default_retry_classifier",
]
