"""Writer pool (bounded lending of per-endpoint writers)

- EndpointRotator: round-robin over the resolved ring
- RetryPolicy: unbounded ("never give up") or bounded resubmission
- ColumnWriter / ColumnWriterFactory: one connection per writer
- WriterPool: bounded borrow/release with a wait ceiling
"""

from .policy import RetryPolicy, default_retry_classifier
from .rotator import EndpointRotator
from .writer import ColumnWriter, ColumnWriterFactory
from .writer_pool import PoolStats, WriterPool

__all__ = [
    "RetryPolicy",
    "default_retry_classifier",
    "EndpointRotator",
    "ColumnWriter",
    "ColumnWriterFactory",
    "PoolStats",
    "WriterPool",
]
