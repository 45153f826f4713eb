"""
Retry policy for submissions over a pooled writer's connection.

Two behaviours are supported through one type:

- unbounded (``max_attempts=None``): the legacy "never give up" loop, a
  fixed delay between resubmissions until the store accepts the batch;
- bounded: fail after ``max_attempts`` submissions, for time-sensitive
  pipelines.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Callable, Optional

from ccs_client.errors import RetryableError
from ccs_client.models import ClusterConfig


def default_retry_classifier(exc: Exception) -> bool:
    """Only transport-class failures are worth resubmitting."""
    return isinstance(exc, RetryableError)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: Optional[int] = None
    initial_backoff_ms: int = 5000
    max_backoff_ms: int = 5000
    backoff_multiplier: float = 1.0
    jitter: bool = False
    classify_retryable: Callable[[Exception], bool] = field(default=default_retry_classifier)

    def __post_init__(self):
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1 or None")
        if self.initial_backoff_ms < 0 or self.max_backoff_ms < 0:
            raise ValueError("backoff must be >= 0")

    @classmethod
    def never_give_up(
        cls,
        delay_ms: int = 5000,
        *,
        multiplier: float = 1.0,
        max_backoff_ms: Optional[int] = None,
        jitter: bool = False,
    ) -> "RetryPolicy":
        return cls(
            max_attempts=None,
            initial_backoff_ms=delay_ms,
            max_backoff_ms=delay_ms if max_backoff_ms is None else max_backoff_ms,
            backoff_multiplier=multiplier,
            jitter=jitter,
        )

    @classmethod
    def fail_fast(
        cls,
        max_attempts: int = 3,
        delay_ms: int = 5000,
        *,
        multiplier: float = 1.0,
        max_backoff_ms: Optional[int] = None,
        jitter: bool = False,
    ) -> "RetryPolicy":
        return cls(
            max_attempts=max_attempts,
            initial_backoff_ms=delay_ms,
            max_backoff_ms=delay_ms if max_backoff_ms is None else max_backoff_ms,
            backoff_multiplier=multiplier,
            jitter=jitter,
        )

    @classmethod
    def from_config(cls, config: ClusterConfig) -> "RetryPolicy":
        backoff = dict(
            multiplier=config.submit_backoff_multiplier,
            max_backoff_ms=config.submit_max_backoff_ms,
            jitter=config.submit_retry_jitter,
        )
        if config.retry_mode == "bounded":
            return cls.fail_fast(
                config.max_submit_attempts, config.submit_retry_delay_ms, **backoff
            )
        return cls.never_give_up(config.submit_retry_delay_ms, **backoff)

    @property
    def bounded(self) -> bool:
        return self.max_attempts is not None

    def should_retry(self, attempt: int, exc: Exception) -> bool:
        """``attempt`` is the 1-based number of the submission that just failed."""
        if not self.classify_retryable(exc):
            return False
        return self.max_attempts is None or attempt < self.max_attempts

    def next_backoff_ms(self, attempt: int) -> int:
        """Delay before resubmission ``attempt + 1``; capped, optionally jittered."""
        base = self.initial_backoff_ms * (self.backoff_multiplier ** max(0, attempt - 1))
        capped = min(base, self.max_backoff_ms)
        if self.jitter:
            # 50-100% of the capped value
            return int(capped * (0.5 + random.random() * 0.5))
        return int(capped)
