"""
Environment-based settings for scripts and the CLI.

Library code only ever sees a ClusterConfig; this module is how an
operator-facing entry point builds one from ``CCS_*`` variables.
"""

from __future__ import annotations

import importlib
from functools import lru_cache
from typing import Optional

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .connection import ClientFactory
from .errors import ConfigurationError
from .models import ClusterConfig, Layout, RetryMode, SerializerName


class CCSSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CCS_", env_file=".env", case_sensitive=False, extra="ignore"
    )

    SEEDS: str = ""
    PORT: int = 9160
    KEYSPACE: str = ""
    COLUMN_FAMILY: str = "crawl"
    ENCODING: str = "utf-8"
    FRAMED_TRANSPORT: bool = False
    REMOVE_MISSING_PAGES: bool = False
    LAYOUT: Layout = "flat"
    SERIALIZER: SerializerName = "identity"
    POOL_MAX_ACTIVE: int = 5
    POOL_MAX_WAIT_MS: int = 5000
    SOCKET_TIMEOUT_MS: Optional[int] = None
    RETRY_MODE: RetryMode = "unbounded"
    MAX_SUBMIT_ATTEMPTS: int = 3
    SUBMIT_RETRY_DELAY_MS: int = 5000
    SUBMIT_BACKOFF_MULTIPLIER: float = 1.0
    SUBMIT_MAX_BACKOFF_MS: Optional[int] = None
    SUBMIT_RETRY_JITTER: bool = False
    RETRYABLE_ERRORS: str = "TimedOutException,UnavailableException"
    # "package.module:attr" resolving to a callable(protocol) -> RpcClient
    RPC_CLIENT: str = ""

    def to_cluster_config(self, **overrides) -> ClusterConfig:
        values = dict(
            seeds=self.SEEDS,
            port=self.PORT,
            keyspace=self.KEYSPACE,
            column_family=self.COLUMN_FAMILY,
            encoding=self.ENCODING,
            framed_transport=self.FRAMED_TRANSPORT,
            remove_missing_pages=self.REMOVE_MISSING_PAGES,
            layout=self.LAYOUT,
            serializer=self.SERIALIZER,
            pool_max_active=self.POOL_MAX_ACTIVE,
            pool_max_wait_ms=self.POOL_MAX_WAIT_MS,
            socket_timeout_ms=self.SOCKET_TIMEOUT_MS,
            retry_mode=self.RETRY_MODE,
            max_submit_attempts=self.MAX_SUBMIT_ATTEMPTS,
            submit_retry_delay_ms=self.SUBMIT_RETRY_DELAY_MS,
            submit_backoff_multiplier=self.SUBMIT_BACKOFF_MULTIPLIER,
            submit_max_backoff_ms=self.SUBMIT_MAX_BACKOFF_MS,
            submit_retry_jitter=self.SUBMIT_RETRY_JITTER,
            retryable_errors=self.RETRYABLE_ERRORS,
        )
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return ClusterConfig(**values)
        except ValidationError as e:
            raise ConfigurationError(str(e)) from e


def load_client_factory(path: str) -> ClientFactory:
    """Import ``package.module:attr`` (or ``package.module.attr``)."""
    if not path:
        raise ConfigurationError("No RPC client configured; set CCS_RPC_CLIENT")
    module_name, sep, attr = path.partition(":")
    if not sep:
        module_name, _, attr = path.rpartition(".")
    if not module_name or not attr:
        raise ConfigurationError(f"Invalid RPC client path: {path!r}")
    try:
        module = importlib.import_module(module_name)
        factory = getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(f"Cannot load RPC client {path!r}: {e}") from e
    if not callable(factory):
        raise ConfigurationError(f"RPC client {path!r} is not callable")
    return factory


@lru_cache()
def get_settings() -> CCSSettings:
    return CCSSettings()
