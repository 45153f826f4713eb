"""
Token ring discovery.

Asks the seed nodes, in order, for the keyspace's token ranges and returns
every endpoint that owns at least one range.
"""

from __future__ import annotations

from typing import List

from loguru import logger

from .connection import ClientFactory, Connection
from .errors import CCSOperationalError, NoReachableSeeds, map_rpc_error
from .models import ClusterConfig


class RingResolver:
    """Resolves the live endpoint set for one keyspace from a seed list."""

    def __init__(self, config: ClusterConfig, client_factory: ClientFactory):
        self._cfg = config
        self._factory = client_factory

    def resolve(self) -> List[str]:
        """Return endpoints in first-seen order, deduplicated.

        Raises:
            NoReachableSeeds: if no seed answered with a non-empty ring.
        """
        for seed in self._cfg.seeds:
            try:
                endpoints = self._query(seed)
            except CCSOperationalError as e:
                logger.error(
                    f"The following error occurred while trying to access the seed {seed}: {e}"
                )
                continue
            if not endpoints:
                logger.error(f"Seed {seed} reported an empty ring for {self._cfg.keyspace}")
                continue
            logger.info(f"Resolved {len(endpoints)} endpoint(s) via seed {seed}: {endpoints}")
            return endpoints

        raise NoReachableSeeds(self._cfg.seeds)

    def _query(self, seed: str) -> List[str]:
        conn = Connection.for_endpoint(seed, self._cfg, self._factory, bind_keyspace=False)
        with conn:
            try:
                ranges = conn.client.describe_ring(self._cfg.keyspace)
            except Exception as exc:
                raise map_rpc_error(exc) from exc

        seen: dict[str, None] = {}
        for token_range in ranges:
            for endpoint in token_range.endpoints:
                seen.setdefault(endpoint, None)
        return list(seen)
