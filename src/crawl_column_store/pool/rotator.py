"""
Round-robin rotation over the live endpoint set.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Iterable, List


class EndpointRotator:
    """Deduplicated endpoint queue handing out endpoints round-robin.

    Endpoints are kept in sorted order so the rotation is stable regardless
    of the order the ring was reported in. ``next()`` is a single locked
    pop-head/push-tail step, so concurrent callers never see an endpoint
    duplicated or dropped within a cycle.
    """

    def __init__(self, endpoints: Iterable[str]):
        self._lock = threading.Lock()
        self._queue: deque[str] = self._build(endpoints)

    @staticmethod
    def _build(endpoints: Iterable[str]) -> deque:
        unique = sorted({e.strip() for e in endpoints if e and e.strip()})
        if not unique:
            raise ValueError("EndpointRotator needs at least one endpoint")
        return deque(unique)

    def next(self) -> str:
        with self._lock:
            head = self._queue.popleft()
            self._queue.append(head)
            return head

    def replace(self, endpoints: Iterable[str]) -> None:
        """Swap in a freshly resolved endpoint set."""
        queue = self._build(endpoints)
        with self._lock:
            self._queue = queue

    def snapshot(self) -> List[str]:
        with self._lock:
            return list(self._queue)

    def __len__(self) -> int:
        with self._lock:
            return len(self._queue)

    def __contains__(self, endpoint: object) -> bool:
        with self._lock:
            return endpoint in self._queue
