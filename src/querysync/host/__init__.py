"""Cache host interface and the in-memory reference host."""

from __future__ import annotations

from querysync.host.memory import CacheRecord, InMemoryCacheHost, QueryResult, QueryStatus
from querysync.host.protocol import CacheHost

__all__ = [
    "CacheHost",
    "CacheRecord",
    "InMemoryCacheHost",
    "QueryResult",
    "QueryStatus",
]
