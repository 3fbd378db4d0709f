"""Config data model for querysync clients."""

from __future__ import annotations

from dataclasses import dataclass, field

from querysync.constants.config import (
    DEFAULT_ENDPOINT,
    DEFAULT_INSERT_POSITION,
    DEFAULT_INVALIDATE_QUERIES,
    DEFAULT_OPTIMISTIC_UPDATE,
    DEFAULT_TIMEOUT_SECONDS,
)


@dataclass(frozen=True)
class QuerySyncConfig:
    """Resolved client config.

    ``optimistic_update`` and ``invalidate_queries`` are the defaults applied to
    mutations that do not set them explicitly.
    """

    endpoint: str = DEFAULT_ENDPOINT
    optimistic_update: bool = DEFAULT_OPTIMISTIC_UPDATE
    invalidate_queries: bool = DEFAULT_INVALIDATE_QUERIES
    insert_position: str = DEFAULT_INSERT_POSITION
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    headers: tuple[tuple[str, str], ...] = field(default=())

    @property
    def header_map(self) -> dict[str, str]:
        """Extra request headers as a plain dict."""
        return dict(self.headers)
