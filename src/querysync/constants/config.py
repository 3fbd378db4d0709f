"""Configuration defaults and filenames."""

from __future__ import annotations

CONFIG_FILENAME: str = "querysync.yaml"

DEFAULT_ENDPOINT: str = "/api/model"
DEFAULT_OPTIMISTIC_UPDATE: bool = False
DEFAULT_INVALIDATE_QUERIES: bool = True
DEFAULT_TIMEOUT_SECONDS: float = 30.0

INSERT_APPEND: str = "append"
INSERT_PREPEND: str = "prepend"
VALID_INSERT_POSITIONS: frozenset[str] = frozenset({INSERT_APPEND, INSERT_PREPEND})
DEFAULT_INSERT_POSITION: str = INSERT_APPEND

ALLOWED_CONFIG_KEYS: frozenset[str] = frozenset(
    {
        "endpoint",
        "optimistic_update",
        "invalidate_queries",
        "insert_position",
        "timeout_seconds",
        "headers",
    }
)
