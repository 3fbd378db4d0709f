"""Configuration-related exceptions."""

from __future__ import annotations

from querysync.exceptions.base import QuerySyncError


class ConfigError(QuerySyncError, ValueError):
    """Raised when client configuration is invalid."""
