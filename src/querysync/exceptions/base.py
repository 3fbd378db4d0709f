"""Root exception type."""

from __future__ import annotations


class QuerySyncError(Exception):
    """Base class for all querysync errors."""
