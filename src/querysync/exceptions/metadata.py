"""Model metadata exceptions."""

from __future__ import annotations

from querysync.exceptions.base import QuerySyncError


class MetadataError(QuerySyncError, ValueError):
    """Raised when a model metadata document is malformed or inconsistent."""
