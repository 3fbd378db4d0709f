"""Mutation payload exceptions."""

from __future__ import annotations

from querysync.exceptions.base import QuerySyncError


class PayloadError(QuerySyncError, ValueError):
    """Raised when a mutation payload cannot be interpreted at all."""
