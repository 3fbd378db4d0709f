"""Mutation state machine exceptions."""

from __future__ import annotations

from querysync.exceptions.base import QuerySyncError


class InvalidTransitionError(QuerySyncError, RuntimeError):
    """Raised when a mutation is driven through a transition the table does not allow."""
