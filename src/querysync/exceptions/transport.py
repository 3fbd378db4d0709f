"""Transport exceptions."""

from __future__ import annotations

from typing import Any

from querysync.exceptions.base import QuerySyncError


class TransportError(QuerySyncError):
    """Raised when a request fails at the network level or returns a non-2xx status.

    ``status`` is ``None`` for failures that never produced a response.
    """

    def __init__(self, message: str, *, status: int | None = None, body: Any = None) -> None:
        super().__init__(message)
        self.status = status
        self.body = body

    def __str__(self) -> str:
        base = super().__str__()
        if self.status is None:
            return base
        return f"{base} (status {self.status})"
