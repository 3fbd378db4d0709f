"""Interface for sending model operations to the server."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Transport(Protocol):
    async def send(self, url: str, method: str, payload: Any = None) -> Any:
        """Issue the request and return the decoded ``{"data": ...}`` envelope.

        Raises TransportError on network failures and non-2xx responses.
        """
        ...
