"""Transport implementation on httpx."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

import httpx

from querysync.config.model import QuerySyncConfig
from querysync.constants.config import DEFAULT_TIMEOUT_SECONDS
from querysync.constants.transport import ARGS_IN_QUERY_METHODS, ERROR_BODY_SNIPPET_LIMIT
from querysync.exceptions import TransportError
from querysync.keys.codec import fingerprint

logger = logging.getLogger(__name__)


def _error_body(response: httpx.Response) -> Any:
    """Decoded JSON error body, or a truncated text snippet."""
    try:
        return response.json()
    except ValueError:
        return response.text[:ERROR_BODY_SNIPPET_LIMIT]


class HttpTransport:
    """Sends model operations with an ``httpx.AsyncClient``.

    Args:
        base_url: Prefix for relative request URLs.
        headers: Extra headers sent with every request.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (``httpx.MockTransport`` in tests).
        client: Use an existing client instead of creating one; it is not
            closed by ``aclose``.
    """

    def __init__(
        self,
        *,
        base_url: str = "",
        headers: Mapping[str, str] | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            headers=dict(headers or {}),
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: QuerySyncConfig, **kwargs: Any) -> HttpTransport:
        kwargs.setdefault("headers", config.header_map)
        kwargs.setdefault("timeout", config.timeout_seconds)
        return cls(**kwargs)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpTransport:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def send(self, url: str, method: str, payload: Any = None) -> Any:
        method = method.upper()
        request_kwargs: dict[str, Any] = {}
        if payload is not None and method not in ARGS_IN_QUERY_METHODS:
            request_kwargs["content"] = fingerprint(payload).encode("utf-8")
            request_kwargs["headers"] = {"content-type": "application/json"}

        logger.debug("%s %s", method, url)
        try:
            response = await self._client.request(method, url, **request_kwargs)
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc

        if response.status_code >= 400:
            raise TransportError(
                f"{method} {url} returned an error",
                status=response.status_code,
                body=_error_body(response),
            )
        if not response.content:
            return None
        try:
            return response.json()
        except json.JSONDecodeError as exc:
            raise TransportError(
                f"{method} {url} returned invalid JSON",
                status=response.status_code,
                body=response.text[:ERROR_BODY_SNIPPET_LIMIT],
            ) from exc
