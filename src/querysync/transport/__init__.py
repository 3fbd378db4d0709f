"""Transport interface and the httpx-based reference implementation."""

from __future__ import annotations

from querysync.transport.http import HttpTransport
from querysync.transport.protocol import Transport
from querysync.transport.urls import make_url, method_for, unwrap_envelope

__all__ = [
    "HttpTransport",
    "Transport",
    "make_url",
    "method_for",
    "unwrap_envelope",
]
