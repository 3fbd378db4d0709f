"""Shared exception hierarchy for querysync."""

from __future__ import annotations

from .base import QuerySyncError
from .config import ConfigError
from .metadata import MetadataError
from .payload import PayloadError
from .state import InvalidTransitionError
from .transport import TransportError

__all__ = [
    "ConfigError",
    "InvalidTransitionError",
    "MetadataError",
    "PayloadError",
    "QuerySyncError",
    "TransportError",
]
