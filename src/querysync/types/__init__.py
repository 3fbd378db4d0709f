"""Shared type aliases for querysync."""

from .cache import InfiniteData
from .common import JsonObject, JsonScalar, JsonValue

__all__ = [
    "InfiniteData",
    "JsonObject",
    "JsonScalar",
    "JsonValue",
]
