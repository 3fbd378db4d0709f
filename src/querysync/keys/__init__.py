"""Canonical addressing of cached query results."""

from __future__ import annotations

from querysync.keys.codec import QueryKey, decode_args, digest, encode, fingerprint, is_query_key

__all__ = [
    "QueryKey",
    "decode_args",
    "digest",
    "encode",
    "fingerprint",
    "is_query_key",
]
