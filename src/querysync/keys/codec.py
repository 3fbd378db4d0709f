"""Query key codec.

A key's identity is ``(model, operation, args_fingerprint, infinite,
optimistic)``. The fingerprint is the canonical JSON of ``args`` with object
keys sorted at every depth, so argument order never changes identity and the
original arguments can be decoded back for projection analysis.
"""

from __future__ import annotations

import datetime as dt
import hashlib
import json
from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from uuid import UUID

from querysync.constants.keys import FINGERPRINT_SEPARATORS, KEY_NAMESPACE, UNDEFINED_ARGS_FINGERPRINT


@dataclass(frozen=True)
class QueryKey:
    """Address of one cached query result."""

    model: str
    operation: str
    args_fingerprint: str = UNDEFINED_ARGS_FINGERPRINT
    infinite: bool = False
    optimistic: bool = False

    @property
    def args(self) -> Any:
        """Decoded query arguments; ``None`` when the query had none."""
        return decode_args(self.args_fingerprint)

    def as_tuple(self) -> tuple[str, str, str, str, bool, bool]:
        return (
            KEY_NAMESPACE,
            self.model,
            self.operation,
            self.args_fingerprint,
            self.infinite,
            self.optimistic,
        )


def _json_default(value: Any) -> Any:
    if isinstance(value, dt.datetime | dt.date | dt.time):
        return value.isoformat()
    if isinstance(value, Decimal | UUID):
        return str(value)
    if isinstance(value, set | frozenset):
        return sorted(value, key=repr)
    if isinstance(value, tuple):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def fingerprint(args: Any) -> str:
    """Return the canonical serialization of ``args``."""
    if args is None:
        return UNDEFINED_ARGS_FINGERPRINT
    return json.dumps(
        args,
        sort_keys=True,
        separators=FINGERPRINT_SEPARATORS,
        ensure_ascii=False,
        default=_json_default,
    )


def decode_args(args_fingerprint: str) -> Any:
    if args_fingerprint == UNDEFINED_ARGS_FINGERPRINT:
        return None
    return json.loads(args_fingerprint)


def encode(
    model: str,
    operation: str,
    args: Any = None,
    *,
    infinite: bool = False,
    optimistic: bool = False,
) -> QueryKey:
    """Build the cache key for a model query."""
    return QueryKey(
        model=model,
        operation=operation,
        args_fingerprint=fingerprint(args),
        infinite=infinite,
        optimistic=optimistic,
    )


def digest(key: QueryKey) -> str:
    """Return a flat sha256 string for hosts that need string keys."""
    blob = json.dumps(key.as_tuple(), separators=FINGERPRINT_SEPARATORS).encode("utf-8")
    return hashlib.sha256(blob).hexdigest()


def is_query_key(value: object) -> bool:
    return isinstance(value, QueryKey)
