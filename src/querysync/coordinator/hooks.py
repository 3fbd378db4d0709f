"""Per-entry override of the default optimistic patch."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, TypeAlias


class ProviderKind(StrEnum):
    SKIP = "Skip"
    PROCEED_DEFAULT = "ProceedDefault"
    UPDATE = "Update"


@dataclass(frozen=True)
class ProviderResult:
    """Decision returned by an optimistic data provider for one cache entry."""

    kind: ProviderKind
    data: Any = None

    @classmethod
    def skip(cls) -> ProviderResult:
        return cls(ProviderKind.SKIP)

    @classmethod
    def proceed_default(cls) -> ProviderResult:
        return cls(ProviderKind.PROCEED_DEFAULT)

    @classmethod
    def update(cls, data: Any) -> ProviderResult:
        return cls(ProviderKind.UPDATE, data)


@dataclass(frozen=True)
class OptimisticContext:
    """What a provider sees about the cached query and the pending mutation.

    ``current_data`` is a private copy; providers may build on it freely.
    """

    query_model: str
    query_operation: str
    query_args: Any
    current_data: Any
    mutation_model: str
    mutation_operation: str
    mutation_args: Any


OptimisticDataProvider: TypeAlias = Callable[[OptimisticContext], ProviderResult | dict[str, Any] | None]


def coerce_result(raw: Any) -> ProviderResult:
    """Accept a ProviderResult, a ``{"kind": ..., "data": ...}`` mapping, or None."""
    if raw is None:
        return ProviderResult.proceed_default()
    if isinstance(raw, ProviderResult):
        return raw
    if isinstance(raw, dict) and "kind" in raw:
        try:
            kind = ProviderKind(raw["kind"])
        except ValueError as exc:
            raise ValueError(f"Unknown optimistic provider result kind: {raw['kind']!r}") from exc
        return ProviderResult(kind, raw.get("data"))
    raise TypeError(f"Optimistic data provider returned {type(raw).__name__}, expected ProviderResult")
