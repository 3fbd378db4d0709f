"""Interface the engine expects from a reactive cache store."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Hashable
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class CacheHost(Protocol):
    """Key-value cache with refetch support.

    ``get`` must return the stored object itself so the coordinator can tell
    whether an entry still holds the value it wrote. Keys that are not
    QueryKeys may be listed; the engine ignores them.
    """

    def get(self, key: Hashable) -> Any: ...

    def set(self, key: Hashable, value: Any) -> None: ...

    def invalidate(self, key: Hashable) -> Awaitable[Any] | None: ...

    def list_keys(self, predicate: Callable[[Hashable], bool] | None = None) -> list[Hashable]: ...
