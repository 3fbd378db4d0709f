"""In-process cache host with subscriptions, fetchers and staleness tracking."""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, TypeAlias

from querysync.exceptions import TransportError

logger = logging.getLogger(__name__)

Fetcher: TypeAlias = Callable[[], Awaitable[Any]]
Listener: TypeAlias = Callable[[Hashable, Any], None]


class QueryStatus(StrEnum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class CacheRecord:
    data: Any = None
    status: QueryStatus = QueryStatus.PENDING
    error: BaseException | None = None
    stale: bool = False
    fetcher: Fetcher | None = None
    fetch_count: int = 0


@dataclass(frozen=True)
class QueryResult:
    """Snapshot of one cache entry as seen by a consumer."""

    data: Any
    status: QueryStatus
    error: BaseException | None = None
    is_stale: bool = False
    has_next_page: bool = False

    @property
    def is_success(self) -> bool:
        return self.status is QueryStatus.SUCCESS

    @property
    def is_error(self) -> bool:
        return self.status is QueryStatus.ERROR

    @property
    def is_pending(self) -> bool:
        return self.status is QueryStatus.PENDING


class InMemoryCacheHost:
    """Dictionary-backed cache host.

    Entries registered through ``fetch`` remember their fetcher; invalidating
    such an entry schedules a refetch and returns the task. Invalidations
    share a refetch that has not reached its fetcher yet; one that is
    already fetching gets a fresh fetch queued behind it.
    """

    def __init__(self) -> None:
        self._records: dict[Hashable, CacheRecord] = {}
        self._listeners: dict[Hashable, list[Listener]] = {}
        self._refetches: dict[Hashable, asyncio.Task[None]] = {}
        # Scheduled refetches that have not called their fetcher yet.
        self._queued: dict[Hashable, asyncio.Task[None]] = {}

    def get(self, key: Hashable) -> Any:
        record = self._records.get(key)
        return record.data if record is not None else None

    def set(self, key: Hashable, value: Any) -> None:
        record = self._records.setdefault(key, CacheRecord())
        unchanged = record.data is value and record.status is QueryStatus.SUCCESS
        record.data = value
        record.status = QueryStatus.SUCCESS
        record.error = None
        if not unchanged:
            self._notify(key, value)

    def has(self, key: Hashable) -> bool:
        return key in self._records

    def state(self, key: Hashable) -> CacheRecord | None:
        return self._records.get(key)

    def list_keys(self, predicate: Callable[[Hashable], bool] | None = None) -> list[Hashable]:
        if predicate is None:
            return list(self._records)
        return [key for key in self._records if predicate(key)]

    def remove(self, key: Hashable) -> None:
        self._records.pop(key, None)
        self._listeners.pop(key, None)

    def result(self, key: Hashable) -> QueryResult:
        record = self._records.get(key)
        if record is None:
            return QueryResult(data=None, status=QueryStatus.PENDING)
        return QueryResult(data=record.data, status=record.status, error=record.error, is_stale=record.stale)

    def subscribe(self, key: Hashable, listener: Listener) -> Callable[[], None]:
        """Call ``listener(key, value)`` whenever the entry's value changes."""
        listeners = self._listeners.setdefault(key, [])
        listeners.append(listener)

        def unsubscribe() -> None:
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    def _notify(self, key: Hashable, value: Any) -> None:
        for listener in list(self._listeners.get(key, ())):
            listener(key, value)

    async def fetch(self, key: Hashable, fetcher: Fetcher) -> QueryResult:
        """Return the cached result, fetching first when missing, stale or failed."""
        record = self._records.setdefault(key, CacheRecord())
        record.fetcher = fetcher
        if record.status is QueryStatus.SUCCESS and not record.stale:
            return self.result(key)
        await self._schedule(key)
        return self.result(key)

    async def refetch(self, key: Hashable) -> QueryResult:
        """Fetch again regardless of freshness."""
        record = self._records.get(key)
        if record is None or record.fetcher is None:
            return self.result(key)
        await self._schedule(key)
        return self.result(key)

    def invalidate(self, key: Hashable) -> Awaitable[Any] | None:
        record = self._records.get(key)
        if record is None:
            return None
        record.stale = True
        if record.fetcher is None:
            return None
        return self._schedule(key, restart=True)

    def _schedule(self, key: Hashable, *, restart: bool = False) -> asyncio.Task[None]:
        """Return the refetch task for ``key``, starting one when none is running.

        With ``restart`` a fetch that already called its fetcher is not reused;
        a fresh fetch is queued behind it instead.
        """
        running = self._refetches.get(key)
        if running is not None and not running.done():
            if not restart or self._queued.get(key) is running:
                return running
            task = asyncio.ensure_future(self._run_after(running, key))
        else:
            task = asyncio.ensure_future(self._run_fetch(key))
        self._refetches[key] = task
        self._queued[key] = task
        task.add_done_callback(functools.partial(self._forget, key))
        return task

    def _forget(self, key: Hashable, task: asyncio.Task[None]) -> None:
        if self._refetches.get(key) is task:
            del self._refetches[key]
        if self._queued.get(key) is task:
            del self._queued[key]

    async def _run_after(self, previous: asyncio.Task[None], key: Hashable) -> None:
        await asyncio.wait([previous])
        await self._run_fetch(key)

    async def _run_fetch(self, key: Hashable) -> None:
        if self._queued.get(key) is asyncio.current_task():
            del self._queued[key]
        record = self._records.get(key)
        if record is None or record.fetcher is None:
            return
        record.fetch_count += 1
        try:
            data = await record.fetcher()
        except TransportError as exc:
            logger.warning("Fetching %r failed: %s", key, exc)
            record.status = QueryStatus.ERROR
            record.error = exc
            return
        record.stale = False
        self.set(key, data)
