"""Consumer-facing query and mutation API."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, TypeAlias

from querysync.config.model import QuerySyncConfig
from querysync.constants.transport import ARGS_IN_QUERY_METHODS
from querysync.coordinator.engine import MutationCoordinator
from querysync.coordinator.hooks import OptimisticDataProvider
from querysync.coordinator.mutation import Mutation, MutationOptions
from querysync.coordinator.state import MutationState
from querysync.effects.model import MutationDescriptor
from querysync.host.memory import InMemoryCacheHost, QueryResult
from querysync.keys.codec import QueryKey, encode
from querysync.meta.model import ModelMeta
from querysync.transport.protocol import Transport
from querysync.transport.urls import make_url, method_for, unwrap_envelope
from querysync.types import InfiniteData

logger = logging.getLogger(__name__)

NextPageParam: TypeAlias = Callable[[Any, list[Any]], Any]


class QueryClient:
    """Runs model queries through a cache host and mutations through the coordinator.

    Example:
        >>> client = QueryClient(meta, HttpTransport(base_url="http://localhost"))
        >>> users = await client.query("User", "findMany", optimistic_update=True)
        >>> create = client.mutation("User", "create", optimistic_update=True)
        >>> await create.mutate_async({"data": {"name": "foo"}})
    """

    def __init__(
        self,
        meta: ModelMeta,
        transport: Transport,
        *,
        host: InMemoryCacheHost | None = None,
        config: QuerySyncConfig | None = None,
    ) -> None:
        self.meta = meta
        self.transport = transport
        self.host = host if host is not None else InMemoryCacheHost()
        self.config = config or QuerySyncConfig()
        self.coordinator = MutationCoordinator(meta, self.host)
        self._next_page_params: dict[QueryKey, NextPageParam] = {}

    def query_key(
        self,
        model: str,
        operation: str,
        args: Any = None,
        *,
        infinite: bool = False,
        optimistic_update: bool = False,
    ) -> QueryKey:
        return encode(model, operation, args, infinite=infinite, optimistic=optimistic_update)

    def get_query_data(
        self,
        model: str,
        operation: str,
        args: Any = None,
        *,
        infinite: bool = False,
        optimistic_update: bool = False,
    ) -> Any:
        key = self.query_key(model, operation, args, infinite=infinite, optimistic_update=optimistic_update)
        return self.host.get(key)

    async def request(self, model: str, operation: str, args: Any = None) -> Any:
        """Send one model operation and return the unwrapped ``data``."""
        method = method_for(operation)
        if method in ARGS_IN_QUERY_METHODS:
            url, payload = make_url(self.config.endpoint, model, operation, args), None
        else:
            url, payload = make_url(self.config.endpoint, model, operation), args
        body = await self.transport.send(url, method, payload)
        return unwrap_envelope(body)

    async def query(
        self,
        model: str,
        operation: str,
        args: Any = None,
        *,
        optimistic_update: bool = False,
    ) -> QueryResult:
        key = self.query_key(model, operation, args, optimistic_update=optimistic_update)
        return await self.host.fetch(key, lambda: self.request(model, operation, args))

    async def infinite_query(
        self,
        model: str,
        operation: str,
        args: Any = None,
        *,
        get_next_page_param: NextPageParam,
        optimistic_update: bool = False,
    ) -> QueryResult:
        """Fetch a paged query; refetches reload every loaded page with its own params."""
        key = self.query_key(model, operation, args, infinite=True, optimistic_update=optimistic_update)
        self._next_page_params[key] = get_next_page_param

        async def fetch_pages() -> InfiniteData:
            current = self.host.get(key)
            params = list(current["pageParams"]) if _is_infinite_data(current) else [args]
            pages = [await self.request(model, operation, param) for param in params]
            return {"pages": pages, "pageParams": params}

        await self.host.fetch(key, fetch_pages)
        return self._paged_result(key)

    async def fetch_next_page(self, key: QueryKey) -> QueryResult:
        """Load the page after the last one and append it; no-op when there is none."""
        current = self.host.get(key)
        next_param = self._next_param(key, current)
        if next_param is None:
            return self._paged_result(key)
        page = await self.request(key.model, key.operation, next_param)
        self.host.set(
            key,
            {"pages": [*current["pages"], page], "pageParams": [*current["pageParams"], next_param]},
        )
        return self._paged_result(key)

    def _next_param(self, key: QueryKey, current: Any) -> Any:
        getter = self._next_page_params.get(key)
        if getter is None or not _is_infinite_data(current) or not current["pages"]:
            return None
        return getter(current["pages"][-1], current["pages"])

    def _paged_result(self, key: QueryKey) -> QueryResult:
        result = self.host.result(key)
        return QueryResult(
            data=result.data,
            status=result.status,
            error=result.error,
            is_stale=result.is_stale,
            has_next_page=self._next_param(key, result.data) is not None,
        )

    def mutation(
        self,
        model: str,
        operation: str,
        *,
        optimistic_update: bool | None = None,
        invalidate_queries: bool | None = None,
        optimistic_data_provider: OptimisticDataProvider | None = None,
    ) -> ModelMutation:
        """Bind a model operation; unset flags fall back to the client config."""
        options = MutationOptions(
            optimistic_update=self.config.optimistic_update if optimistic_update is None else optimistic_update,
            invalidate_queries=self.config.invalidate_queries if invalidate_queries is None else invalidate_queries,
            optimistic_data_provider=optimistic_data_provider,
            insert_position=self.config.insert_position,
        )
        return ModelMutation(self, model, operation, options)


def _is_infinite_data(value: Any) -> bool:
    return isinstance(value, dict) and isinstance(value.get("pages"), list) and isinstance(value.get("pageParams"), list)


class ModelMutation:
    def __init__(self, client: QueryClient, model: str, operation: str, options: MutationOptions) -> None:
        self.client = client
        self.model = model
        self.operation = operation
        self.options = options

    def _begin(self, payload: Any) -> Mutation:
        descriptor = MutationDescriptor(model=self.model, operation=self.operation, payload=payload)
        return self.client.coordinator.begin(descriptor, self.options)

    def _send(self, payload: Any) -> Callable[[], Any]:
        return lambda: self.client.request(self.model, self.operation, payload)

    def mutate(self, payload: Any) -> MutationHandle:
        """Apply optimistic changes now and settle in a background task.

        Must be called from a running event loop. A malformed payload raises
        PayloadError here, before the cache is touched; transport failures
        are stored on the returned handle rather than raised.
        """
        loop = asyncio.get_running_loop()
        mutation = self._begin(payload)
        task = loop.create_task(self.client.coordinator.settle(mutation, self._send(payload)))
        return MutationHandle(mutation, task, self.client.coordinator)

    async def mutate_async(self, payload: Any) -> Any:
        """Run the mutation to completion and return the server's ``data``."""
        mutation = self._begin(payload)
        return await self.client.coordinator.settle(mutation, self._send(payload))


class MutationHandle:
    """Tracks a mutation started with ``ModelMutation.mutate``."""

    def __init__(self, mutation: Mutation, task: asyncio.Task[Any], coordinator: MutationCoordinator) -> None:
        self.mutation = mutation
        self._task = task
        self._coordinator = coordinator
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        if task.cancelled():
            # Cancelled before the transport call started; settle never ran.
            self._coordinator.abort(self.mutation)
            return
        error = task.exception()
        if error is not None:
            logger.debug("Mutation #%d failed: %s", self.mutation.seq, error)

    @property
    def state(self) -> MutationState:
        return self.mutation.state

    @property
    def done(self) -> bool:
        return self._task.done()

    @property
    def cancelled(self) -> bool:
        return self._task.cancelled()

    @property
    def data(self) -> Any:
        return self.mutation.result

    @property
    def error(self) -> BaseException | None:
        return self.mutation.error

    @property
    def is_success(self) -> bool:
        return self.done and not self.cancelled and self.mutation.error is None

    @property
    def is_error(self) -> bool:
        return self.mutation.error is not None

    def cancel(self) -> bool:
        return self._task.cancel()

    async def wait(self) -> Any:
        """Wait for the mutation to settle; re-raises its error."""
        return await self._task
