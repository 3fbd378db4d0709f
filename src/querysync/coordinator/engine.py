"""Mutation coordinator: applies optimistic patches, then reconciles or rolls back.

All cache reads and writes happen synchronously inside one step, so on a
single event loop no other mutation observes a half-applied patch. The only
suspension points are the transport call and the host's refetch.
"""

from __future__ import annotations

import asyncio
import copy
import inspect
import itertools
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from querysync.coordinator.hooks import OptimisticContext, ProviderKind, coerce_result
from querysync.coordinator.mutation import Mutation, MutationOptions
from querysync.coordinator.state import MutationEvent, MutationState
from querysync.effects.model import MutationDescriptor
from querysync.effects.walker import walk_descriptor
from querysync.host.protocol import CacheHost
from querysync.keys.codec import QueryKey
from querysync.meta.model import ModelMeta
from querysync.sync.patcher import patch
from querysync.sync.resolver import resolve, resolve_optimistic

logger = logging.getLogger(__name__)


def _same(current: Any, written: Any) -> bool:
    return current is written or current == written


class MutationCoordinator:
    """Drives mutations through ``IDLE -> APPLYING -> PENDING -> RECONCILING | ROLLING_BACK -> IDLE``."""

    def __init__(self, meta: ModelMeta, host: CacheHost) -> None:
        self.meta = meta
        self.host = host
        # Pending mutations, plus settled ones an earlier pending mutation may still replay over.
        self._inflight: list[Mutation] = []
        self._background: set[asyncio.Task[Any]] = set()
        self._seq = itertools.count(1)

    @property
    def inflight(self) -> tuple[Mutation, ...]:
        return tuple(mutation for mutation in self._inflight if mutation.state is MutationState.PENDING)

    def begin(self, descriptor: MutationDescriptor, options: MutationOptions) -> Mutation:
        """Walk the payload and, when enabled, apply optimistic patches.

        Raises PayloadError before touching the cache when the payload is
        malformed.
        """
        effect = walk_descriptor(descriptor, self.meta)
        mutation = Mutation(seq=next(self._seq), descriptor=descriptor, effect=effect, options=options)
        mutation.advance(MutationEvent.START)
        try:
            if options.optimistic_update:
                self._apply(mutation)
        except Exception as exc:
            mutation.error = exc
            mutation.advance(MutationEvent.FAILED)
            self._rollback(mutation)
            mutation.advance(MutationEvent.SETTLED)
            raise
        mutation.advance(MutationEvent.APPLIED)
        self._inflight.append(mutation)
        return mutation

    def _apply(self, mutation: Mutation) -> None:
        keys = resolve_optimistic(mutation.effect, self.host.list_keys(), self.meta)
        pre_images = {key: self.host.get(key) for key in keys}
        for key in keys:
            current = pre_images[key]
            updated = self._compute(mutation, key, current)
            if updated is current:
                continue
            mutation.snapshots[key] = current
            mutation.written[key] = updated
            self.host.set(key, updated)
        logger.debug("Mutation #%d patched %d of %d optimistic queries", mutation.seq, len(mutation.written), len(keys))

    def _compute(self, mutation: Mutation, key: QueryKey, current: Any) -> Any:
        """Provisional value of ``key`` under ``mutation``; ``current`` when nothing applies."""
        descriptor = mutation.descriptor
        provider = mutation.options.optimistic_data_provider
        try:
            if provider is not None:
                context = OptimisticContext(
                    query_model=key.model,
                    query_operation=key.operation,
                    query_args=key.args,
                    current_data=copy.deepcopy(current),
                    mutation_model=descriptor.model,
                    mutation_operation=descriptor.operation,
                    mutation_args=descriptor.payload,
                )
                decision = coerce_result(provider(context))
                if decision.kind is ProviderKind.SKIP:
                    logger.debug("Provider skipped %s.%s", key.model, key.operation)
                    return current
                if decision.kind is ProviderKind.UPDATE:
                    return decision.data
            return patch(
                current,
                mutation.effect,
                self.meta,
                model=key.model,
                operation=key.operation,
                infinite=key.infinite,
                insert_position=mutation.options.insert_position,
            )
        except Exception:
            logger.warning(
                "Optimistic update of %s.%s failed; leaving the entry unchanged",
                key.model,
                key.operation,
                exc_info=True,
            )
            return current

    async def settle(self, mutation: Mutation, send: Callable[[], Awaitable[Any]]) -> Any:
        """Await the transport call and reconcile or roll back; errors are re-raised."""
        try:
            result = await send()
        except asyncio.CancelledError:
            self.abort(mutation)
            raise
        except Exception as exc:
            mutation.error = exc
            mutation.advance(MutationEvent.FAILED)
            self._rollback(mutation)
            mutation.advance(MutationEvent.SETTLED)
            raise

        mutation.result = result
        mutation.advance(MutationEvent.SUCCEEDED)
        self._prune()
        try:
            if mutation.options.invalidate_queries:
                await self._await_refetches(self._invalidate(mutation))
        finally:
            mutation.advance(MutationEvent.SETTLED)
        return result

    def abort(self, mutation: Mutation) -> None:
        """Roll back a mutation whose transport call was cancelled."""
        if mutation.state is not MutationState.PENDING:
            return
        mutation.advance(MutationEvent.CANCELLED)
        self._rollback(mutation)
        if mutation.options.invalidate_queries:
            for pending in self._invalidate(mutation):
                task = asyncio.ensure_future(pending)
                self._background.add(task)
                task.add_done_callback(self._reap)
        mutation.advance(MutationEvent.SETTLED)

    def _reap(self, task: asyncio.Task[Any]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning("Refetch after mutation failed: %s", error)

    def _invalidate(self, mutation: Mutation) -> list[Awaitable[Any]]:
        keys = resolve(mutation.effect, self.host.list_keys(), self.meta)
        logger.info(
            "Invalidating %d queries after %s.%s",
            len(keys),
            mutation.descriptor.model,
            mutation.descriptor.operation,
        )
        refetches: list[Awaitable[Any]] = []
        for key in keys:
            outcome = self.host.invalidate(key)
            if inspect.isawaitable(outcome):
                refetches.append(outcome)
        return refetches

    async def _await_refetches(self, refetches: list[Awaitable[Any]]) -> None:
        if not refetches:
            return
        outcomes = await asyncio.gather(*refetches, return_exceptions=True)
        for outcome in outcomes:
            if isinstance(outcome, Exception):
                logger.warning("Refetch after mutation failed: %s", outcome)

    def _rollback(self, mutation: Mutation) -> None:
        later = [other for other in self._inflight if other.seq > mutation.seq]
        for key, written in mutation.written.items():
            current = self.host.get(key)
            dependents = [other for other in later if key in other.written]
            if dependents:
                if not _same(current, dependents[-1].written[key]):
                    logger.warning("Not rolling back %s.%s: entry was replaced", key.model, key.operation)
                    continue
                value = mutation.snapshots[key]
                for dependent in dependents:
                    dependent.snapshots[key] = value
                    value = self._compute(dependent, key, value)
                    dependent.written[key] = value
                self.host.set(key, value)
                logger.debug("Restored %s.%s and replayed %d later mutations", key.model, key.operation, len(dependents))
                continue
            if not _same(current, written):
                logger.warning("Not rolling back %s.%s: entry was replaced", key.model, key.operation)
                continue
            self.host.set(key, mutation.snapshots[key])
            logger.debug("Restored %s.%s", key.model, key.operation)
        if mutation in self._inflight:
            self._inflight.remove(mutation)
        self._prune()

    def _prune(self) -> None:
        """Drop settled mutations that no earlier pending mutation shares a written key with."""
        pending = [mutation for mutation in self._inflight if mutation.state is MutationState.PENDING]
        self._inflight = [
            mutation
            for mutation in self._inflight
            if mutation.state is MutationState.PENDING
            or any(other.seq < mutation.seq and other.written.keys() & mutation.written.keys() for other in pending)
        ]
