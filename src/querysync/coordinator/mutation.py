"""Bookkeeping for one mutation in flight."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from querysync.constants.config import DEFAULT_INSERT_POSITION, DEFAULT_INVALIDATE_QUERIES
from querysync.coordinator.hooks import OptimisticDataProvider
from querysync.coordinator.state import MutationEvent, MutationState, transition
from querysync.effects.model import EffectNode, MutationDescriptor
from querysync.keys.codec import QueryKey

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MutationOptions:
    optimistic_update: bool = False
    invalidate_queries: bool = DEFAULT_INVALIDATE_QUERIES
    optimistic_data_provider: OptimisticDataProvider | None = None
    insert_position: str = DEFAULT_INSERT_POSITION


@dataclass(eq=False)
class Mutation:
    """A mutation issued through the coordinator.

    ``snapshots`` holds the value each touched key had right before this
    mutation wrote it and ``written`` the value it wrote. Both only contain
    keys whose value actually changed.
    """

    seq: int
    descriptor: MutationDescriptor
    effect: EffectNode
    options: MutationOptions
    state: MutationState = MutationState.IDLE
    history: list[MutationState] = field(default_factory=list)
    snapshots: dict[QueryKey, Any] = field(default_factory=dict)
    written: dict[QueryKey, Any] = field(default_factory=dict)
    result: Any = None
    error: BaseException | None = None

    def advance(self, event: MutationEvent) -> MutationState:
        new_state = transition(self.state, event)
        logger.debug(
            "Mutation #%d %s.%s: %s -> %s",
            self.seq,
            self.descriptor.model,
            self.descriptor.operation,
            self.state,
            new_state,
        )
        self.state = new_state
        self.history.append(new_state)
        return new_state

    @property
    def settled(self) -> bool:
        return self.state is MutationState.IDLE and bool(self.history)
