"""Mutation lifecycle: optimistic apply, reconciliation and rollback."""

from __future__ import annotations

from querysync.coordinator.engine import MutationCoordinator
from querysync.coordinator.hooks import (
    OptimisticContext,
    OptimisticDataProvider,
    ProviderKind,
    ProviderResult,
    coerce_result,
)
from querysync.coordinator.mutation import Mutation, MutationOptions
from querysync.coordinator.state import TRANSITIONS, MutationEvent, MutationState, transition

__all__ = [
    "TRANSITIONS",
    "Mutation",
    "MutationCoordinator",
    "MutationEvent",
    "MutationOptions",
    "MutationState",
    "OptimisticContext",
    "OptimisticDataProvider",
    "ProviderKind",
    "ProviderResult",
    "coerce_result",
    "transition",
]
