"""Mutation lifecycle states and the table of allowed transitions."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum
from types import MappingProxyType

from querysync.exceptions import InvalidTransitionError


class MutationState(StrEnum):
    IDLE = "idle"
    APPLYING = "applying"
    PENDING = "pending"
    RECONCILING = "reconciling"
    ROLLING_BACK = "rolling_back"


class MutationEvent(StrEnum):
    START = "start"
    APPLIED = "applied"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"
    SETTLED = "settled"


TRANSITIONS: Mapping[tuple[MutationState, MutationEvent], MutationState] = MappingProxyType(
    {
        (MutationState.IDLE, MutationEvent.START): MutationState.APPLYING,
        (MutationState.APPLYING, MutationEvent.APPLIED): MutationState.PENDING,
        (MutationState.APPLYING, MutationEvent.FAILED): MutationState.ROLLING_BACK,
        (MutationState.PENDING, MutationEvent.SUCCEEDED): MutationState.RECONCILING,
        (MutationState.PENDING, MutationEvent.FAILED): MutationState.ROLLING_BACK,
        (MutationState.PENDING, MutationEvent.CANCELLED): MutationState.ROLLING_BACK,
        (MutationState.RECONCILING, MutationEvent.SETTLED): MutationState.IDLE,
        (MutationState.ROLLING_BACK, MutationEvent.SETTLED): MutationState.IDLE,
    }
)


def transition(state: MutationState, event: MutationEvent) -> MutationState:
    """Return the state reached from ``state`` on ``event``."""
    try:
        return TRANSITIONS[(state, event)]
    except KeyError:
        raise InvalidTransitionError(f"Cannot handle '{event}' while {state}") from None
