"""Tests for the mutation state machine and provider results."""

from __future__ import annotations

from typing import Any

import pytest

from querysync.coordinator import (
    TRANSITIONS,
    MutationEvent,
    MutationState,
    ProviderKind,
    ProviderResult,
    coerce_result,
    transition,
)
from querysync.exceptions import InvalidTransitionError


@pytest.mark.parametrize(
    "events",
    [
        [MutationEvent.START, MutationEvent.APPLIED, MutationEvent.SUCCEEDED, MutationEvent.SETTLED],
        [MutationEvent.START, MutationEvent.APPLIED, MutationEvent.FAILED, MutationEvent.SETTLED],
        [MutationEvent.START, MutationEvent.APPLIED, MutationEvent.CANCELLED, MutationEvent.SETTLED],
        [MutationEvent.START, MutationEvent.FAILED, MutationEvent.SETTLED],
    ],
    ids=["success", "failure", "cancelled", "apply_failure"],
)
def test_every_lifecycle_returns_to_idle(events: list[MutationEvent]) -> None:
    state = MutationState.IDLE
    for event in events:
        state = transition(state, event)

    assert state is MutationState.IDLE


@pytest.mark.parametrize(
    ("state", "event"),
    [
        (MutationState.IDLE, MutationEvent.SUCCEEDED),
        (MutationState.PENDING, MutationEvent.START),
        (MutationState.RECONCILING, MutationEvent.FAILED),
        (MutationState.ROLLING_BACK, MutationEvent.CANCELLED),
    ],
    ids=["idle_success", "pending_start", "reconciling_failed", "rolling_back_cancelled"],
)
def test_disallowed_transitions_raise(state: MutationState, event: MutationEvent) -> None:
    with pytest.raises(InvalidTransitionError, match=str(event)):
        transition(state, event)


def test_transition_table_is_read_only() -> None:
    with pytest.raises(TypeError):
        TRANSITIONS[(MutationState.IDLE, MutationEvent.SETTLED)] = MutationState.IDLE  # type: ignore[index]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, ProviderResult.proceed_default()),
        (ProviderResult.skip(), ProviderResult(ProviderKind.SKIP)),
        ({"kind": "Update", "data": [1]}, ProviderResult.update([1])),
        ({"kind": "Skip"}, ProviderResult.skip()),
    ],
    ids=["none", "result", "update_mapping", "skip_mapping"],
)
def test_coerce_result(raw: Any, expected: ProviderResult) -> None:
    assert coerce_result(raw) == expected


@pytest.mark.parametrize(
    ("raw", "error"),
    [({"kind": "Replace"}, ValueError), ("Skip", TypeError), ({"data": 1}, TypeError)],
    ids=["unknown_kind", "string", "mapping_without_kind"],
)
def test_coerce_result_rejects_garbage(raw: Any, error: type[Exception]) -> None:
    with pytest.raises(error):
        coerce_result(raw)
