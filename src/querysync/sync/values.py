"""Evaluation of scalar update operators and generated field values."""

from __future__ import annotations

import datetime as dt
from numbers import Number
from typing import Any

from querysync.constants.operations import SCALAR_UPDATE_OPERATORS


def now_iso() -> str:
    """Current UTC time in the ``2024-01-31T12:00:00.000Z`` wire format."""
    stamp = dt.datetime.now(dt.UTC).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


def is_update_operator(value: Any) -> bool:
    return isinstance(value, dict) and len(value) == 1 and next(iter(value)) in SCALAR_UPDATE_OPERATORS


def _is_number(value: Any) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool)


def apply_update(current: Any, value: Any) -> Any:
    """Return the new value of a field given its current value and the payload value.

    Plain values replace the current one. Arithmetic operators leave the field
    unchanged when either side is not numeric, so an unknown current value
    never turns into a wrong provisional one.
    """
    if not is_update_operator(value):
        return value
    operator, operand = next(iter(value.items()))
    if operator == "set":
        return operand
    if operator == "push":
        items = operand if isinstance(operand, list) else [operand]
        if current is None:
            return list(items)
        if isinstance(current, list):
            return [*current, *items]
        return current
    if not (_is_number(current) and _is_number(operand)):
        return current
    if operator == "increment":
        return current + operand
    if operator == "decrement":
        return current - operand
    if operator == "multiply":
        return current * operand
    if operator == "divide":
        if operand == 0:
            return current
        if isinstance(current, int) and isinstance(operand, int):
            return int(current / operand)
        return current / operand
    return current
