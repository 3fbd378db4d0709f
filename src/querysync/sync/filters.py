"""Client-side evaluation of ``where`` filters against cached entities.

Only scalar conditions are evaluated. Relation filters and operators outside
the supported set never match, so an unsupported filter degrades to "no
optimistic effect" instead of touching the wrong rows.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from querysync.meta.model import ModelMeta

logger = logging.getLogger(__name__)


def _compare(predicate: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def check(value: Any, operand: Any) -> bool:
        if value is None or operand is None:
            return False
        try:
            return predicate(value, operand)
        except TypeError:
            return False

    return check


def _string_test(method: str) -> Callable[[Any, Any], bool]:
    def check(value: Any, operand: Any) -> bool:
        if not isinstance(value, str) or not isinstance(operand, str):
            return False
        if method == "contains":
            return operand in value
        return getattr(value, method)(operand)

    return check


def _in(value: Any, operand: Any) -> bool:
    return isinstance(operand, list) and value in operand


def _not_in(value: Any, operand: Any) -> bool:
    return isinstance(operand, list) and value not in operand


FIELD_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "equals": lambda value, operand: value == operand,
    "in": _in,
    "notIn": _not_in,
    "lt": _compare(lambda a, b: a < b),
    "lte": _compare(lambda a, b: a <= b),
    "gt": _compare(lambda a, b: a > b),
    "gte": _compare(lambda a, b: a >= b),
    "contains": _string_test("contains"),
    "startsWith": _string_test("startswith"),
    "endsWith": _string_test("endswith"),
}


def _fold_case(value: Any) -> Any:
    if isinstance(value, str):
        return value.casefold()
    if isinstance(value, list):
        return [_fold_case(item) for item in value]
    return value


def _condition_matches(value: Any, condition: dict[str, Any]) -> bool:
    insensitive = condition.get("mode") == "insensitive"
    for operator, operand in condition.items():
        if operator == "mode":
            continue
        if operator == "not":
            if isinstance(operand, dict):
                if _condition_matches(value, operand):
                    return False
            elif value == operand:
                return False
            continue
        check = FIELD_OPERATORS.get(operator)
        if check is None:
            logger.debug("Unsupported filter operator %r; treating as no match", operator)
            return False
        if insensitive:
            if not check(_fold_case(value), _fold_case(operand)):
                return False
        elif not check(value, operand):
            return False
    return True


def _compound_matches(entity: dict[str, Any], condition: dict[str, Any]) -> bool:
    return all(name in entity and entity[name] == expected for name, expected in condition.items())


def matches_filter(
    entity: Any,
    where: dict[str, Any] | None,
    meta: ModelMeta | None = None,
    model: str | None = None,
) -> bool:
    """Return True when ``entity`` satisfies ``where``."""
    if not isinstance(entity, dict):
        return False
    if not where:
        return True

    for key, condition in where.items():
        if key == "AND":
            clauses = condition if isinstance(condition, list) else [condition]
            if not all(matches_filter(entity, clause, meta, model) for clause in clauses):
                return False
            continue
        if key == "OR":
            clauses = condition if isinstance(condition, list) else [condition]
            if not any(matches_filter(entity, clause, meta, model) for clause in clauses):
                return False
            continue
        if key == "NOT":
            clauses = condition if isinstance(condition, list) else [condition]
            if any(matches_filter(entity, clause, meta, model) for clause in clauses):
                return False
            continue

        info = meta.field(model, key) if meta is not None and model is not None else None
        if info is not None and info.is_relation:
            return False
        if key not in entity:
            # Compound unique selectors such as {"a_b": {"a": 1, "b": 2}}.
            if info is None and isinstance(condition, dict) and condition and _compound_matches(entity, condition):
                continue
            return False

        value = entity[key]
        if isinstance(condition, dict):
            if not _condition_matches(value, condition):
                return False
        elif value != condition:
            return False
    return True
