"""Closed set of nested write operators accepted under relation fields."""

from __future__ import annotations

from enum import StrEnum


class NestedOperator(StrEnum):
    CREATE = "create"
    CREATE_MANY = "createMany"
    CONNECT = "connect"
    CONNECT_OR_CREATE = "connectOrCreate"
    DISCONNECT = "disconnect"
    SET = "set"
    UPDATE = "update"
    UPDATE_MANY = "updateMany"
    UPSERT = "upsert"
    DELETE = "delete"
    DELETE_MANY = "deleteMany"


def parse_operator(name: str) -> NestedOperator | None:
    """Return the operator for ``name`` or ``None`` when it is not recognized."""
    try:
        return NestedOperator(name)
    except ValueError:
        return None
