"""Model operation names, nested write operators and reserved fields."""

from __future__ import annotations

OPTIMISTIC_MARKER: str = "$optimistic"

QUERY_OPERATIONS: frozenset[str] = frozenset(
    {
        "findUnique",
        "findUniqueOrThrow",
        "findFirst",
        "findFirstOrThrow",
        "findMany",
        "count",
        "aggregate",
        "groupBy",
    }
)
PATCHABLE_QUERY_PREFIX: str = "find"

MUTATION_OPERATIONS: frozenset[str] = frozenset(
    {
        "create",
        "createMany",
        "update",
        "updateMany",
        "upsert",
        "delete",
        "deleteMany",
    }
)

SCALAR_UPDATE_OPERATORS: frozenset[str] = frozenset({"set", "increment", "decrement", "multiply", "divide", "push"})
INTEGER_ID_TYPES: frozenset[str] = frozenset({"Int", "BigInt"})
DATETIME_TYPE: str = "DateTime"

FILTER_LOGICAL_OPERATORS: frozenset[str] = frozenset({"AND", "OR", "NOT"})

INCLUDE_KEYS: tuple[str, ...] = ("include", "select")
COUNT_FIELD: str = "_count"
