"""HTTP transport defaults."""

from __future__ import annotations

QUERY_PARAM: str = "q"
DATA_ENVELOPE_KEY: str = "data"
ERROR_BODY_SNIPPET_LIMIT: int = 4096

OPERATION_METHODS: dict[str, str] = {
    "findUnique": "GET",
    "findUniqueOrThrow": "GET",
    "findFirst": "GET",
    "findFirstOrThrow": "GET",
    "findMany": "GET",
    "count": "GET",
    "aggregate": "GET",
    "groupBy": "GET",
    "create": "POST",
    "createMany": "POST",
    "upsert": "POST",
    "update": "PUT",
    "updateMany": "PUT",
    "delete": "DELETE",
    "deleteMany": "DELETE",
}
ARGS_IN_QUERY_METHODS: frozenset[str] = frozenset({"GET", "DELETE"})
