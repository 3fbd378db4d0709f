"""Schema constants for model metadata documents."""

from __future__ import annotations

ALLOWED_TOP_KEYS: frozenset[str] = frozenset({"models", "delete_cascade"})
REQUIRED_TOP_KEYS: frozenset[str] = frozenset({"models"})

ALLOWED_MODEL_KEYS: frozenset[str] = frozenset({"id_fields", "fields"})
REQUIRED_MODEL_KEYS: frozenset[str] = frozenset({"fields"})

ALLOWED_FIELD_KEYS: frozenset[str] = frozenset(
    {
        "type",
        "id",
        "relation",
        "array",
        "optional",
        "relation_to",
        "foreign_key",
        "backlink",
        "default",
        "auto_now",
        "updated_at",
    }
)

DEFAULT_SCALAR_TYPE: str = "String"
