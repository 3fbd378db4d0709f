"""Strict shape validation for model metadata documents.

Validates parsed YAML/JSON mappings at load time. Raises MetadataError on
the first violation.
"""

from __future__ import annotations

from typing import Any

from querysync.constants.metadata import (
    ALLOWED_FIELD_KEYS,
    ALLOWED_MODEL_KEYS,
    ALLOWED_TOP_KEYS,
    REQUIRED_MODEL_KEYS,
    REQUIRED_TOP_KEYS,
)
from querysync.exceptions import MetadataError

_BOOL_FIELD_KEYS: tuple[str, ...] = ("id", "relation", "array", "optional", "auto_now", "updated_at")


def validate_model_meta(data: Any, source: str) -> None:
    """Validate a metadata document. Raises MetadataError on any violation."""
    if not isinstance(data, dict):
        raise MetadataError(f"{source}: metadata must be a mapping, got {type(data).__name__}")

    unknown_top = set(data.keys()) - ALLOWED_TOP_KEYS
    if unknown_top:
        raise MetadataError(f"{source}: unknown top-level keys: {sorted(unknown_top)}")

    for key in REQUIRED_TOP_KEYS:
        if key not in data:
            raise MetadataError(f"{source}: missing required key '{key}'")

    models = data["models"]
    if not isinstance(models, dict) or not models:
        raise MetadataError(f"{source}: 'models' must be a non-empty mapping")

    for model_name, model in models.items():
        _validate_model(model_name, model, source)

    if "delete_cascade" in data:
        _validate_cascade(data["delete_cascade"], set(models), source)


def _validate_model(name: Any, model: Any, source: str) -> None:
    if not isinstance(name, str) or not name.strip():
        raise MetadataError(f"{source}: model names must be non-empty strings")
    if not isinstance(model, dict):
        raise MetadataError(f"{source}: model '{name}' must be a mapping")

    unknown = set(model.keys()) - ALLOWED_MODEL_KEYS
    if unknown:
        raise MetadataError(f"{source}: model '{name}' has unknown keys: {sorted(unknown)}")
    for key in REQUIRED_MODEL_KEYS:
        if key not in model:
            raise MetadataError(f"{source}: model '{name}' missing required key '{key}'")

    fields = model["fields"]
    if not isinstance(fields, dict) or not fields:
        raise MetadataError(f"{source}: model '{name}' fields must be a non-empty mapping")
    for field_name, spec in fields.items():
        _validate_field(name, field_name, spec, source)

    if "id_fields" in model:
        id_fields = model["id_fields"]
        if not isinstance(id_fields, list) or not all(isinstance(f, str) for f in id_fields):
            raise MetadataError(f"{source}: model '{name}' id_fields must be a list of strings")
        missing = [f for f in id_fields if f not in fields]
        if missing:
            raise MetadataError(f"{source}: model '{name}' id_fields reference unknown fields: {missing}")


def _validate_field(model: str, name: Any, spec: Any, source: str) -> None:
    where = f"{source}: {model}.{name}"
    if not isinstance(name, str) or not name:
        raise MetadataError(f"{source}: model '{model}' has a non-string field name")
    if not isinstance(spec, dict):
        raise MetadataError(f"{where} must be a mapping")

    unknown = set(spec.keys()) - ALLOWED_FIELD_KEYS
    if unknown:
        raise MetadataError(f"{where} has unknown keys: {sorted(unknown)}")

    for key in _BOOL_FIELD_KEYS:
        if key in spec and not isinstance(spec[key], bool):
            raise MetadataError(f"{where}: '{key}' must be a boolean")

    if "type" in spec and (not isinstance(spec["type"], str) or not spec["type"]):
        raise MetadataError(f"{where}: 'type' must be a non-empty string")

    is_relation = spec.get("relation", False)
    if not is_relation:
        for key in ("relation_to", "foreign_key", "backlink"):
            if key in spec:
                raise MetadataError(f"{where}: '{key}' is only valid on relation fields")
        return

    if "relation_to" not in spec and "type" not in spec:
        raise MetadataError(f"{where}: relation fields need 'relation_to' or 'type'")
    if "foreign_key" in spec:
        fk = spec["foreign_key"]
        if isinstance(fk, str):
            if not fk:
                raise MetadataError(f"{where}: 'foreign_key' must not be empty")
        elif not isinstance(fk, dict) or not fk or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in fk.items()
        ):
            raise MetadataError(f"{where}: 'foreign_key' must be a field name or a mapping of strings")
    if "backlink" in spec and not isinstance(spec["backlink"], str):
        raise MetadataError(f"{where}: 'backlink' must be a string")


def _validate_cascade(cascade: Any, models: set[str], source: str) -> None:
    if not isinstance(cascade, dict):
        raise MetadataError(f"{source}: 'delete_cascade' must be a mapping")
    for model, targets in cascade.items():
        if model not in models:
            raise MetadataError(f"{source}: delete_cascade references unknown model '{model}'")
        if not isinstance(targets, list) or not all(isinstance(t, str) for t in targets):
            raise MetadataError(f"{source}: delete_cascade.{model} must be a list of model names")
        unknown = sorted(set(targets) - models)
        if unknown:
            raise MetadataError(f"{source}: delete_cascade.{model} references unknown models: {unknown}")
