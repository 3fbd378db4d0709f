"""Load model metadata documents produced by the schema compiler.

Documents are YAML (or JSON, which ``yaml.safe_load`` also accepts):

.. code-block:: yaml

    models:
      User:
        fields:
          id: {type: String, id: true}
          posts: {type: Post, relation: true, array: true}
      Post:
        fields:
          id: {type: String, id: true}
          owner: {type: User, relation: true, foreign_key: ownerId}
          ownerId: {type: String}
    delete_cascade:
      User: [Post]
"""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from querysync.constants.metadata import DEFAULT_SCALAR_TYPE
from querysync.exceptions import MetadataError
from querysync.meta.model import FieldInfo, ModelInfo, ModelMeta
from querysync.meta.schema import validate_model_meta

logger = logging.getLogger(__name__)


def load_model_meta(path: Path) -> ModelMeta:
    """Read and parse a metadata file."""
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise MetadataError(f"Failed to read metadata file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise MetadataError(f"Invalid YAML in metadata file {path}: {exc}") from exc
    return parse_model_meta(raw, str(path))


def parse_model_meta(raw: Any, source: str = "<memory>") -> ModelMeta:
    """Validate an already-parsed document and build an immutable ModelMeta."""
    validate_model_meta(raw, source)

    raw_models: dict[str, Any] = raw["models"]
    declared_ids = {name: _declared_id_fields(model) for name, model in raw_models.items()}

    models: dict[str, ModelInfo] = {}
    for model_name, raw_model in raw_models.items():
        fields: dict[str, FieldInfo] = {}
        id_fields = declared_ids[model_name]
        for field_name, raw_field in raw_model["fields"].items():
            fields[field_name] = _build_field(
                model_name,
                field_name,
                raw_field,
                is_id=field_name in id_fields,
                raw_models=raw_models,
                declared_ids=declared_ids,
                source=source,
            )
        models[model_name] = ModelInfo(name=model_name, id_fields=id_fields, fields=fields)

    models = _link_backlinks(models, source)
    frozen_models = {
        name: ModelInfo(name=info.name, id_fields=info.id_fields, fields=MappingProxyType(dict(info.fields)))
        for name, info in models.items()
    }
    cascade = {model: tuple(targets) for model, targets in (raw.get("delete_cascade") or {}).items()}
    logger.debug("Loaded metadata for %d models from %s", len(frozen_models), source)
    return ModelMeta(models=MappingProxyType(frozen_models), delete_cascade=MappingProxyType(cascade))


def _declared_id_fields(raw_model: dict[str, Any]) -> tuple[str, ...]:
    if "id_fields" in raw_model:
        return tuple(raw_model["id_fields"])
    return tuple(name for name, raw_field in raw_model["fields"].items() if raw_field.get("id", False))


def _build_field(
    model: str,
    name: str,
    raw_field: dict[str, Any],
    *,
    is_id: bool,
    raw_models: dict[str, Any],
    declared_ids: dict[str, tuple[str, ...]],
    source: str,
) -> FieldInfo:
    is_relation = raw_field.get("relation", False)
    field_type = raw_field.get("type", DEFAULT_SCALAR_TYPE)
    relation_to: str | None = None
    foreign_key: tuple[tuple[str, str], ...] = ()

    if is_relation:
        relation_to = raw_field.get("relation_to", field_type)
        if relation_to not in raw_models:
            raise MetadataError(f"{source}: {model}.{name} relates to unknown model '{relation_to}'")
        foreign_key = _normalize_foreign_key(raw_field.get("foreign_key"), model, name, declared_ids[relation_to], source)
        field_type = relation_to

    return FieldInfo(
        name=name,
        type=field_type,
        is_id=is_id,
        is_relation=is_relation,
        is_array=raw_field.get("array", False),
        optional=raw_field.get("optional", False),
        relation_to=relation_to,
        foreign_key=foreign_key,
        backlink=raw_field.get("backlink"),
        has_default="default" in raw_field,
        default=raw_field.get("default"),
        auto_now=raw_field.get("auto_now", False),
        updated_at=raw_field.get("updated_at", False),
    )


def _normalize_foreign_key(
    value: Any,
    model: str,
    name: str,
    related_ids: tuple[str, ...],
    source: str,
) -> tuple[tuple[str, str], ...]:
    """Expand the ``foreign_key: ownerId`` shorthand to ``{id: ownerId}``."""
    if value is None:
        return ()
    if isinstance(value, str):
        if len(related_ids) != 1:
            raise MetadataError(
                f"{source}: {model}.{name} uses a single foreign key field but the related model "
                f"has {len(related_ids)} id fields; use a mapping"
            )
        return ((related_ids[0], value),)
    unknown = sorted(set(value) - set(related_ids))
    if unknown:
        raise MetadataError(f"{source}: {model}.{name} foreign_key references non-id fields {unknown}")
    return tuple(sorted(value.items()))


def _link_backlinks(models: dict[str, ModelInfo], source: str) -> dict[str, ModelInfo]:
    """Fill in ``backlink`` for relations whose opposite field is unambiguous."""
    linked: dict[str, ModelInfo] = {}
    for model_name, info in models.items():
        fields: dict[str, FieldInfo] = {}
        for field_name, field_info in info.fields.items():
            if not field_info.is_relation or field_info.relation_to is None:
                fields[field_name] = field_info
                continue
            related = models[field_info.relation_to]
            if field_info.backlink is not None:
                if related.field(field_info.backlink) is None:
                    raise MetadataError(
                        f"{source}: {model_name}.{field_name} backlink '{field_info.backlink}' "
                        f"is not a field of {related.name}"
                    )
                fields[field_name] = field_info
                continue
            candidates = [
                candidate.name
                for candidate in related.relation_fields()
                if candidate.relation_to == model_name
                and not (related.name == model_name and candidate.name == field_name)
            ]
            backlink = candidates[0] if len(candidates) == 1 else None
            fields[field_name] = replace(field_info, backlink=backlink) if backlink else field_info
        linked[model_name] = ModelInfo(name=info.name, id_fields=info.id_fields, fields=fields)
    return linked

