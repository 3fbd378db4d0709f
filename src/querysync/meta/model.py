"""Frozen metadata structures describing models, fields and relations."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from querysync.constants.metadata import DEFAULT_SCALAR_TYPE
from querysync.exceptions import MetadataError


@dataclass(frozen=True)
class FieldInfo:
    """One model field.

    ``foreign_key`` is only set on the owning side of a relation and maps the
    related model's id fields to the local scalar fields holding them.
    """

    name: str
    type: str = DEFAULT_SCALAR_TYPE
    is_id: bool = False
    is_relation: bool = False
    is_array: bool = False
    optional: bool = False
    relation_to: str | None = None
    foreign_key: tuple[tuple[str, str], ...] = ()
    backlink: str | None = None
    has_default: bool = False
    default: Any = None
    auto_now: bool = False
    updated_at: bool = False

    @property
    def foreign_key_map(self) -> dict[str, str]:
        """Owning-side mapping ``{related id field: local fk field}``."""
        return dict(self.foreign_key)

    @property
    def is_owning_side(self) -> bool:
        return self.is_relation and bool(self.foreign_key)


@dataclass(frozen=True)
class ModelInfo:
    """A model's id fields and field table."""

    name: str
    id_fields: tuple[str, ...]
    fields: Mapping[str, FieldInfo] = field(default_factory=lambda: MappingProxyType({}))

    def field(self, name: str) -> FieldInfo | None:
        return self.fields.get(name)

    def relation_fields(self) -> tuple[FieldInfo, ...]:
        """Relation fields in declaration order."""
        return tuple(info for info in self.fields.values() if info.is_relation)


@dataclass(frozen=True)
class ModelMeta:
    """Immutable registry of all models known to the engine."""

    models: Mapping[str, ModelInfo]
    delete_cascade: Mapping[str, tuple[str, ...]] = field(default_factory=lambda: MappingProxyType({}))

    def __contains__(self, model: object) -> bool:
        return model in self.models

    def get(self, model: str) -> ModelInfo | None:
        return self.models.get(model)

    def fields(self, model: str) -> Mapping[str, FieldInfo]:
        """Field table for ``model``; empty when the model is unknown."""
        info = self.models.get(model)
        return info.fields if info is not None else MappingProxyType({})

    def field(self, model: str, name: str) -> FieldInfo | None:
        return self.fields(model).get(name)

    def id_fields(self, model: str) -> tuple[str, ...]:
        info = self.models.get(model)
        return info.id_fields if info is not None else ()

    @property
    def model_names(self) -> tuple[str, ...]:
        return tuple(sorted(self.models))


def get_model_meta(meta: ModelMeta, model: str) -> ModelInfo:
    """Return metadata for ``model`` or raise MetadataError."""
    info = meta.get(model)
    if info is None:
        raise MetadataError(f"Unknown model '{model}'")
    return info
