"""Payload walker: turns a nested mutation payload into an effect tree.

Top-level operations and nested relation operators are dispatched through
explicit tables, so supporting a new operator is one handler plus one table
entry. Anything the walker cannot classify is kept on the node's ``opaque``
mapping instead of failing.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeAlias
from uuid import uuid4

from querysync.constants.operations import INTEGER_ID_TYPES, MUTATION_OPERATIONS
from querysync.effects.model import EffectKind, EffectNode, MutationDescriptor
from querysync.effects.operators import NestedOperator, parse_operator
from querysync.exceptions import PayloadError
from querysync.meta.graph import RelationLink, cascade_closure, relation_link
from querysync.meta.model import FieldInfo, ModelMeta

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _RelationScope:
    """A relation field being written through, seen from the parent row."""

    meta: ModelMeta
    parent_model: str
    parent_identifier: dict[str, Any] | None
    field: FieldInfo
    link: RelationLink | None

    @property
    def related(self) -> str:
        return self.field.relation_to or self.field.type

    @property
    def owned_by_parent(self) -> bool:
        return self.link is not None and self.link.owner == "parent"

    @property
    def owned_by_child(self) -> bool:
        return self.link is not None and self.link.owner == "child"

    def child_fk(self) -> dict[str, Any] | None:
        """Foreign key values a child row must carry to point at the parent."""
        if not self.owned_by_child or self.parent_identifier is None:
            return None
        assignments: dict[str, Any] = {}
        for referenced, fk_field in self.link.mapping:
            if referenced not in self.parent_identifier:
                return None
            assignments[fk_field] = self.parent_identifier[referenced]
        return assignments

    def parent_fk_from(self, values: dict[str, Any]) -> dict[str, Any]:
        """Foreign key values the parent row takes from a related row's fields."""
        if not self.owned_by_parent:
            return {}
        return {fk_field: values[referenced] for referenced, fk_field in self.link.mapping if referenced in values}

    def cleared_parent_fk(self) -> dict[str, Any]:
        if not self.owned_by_parent:
            return {}
        return {fk_field: None for _, fk_field in self.link.mapping}

    def to_one_target(self) -> dict[str, Any] | None:
        """Filter locating the single related row of a to-one relation, when derivable."""
        return self.child_fk()


@dataclass
class _Nested:
    """What a relation field's operators contribute back to the parent node."""

    parent_changes: dict[str, Any] = field(default_factory=dict)
    children: list[EffectNode] = field(default_factory=list)
    opaque: dict[str, Any] = field(default_factory=dict)

    def keep_opaque(self, scope: _RelationScope, operator: str, value: Any) -> None:
        self.opaque.setdefault(scope.field.name, {})[operator] = value


def _as_list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, list | tuple) else [value]


def _identifier(meta: ModelMeta, model: str, where: Any) -> dict[str, Any] | None:
    """Extract id field values from a unique filter, including compound ids."""
    if not isinstance(where, dict):
        return None
    id_fields = meta.id_fields(model)
    if not id_fields:
        return None
    if all(name in where and not isinstance(where[name], dict | list) for name in id_fields):
        return {name: where[name] for name in id_fields}
    for value in where.values():
        if (
            isinstance(value, dict)
            and set(value) == set(id_fields)
            and not any(isinstance(v, dict | list) for v in value.values())
        ):
            return {name: value[name] for name in id_fields}
    return None


def _assign_placeholder_ids(meta: ModelMeta, model: str, changes: dict[str, Any]) -> None:
    """Give string-like id fields a stable placeholder so every entry sees the same id."""
    for name in meta.id_fields(model):
        if name in changes:
            continue
        info = meta.field(model, name)
        if info is None or info.type in INTEGER_ID_TYPES:
            continue
        changes[name] = str(uuid4())


def _split_fields(
    meta: ModelMeta, model: str, data: dict[str, Any]
) -> tuple[dict[str, Any], dict[str, Any], list[tuple[FieldInfo, Any]]]:
    changes: dict[str, Any] = {}
    opaque: dict[str, Any] = {}
    relations: list[tuple[FieldInfo, Any]] = []
    for key, value in data.items():
        info = meta.field(model, key)
        if info is None:
            opaque[key] = value
        elif info.is_relation:
            relations.append((info, value))
        else:
            changes[key] = value
    return changes, opaque, relations


def _walk_relation(
    meta: ModelMeta,
    parent_model: str,
    parent_identifier: dict[str, Any] | None,
    info: FieldInfo,
    value: Any,
) -> _Nested:
    nested = _Nested()
    if not isinstance(value, dict):
        nested.opaque[info.name] = value
        return nested
    scope = _RelationScope(
        meta=meta,
        parent_model=parent_model,
        parent_identifier=parent_identifier,
        field=info,
        link=relation_link(meta, parent_model, info),
    )
    for operator_name, operand in value.items():
        operator = parse_operator(operator_name)
        handler = NESTED_HANDLERS.get(operator) if operator is not None else None
        if handler is None:
            nested.keep_opaque(scope, operator_name, operand)
            continue
        handler(scope, operand, nested)
    return nested


def _merge_nested(
    meta: ModelMeta,
    model: str,
    identifier: dict[str, Any] | None,
    relations: list[tuple[FieldInfo, Any]],
    changes: dict[str, Any],
    opaque: dict[str, Any],
) -> list[EffectNode]:
    children: list[EffectNode] = []
    for info, value in relations:
        nested = _walk_relation(meta, model, identifier, info, value)
        changes.update(nested.parent_changes)
        opaque.update(nested.opaque)
        children.extend(nested.children)
    return children


def _create_node(
    meta: ModelMeta,
    model: str,
    data: dict[str, Any],
    *,
    operator: str | None = None,
    via: str | None = None,
    inherited: dict[str, Any] | None = None,
) -> EffectNode:
    changes, opaque, relations = _split_fields(meta, model, data)
    if inherited:
        changes.update(inherited)
    _assign_placeholder_ids(meta, model, changes)
    identifier = _identifier(meta, model, changes)
    children = _merge_nested(meta, model, identifier, relations, changes, opaque)
    return EffectNode(
        model=model,
        kind=EffectKind.CREATE,
        identifier=identifier,
        changes=changes,
        opaque=opaque,
        operator=operator,
        via=via,
        children=tuple(children),
    )


def _update_node(
    meta: ModelMeta,
    model: str,
    where: dict[str, Any] | None,
    data: dict[str, Any],
    *,
    operator: str | None = None,
    via: str | None = None,
) -> EffectNode:
    identifier = _identifier(meta, model, where)
    changes, opaque, relations = _split_fields(meta, model, data)
    children = _merge_nested(meta, model, identifier, relations, changes, opaque)
    return EffectNode(
        model=model,
        kind=EffectKind.UPDATE,
        identifier=identifier,
        where=dict(where) if isinstance(where, dict) else None,
        changes=changes,
        opaque=opaque,
        operator=operator,
        via=via,
        children=tuple(children),
    )


def _upsert_node(
    meta: ModelMeta,
    model: str,
    where: dict[str, Any] | None,
    create_data: dict[str, Any],
    update_data: dict[str, Any],
    *,
    operator: str | None = None,
    via: str | None = None,
    inherited: dict[str, Any] | None = None,
) -> EffectNode:
    created = _create_node(meta, model, create_data, inherited=inherited)
    updated = _update_node(meta, model, where, update_data)
    return EffectNode(
        model=model,
        kind=EffectKind.UPSERT,
        identifier=updated.identifier,
        where=updated.where,
        changes=updated.changes,
        create=created.changes,
        opaque={**created.opaque, **updated.opaque},
        operator=operator,
        via=via,
        children=created.children + updated.children,
    )


def _delete_node(
    meta: ModelMeta,
    model: str,
    where: dict[str, Any] | None,
    *,
    operator: str | None = None,
    via: str | None = None,
) -> EffectNode:
    return EffectNode(
        model=model,
        kind=EffectKind.DELETE,
        identifier=_identifier(meta, model, where),
        where=dict(where) if isinstance(where, dict) else None,
        operator=operator,
        via=via,
    )


# Nested relation operators


def _create_children(scope: _RelationScope, value: Any, out: _Nested, operator: str) -> None:
    for item in _as_list(value):
        if not isinstance(item, dict):
            out.keep_opaque(scope, operator, item)
            continue
        child = _create_node(
            scope.meta,
            scope.related,
            item,
            operator=operator,
            via=scope.field.name,
            inherited=scope.child_fk(),
        )
        out.children.append(child)
        out.parent_changes.update(scope.parent_fk_from(child.changes))


def _on_create(scope: _RelationScope, value: Any, out: _Nested) -> None:
    _create_children(scope, value, out, NestedOperator.CREATE)


def _on_create_many(scope: _RelationScope, value: Any, out: _Nested) -> None:
    items = value.get("data", []) if isinstance(value, dict) else value
    _create_children(scope, items, out, NestedOperator.CREATE_MANY)


def _on_connect(scope: _RelationScope, value: Any, out: _Nested) -> None:
    for where in _as_list(value):
        if not isinstance(where, dict) or scope.link is None:
            out.keep_opaque(scope, NestedOperator.CONNECT, where)
            continue
        if scope.owned_by_parent:
            out.parent_changes.update(scope.parent_fk_from(where))
            continue
        assignments = scope.child_fk()
        if assignments is None:
            out.keep_opaque(scope, NestedOperator.CONNECT, where)
            continue
        out.children.append(
            EffectNode(
                model=scope.related,
                kind=EffectKind.UPDATE,
                identifier=_identifier(scope.meta, scope.related, where),
                where=dict(where),
                changes=assignments,
                operator=NestedOperator.CONNECT,
                via=scope.field.name,
            )
        )


def _on_connect_or_create(scope: _RelationScope, value: Any, out: _Nested) -> None:
    for item in _as_list(value):
        if not isinstance(item, dict) or not isinstance(item.get("where"), dict) or not isinstance(
            item.get("create"), dict
        ):
            out.keep_opaque(scope, NestedOperator.CONNECT_OR_CREATE, item)
            continue
        # Connecting an existing row only rewrites its foreign key.
        node = _upsert_node(
            scope.meta,
            scope.related,
            item["where"],
            item["create"],
            dict(scope.child_fk() or {}),
            operator=NestedOperator.CONNECT_OR_CREATE,
            via=scope.field.name,
            inherited=scope.child_fk(),
        )
        out.children.append(node)
        out.parent_changes.update(scope.parent_fk_from(item["where"]) or scope.parent_fk_from(node.create or {}))


def _on_disconnect(scope: _RelationScope, value: Any, out: _Nested) -> None:
    if scope.owned_by_parent:
        if value:
            out.parent_changes.update(scope.cleared_parent_fk())
        return
    if not scope.owned_by_child:
        out.keep_opaque(scope, NestedOperator.DISCONNECT, value)
        return
    cleared = {fk_field: None for _, fk_field in scope.link.mapping}
    targets = [scope.to_one_target()] if value is True else _as_list(value)
    for where in targets:
        if not isinstance(where, dict):
            out.keep_opaque(scope, NestedOperator.DISCONNECT, value)
            continue
        out.children.append(
            EffectNode(
                model=scope.related,
                kind=EffectKind.UPDATE,
                identifier=_identifier(scope.meta, scope.related, where),
                where=dict(where),
                changes=dict(cleared),
                operator=NestedOperator.DISCONNECT,
                via=scope.field.name,
            )
        )


def _on_update(scope: _RelationScope, value: Any, out: _Nested) -> None:
    for item in _as_list(value):
        if not isinstance(item, dict):
            out.keep_opaque(scope, NestedOperator.UPDATE, item)
            continue
        if isinstance(item.get("data"), dict) and set(item) <= {"where", "data"}:
            where, data = item.get("where"), item["data"]
        else:
            where, data = None, item
        if where is None and not scope.field.is_array:
            where = scope.to_one_target()
        out.children.append(
            _update_node(
                scope.meta,
                scope.related,
                where,
                data,
                operator=NestedOperator.UPDATE,
                via=scope.field.name,
            )
        )


def _on_update_many(scope: _RelationScope, value: Any, out: _Nested) -> None:
    for item in _as_list(value):
        if not isinstance(item, dict) or not isinstance(item.get("data"), dict):
            out.keep_opaque(scope, NestedOperator.UPDATE_MANY, item)
            continue
        where = _scoped_filter(scope, item.get("where"))
        if where is None:
            out.keep_opaque(scope, NestedOperator.UPDATE_MANY, item)
            continue
        out.children.append(
            _update_node(
                scope.meta,
                scope.related,
                where,
                item["data"],
                operator=NestedOperator.UPDATE_MANY,
                via=scope.field.name,
            )
        )


def _on_upsert(scope: _RelationScope, value: Any, out: _Nested) -> None:
    for item in _as_list(value):
        if not isinstance(item, dict) or not isinstance(item.get("create"), dict) or not isinstance(
            item.get("update"), dict
        ):
            out.keep_opaque(scope, NestedOperator.UPSERT, item)
            continue
        where = item.get("where")
        if where is None and not scope.field.is_array:
            where = scope.to_one_target()
        out.children.append(
            _upsert_node(
                scope.meta,
                scope.related,
                where,
                item["create"],
                item["update"],
                operator=NestedOperator.UPSERT,
                via=scope.field.name,
                inherited=scope.child_fk(),
            )
        )


def _on_delete(scope: _RelationScope, value: Any, out: _Nested) -> None:
    if value is True:
        out.children.append(
            _delete_node(
                scope.meta,
                scope.related,
                scope.to_one_target(),
                operator=NestedOperator.DELETE,
                via=scope.field.name,
            )
        )
        out.parent_changes.update(scope.cleared_parent_fk())
        return
    for where in _as_list(value):
        if not isinstance(where, dict):
            out.keep_opaque(scope, NestedOperator.DELETE, where)
            continue
        out.children.append(
            _delete_node(scope.meta, scope.related, where, operator=NestedOperator.DELETE, via=scope.field.name)
        )


def _on_delete_many(scope: _RelationScope, value: Any, out: _Nested) -> None:
    for item in _as_list(value):
        base = item if isinstance(item, dict) else None
        where = _scoped_filter(scope, base)
        out.children.append(
            _delete_node(scope.meta, scope.related, where, operator=NestedOperator.DELETE_MANY, via=scope.field.name)
        )


def _on_passthrough(scope: _RelationScope, value: Any, out: _Nested) -> None:
    out.keep_opaque(scope, NestedOperator.SET, value)


def _scoped_filter(scope: _RelationScope, where: dict[str, Any] | None) -> dict[str, Any] | None:
    """Restrict a to-many filter to the parent's children; ``None`` when that is impossible."""
    constraint = scope.child_fk()
    if constraint is None:
        return None
    return {**(where or {}), **constraint}


NestedHandler: TypeAlias = Callable[[_RelationScope, Any, _Nested], None]

NESTED_HANDLERS: dict[NestedOperator, NestedHandler] = {
    NestedOperator.CREATE: _on_create,
    NestedOperator.CREATE_MANY: _on_create_many,
    NestedOperator.CONNECT: _on_connect,
    NestedOperator.CONNECT_OR_CREATE: _on_connect_or_create,
    NestedOperator.DISCONNECT: _on_disconnect,
    NestedOperator.SET: _on_passthrough,
    NestedOperator.UPDATE: _on_update,
    NestedOperator.UPDATE_MANY: _on_update_many,
    NestedOperator.UPSERT: _on_upsert,
    NestedOperator.DELETE: _on_delete,
    NestedOperator.DELETE_MANY: _on_delete_many,
}


# Top-level operations


def _require_mapping(payload: dict[str, Any], key: str, model: str, operation: str) -> dict[str, Any]:
    value = payload.get(key)
    if not isinstance(value, dict):
        raise PayloadError(f"{model}.{operation}: '{key}' must be a mapping")
    return value


def _walk_create(meta: ModelMeta, model: str, payload: dict[str, Any]) -> EffectNode:
    return _create_node(meta, model, _require_mapping(payload, "data", model, "create"))


def _walk_create_many(meta: ModelMeta, model: str, payload: dict[str, Any]) -> EffectNode:
    data = payload.get("data")
    items = [data] if isinstance(data, dict) else data
    if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
        raise PayloadError(f"{model}.createMany: 'data' must be a mapping or a list of mappings")
    children = tuple(_create_node(meta, model, item, operator="createMany") for item in items)
    return EffectNode(model=model, kind=EffectKind.CREATE, batch=True, children=children)


def _walk_update(meta: ModelMeta, model: str, payload: dict[str, Any]) -> EffectNode:
    where = _require_mapping(payload, "where", model, "update")
    return _update_node(meta, model, where, _require_mapping(payload, "data", model, "update"))


def _walk_update_many(meta: ModelMeta, model: str, payload: dict[str, Any]) -> EffectNode:
    where = payload.get("where") or {}
    if not isinstance(where, dict):
        raise PayloadError(f"{model}.updateMany: 'where' must be a mapping")
    return _update_node(meta, model, where, _require_mapping(payload, "data", model, "updateMany"))


def _walk_upsert(meta: ModelMeta, model: str, payload: dict[str, Any]) -> EffectNode:
    return _upsert_node(
        meta,
        model,
        _require_mapping(payload, "where", model, "upsert"),
        _require_mapping(payload, "create", model, "upsert"),
        _require_mapping(payload, "update", model, "upsert"),
    )


def _walk_delete(meta: ModelMeta, model: str, payload: dict[str, Any]) -> EffectNode:
    return _delete_node(meta, model, _require_mapping(payload, "where", model, "delete"))


def _walk_delete_many(meta: ModelMeta, model: str, payload: dict[str, Any]) -> EffectNode:
    where = payload.get("where") or {}
    if not isinstance(where, dict):
        raise PayloadError(f"{model}.deleteMany: 'where' must be a mapping")
    return _delete_node(meta, model, where)


TopLevelWalker: TypeAlias = Callable[[ModelMeta, str, dict[str, Any]], EffectNode]

TOP_LEVEL_WALKERS: dict[str, TopLevelWalker] = {
    "create": _walk_create,
    "createMany": _walk_create_many,
    "update": _walk_update,
    "updateMany": _walk_update_many,
    "upsert": _walk_upsert,
    "delete": _walk_delete,
    "deleteMany": _walk_delete_many,
}


def walk(model: str, operation: str, payload: Any, meta: ModelMeta) -> EffectNode:
    """Decompose a mutation payload into an effect tree.

    Raises PayloadError for unknown operations and payloads whose required
    parts are missing or of the wrong shape.
    """
    if operation not in MUTATION_OPERATIONS:
        raise PayloadError(f"Unsupported mutation operation '{operation}' on {model}")
    if payload is None and operation == "deleteMany":
        payload = {}
    if not isinstance(payload, dict):
        raise PayloadError(f"{model}.{operation}: payload must be a mapping, got {type(payload).__name__}")

    effect = TOP_LEVEL_WALKERS[operation](meta, model, payload)
    logger.debug(
        "Walked %s.%s into %d effect nodes",
        model,
        operation,
        sum(1 for _ in effect.iter_nodes()),
    )
    return effect


def walk_descriptor(descriptor: MutationDescriptor, meta: ModelMeta) -> EffectNode:
    return walk(descriptor.model, descriptor.operation, descriptor.payload, meta)


def mutated_models(effect: EffectNode, meta: ModelMeta) -> frozenset[str]:
    """Models whose rows the mutation may change, including cascaded deletes."""
    models: set[str] = set()
    deleted: set[str] = set()
    for node in effect.iter_nodes():
        models.add(node.model)
        if node.kind is EffectKind.DELETE:
            deleted.add(node.model)
    if deleted:
        models.update(cascade_closure(meta, deleted))
    return frozenset(models)
