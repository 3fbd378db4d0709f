"""Default optimistic patch of a cached query result.

The patcher never touches its input: it works on a deep copy and hands back
the original object when no effect node found anything to change, so cache
hosts can skip notifying subscribers.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

from querysync.constants.config import INSERT_APPEND, INSERT_PREPEND
from querysync.constants.operations import INTEGER_ID_TYPES, OPTIMISTIC_MARKER, PATCHABLE_QUERY_PREFIX
from querysync.effects.model import EffectKind, EffectNode
from querysync.meta.graph import relation_link
from querysync.meta.model import FieldInfo, ModelMeta
from querysync.sync.filters import matches_filter
from querysync.sync.values import apply_update, now_iso

logger = logging.getLogger(__name__)

_REMOVED = object()


@dataclass(frozen=True)
class _Parent:
    """The entity owning a nested relation location."""

    model: str
    entity: dict[str, Any]
    field: FieldInfo


class _EntryPatcher:
    def __init__(self, meta: ModelMeta, insert_position: str) -> None:
        self.meta = meta
        self.insert_position = insert_position
        self.top_level_creates = True

    def visit(self, value: Any, model: str, node: EffectNode, parent: _Parent | None = None) -> tuple[bool, Any]:
        if isinstance(value, list):
            return self._visit_collection(value, model, node, parent)
        if isinstance(value, dict):
            return self._visit_entity(value, model, node, parent, in_collection=False)
        return False, value

    def _visit_collection(
        self, items: list[Any], model: str, node: EffectNode, parent: _Parent | None
    ) -> tuple[bool, list[Any]]:
        changed = False
        kept: list[Any] = []
        for item in items:
            if not isinstance(item, dict):
                kept.append(item)
                continue
            item_changed, new_item = self._visit_entity(item, model, node, parent, in_collection=True)
            changed = changed or item_changed
            if new_item is not _REMOVED:
                kept.append(new_item)

        if node.model == model:
            values = self._create_values(node, model, kept)
            if values is not None and self._accepts_create(values, parent):
                entity = self._synthesize(model, values, kept)
                if self.insert_position == INSERT_PREPEND:
                    kept.insert(0, entity)
                else:
                    kept.append(entity)
                changed = True
        return changed, kept

    def _visit_entity(
        self,
        entity: dict[str, Any],
        model: str,
        node: EffectNode,
        parent: _Parent | None,
        *,
        in_collection: bool,
    ) -> tuple[bool, Any]:
        changed = False
        if node.model == model and node.kind is not EffectKind.CREATE and self._targets(entity, model, node):
            if node.kind is EffectKind.DELETE:
                return True, _REMOVED if in_collection else None
            changed = self._update_entity(entity, model, node.changes)

        for name in list(entity):
            info = self.meta.field(model, name)
            if info is None or not info.is_relation or info.relation_to is None:
                continue
            sub_changed, new_value = self.visit(entity[name], info.relation_to, node, _Parent(model, entity, info))
            if sub_changed:
                entity[name] = new_value
                changed = True
        return changed, entity

    def _targets(self, entity: dict[str, Any], model: str, node: EffectNode) -> bool:
        if node.identifier is not None:
            return all(name in entity and entity[name] == value for name, value in node.identifier.items())
        if node.where is not None:
            return matches_filter(entity, node.where, self.meta, model)
        return False

    def _create_values(self, node: EffectNode, model: str, collection: list[Any]) -> dict[str, Any] | None:
        if node.kind is EffectKind.CREATE:
            return node.changes
        if node.kind is EffectKind.UPSERT and node.create is not None:
            if any(isinstance(item, dict) and self._targets(item, model, node) for item in collection):
                return None
            return node.create
        return None

    def _accepts_create(self, values: dict[str, Any], parent: _Parent | None) -> bool:
        if parent is None:
            return self.top_level_creates
        link = relation_link(self.meta, parent.model, parent.field)
        if link is None or link.owner != "child":
            return False
        return all(
            referenced in parent.entity and values.get(fk_field) == parent.entity[referenced]
            for referenced, fk_field in link.mapping
        )

    def _synthesize(self, model: str, values: dict[str, Any], siblings: list[Any]) -> dict[str, Any]:
        entity: dict[str, Any] = {}
        for info in self.meta.fields(model).values():
            if info.is_relation:
                continue
            if info.auto_now or info.updated_at:
                entity[info.name] = now_iso()
            elif info.has_default:
                entity[info.name] = copy.deepcopy(info.default)
        entity.update(copy.deepcopy(values))
        for name in self.meta.id_fields(model):
            if entity.get(name) is None:
                entity[name] = self._placeholder_id(model, name, siblings)
        entity[OPTIMISTIC_MARKER] = True
        return entity

    def _placeholder_id(self, model: str, name: str, siblings: list[Any]) -> Any:
        info = self.meta.field(model, name)
        if info is not None and info.type in INTEGER_ID_TYPES:
            existing = [
                item[name]
                for item in siblings
                if isinstance(item, dict) and isinstance(item.get(name), int) and not isinstance(item.get(name), bool)
            ]
            return max(existing, default=0) + 1
        return str(uuid4())

    def _update_entity(self, entity: dict[str, Any], model: str, changes: dict[str, Any]) -> bool:
        changed = False
        for name, value in changes.items():
            new_value = apply_update(entity.get(name), value)
            if name not in entity or entity[name] != new_value:
                entity[name] = copy.deepcopy(new_value)
                changed = True
        if changed:
            for info in self.meta.fields(model).values():
                if info.updated_at and info.name not in changes:
                    entity[info.name] = now_iso()
            entity[OPTIMISTIC_MARKER] = True
        return changed


def is_patchable(operation: str) -> bool:
    """Only ``find*`` results have an entity shape the patcher understands."""
    return operation.startswith(PATCHABLE_QUERY_PREFIX)


def patch(
    entry: Any,
    effect: EffectNode,
    meta: ModelMeta,
    *,
    model: str,
    operation: str = "findMany",
    infinite: bool = False,
    insert_position: str = INSERT_APPEND,
) -> Any:
    """Apply the effect tree to a cached value and return the provisional value."""
    if entry is None or not is_patchable(operation):
        return entry
    nodes = [node for node in effect.iter_nodes() if not node.batch]
    if not nodes:
        return entry

    patcher = _EntryPatcher(meta, insert_position)
    if infinite:
        return _patch_infinite(entry, nodes, patcher, model)

    working = copy.deepcopy(entry)
    changed = False
    for node in nodes:
        node_changed, working = patcher.visit(working, model, node)
        changed = changed or node_changed
    if not changed:
        return entry
    logger.debug("Patched %s.%s with %d effect nodes", model, operation, len(nodes))
    return working


def _patch_infinite(entry: Any, nodes: list[EffectNode], patcher: _EntryPatcher, model: str) -> Any:
    if not isinstance(entry, dict) or not isinstance(entry.get("pages"), list):
        return entry
    pages = copy.deepcopy(entry["pages"])
    changed = False
    for node in nodes:
        for index, page in enumerate(pages):
            # New rows only land on the first page.
            patcher.top_level_creates = index == 0
            page_changed, pages[index] = patcher.visit(page, model, node)
            changed = changed or page_changed
    if not changed:
        return entry
    patched = dict(entry)
    patched["pages"] = pages
    return patched
