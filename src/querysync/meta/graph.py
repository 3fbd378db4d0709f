"""Relation graph traversal over model metadata.

Relations are looked up by model name; traversal is iterative with a visited
set so self-relations and mutual foreign keys never recurse forever.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from querysync.constants.operations import COUNT_FIELD, INCLUDE_KEYS
from querysync.meta.model import FieldInfo, ModelMeta


@dataclass(frozen=True)
class RelationLink:
    """How a parent entity and a related child entity reference each other.

    ``owner`` is ``"parent"`` when the parent row holds the foreign key and
    ``"child"`` when the child row does; ``mapping`` is the owning side's
    ``{referenced id field: fk field}`` table.
    """

    owner: str
    mapping: tuple[tuple[str, str], ...]


def neighbors(meta: ModelMeta, model: str) -> frozenset[str]:
    """Models directly related to ``model`` through any relation field."""
    return frozenset(
        info.relation_to for info in meta.fields(model).values() if info.is_relation and info.relation_to
    )


def reachable_models(meta: ModelMeta, start: str) -> frozenset[str]:
    """All models reachable from ``start`` following relations, ``start`` included."""
    visited: set[str] = {start}
    queue: deque[str] = deque([start])
    while queue:
        current = queue.popleft()
        for related in neighbors(meta, current):
            if related not in visited:
                visited.add(related)
                queue.append(related)
    return frozenset(visited)


def cascade_closure(meta: ModelMeta, models: Iterable[str]) -> frozenset[str]:
    """Models whose rows may disappear when rows of ``models`` are deleted."""
    visited: set[str] = set(models)
    queue: deque[str] = deque(visited)
    while queue:
        current = queue.popleft()
        for target in meta.delete_cascade.get(current, ()):
            if target not in visited:
                visited.add(target)
                queue.append(target)
    return frozenset(visited)


def read_models(meta: ModelMeta, model: str, args: Any) -> frozenset[str]:
    """Models whose data a query on ``model`` with ``args`` projects.

    Follows ``include``/``select`` at every depth, plus relation counts under
    ``_count``.
    """
    result: set[str] = {model}
    stack: list[tuple[str, Any]] = [(model, args)]
    while stack:
        current, current_args = stack.pop()
        if not isinstance(current_args, dict):
            continue
        for key in INCLUDE_KEYS:
            projection = current_args.get(key)
            if not isinstance(projection, dict):
                continue
            for field_name, value in projection.items():
                if not value:
                    continue
                if field_name == COUNT_FIELD:
                    result.update(_counted_models(meta, current, value))
                    continue
                info = meta.field(current, field_name)
                if info is None or not info.is_relation or info.relation_to is None:
                    continue
                result.add(info.relation_to)
                if isinstance(value, dict):
                    stack.append((info.relation_to, value))
    return frozenset(result)


def _counted_models(meta: ModelMeta, model: str, value: Any) -> set[str]:
    relations = [info for info in meta.fields(model).values() if info.is_relation and info.is_array]
    if isinstance(value, dict) and isinstance(value.get("select"), dict):
        selected = {name for name, flag in value["select"].items() if flag}
        relations = [info for info in relations if info.name in selected]
    return {info.relation_to for info in relations if info.relation_to}


def relation_link(meta: ModelMeta, parent_model: str, field: FieldInfo) -> RelationLink | None:
    """Describe which side of ``parent_model.field`` stores the foreign key."""
    if field.foreign_key:
        return RelationLink(owner="parent", mapping=field.foreign_key)
    if field.relation_to is None or field.backlink is None:
        return None
    opposite = meta.field(field.relation_to, field.backlink)
    if opposite is None or not opposite.foreign_key:
        return None
    return RelationLink(owner="child", mapping=opposite.foreign_key)
