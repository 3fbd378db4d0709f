"""Frozen dataclasses describing mutations and their effects."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class EffectKind(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    UPSERT = "upsert"


@dataclass(frozen=True)
class MutationDescriptor:
    """A model mutation as issued by the caller."""

    model: str
    operation: str
    payload: Any


@dataclass(frozen=True)
class EffectNode:
    """One entity-level write implied by a mutation payload.

    The target is ``identifier`` (id field values) when the payload addresses
    rows by id, otherwise the ``where`` filter. A node with neither has no
    locatable target. For upserts, ``changes`` is the update branch and
    ``create`` the create branch.
    """

    model: str
    kind: EffectKind
    identifier: dict[str, Any] | None = None
    where: dict[str, Any] | None = None
    changes: dict[str, Any] = field(default_factory=dict)
    create: dict[str, Any] | None = None
    opaque: dict[str, Any] = field(default_factory=dict)
    operator: str | None = None
    via: str | None = None
    batch: bool = False
    children: tuple[EffectNode, ...] = ()

    @property
    def has_target(self) -> bool:
        return self.identifier is not None or self.where is not None

    def iter_nodes(self) -> Iterator[EffectNode]:
        """Yield this node and all descendants in pre-order."""
        stack: list[EffectNode] = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))
