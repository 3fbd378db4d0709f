"""Affected-entry resolution and optimistic patching."""

from __future__ import annotations

from querysync.sync.filters import matches_filter
from querysync.sync.patcher import is_patchable, patch
from querysync.sync.resolver import resolve, resolve_optimistic
from querysync.sync.values import apply_update

__all__ = [
    "apply_update",
    "is_patchable",
    "matches_filter",
    "patch",
    "resolve",
    "resolve_optimistic",
]
