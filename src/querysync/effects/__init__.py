"""Mutation payload analysis: decomposes nested writes into effect trees."""

from __future__ import annotations

from querysync.effects.model import EffectKind, EffectNode, MutationDescriptor
from querysync.effects.walker import mutated_models, walk, walk_descriptor

__all__ = [
    "EffectKind",
    "EffectNode",
    "MutationDescriptor",
    "mutated_models",
    "walk",
    "walk_descriptor",
]
