"""Find the cached queries a mutation may affect.

Matching is by model identity only. A query is affected when it is on a
mutated model or projects one through ``include``/``select``; row-level
filters are not evaluated, so the result may contain more keys than strictly
needed but never misses one.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from querysync.effects.model import EffectNode
from querysync.effects.walker import mutated_models
from querysync.keys.codec import QueryKey
from querysync.meta.graph import read_models
from querysync.meta.model import ModelMeta

logger = logging.getLogger(__name__)


def is_affected(key: QueryKey, models: frozenset[str], meta: ModelMeta) -> bool:
    if key.model in models:
        return True
    return not models.isdisjoint(read_models(meta, key.model, key.args))


def resolve(effect: EffectNode, cached_keys: Iterable[object], meta: ModelMeta) -> list[QueryKey]:
    """Return affected query keys in input order; cache keys that are not QueryKeys are ignored."""
    models = mutated_models(effect, meta)
    affected = [key for key in cached_keys if isinstance(key, QueryKey) and is_affected(key, models, meta)]
    logger.debug("Mutation on %s affects %d cached queries", effect.model, len(affected))
    return affected


def resolve_optimistic(effect: EffectNode, cached_keys: Iterable[object], meta: ModelMeta) -> list[QueryKey]:
    """Affected keys that opted into optimistic updates.

    Non-``find*`` keys are kept so a custom data provider can still handle
    them; the default patch leaves them unchanged.
    """
    return [key for key in resolve(effect, cached_keys, meta) if key.optimistic]
