"""Model metadata: field/relation descriptions consumed by every engine component."""

from __future__ import annotations

from querysync.meta.loader import load_model_meta, parse_model_meta
from querysync.meta.model import FieldInfo, ModelInfo, ModelMeta, get_model_meta

__all__ = [
    "FieldInfo",
    "ModelInfo",
    "ModelMeta",
    "get_model_meta",
    "load_model_meta",
    "parse_model_meta",
]
