"""Client configuration loading and normalization.

This package facade re-exports the public names so that
``from querysync.config import ...`` works for both the model and loader.
"""

from __future__ import annotations

from querysync.config.loader import load_config
from querysync.config.model import QuerySyncConfig

__all__ = [
    "QuerySyncConfig",
    "load_config",
]
