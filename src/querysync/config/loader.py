"""Config loading and normalization for querysync clients."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from querysync.config.model import QuerySyncConfig
from querysync.constants.config import (
    ALLOWED_CONFIG_KEYS,
    CONFIG_FILENAME,
    DEFAULT_ENDPOINT,
    DEFAULT_INSERT_POSITION,
    DEFAULT_INVALIDATE_QUERIES,
    DEFAULT_OPTIMISTIC_UPDATE,
    DEFAULT_TIMEOUT_SECONDS,
    VALID_INSERT_POSITIONS,
)
from querysync.exceptions import ConfigError


def load_config(root: Path, config_path: Path | None = None) -> QuerySyncConfig:
    """Load and validate client config from ``querysync.yaml`` or an explicit path."""
    root = root.resolve()
    path = config_path.resolve() if config_path else (root / CONFIG_FILENAME)
    if not path.exists():
        if config_path is not None:
            raise ConfigError(f"Config file not found: {path}")
        return QuerySyncConfig()

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Failed to read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML config file at {path}: {exc}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file at {path} must be a YAML mapping")

    return parse_config(raw)


def parse_config(raw: dict[str, Any]) -> QuerySyncConfig:
    """Build a config from an already-parsed mapping."""
    unknown = sorted(set(raw) - ALLOWED_CONFIG_KEYS)
    if unknown:
        raise ConfigError(f"Unknown config keys: {unknown}")

    endpoint = raw.get("endpoint", DEFAULT_ENDPOINT)
    if not isinstance(endpoint, str) or not endpoint.strip():
        raise ConfigError("endpoint must be a non-empty string")

    optimistic_update = _ensure_bool(raw.get("optimistic_update", DEFAULT_OPTIMISTIC_UPDATE), "optimistic_update")
    invalidate_queries = _ensure_bool(
        raw.get("invalidate_queries", DEFAULT_INVALIDATE_QUERIES),
        "invalidate_queries",
    )

    insert_position = raw.get("insert_position", DEFAULT_INSERT_POSITION)
    if insert_position not in VALID_INSERT_POSITIONS:
        raise ConfigError(
            f"insert_position must be one of {sorted(VALID_INSERT_POSITIONS)}, got {insert_position!r}"
        )

    timeout_seconds = raw.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)
    if isinstance(timeout_seconds, bool) or not isinstance(timeout_seconds, int | float) or timeout_seconds <= 0:
        raise ConfigError("timeout_seconds must be a positive number")

    return QuerySyncConfig(
        endpoint=endpoint.rstrip("/"),
        optimistic_update=optimistic_update,
        invalidate_queries=invalidate_queries,
        insert_position=insert_position,
        timeout_seconds=float(timeout_seconds),
        headers=_normalize_headers(raw.get("headers", {})),
    )


def _ensure_bool(value: Any, key: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"{key} must be a boolean")
    return value


def _normalize_headers(value: Any) -> tuple[tuple[str, str], ...]:
    if value is None:
        return ()
    if not isinstance(value, dict):
        raise ConfigError("headers must be a mapping")
    normalized: list[tuple[str, str]] = []
    for name, header_value in value.items():
        if not isinstance(name, str) or not isinstance(header_value, str):
            raise ConfigError("headers must map strings to strings")
        normalized.append((name, header_value))
    return tuple(sorted(normalized))
