"""Tests for client configuration loading."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from querysync.config import QuerySyncConfig, load_config
from querysync.config.loader import parse_config
from querysync.exceptions import ConfigError


def test_missing_default_file_gives_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert config == QuerySyncConfig()
    assert config.endpoint == "/api/model"
    assert config.optimistic_update is False
    assert config.invalidate_queries is True
    assert config.insert_position == "append"


def test_load_from_root_file(tmp_path: Path) -> None:
    (tmp_path / "querysync.yaml").write_text(
        "endpoint: https://api.example.com/model/\n"
        "optimistic_update: true\n"
        "insert_position: prepend\n"
        "timeout_seconds: 5\n"
        "headers:\n"
        "  x-tenant: acme\n",
        encoding="utf-8",
    )

    config = load_config(tmp_path)

    assert config.endpoint == "https://api.example.com/model"
    assert config.optimistic_update is True
    assert config.insert_position == "prepend"
    assert config.timeout_seconds == 5.0
    assert config.header_map == {"x-tenant": "acme"}


def test_empty_file_gives_defaults(tmp_path: Path) -> None:
    path = tmp_path / "custom.yaml"
    path.write_text("", encoding="utf-8")

    assert load_config(tmp_path, path) == QuerySyncConfig()


def test_explicit_missing_file_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path, tmp_path / "nope.yaml")


def test_invalid_yaml_is_an_error(tmp_path: Path) -> None:
    (tmp_path / "querysync.yaml").write_text("endpoint: [\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_config(tmp_path)


def test_non_mapping_file_is_an_error(tmp_path: Path) -> None:
    (tmp_path / "querysync.yaml").write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="mapping"):
        load_config(tmp_path)


@pytest.mark.parametrize(
    ("raw", "expected_match"),
    [
        ({"endpont": "/x"}, "Unknown config keys"),
        ({"endpoint": ""}, "endpoint"),
        ({"optimistic_update": "yes"}, "optimistic_update must be a boolean"),
        ({"invalidate_queries": 1}, "invalidate_queries must be a boolean"),
        ({"insert_position": "middle"}, "insert_position"),
        ({"timeout_seconds": 0}, "timeout_seconds"),
        ({"timeout_seconds": True}, "timeout_seconds"),
        ({"headers": ["a"]}, "headers must be a mapping"),
        ({"headers": {"a": 1}}, "strings to strings"),
    ],
    ids=[
        "unknown_key",
        "empty_endpoint",
        "optimistic_not_bool",
        "invalidate_not_bool",
        "bad_insert_position",
        "zero_timeout",
        "bool_timeout",
        "headers_not_mapping",
        "header_not_string",
    ],
)
def test_invalid_values_are_rejected(raw: dict[str, Any], expected_match: str) -> None:
    with pytest.raises(ConfigError, match=expected_match):
        parse_config(raw)
