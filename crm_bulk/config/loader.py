from __future__ import annotations

import dataclasses
import json
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import DatabaseConfig, EntityConfig, PipelineConfig
from .entities import builtin_entities

"""Config loader.

Responsibilities:
- Load YAML (config/pipeline.yml by default in the CLI)
- Validate against config_schema.json (shipped next to this module)
- Apply defaults (timezone=UTC, fetch_chunk_size=1000, error_sample_size=3)
- Merge per-entity overrides onto the built-in entity definitions
"""

__all__ = [
    "ConfigError",
    "SCHEMA_PATH",
    "load_config",
    "config_from_dict",
    "default_config",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")

_TUPLE_FIELDS = (
    "required_fields",
    "export_fields",
    "search_fields",
    "country_fields",
    "url_fields",
)


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing / not JSON, or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _build_entity(name: str, raw: dict[str, Any], base: EntityConfig | None) -> EntityConfig:
    values = {k: (tuple(v) if k in _TUPLE_FIELDS else v) for k, v in raw.items()}
    if "header_aliases" in values:
        values["header_aliases"] = {k.strip().lower(): v for k, v in values["header_aliases"].items()}
    if base is not None:
        if "header_aliases" in values:
            # 追加分のみ指定可 (built-in エイリアスは保持)
            values["header_aliases"] = {**base.header_aliases, **values["header_aliases"]}
        return dataclasses.replace(base, **values)
    missing = [k for k in ("table", "natural_key", "export_fields") if k not in values]
    if missing:
        raise ConfigError(f"entity '{name}' missing required keys: {missing}")
    return EntityConfig(name=name, **values)


def _check_timezone(tz: str) -> None:
    try:
        ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"unknown timezone: {tz}") from e


def config_from_dict(data: dict[str, Any]) -> PipelineConfig:
    """Build a PipelineConfig from already-parsed YAML data."""
    _validate_config_schema(data)

    tz = data.get("timezone", "UTC")
    _check_timezone(tz)

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )

    entities = builtin_entities()
    for name, raw in (data.get("entities") or {}).items():
        entities[name] = _build_entity(name, raw or {}, entities.get(name))

    return PipelineConfig(
        entities=entities,
        timezone=tz,
        fetch_chunk_size=data.get("fetch_chunk_size", 1000),
        error_sample_size=data.get("error_sample_size", 3),
        database=db,
    )


def load_config(path: Path) -> PipelineConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")
    return config_from_dict(data)


def default_config() -> PipelineConfig:
    """Built-in entities with default settings (no config file)."""
    return PipelineConfig(entities=builtin_entities())
