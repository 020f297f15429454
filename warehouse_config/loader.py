"""
Configuration Loader (``warehouse_config.loader``).

Responsibility
--------------
Reads a YAML configuration file and parses it into the frozen
``warehouse_config.schema`` dataclasses.  Runtime callers go through
``warehouse_config.get_active_config()``; this module is the tooling
underneath it.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Unknown keys are rejected (``ValueError``), so a typo cannot silently
  fall back to a default.
* ``compute_checksum`` is a deterministic SHA-256 of the parsed document,
  computed BEFORE environment overrides are applied.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ValueError`` from the schema.
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from warehouse_config.schema import (
    DefaultRateConfig,
    StoreConfig,
    TransferConfig,
    WarehouseConfig,
)

ENV_CONFIG_PATH = "WAREHOUSE_CONFIG"
ENV_DATABASE_URL = "DATABASE_URL"

DEFAULTS_FILE = Path(__file__).parent / "defaults.yaml"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def _build(cls: type, data: Mapping[str, Any] | None, section: str):
    data = dict(data or {})
    known = {f.name for f in dataclasses.fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown key(s) in '{section}': {unknown}")
    return cls(**data)


def parse_default_rate(data: Mapping[str, Any] | None) -> DefaultRateConfig:
    return _build(DefaultRateConfig, data, "default_rate")


def parse_transfer(data: Mapping[str, Any] | None) -> TransferConfig:
    return _build(TransferConfig, data, "transfer")


def parse_store(data: Mapping[str, Any] | None) -> StoreConfig:
    data = dict(data or {})
    if "write_paths" in data:
        paths = data["write_paths"]
        data["write_paths"] = (paths,) if isinstance(paths, str) else tuple(paths)
    return _build(StoreConfig, data, "store")


_SECTIONS = {"default_rate", "transfer", "store", "log_level", "cache_rates"}


def parse_config(data: Mapping[str, Any], source: str | None = None) -> WarehouseConfig:
    """Parse a whole configuration document."""
    unknown = sorted(set(data) - _SECTIONS)
    if unknown:
        raise ValueError(f"Unknown top-level key(s): {unknown}")
    return WarehouseConfig(
        default_rate=parse_default_rate(data.get("default_rate")),
        transfer=parse_transfer(data.get("transfer")),
        store=parse_store(data.get("store")),
        log_level=str(data.get("log_level", "INFO")).upper(),
        cache_rates=bool(data.get("cache_rates", True)),
        checksum=compute_checksum(dict(data)),
        source=source,
    )


def apply_env_overrides(
    config: WarehouseConfig,
    environ: Mapping[str, str] | None = None,
) -> WarehouseConfig:
    """``DATABASE_URL`` replaces ``store.database_url`` when set."""
    env = os.environ if environ is None else environ
    url = env.get(ENV_DATABASE_URL)
    if not url:
        return config
    return dataclasses.replace(
        config, store=dataclasses.replace(config.store, database_url=url)
    )


def load_config(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> WarehouseConfig:
    """
    Load configuration from ``path``, ``$WAREHOUSE_CONFIG``, or the bundled
    defaults, in that order, then apply environment overrides.
    """
    env = os.environ if environ is None else environ
    if path:
        resolved = Path(path)
    elif env.get(ENV_CONFIG_PATH):
        resolved = Path(env[ENV_CONFIG_PATH])
    else:
        resolved = DEFAULTS_FILE
    config = parse_config(load_yaml_file(resolved), source=str(resolved))
    return apply_env_overrides(config, env)


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
