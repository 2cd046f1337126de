"""
Configuration Loader (``datagen_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the typed
``datagen_config.schema`` dataclasses.  Runtime callers go through
``datagen_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Out-of-range values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from datagen_config.schema import (
    CheckpointBackend,
    CheckpointConfig,
    EngineConfig,
    GenerationConfig,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    return data or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of the raw configuration dict."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_generation(data: dict[str, Any], environ: Mapping[str, str]) -> GenerationConfig:
    api_key_env = data.get("api_key_env")
    api_key = environ.get(api_key_env) if api_key_env else None
    timeout = float(data.get("timeout_seconds", 120.0))
    if timeout <= 0:
        raise ValueError(f"generation.timeout_seconds must be positive, got {timeout}")
    return GenerationConfig(
        endpoint_url=data["endpoint_url"],
        api_key_env=api_key_env,
        api_key=api_key,
        timeout_seconds=timeout,
        own_bank_code=str(data.get("own_bank_code", "A")),
    )


def parse_checkpoint(data: dict[str, Any]) -> CheckpointConfig:
    return CheckpointConfig(
        backend=CheckpointBackend(data.get("backend", CheckpointBackend.FILE.value)),
        path=str(data.get("path", CheckpointConfig.path)),
    )


def parse_engine_config(
    data: dict[str, Any],
    environ: Mapping[str, str] | None = None,
) -> EngineConfig:
    """
    Parse a raw configuration dict into an ``EngineConfig``.

    Raises:
        KeyError: if ``engine_key``, ``database_url`` or
            ``generation.endpoint_url`` is missing.
        ValueError: on negative delays / non-positive windows or an unknown
            checkpoint backend.
    """
    env = os.environ if environ is None else environ
    engine = data["engine"]

    delay = float(engine.get("item_delay_seconds", 2.0))
    if delay < 0:
        raise ValueError(f"engine.item_delay_seconds must be >= 0, got {delay}")
    max_age = float(engine.get("checkpoint_max_age_hours", 24.0))
    if max_age <= 0:
        raise ValueError(
            f"engine.checkpoint_max_age_hours must be positive, got {max_age}"
        )

    return EngineConfig(
        engine_key=engine["engine_key"],
        database_url=data["database_url"],
        generation=parse_generation(data["generation"], env),
        checkpoint=parse_checkpoint(data.get("checkpoint") or {}),
        item_delay_seconds=delay,
        checkpoint_max_age_hours=max_age,
        checksum=compute_checksum(data),
    )


def load_engine_config(
    path: Path,
    environ: Mapping[str, str] | None = None,
) -> EngineConfig:
    """Load and parse one YAML configuration set."""
    return parse_engine_config(load_yaml_file(path), environ)
