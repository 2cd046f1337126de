"""
Configuration schema (``datagen_config.schema``).

Frozen dataclasses describing one engine configuration set.  Parsed from
YAML by ``datagen_config.loader``; consumed by the orchestrator.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class CheckpointBackend(str, Enum):
    """Where the engine keeps its single checkpoint record."""

    FILE = "file"
    DATABASE = "database"


@dataclass(frozen=True)
class CheckpointConfig:
    backend: CheckpointBackend = CheckpointBackend.FILE
    path: str = ".datagen/checkpoint.json"  # FILE backend only


@dataclass(frozen=True)
class GenerationConfig:
    """Generation service endpoint and call settings."""

    endpoint_url: str
    api_key_env: str | None = None  # Name of the env var holding the key
    api_key: str | None = field(default=None, repr=False)  # Resolved at load
    timeout_seconds: float = 120.0
    own_bank_code: str = "A"


@dataclass(frozen=True)
class EngineConfig:
    """Top-level engine configuration."""

    engine_key: str
    database_url: str
    generation: GenerationConfig
    checkpoint: CheckpointConfig = field(default_factory=CheckpointConfig)
    item_delay_seconds: float = 2.0
    checkpoint_max_age_hours: float = 24.0
    checksum: str = ""
