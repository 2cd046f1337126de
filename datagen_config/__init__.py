"""
datagen_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly; the generation API key is resolved
    here from the environment variable the YAML set names.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration set is missing.
    - ``KeyError`` / ``ValueError`` -- structural validation failures.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping

from datagen_config.loader import load_engine_config
from datagen_config.schema import (
    CheckpointBackend,
    CheckpointConfig,
    EngineConfig,
    GenerationConfig,
)

_logger = logging.getLogger("datagen_kernel.config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
_DEFAULT_SET = "default.yaml"


def get_active_config(
    config_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> EngineConfig:
    """
    Load the active engine configuration.

    Args:
        config_path: YAML set to load.  Defaults to ``sets/default.yaml``.
        environ: Environment mapping for secret resolution (tests).
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_DIR / _DEFAULT_SET
    config = load_engine_config(path, environ)

    _logger.info(
        "datagen_config_loaded",
        extra={
            "config_path": str(path),
            "engine_key": config.engine_key,
            "checksum": config.checksum,
            "checkpoint_backend": config.checkpoint.backend.value,
            "item_delay_seconds": config.item_delay_seconds,
            "api_key_present": config.generation.api_key is not None,
        },
    )
    return config


__all__ = [
    "CheckpointBackend",
    "CheckpointConfig",
    "EngineConfig",
    "GenerationConfig",
    "get_active_config",
]
