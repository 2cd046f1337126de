"""
Tests for datagen_config -- YAML loading, parsing and the get_active_config
entrypoint.
"""

from __future__ import annotations

import pytest
import yaml

from datagen_config import get_active_config
from datagen_config.loader import (
    compute_checksum,
    load_yaml_file,
    parse_engine_config,
)
from datagen_config.schema import CheckpointBackend, EngineConfig


def _raw(**overrides) -> dict:
    data = {
        "engine": {
            "engine_key": "test_engine",
            "item_delay_seconds": 0.5,
            "checkpoint_max_age_hours": 12,
        },
        "database_url": "sqlite:///test.db",
        "generation": {
            "endpoint_url": "http://generator.test/generate",
            "api_key_env": "TEST_GENERATION_KEY",
            "timeout_seconds": 30,
            "own_bank_code": "Z",
        },
        "checkpoint": {"backend": "database"},
    }
    data.update(overrides)
    return data


class TestParseEngineConfig:
    def test_full_config(self):
        config = parse_engine_config(_raw(), environ={"TEST_GENERATION_KEY": "k-123"})

        assert isinstance(config, EngineConfig)
        assert config.engine_key == "test_engine"
        assert config.item_delay_seconds == 0.5
        assert config.checkpoint_max_age_hours == 12.0
        assert config.database_url == "sqlite:///test.db"
        assert config.generation.endpoint_url == "http://generator.test/generate"
        assert config.generation.timeout_seconds == 30.0
        assert config.generation.own_bank_code == "Z"
        assert config.generation.api_key == "k-123"
        assert config.checkpoint.backend == CheckpointBackend.DATABASE

    def test_api_key_absent_from_environment(self):
        config = parse_engine_config(_raw(), environ={})
        assert config.generation.api_key is None

    def test_api_key_not_in_repr(self):
        config = parse_engine_config(_raw(), environ={"TEST_GENERATION_KEY": "k-123"})
        assert "k-123" not in repr(config)

    def test_defaults(self):
        data = {
            "engine": {"engine_key": "minimal"},
            "database_url": "sqlite://",
            "generation": {"endpoint_url": "http://generator.test"},
        }
        config = parse_engine_config(data, environ={})
        assert config.item_delay_seconds == 2.0
        assert config.checkpoint_max_age_hours == 24.0
        assert config.generation.timeout_seconds == 120.0
        assert config.generation.own_bank_code == "A"
        assert config.checkpoint.backend == CheckpointBackend.FILE
        assert config.checkpoint.path == ".datagen/checkpoint.json"

    def test_missing_engine_key(self):
        data = _raw(engine={"item_delay_seconds": 1})
        with pytest.raises(KeyError):
            parse_engine_config(data, environ={})

    def test_missing_endpoint(self):
        data = _raw(generation={"timeout_seconds": 5})
        with pytest.raises(KeyError):
            parse_engine_config(data, environ={})

    def test_negative_delay(self):
        data = _raw(engine={"engine_key": "x", "item_delay_seconds": -1})
        with pytest.raises(ValueError):
            parse_engine_config(data, environ={})

    def test_zero_max_age(self):
        data = _raw(engine={"engine_key": "x", "checkpoint_max_age_hours": 0})
        with pytest.raises(ValueError):
            parse_engine_config(data, environ={})

    def test_non_positive_timeout(self):
        data = _raw(generation={"endpoint_url": "http://x", "timeout_seconds": 0})
        with pytest.raises(ValueError):
            parse_engine_config(data, environ={})

    def test_unknown_checkpoint_backend(self):
        with pytest.raises(ValueError):
            parse_engine_config(_raw(checkpoint={"backend": "redis"}), environ={})


class TestChecksum:
    def test_stable(self):
        assert compute_checksum(_raw()) == compute_checksum(_raw())

    def test_changes_with_content(self):
        other = _raw(database_url="sqlite:///other.db")
        assert compute_checksum(_raw()) != compute_checksum(other)

    def test_recorded_on_config(self):
        config = parse_engine_config(_raw(), environ={})
        assert config.checksum == compute_checksum(_raw())


class TestLoadYaml:
    def test_load_file(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text(yaml.safe_dump(_raw()), encoding="utf-8")
        assert load_yaml_file(path) == _raw()

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_yaml_file(path) == {}

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_yaml_file(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("engine: [unclosed", encoding="utf-8")
        with pytest.raises(yaml.YAMLError):
            load_yaml_file(path)


class TestGetActiveConfig:
    def test_default_set(self):
        config = get_active_config(environ={"DATAGEN_GENERATION_API_KEY": "abc"})

        assert config.engine_key == "primary_bank_engine"
        assert config.item_delay_seconds == 2.0
        assert config.checkpoint_max_age_hours == 24.0
        assert config.checkpoint.backend == CheckpointBackend.FILE
        assert config.generation.api_key_env == "DATAGEN_GENERATION_API_KEY"
        assert config.generation.api_key == "abc"
        assert config.generation.own_bank_code == "A"

    def test_explicit_path(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text(yaml.safe_dump(_raw()), encoding="utf-8")

        config = get_active_config(path, environ={})
        assert config.engine_key == "test_engine"

    def test_logs_config_trace(self, tmp_path, captured_logs):
        path = tmp_path / "engine.yaml"
        path.write_text(yaml.safe_dump(_raw()), encoding="utf-8")

        get_active_config(path, environ={"TEST_GENERATION_KEY": "secret"})

        logs = captured_logs()
        loaded = [r for r in logs if r["message"] == "datagen_config_loaded"]
        assert len(loaded) == 1
        assert loaded[0]["engine_key"] == "test_engine"
        assert loaded[0]["api_key_present"] is True
        assert loaded[0]["checkpoint_backend"] == "database"
        assert all("secret" not in str(r) for r in logs)
