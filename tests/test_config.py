"""Tests for settings loading."""

import json
from pathlib import Path

import pytest

from vitalcoach.config import AcceleratorConfig, accelerator_config_from_env, load_settings


class TestAcceleratorConfig:
    """Tests for AcceleratorConfig."""

    def test_defaults(self):
        config = AcceleratorConfig()
        assert config.base_url == "http://localhost:3001"
        assert config.enabled is False
        assert config.timeout == 30.0
        assert config.retries == 3

    def test_strips_trailing_slash(self):
        assert AcceleratorConfig(base_url="http://accel:9000/").base_url == "http://accel:9000"

    @pytest.mark.parametrize("kwargs", [{"timeout": 0}, {"retries": -1}])
    def test_rejects_invalid(self, kwargs):
        with pytest.raises(ValueError):
            AcceleratorConfig(**kwargs)


class TestAcceleratorFromEnv:
    """Tests for environment parsing."""

    def test_reads_all_variables(self):
        config = accelerator_config_from_env(
            {
                "MEMORY_ACCELERATOR_URL": "http://accel:9000",
                "MEMORY_ACCELERATOR_ENABLED": "true",
                "MEMORY_ACCELERATOR_TIMEOUT": "2.5",
                "MEMORY_ACCELERATOR_RETRIES": "1",
            }
        )
        assert config.base_url == "http://accel:9000"
        assert config.enabled is True
        assert config.timeout == 2.5
        assert config.retries == 1

    def test_invalid_values_fall_back(self):
        config = accelerator_config_from_env(
            {"MEMORY_ACCELERATOR_TIMEOUT": "soon", "MEMORY_ACCELERATOR_RETRIES": "-2"}
        )
        assert config.timeout == 30.0
        assert config.retries == 3

    def test_enabled_is_opt_in(self):
        assert accelerator_config_from_env({"MEMORY_ACCELERATOR_ENABLED": "nope"}).enabled is False


class TestLoadSettings:
    """Tests for load_settings."""

    def test_env_paths_and_keys(self, tmp_path: Path):
        settings = load_settings(
            tmp_path / "missing.json",
            env={
                "VITALCOACH_DB_PATH": str(tmp_path / "db.sqlite"),
                "VITALCOACH_UPLOADS_DIR": str(tmp_path / "uploads"),
                "GROQ_API_KEY": "gsk-test",
            },
        )
        assert settings.db_path == tmp_path / "db.sqlite"
        assert settings.uploads_dir == tmp_path / "uploads"
        assert settings.groq_api_key == "gsk-test"
        assert settings.google_api_key is None

    def test_file_overlay(self, tmp_path: Path):
        config_file = tmp_path / "config.json"
        config_file.write_text(
            json.dumps(
                {
                    "uploads_dir": str(tmp_path / "files"),
                    "cache": {"memory_ttl": 60, "nutrition_ttl": "bad"},
                    "accelerator": {"enabled": True, "retries": 5},
                }
            )
        )
        settings = load_settings(config_file, env={})

        assert settings.uploads_dir == tmp_path / "files"
        assert settings.memory_cache_ttl == 60
        assert settings.nutrition_cache_ttl == 3600.0
        assert settings.accelerator.enabled is True
        assert settings.accelerator.retries == 5

    def test_invalid_json_uses_defaults(self, tmp_path: Path):
        config_file = tmp_path / "config.json"
        config_file.write_text("{not json")
        settings = load_settings(config_file, env={})
        assert settings.memory_cache_ttl == 300.0

    def test_non_object_uses_defaults(self, tmp_path: Path):
        config_file = tmp_path / "config.json"
        config_file.write_text("[1, 2]")
        assert load_settings(config_file, env={}).accelerator.enabled is False
