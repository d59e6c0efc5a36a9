"""Settings loader.

Settings come from environment variables, optionally overlaid by a JSON
file at ~/.vitalcoach/config.json. Invalid values fall back to defaults.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".vitalcoach" / "config.json"

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class AcceleratorConfig:
    """Connection settings for the remote memory accelerator.

    Attributes:
        base_url: Root URL of the accelerator service.
        enabled: Whether the accelerator may be called at all.
        timeout: Per-request timeout in seconds.
        retries: Extra attempts after the first failed request.
        retry_delay: Fixed pause between attempts in seconds.
        health_check_interval: Seconds between background health checks.
        health_check_timeout: Timeout for a single health check.
        stale_after: Seconds after which a health result is ignored.
    """

    base_url: str = "http://localhost:3001"
    enabled: bool = False
    timeout: float = 30.0
    retries: int = 3
    retry_delay: float = 1.0
    health_check_interval: float = 30.0
    health_check_timeout: float = 5.0
    stale_after: float = 60.0

    def __post_init__(self) -> None:
        self.base_url = self.base_url.rstrip("/")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.retries < 0:
            raise ValueError("retries cannot be negative")


@dataclass
class Settings:
    """Top-level service settings.

    Attributes:
        db_path: SQLite database shared by the stores.
        uploads_dir: Directory holding uploaded attachments.
        log_dir: Directory for the JSONL event log.
        memory_cache_ttl: TTL of the contextual memory cache in seconds.
        nutrition_cache_ttl: TTL of the nutrition aggregation cache in seconds.
        groq_api_key: Key for Groq (Whisper transcription, report insights).
        google_api_key: Key for Google Speech-to-Text.
        accelerator: Remote accelerator settings.
    """

    db_path: Path = field(default_factory=lambda: Path.home() / ".vitalcoach" / "vitalcoach.db")
    uploads_dir: Path = field(default_factory=lambda: Path.cwd() / "uploads")
    log_dir: Path = field(default_factory=lambda: Path.home() / ".vitalcoach" / "logs")
    memory_cache_ttl: float = 300.0
    nutrition_cache_ttl: float = 3600.0
    groq_api_key: str | None = None
    google_api_key: str | None = None
    accelerator: AcceleratorConfig = field(default_factory=AcceleratorConfig)


def _parse_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_VALUES
    return default


def _parse_number(value: Any, default: float, name: str, minimum: float = 0.0) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.warning("Invalid value for %s: %r. Using %s.", name, value, default)
        return default
    if number < minimum:
        logger.warning("%s must be >= %s, got %s. Using %s.", name, minimum, number, default)
        return default
    return number


def accelerator_config_from_env(env: Mapping[str, str] | None = None) -> AcceleratorConfig:
    """Build AcceleratorConfig from environment variables.

    Args:
        env: Mapping to read from. Uses os.environ if None.

    Returns:
        AcceleratorConfig with defaults for anything unset or invalid.
    """
    env = os.environ if env is None else env
    defaults = AcceleratorConfig()

    return AcceleratorConfig(
        base_url=env.get("MEMORY_ACCELERATOR_URL", defaults.base_url),
        enabled=_parse_bool(env.get("MEMORY_ACCELERATOR_ENABLED"), defaults.enabled),
        timeout=_parse_number(
            env.get("MEMORY_ACCELERATOR_TIMEOUT", defaults.timeout),
            defaults.timeout,
            "MEMORY_ACCELERATOR_TIMEOUT",
            minimum=0.001,
        ),
        retries=int(
            _parse_number(
                env.get("MEMORY_ACCELERATOR_RETRIES", defaults.retries),
                defaults.retries,
                "MEMORY_ACCELERATOR_RETRIES",
            )
        ),
    )


def load_settings(
    config_path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> Settings:
    """Load Settings from the environment and an optional JSON file.

    The JSON file may contain any of:
    ```json
    {
      "db_path": "~/.vitalcoach/vitalcoach.db",
      "uploads_dir": "./uploads",
      "cache": {"memory_ttl": 300, "nutrition_ttl": 3600},
      "accelerator": {"base_url": "http://localhost:3001", "enabled": true}
    }
    ```

    Args:
        config_path: Path to config file. Uses DEFAULT_CONFIG_PATH if None.
        env: Mapping to read environment variables from.

    Returns:
        Settings instance.
    """
    env = os.environ if env is None else env
    settings = Settings(accelerator=accelerator_config_from_env(env))

    if env.get("VITALCOACH_DB_PATH"):
        settings.db_path = Path(env["VITALCOACH_DB_PATH"]).expanduser()
    if env.get("VITALCOACH_UPLOADS_DIR"):
        settings.uploads_dir = Path(env["VITALCOACH_UPLOADS_DIR"]).expanduser()
    if env.get("VITALCOACH_LOG_DIR"):
        settings.log_dir = Path(env["VITALCOACH_LOG_DIR"]).expanduser()
    settings.groq_api_key = env.get("GROQ_API_KEY") or None
    settings.google_api_key = env.get("GOOGLE_API_KEY") or None

    path = config_path or DEFAULT_CONFIG_PATH
    if not path.exists():
        logger.debug("No config file at %s, using environment only", path)
        return settings

    try:
        with open(path, "r") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.warning("Invalid JSON in %s: %s. Using defaults.", path, e)
        return settings
    except OSError as e:
        logger.warning("Cannot read %s: %s. Using defaults.", path, e)
        return settings

    if not isinstance(data, dict):
        logger.warning("Config in %s is not an object. Using defaults.", path)
        return settings

    return _apply_file_config(settings, data)


def _apply_file_config(settings: Settings, data: dict[str, Any]) -> Settings:
    """Overlay values from a parsed config file onto settings."""
    if isinstance(data.get("db_path"), str):
        settings.db_path = Path(data["db_path"]).expanduser()
    if isinstance(data.get("uploads_dir"), str):
        settings.uploads_dir = Path(data["uploads_dir"]).expanduser()
    if isinstance(data.get("log_dir"), str):
        settings.log_dir = Path(data["log_dir"]).expanduser()

    cache = data.get("cache", {})
    if isinstance(cache, dict):
        if "memory_ttl" in cache:
            settings.memory_cache_ttl = _parse_number(
                cache["memory_ttl"], settings.memory_cache_ttl, "cache.memory_ttl", minimum=1
            )
        if "nutrition_ttl" in cache:
            settings.nutrition_cache_ttl = _parse_number(
                cache["nutrition_ttl"], settings.nutrition_cache_ttl, "cache.nutrition_ttl", minimum=1
            )

    accel = data.get("accelerator", {})
    if isinstance(accel, dict) and accel:
        current = settings.accelerator
        settings.accelerator = AcceleratorConfig(
            base_url=str(accel.get("base_url", current.base_url)),
            enabled=_parse_bool(accel.get("enabled"), current.enabled),
            timeout=_parse_number(
                accel.get("timeout", current.timeout), current.timeout, "accelerator.timeout", minimum=0.001
            ),
            retries=int(
                _parse_number(accel.get("retries", current.retries), current.retries, "accelerator.retries")
            ),
        )

    return settings
