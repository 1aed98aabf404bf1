"""Configuration loading for the slice uploader.

Supports three configuration sources, in priority order:
1. Command-line overrides (applied by the CLI via apply_overrides)
2. Environment variables (UPLOADER_*)
3. A JSON config file (for local development)

Config File Format:
    {
        "uploader": {"chunk_size": 15000000, "max_slices": 8},
        "store": {"endpoint_url": "https://s3.example.com", "region_name": "us-east-1"}
    }

Environment Variable Format:
    UPLOADER_CHUNK_SIZE=15000000
    UPLOADER_SLICED_THRESHOLD=60000000
    UPLOADER_ENDPOINT_URL=https://s3.example.com
    UPLOADER_ACCESS_KEY=xxx
    UPLOADER_SECRET_KEY=xxx
"""

import dataclasses
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from slice_uploader.errors import ConfigError
from slice_uploader.models import StoreConfig

# Config file picked up from the working directory when none is named
DEFAULT_CONFIG_PATH = "uploader.json"

# Network chunk size: 15 MB per write-stream part
DEFAULT_CHUNK_SIZE = 15 * 1000 * 1000

# Files at or below this size are uploaded in a single stream
DEFAULT_SLICED_THRESHOLD = DEFAULT_CHUNK_SIZE * 4

DEFAULT_MAX_SLICES = 8

DEFAULT_RETRY_BACKOFF_SECONDS = 5.0

# Read buffer for the local checksum: 10 MB
DEFAULT_CHECKSUM_BUFFER_SIZE = 10 * 1000 * 1000

# S3 rejects multipart parts smaller than 5 MiB (except the last one)
MIN_CHUNK_SIZE = 5 * 1024 * 1024

# Slices are never shorter than half the threshold, so this keeps every
# composed part above the S3 minimum
MIN_SLICED_THRESHOLD = 2 * MIN_CHUNK_SIZE

# S3 allows at most 10,000 parts per multipart upload
MAX_SLICES_LIMIT = 10000

ADDRESSING_STYLES = ("path", "virtual", "auto")


def _cpu_count() -> int:
    return os.cpu_count() or 1


@dataclass
class UploaderSettings:
    """Tunables for slicing, concurrency and retry."""

    chunk_size: int = DEFAULT_CHUNK_SIZE
    sliced_threshold: int = DEFAULT_SLICED_THRESHOLD
    max_slices: int = DEFAULT_MAX_SLICES
    simultaneous_files: int = field(default_factory=_cpu_count)
    upload_threads: int = field(default_factory=lambda: _cpu_count() * 4)
    retry_backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS
    checksum_buffer_size: int = DEFAULT_CHECKSUM_BUFFER_SIZE
    max_attempts: Optional[int] = None
    key_prefix: str = ""


# Environment variable -> (section, field)
ENV_VARIABLES = {
    "UPLOADER_CHUNK_SIZE": ("uploader", "chunk_size"),
    "UPLOADER_SLICED_THRESHOLD": ("uploader", "sliced_threshold"),
    "UPLOADER_MAX_SLICES": ("uploader", "max_slices"),
    "UPLOADER_SIMULTANEOUS_FILES": ("uploader", "simultaneous_files"),
    "UPLOADER_UPLOAD_THREADS": ("uploader", "upload_threads"),
    "UPLOADER_RETRY_BACKOFF": ("uploader", "retry_backoff_seconds"),
    "UPLOADER_CHECKSUM_BUFFER_SIZE": ("uploader", "checksum_buffer_size"),
    "UPLOADER_MAX_ATTEMPTS": ("uploader", "max_attempts"),
    "UPLOADER_KEY_PREFIX": ("uploader", "key_prefix"),
    "UPLOADER_ENDPOINT_URL": ("store", "endpoint_url"),
    "UPLOADER_REGION": ("store", "region_name"),
    "UPLOADER_ACCESS_KEY": ("store", "aws_access_key_id"),
    "UPLOADER_SECRET_KEY": ("store", "aws_secret_access_key"),
    "UPLOADER_ADDRESSING_STYLE": ("store", "addressing_style"),
}


def _field_types(cls: type) -> dict[str, Any]:
    return {f.name: f.type for f in dataclasses.fields(cls)}


def _coerce(section: str, name: str, value: Any, expected: Any) -> Any:
    """Convert a raw config value to the field's declared type."""
    if value is None:
        return None

    if expected in (int, Optional[int]):
        if isinstance(value, bool):
            raise ConfigError(f"Invalid value for {section}.{name}: {value!r}")
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(
                f"Invalid value for {section}.{name}: expected an integer, got {value!r}"
            ) from e

    if expected is float:
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(
                f"Invalid value for {section}.{name}: expected a number, got {value!r}"
            ) from e

    return str(value)


def _apply(target: Any, section: str, values: dict[str, Any]) -> Any:
    """Return a copy of target with values applied, validating field names."""
    types = _field_types(type(target))
    changes = {}
    for name, raw in values.items():
        if name not in types:
            raise ConfigError(f"Unknown option '{name}' in section '{section}'")
        changes[name] = _coerce(section, name, raw, types[name])
    return dataclasses.replace(target, **changes)


def load_from_json(config_path: str) -> dict[str, dict[str, Any]]:
    """Load raw configuration sections from a JSON file.

    Args:
        config_path: Path to the config file.

    Returns:
        Dictionary with optional "uploader" and "store" sections.

    Raises:
        ConfigError: If the file doesn't exist, contains invalid JSON,
                    or has unknown top-level sections.
    """
    path = Path(config_path)

    if not path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in config file: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError("Config file must contain a JSON object")

    sections: dict[str, dict[str, Any]] = {}
    for section, values in data.items():
        if section not in ("uploader", "store"):
            raise ConfigError(f"Unknown config section '{section}'")
        if not isinstance(values, dict):
            raise ConfigError(f"Config section '{section}' must be an object")
        sections[section] = values

    return sections


def load_from_env() -> dict[str, dict[str, Any]]:
    """Collect raw configuration sections from UPLOADER_* environment variables."""
    sections: dict[str, dict[str, Any]] = {"uploader": {}, "store": {}}

    for env_key, (section, name) in ENV_VARIABLES.items():
        value = os.environ.get(env_key)
        if value is None or value == "":
            continue
        sections[section][name] = value

    return sections


def validate_settings(settings: UploaderSettings) -> UploaderSettings:
    """Check bounds on the uploader settings.

    Raises:
        ConfigError: If any value is out of range.
    """
    if settings.chunk_size < MIN_CHUNK_SIZE:
        raise ConfigError(
            f"chunk_size must be at least {MIN_CHUNK_SIZE} bytes, got {settings.chunk_size}"
        )
    if settings.sliced_threshold < MIN_SLICED_THRESHOLD:
        raise ConfigError(
            f"sliced_threshold must be at least {MIN_SLICED_THRESHOLD} bytes, "
            f"got {settings.sliced_threshold}"
        )
    if not 1 <= settings.max_slices <= MAX_SLICES_LIMIT:
        raise ConfigError(
            f"max_slices must be between 1 and {MAX_SLICES_LIMIT}, got {settings.max_slices}"
        )
    if settings.simultaneous_files < 1:
        raise ConfigError("simultaneous_files must be at least 1")
    if settings.upload_threads < 1:
        raise ConfigError("upload_threads must be at least 1")
    if settings.retry_backoff_seconds < 0:
        raise ConfigError("retry_backoff_seconds must not be negative")
    if settings.checksum_buffer_size < 1:
        raise ConfigError("checksum_buffer_size must be at least 1 byte")
    if settings.max_attempts is not None and settings.max_attempts < 1:
        raise ConfigError("max_attempts must be at least 1 when set")
    return settings


def validate_store(store: StoreConfig) -> StoreConfig:
    """Check the store configuration for obvious mistakes."""
    if store.addressing_style not in ADDRESSING_STYLES:
        raise ConfigError(
            f"addressing_style must be one of {', '.join(ADDRESSING_STYLES)}, "
            f"got '{store.addressing_style}'"
        )
    if bool(store.aws_access_key_id) != bool(store.aws_secret_access_key):
        raise ConfigError("Access key and secret key must be configured together")
    return store


def apply_overrides(
    settings: UploaderSettings,
    overrides: dict[str, Any],
) -> UploaderSettings:
    """Apply non-None overrides (e.g. from CLI flags) and re-validate."""
    values = {k: v for k, v in overrides.items() if v is not None}
    return validate_settings(_apply(settings, "uploader", values))


def load_config(
    config_path: Optional[str] = None,
) -> tuple[UploaderSettings, StoreConfig]:
    """Load uploader settings and store configuration.

    Priority order:
    1. Environment variables
    2. The JSON config file (config_path, or uploader.json if present)
    3. Built-in defaults

    Args:
        config_path: Explicit config file. Missing explicit files are an error;
                    a missing default file is silently ignored.

    Returns:
        Tuple of (UploaderSettings, StoreConfig).

    Raises:
        ConfigError: If a source is malformed or a value is out of range.
    """
    settings = UploaderSettings()
    store = StoreConfig()

    if config_path is not None:
        file_sections = load_from_json(config_path)
    elif Path(DEFAULT_CONFIG_PATH).exists():
        file_sections = load_from_json(DEFAULT_CONFIG_PATH)
    else:
        file_sections = {}

    env_sections = load_from_env()

    for sections in (file_sections, env_sections):
        settings = _apply(settings, "uploader", sections.get("uploader", {}))
        store = _apply(store, "store", sections.get("store", {}))

    return validate_settings(settings), validate_store(store)
