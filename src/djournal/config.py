"""Configuration loading for the daily journal.

Configuration lives next to the data as TOML or JSON:

    [storage]
    backend = "sqlite"        # or "memory"
    data_dir = "data"
    database = "djournal.db"

    [exports]
    directory = "exports"

    [limits]
    max_image_mb = 20

    [counters]
    strict = false

    [retention]
    max_age_days = 30
    max_count = 100

    [logging]
    level = "INFO"
"""

from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from .models import RetentionPolicy

BACKENDS = ("sqlite", "memory")


@dataclass
class JournalConfig:
    """Configuration for a journal data root."""

    data_root: Path = field(default_factory=Path.cwd)

    # Storage (relative to data_root)
    storage_backend: str = "sqlite"
    data_dir: str = "data"
    database: str = "djournal.db"

    # Where the CLI writes rendered exports
    exports_dir: str = "exports"

    # Decoded image payload limit for activity entries
    max_image_mb: int = 20

    # Reject invalid counter values instead of ignoring them
    strict_counter_values: bool = False

    # Applied to users who never stored their own policy
    default_retention: RetentionPolicy = field(default_factory=RetentionPolicy)

    log_level: str = "INFO"

    @property
    def max_image_bytes(self) -> int:
        return self.max_image_mb * 1024 * 1024

    def get_data_path(self) -> Path:
        return self.data_root / self.data_dir

    def get_database_path(self) -> Path:
        return self.get_data_path() / self.database

    def get_exports_path(self) -> Path:
        return self.data_root / self.exports_dir


def load_toml_config(path: Path) -> dict[str, Any]:
    """Load configuration from TOML file."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_json_config(path: Path) -> dict[str, Any]:
    """Load configuration from JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _non_negative_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
    return value


def dict_to_config(data: dict[str, Any], data_root: Path) -> JournalConfig:
    """Convert dictionary to JournalConfig."""
    config = JournalConfig(data_root=data_root)

    if "storage" in data:
        storage = data["storage"]
        if "backend" in storage:
            if storage["backend"] not in BACKENDS:
                raise ValueError(f"Unknown storage backend: {storage['backend']}")
            config.storage_backend = storage["backend"]
        if "data_dir" in storage:
            config.data_dir = storage["data_dir"]
        if "database" in storage:
            config.database = storage["database"]

    if "exports" in data:
        exports = data["exports"]
        if "directory" in exports:
            config.exports_dir = exports["directory"]

    if "limits" in data:
        limits = data["limits"]
        if "max_image_mb" in limits:
            config.max_image_mb = _non_negative_int(limits["max_image_mb"], "max_image_mb")

    if "counters" in data:
        counters = data["counters"]
        if "strict" in counters:
            config.strict_counter_values = bool(counters["strict"])

    if "retention" in data:
        retention = data["retention"]
        policy = RetentionPolicy()
        if "max_age_days" in retention:
            policy.max_age_days = _non_negative_int(retention["max_age_days"], "max_age_days")
        if "max_count" in retention:
            policy.max_count = _non_negative_int(retention["max_count"], "max_count")
        config.default_retention = policy

    if "logging" in data:
        logging_data = data["logging"]
        if "level" in logging_data:
            config.log_level = str(logging_data["level"]).upper()

    return config


def find_config_file(data_root: Path) -> Optional[Path]:
    """Find configuration file in the data root.

    Search order:
    1. djournal.toml
    2. djournal.json
    3. .djournal.toml
    4. .djournal.json
    """
    candidates = [
        "djournal.toml",
        "djournal.json",
        ".djournal.toml",
        ".djournal.json",
    ]

    for name in candidates:
        path = data_root / name
        if path.exists():
            return path

    return None


def load_config(data_root: Path, config_path: Optional[Path] = None) -> JournalConfig:
    """Load journal configuration.

    Args:
        data_root: Directory holding the data and the config file
        config_path: Optional explicit path to config file

    Returns:
        JournalConfig instance
    """
    if config_path is None:
        config_path = find_config_file(data_root)

    if config_path is None:
        return JournalConfig(data_root=data_root)

    suffix = config_path.suffix.lower()

    if suffix == ".toml":
        return dict_to_config(load_toml_config(config_path), data_root)

    elif suffix == ".json":
        return dict_to_config(load_json_config(config_path), data_root)

    else:
        raise ValueError(f"Unsupported config file type: {suffix}")
