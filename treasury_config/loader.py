"""
Configuration Loader (``treasury_config.loader``).

Responsibility
--------------
Reads YAML settings files and parses them into ``TreasurySettings``.
Layers, later wins:

1. packaged ``defaults.yaml``
2. the file named by ``TREASURY_CONFIG`` (or an explicit path)
3. environment overrides ``TREASURY_DATABASE_URL`` and ``TREASURY_LOG_LEVEL``

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or bad values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import os
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Mapping

import yaml

from treasury_config.schema import TreasurySettings

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

ENV_CONFIG_FILE = "TREASURY_CONFIG"
ENV_DATABASE_URL = "TREASURY_DATABASE_URL"
ENV_LOG_LEVEL = "TREASURY_LOG_LEVEL"

_KNOWN_KEYS = frozenset(
    {"database_url", "echo_sql", "balance_tolerance", "import_actor", "log_level", "source_path"}
)
_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


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
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def _parse_tolerance(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"balance_tolerance must be a number, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"balance_tolerance must be a number, got {value!r}") from None


def parse_settings(data: Mapping[str, Any]) -> TreasurySettings:
    """
    Build settings from a merged dict.

    Raises:
        ValueError: unknown keys, a bad tolerance or an unknown log level.
        KeyError: database_url missing.
    """
    unknown = set(data) - _KNOWN_KEYS
    if unknown:
        raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")

    log_level = str(data.get("log_level", "INFO")).upper()
    if log_level not in _LOG_LEVELS:
        raise ValueError(f"Unknown log level {log_level!r}")

    fields = {
        "database_url": str(data["database_url"]),
        "echo_sql": bool(data.get("echo_sql", False)),
        "balance_tolerance": _parse_tolerance(data.get("balance_tolerance", "0.50")),
        "import_actor": str(data.get("import_actor", "import-system")),
        "log_level": log_level,
        "source_path": data.get("source_path"),
    }
    return TreasurySettings(**fields, checksum=compute_checksum(fields))


def load_settings(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> TreasurySettings:
    """Merge defaults, the optional settings file and environment overrides."""
    environ = os.environ if environ is None else environ

    merged = load_yaml_file(DEFAULTS_PATH)

    override_path = path or environ.get(ENV_CONFIG_FILE)
    if override_path:
        merged.update(load_yaml_file(Path(override_path)))

    if environ.get(ENV_DATABASE_URL):
        merged["database_url"] = environ[ENV_DATABASE_URL]
    if environ.get(ENV_LOG_LEVEL):
        merged["log_level"] = environ[ENV_LOG_LEVEL]

    return parse_settings(merged)


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
