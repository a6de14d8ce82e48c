"""
Configuration Loader (``stock_config.loader``).

Responsibility
--------------
Loads a YAML configuration document and parses it into the typed
``stock_config.schema`` dataclasses.  Runtime callers use
``stock_config.get_active_config()`` instead of calling this directly.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Unknown keys are rejected (``ValueError``) so a typo never silently
  falls back to a default.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  parsed document for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong types, unknown keys or out-of-range values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from stock_config.schema import DatabaseConfig, InventoryPolicy, LoggingConfig, StockConfig

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_ABSOLUTE_MAX_RETURN_DAYS = 365


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def _check_keys(section: str, data: dict[str, Any], cls: type) -> None:
    allowed = {f.name for f in fields(cls)}
    unknown = set(data) - allowed
    if unknown:
        raise ValueError(f"Unknown key(s) in {section}: {', '.join(sorted(unknown))}")


def _int(section: str, key: str, value: Any, minimum: int = 0) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{section}.{key} must be an integer, got {value!r}")
    if value < minimum:
        raise ValueError(f"{section}.{key} must be >= {minimum}, got {value}")
    return value


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    """Parse a DatabaseConfig from a dict."""
    _check_keys("database", data, DatabaseConfig)
    defaults = DatabaseConfig()
    url = data.get("url", defaults.url)
    if not isinstance(url, str) or not url:
        raise ValueError("database.url must be a non-empty string")
    return DatabaseConfig(
        url=url,
        echo=bool(data.get("echo", defaults.echo)),
        pool_size=_int("database", "pool_size", data.get("pool_size", defaults.pool_size), 1),
        max_overflow=_int(
            "database", "max_overflow", data.get("max_overflow", defaults.max_overflow)
        ),
        pool_timeout=_int(
            "database", "pool_timeout", data.get("pool_timeout", defaults.pool_timeout), 1
        ),
        pool_recycle=_int(
            "database", "pool_recycle", data.get("pool_recycle", defaults.pool_recycle)
        ),
    )


def parse_logging(data: dict[str, Any]) -> LoggingConfig:
    """Parse a LoggingConfig from a dict."""
    _check_keys("logging", data, LoggingConfig)
    level = str(data.get("level", LoggingConfig().level)).upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"logging.level must be one of {', '.join(_LOG_LEVELS)}, got {level!r}")
    return LoggingConfig(level=level)


def parse_inventory(data: dict[str, Any]) -> InventoryPolicy:
    """
    Parse an InventoryPolicy from a dict.

    max_return_days is capped at 365; default_return_days must fit in
    [1, max_return_days].
    """
    _check_keys("inventory", data, InventoryPolicy)
    defaults = InventoryPolicy()
    max_days = _int(
        "inventory", "max_return_days", data.get("max_return_days", defaults.max_return_days), 1
    )
    if max_days > _ABSOLUTE_MAX_RETURN_DAYS:
        raise ValueError(
            f"inventory.max_return_days must be <= {_ABSOLUTE_MAX_RETURN_DAYS}, got {max_days}"
        )
    default_days = _int(
        "inventory",
        "default_return_days",
        data.get("default_return_days", defaults.default_return_days),
        1,
    )
    if default_days > max_days:
        raise ValueError(
            "inventory.default_return_days must not exceed inventory.max_return_days"
        )
    return InventoryPolicy(
        default_return_days=default_days,
        max_return_days=max_days,
        near_expiry_days=_int(
            "inventory",
            "near_expiry_days",
            data.get("near_expiry_days", defaults.near_expiry_days),
        ),
        low_stock_threshold=_int(
            "inventory",
            "low_stock_threshold",
            data.get("low_stock_threshold", defaults.low_stock_threshold),
        ),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of a configuration document."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_config(data: dict[str, Any]) -> StockConfig:
    """
    Parse a whole configuration document.

    Raises:
        ValueError: Unknown keys, wrong types or out-of-range values.
    """
    allowed = {"config_id", "version", "database", "logging", "inventory"}
    unknown = set(data) - allowed
    if unknown:
        raise ValueError(f"Unknown top-level key(s): {', '.join(sorted(unknown))}")

    return StockConfig(
        config_id=str(data.get("config_id", "default")),
        version=_int("config", "version", data.get("version", 1), 1),
        database=parse_database(data.get("database") or {}),
        logging=parse_logging(data.get("logging") or {}),
        inventory=parse_inventory(data.get("inventory") or {}),
        checksum=compute_checksum(data),
    )
