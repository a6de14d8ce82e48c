"""
stock_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files or environment variables directly.

Architecture position:
    Configuration -- sits above ``stock_kernel`` and below
    ``stock_services``.  The kernel MUST NEVER import from
    ``stock_config``; the operations layer passes plain values (database
    URL, policy numbers) down to it.

Resolution order (later wins):
    1. packaged ``defaults.yaml``, or the file named by ``STOCK_CONFIG_PATH``
       (or the ``path`` argument)
    2. ``DATABASE_URL`` environment variable -> database.url
    3. ``STOCK_LOG_LEVEL`` environment variable -> logging.level

Failure modes:
    - ``FileNotFoundError`` -- configured file does not exist.
    - ``yaml.YAMLError`` -- malformed YAML.
    - ``ValueError`` -- schema violations (see ``stock_config.loader``).

Audit relevance:
    Every successful call logs ``stock_config_loaded`` with the config id,
    version, checksum and source path.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from stock_config.loader import load_yaml_file, parse_config
from stock_config.schema import DatabaseConfig, InventoryPolicy, LoggingConfig, StockConfig

_logger = logging.getLogger("stock_kernel.config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

CONFIG_PATH_ENV = "STOCK_CONFIG_PATH"
DATABASE_URL_ENV = "DATABASE_URL"
LOG_LEVEL_ENV = "STOCK_LOG_LEVEL"


def get_active_config(path: Path | str | None = None) -> StockConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: Configuration file.  Defaults to ``$STOCK_CONFIG_PATH`` or
            the packaged defaults.

    Returns:
        Frozen StockConfig.
    """
    source = Path(path or os.environ.get(CONFIG_PATH_ENV) or DEFAULTS_PATH)
    data = load_yaml_file(source)

    overrides: list[str] = []
    database_url = os.environ.get(DATABASE_URL_ENV)
    if database_url:
        data = {**data, "database": {**(data.get("database") or {}), "url": database_url}}
        overrides.append(DATABASE_URL_ENV)
    log_level = os.environ.get(LOG_LEVEL_ENV)
    if log_level:
        data = {**data, "logging": {**(data.get("logging") or {}), "level": log_level}}
        overrides.append(LOG_LEVEL_ENV)

    config = parse_config(data)

    _logger.info(
        "stock_config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": str(source),
            "env_overrides": overrides,
        },
    )
    return config


__all__ = [
    "DatabaseConfig",
    "InventoryPolicy",
    "LoggingConfig",
    "StockConfig",
    "get_active_config",
]
