"""
StockConfig schema.

Typed, frozen view of the runtime configuration.  YAML documents are
parsed into these types by ``stock_config.loader``; callers obtain them
through ``stock_config.get_active_config()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings handed to ``stock_kernel.db.init_engine_from_url``."""

    url: str = "sqlite://"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


# ---------------------------------------------------------------------------
# Inventory policy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InventoryPolicy:
    """
    Business defaults for the operations layer.

    default_return_days     return period offered when the caller gives none
    max_return_days         upper bound accepted for a return period
    near_expiry_days        window for the "expiring soon" medical stock view
    low_stock_threshold     quantity at or below which an item counts as low
    """

    default_return_days: int = 14
    max_return_days: int = 365
    near_expiry_days: int = 30
    low_stock_threshold: int = 10


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StockConfig:
    """The whole runtime configuration."""

    config_id: str = "default"
    version: int = 1
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    inventory: InventoryPolicy = field(default_factory=InventoryPolicy)
    checksum: str = ""
