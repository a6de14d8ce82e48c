"""Database infrastructure: declarative base, engine/session management, error translation."""

from stock_kernel.db.base import Base, TimestampedBase, TrackedBase, UUIDString
from stock_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from stock_kernel.db.errors import store_errors

__all__ = [
    "Base",
    "TimestampedBase",
    "TrackedBase",
    "UUIDString",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_url",
    "reset_engine",
    "session_scope",
    "store_errors",
]
