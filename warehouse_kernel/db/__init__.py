"""Database layer - engine, base classes, column types."""

from warehouse_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from warehouse_kernel.db.engine import (
    create_sqlite_engine,
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from warehouse_kernel.db.types import LocationText, Sku, TierName, TierQty, TierRate

__all__ = [
    "init_engine_from_url",
    "create_sqlite_engine",
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "drop_tables",
    "reset_engine",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "TierQty",
    "TierRate",
    "Sku",
    "LocationText",
    "TierName",
]
