"""Database layer - engine, base classes, types, and immutability listeners."""

from milestone_kernel.db.base import UUID, Base, TrackedBase, UTCDateTime, UUIDString
from milestone_kernel.db.engine import (
    build_engine,
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    init_engine_from_url,
)
from milestone_kernel.db.immutability import register_immutability_listeners
from milestone_kernel.db.types import round_money

__all__ = [
    "build_engine",
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "create_tables",
    "drop_tables",
    "register_immutability_listeners",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UTCDateTime",
    "UUID",
    "round_money",
]
