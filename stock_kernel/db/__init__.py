"""Database layer - engine, base classes, immutability."""

from stock_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from stock_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    run_atomic,
    session_scope,
)

__all__ = [
    "get_engine",
    "get_session",
    "create_tables",
    "run_atomic",
    "session_scope",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
]
