"""Database layer - engine, base classes, types, and immutability listeners."""

from treasury_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from treasury_kernel.db.engine import create_tables, get_engine, get_session, session_scope
from treasury_kernel.db.types import period_key, round_money

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "period_key",
    "round_money",
]
