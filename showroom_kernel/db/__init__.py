"""Database layer - engine, base classes, column types."""

from showroom_kernel.db.base import SYSTEM_ACTOR_ID, Base, TrackedBase
from showroom_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from showroom_kernel.db.types import round_money

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "reset_engine",
    "Base",
    "TrackedBase",
    "SYSTEM_ACTOR_ID",
    "round_money",
]
