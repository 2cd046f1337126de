"""Database layer - declarative base, engine construction, session scope."""

from datagen_kernel.db.base import Base, TrackedBase, UUIDString
from datagen_kernel.db.engine import (
    create_engine_from_url,
    create_session_factory,
    create_tables,
    session_scope,
)

__all__ = [
    "Base",
    "TrackedBase",
    "UUIDString",
    "create_engine_from_url",
    "create_session_factory",
    "create_tables",
    "session_scope",
]
