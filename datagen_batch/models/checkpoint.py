"""
ORM model for the SQL-backed checkpoint store.

One row per ``engine_key``; each save replaces the whole JSON snapshot.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from datagen_kernel.db.base import TrackedBase


class EngineCheckpointModel(TrackedBase):
    """Single keyed checkpoint blob."""

    __tablename__ = "engine_checkpoints"

    engine_key: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    period: Mapped[str] = mapped_column(String(20), nullable=False)
    saved_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    payload: Mapped[str] = mapped_column(Text, nullable=False)  # JSON snapshot
