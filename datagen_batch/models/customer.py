"""
ORM model for the customer directory table.

The engine only reads this table (see services/directory.py).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from datagen_kernel.db.base import TrackedBase

if TYPE_CHECKING:
    from datagen_batch.domain.types import CustomerDescriptor


class CustomerModel(TrackedBase):
    """Customer directory entry."""

    __tablename__ = "customers"

    __table_args__ = (Index("ix_customers_name", "name"),)

    customer_id: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    segment: Mapped[str] = mapped_column(String(100), nullable=False)
    sector: Mapped[str] = mapped_column(String(100), nullable=False)

    def to_dto(self) -> CustomerDescriptor:
        from datagen_batch.domain.types import CustomerDescriptor

        return CustomerDescriptor(
            customer_id=self.customer_id,
            name=self.name,
            segment=self.segment,
            sector=self.sector,
        )

    @classmethod
    def from_dto(cls, dto: CustomerDescriptor) -> CustomerModel:
        return cls(
            customer_id=dto.customer_id,
            name=dto.name,
            segment=dto.segment,
            sector=dto.sector,
        )
