"""
ORM models for the five dataset section tables.

Contract:
    One table per ``Section``.  Every table carries ``period`` and
    ``customer_id`` plus a per-section discriminator; together they form the
    natural composite key, enforced by a UNIQUE constraint that the
    persistence adapter targets with ``ON CONFLICT ... DO UPDATE``.

Architecture: datagen_batch/models.  Imports from datagen_kernel.db.base only.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Date, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from datagen_batch.domain.types import Section
from datagen_kernel.db.base import TrackedBase

if TYPE_CHECKING:
    from datagen_batch.domain.records import (
        ChannelARecord,
        ChannelBRecord,
        CollateralRecord,
        DetailRecord,
        SummaryRecord,
    )


class SummaryRecordModel(TrackedBase):
    """Per-bank loan summary row."""

    __tablename__ = "primary_bank_loan_summary"

    __table_args__ = (
        UniqueConstraint(
            "period", "customer_id", "bank_code",
            name="uq_loan_summary_natural_key",
        ),
        Index("ix_loan_summary_period", "period"),
    )

    period: Mapped[str] = mapped_column(String(20), nullable=False)
    customer_id: Mapped[str] = mapped_column(String(100), nullable=False)
    bank_code: Mapped[str] = mapped_column(String(10), nullable=False)
    our_bank_flag: Mapped[bool] = mapped_column(Boolean, nullable=False)
    cash_loan: Mapped[Decimal] = mapped_column(nullable=False)
    non_cash_loan: Mapped[Decimal] = mapped_column(nullable=False)
    last_approval_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    def to_record(self) -> SummaryRecord:
        from datagen_batch.domain.records import SummaryRecord

        return SummaryRecord(
            bank_code=self.bank_code,
            our_bank_flag=self.our_bank_flag,
            cash_loan=self.cash_loan,
            non_cash_loan=self.non_cash_loan,
            last_approval_date=self.last_approval_date,
        )


class DetailRecordModel(TrackedBase):
    """Per-account loan detail row."""

    __tablename__ = "primary_bank_loan_detail"

    __table_args__ = (
        UniqueConstraint(
            "period", "customer_id", "bank_code", "account_id",
            name="uq_loan_detail_natural_key",
        ),
        Index("ix_loan_detail_period", "period"),
    )

    period: Mapped[str] = mapped_column(String(20), nullable=False)
    customer_id: Mapped[str] = mapped_column(String(100), nullable=False)
    bank_code: Mapped[str] = mapped_column(String(10), nullable=False)
    account_id: Mapped[str] = mapped_column(String(100), nullable=False)
    our_bank_flag: Mapped[bool] = mapped_column(Boolean, nullable=False)
    loan_type: Mapped[str] = mapped_column(String(100), nullable=False)
    loan_status: Mapped[str] = mapped_column(String(50), nullable=False)
    open_date: Mapped[date] = mapped_column(Date, nullable=False)
    open_amount: Mapped[Decimal] = mapped_column(nullable=False)
    current_amount: Mapped[Decimal] = mapped_column(nullable=False)

    def to_record(self) -> DetailRecord:
        from datagen_batch.domain.records import DetailRecord

        return DetailRecord(
            bank_code=self.bank_code,
            account_id=self.account_id,
            our_bank_flag=self.our_bank_flag,
            loan_type=self.loan_type,
            loan_status=self.loan_status,
            open_date=self.open_date,
            open_amount=self.open_amount,
            current_amount=self.current_amount,
        )


class ChannelARecordModel(TrackedBase):
    """POS volume row (one per customer and period)."""

    __tablename__ = "primary_bank_pos"

    __table_args__ = (
        UniqueConstraint("period", "customer_id", name="uq_pos_natural_key"),
        Index("ix_pos_period", "period"),
    )

    period: Mapped[str] = mapped_column(String(20), nullable=False)
    customer_id: Mapped[str] = mapped_column(String(100), nullable=False)
    total_pos_volume: Mapped[Decimal] = mapped_column(nullable=False)
    our_bank_pos_volume: Mapped[Decimal] = mapped_column(nullable=False)
    number_of_banks: Mapped[int] = mapped_column(Integer, nullable=False)
    pos_share: Mapped[Decimal] = mapped_column(nullable=False)

    def to_record(self) -> ChannelARecord:
        from datagen_batch.domain.records import ChannelARecord

        return ChannelARecord(
            total_pos_volume=self.total_pos_volume,
            our_bank_pos_volume=self.our_bank_pos_volume,
            number_of_banks=self.number_of_banks,
            pos_share=self.pos_share,
        )


class ChannelBRecordModel(TrackedBase):
    """Cheque volume row (one per customer and period)."""

    __tablename__ = "primary_bank_cheque"

    __table_args__ = (
        UniqueConstraint("period", "customer_id", name="uq_cheque_natural_key"),
        Index("ix_cheque_period", "period"),
    )

    period: Mapped[str] = mapped_column(String(20), nullable=False)
    customer_id: Mapped[str] = mapped_column(String(100), nullable=False)
    cheque_volume_1m: Mapped[Decimal] = mapped_column(nullable=False)
    cheque_volume_3m: Mapped[Decimal] = mapped_column(nullable=False)
    cheque_volume_12m: Mapped[Decimal] = mapped_column(nullable=False)

    def to_record(self) -> ChannelBRecord:
        from datagen_batch.domain.records import ChannelBRecord

        return ChannelBRecord(
            cheque_volume_1m=self.cheque_volume_1m,
            cheque_volume_3m=self.cheque_volume_3m,
            cheque_volume_12m=self.cheque_volume_12m,
        )


class CollateralRecordModel(TrackedBase):
    """Per-bank collateral row."""

    __tablename__ = "primary_bank_collateral"

    __table_args__ = (
        UniqueConstraint(
            "period", "customer_id", "bank_code",
            name="uq_collateral_natural_key",
        ),
        Index("ix_collateral_period", "period"),
    )

    period: Mapped[str] = mapped_column(String(20), nullable=False)
    customer_id: Mapped[str] = mapped_column(String(100), nullable=False)
    bank_code: Mapped[str] = mapped_column(String(10), nullable=False)
    our_bank_flag: Mapped[bool] = mapped_column(Boolean, nullable=False)
    group1_amount: Mapped[Decimal] = mapped_column(nullable=False)
    group2_amount: Mapped[Decimal] = mapped_column(nullable=False)
    group3_amount: Mapped[Decimal] = mapped_column(nullable=False)
    group4_amount: Mapped[Decimal] = mapped_column(nullable=False)

    def to_record(self) -> CollateralRecord:
        from datagen_batch.domain.records import CollateralRecord

        return CollateralRecord(
            bank_code=self.bank_code,
            our_bank_flag=self.our_bank_flag,
            group1_amount=self.group1_amount,
            group2_amount=self.group2_amount,
            group3_amount=self.group3_amount,
            group4_amount=self.group4_amount,
        )


@dataclass(frozen=True)
class SectionTable:
    """Model and natural-key columns for one section."""

    model: type[TrackedBase]
    natural_key: tuple[str, ...]


SECTION_TABLES: dict[Section, SectionTable] = {
    Section.SUMMARY: SectionTable(
        SummaryRecordModel, ("period", "customer_id", "bank_code"),
    ),
    Section.DETAIL: SectionTable(
        DetailRecordModel, ("period", "customer_id", "bank_code", "account_id"),
    ),
    Section.CHANNEL_A: SectionTable(
        ChannelARecordModel, ("period", "customer_id"),
    ),
    Section.CHANNEL_B: SectionTable(
        ChannelBRecordModel, ("period", "customer_id"),
    ),
    Section.COLLATERAL: SectionTable(
        CollateralRecordModel, ("period", "customer_id", "bank_code"),
    ),
}
