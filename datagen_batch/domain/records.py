"""
datagen_batch.domain.records -- Generated dataset sections.

ZERO I/O.  Each section row is a frozen dataclass with a ``from_wire`` /
``to_wire`` pair used both for the generation service payload and for the
checkpoint snapshot.  Amounts are ``Decimal`` (parsed via ``str`` so JSON
floats keep their shortest representation); dates are ISO strings on the
wire.

``from_wire`` raises ``KeyError`` / ``ValueError`` / ``TypeError`` on bad
input; the generation client turns those into
``MalformedGenerationResponseError``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from datagen_batch.domain.types import Section


def _decimal(data: dict[str, Any], key: str) -> Decimal:
    value = data[key]
    if value is None or isinstance(value, bool):
        raise ValueError(f"{key} must be a number, got {value!r}")
    try:
        amount = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{key} must be a number, got {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"{key} must be finite, got {value!r}")
    return amount


def _bool(data: dict[str, Any], key: str) -> bool:
    value = data[key]
    if not isinstance(value, bool):
        raise ValueError(f"{key} must be a boolean, got {value!r}")
    return value


def _date(data: dict[str, Any], key: str, optional: bool = False) -> date | None:
    value = data.get(key) if optional else data[key]
    if value in (None, "") and optional:
        return None
    return date.fromisoformat(str(value))


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class SummaryRecord:
    """Per-bank loan totals.  Natural key: (period, customer, bank_code)."""

    bank_code: str
    our_bank_flag: bool
    cash_loan: Decimal
    non_cash_loan: Decimal
    last_approval_date: date | None = None

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> SummaryRecord:
        return cls(
            bank_code=str(data["bank_code"]),
            our_bank_flag=_bool(data, "our_bank_flag"),
            cash_loan=_decimal(data, "cash_loan"),
            non_cash_loan=_decimal(data, "non_cash_loan"),
            last_approval_date=_date(data, "last_approval_date", optional=True),
        )

    def to_wire(self) -> dict[str, Any]:
        return {
            "bank_code": self.bank_code,
            "our_bank_flag": self.our_bank_flag,
            "cash_loan": str(self.cash_loan),
            "non_cash_loan": str(self.non_cash_loan),
            "last_approval_date": _iso(self.last_approval_date),
        }


@dataclass(frozen=True)
class DetailRecord:
    """One loan account.  Natural key: (period, customer, bank_code, account_id)."""

    bank_code: str
    account_id: str
    our_bank_flag: bool
    loan_type: str
    loan_status: str
    open_date: date
    open_amount: Decimal
    current_amount: Decimal

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> DetailRecord:
        return cls(
            bank_code=str(data["bank_code"]),
            account_id=str(data["account_id"]),
            our_bank_flag=_bool(data, "our_bank_flag"),
            loan_type=str(data["loan_type"]),
            loan_status=str(data["loan_status"]),
            open_date=_date(data, "open_date"),
            open_amount=_decimal(data, "open_amount"),
            current_amount=_decimal(data, "current_amount"),
        )

    def to_wire(self) -> dict[str, Any]:
        return {
            "bank_code": self.bank_code,
            "account_id": self.account_id,
            "our_bank_flag": self.our_bank_flag,
            "loan_type": self.loan_type,
            "loan_status": self.loan_status,
            "open_date": _iso(self.open_date),
            "open_amount": str(self.open_amount),
            "current_amount": str(self.current_amount),
        }


@dataclass(frozen=True)
class ChannelARecord:
    """POS volumes.  Natural key: (period, customer)."""

    total_pos_volume: Decimal
    our_bank_pos_volume: Decimal
    number_of_banks: int
    pos_share: Decimal  # Percentage 0-100

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> ChannelARecord:
        banks = data["number_of_banks"]
        whole = isinstance(banks, int) or (isinstance(banks, float) and banks.is_integer())
        if isinstance(banks, bool) or not whole:
            raise ValueError(f"number_of_banks must be an integer, got {banks!r}")
        return cls(
            total_pos_volume=_decimal(data, "total_pos_volume"),
            our_bank_pos_volume=_decimal(data, "our_bank_pos_volume"),
            number_of_banks=int(banks),
            pos_share=_decimal(data, "pos_share"),
        )

    def to_wire(self) -> dict[str, Any]:
        return {
            "total_pos_volume": str(self.total_pos_volume),
            "our_bank_pos_volume": str(self.our_bank_pos_volume),
            "number_of_banks": self.number_of_banks,
            "pos_share": str(self.pos_share),
        }


@dataclass(frozen=True)
class ChannelBRecord:
    """Cheque volumes over 1/3/12 months.  Natural key: (period, customer)."""

    cheque_volume_1m: Decimal
    cheque_volume_3m: Decimal
    cheque_volume_12m: Decimal

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> ChannelBRecord:
        return cls(
            cheque_volume_1m=_decimal(data, "cheque_volume_1m"),
            cheque_volume_3m=_decimal(data, "cheque_volume_3m"),
            cheque_volume_12m=_decimal(data, "cheque_volume_12m"),
        )

    def to_wire(self) -> dict[str, Any]:
        return {
            "cheque_volume_1m": str(self.cheque_volume_1m),
            "cheque_volume_3m": str(self.cheque_volume_3m),
            "cheque_volume_12m": str(self.cheque_volume_12m),
        }


@dataclass(frozen=True)
class CollateralRecord:
    """Per-bank collateral by liquidity group.  Natural key: (period, customer, bank_code).

    group1: cash/deposit, group2: real estate/machinery,
    group3: commercial receivables, group4: other guarantees.
    """

    bank_code: str
    our_bank_flag: bool
    group1_amount: Decimal
    group2_amount: Decimal
    group3_amount: Decimal
    group4_amount: Decimal

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> CollateralRecord:
        return cls(
            bank_code=str(data["bank_code"]),
            our_bank_flag=_bool(data, "our_bank_flag"),
            group1_amount=_decimal(data, "group1_amount"),
            group2_amount=_decimal(data, "group2_amount"),
            group3_amount=_decimal(data, "group3_amount"),
            group4_amount=_decimal(data, "group4_amount"),
        )

    def to_wire(self) -> dict[str, Any]:
        return {
            "bank_code": self.bank_code,
            "our_bank_flag": self.our_bank_flag,
            "group1_amount": str(self.group1_amount),
            "group2_amount": str(self.group2_amount),
            "group3_amount": str(self.group3_amount),
            "group4_amount": str(self.group4_amount),
        }


# Wire keys of the generation service response, per section
WIRE_KEYS: dict[Section, str] = {
    Section.SUMMARY: "summary",
    Section.DETAIL: "detail",
    Section.CHANNEL_A: "channelA",
    Section.CHANNEL_B: "channelB",
    Section.COLLATERAL: "collateral",
}


def _rows(data: dict[str, Any], key: str, record_type: type) -> tuple | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, list):
        raise ValueError(f"{key} must be a list, got {type(value).__name__}")
    return tuple(record_type.from_wire(row) for row in value)


def _single(data: dict[str, Any], key: str, record_type: type):
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ValueError(f"{key} must be an object, got {type(value).__name__}")
    return record_type.from_wire(value)


@dataclass(frozen=True)
class GeneratedDataset:
    """Output of one generation call.  ``None`` means "not generated"."""

    summary: tuple[SummaryRecord, ...] | None = None
    detail: tuple[DetailRecord, ...] | None = None
    channel_a: ChannelARecord | None = None
    channel_b: ChannelBRecord | None = None
    collateral: tuple[CollateralRecord, ...] | None = None

    def present_sections(self) -> tuple[Section, ...]:
        """Sections holding at least one row; an empty list writes nothing."""
        return tuple(s for s in Section if getattr(self, s.value) not in (None, ()))

    def describe(self) -> str:
        """One-line summary, e.g. ``"3 banks, 4 loans, POS, 2 collaterals"``."""
        parts = [
            f"{len(self.summary or ())} banks",
            f"{len(self.detail or ())} loans",
        ]
        if self.channel_a is not None:
            parts.append("POS")
        if self.channel_b is not None:
            parts.append("Cheque")
        if self.collateral:
            parts.append(f"{len(self.collateral)} collaterals")
        return ", ".join(parts)

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> GeneratedDataset:
        if not isinstance(data, dict):
            raise ValueError(f"dataset must be an object, got {type(data).__name__}")
        return cls(
            summary=_rows(data, WIRE_KEYS[Section.SUMMARY], SummaryRecord),
            detail=_rows(data, WIRE_KEYS[Section.DETAIL], DetailRecord),
            channel_a=_single(data, WIRE_KEYS[Section.CHANNEL_A], ChannelARecord),
            channel_b=_single(data, WIRE_KEYS[Section.CHANNEL_B], ChannelBRecord),
            collateral=_rows(data, WIRE_KEYS[Section.COLLATERAL], CollateralRecord),
        )

    def to_wire(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for section in Section:
            value = getattr(self, section.value)
            if value is None:
                continue
            if isinstance(value, tuple):
                out[WIRE_KEYS[section]] = [row.to_wire() for row in value]
            else:
                out[WIRE_KEYS[section]] = value.to_wire()
        return out
