"""
Shared fixtures for engine tests.

Provides customer/dataset builders, a scripted in-process generation client
and a ``make_controller`` factory wired to file-backed SQLite persistence and
a file checkpoint store.  All fixtures are opt-in.
"""

from __future__ import annotations

import threading
from datetime import date
from decimal import Decimal
from typing import Callable

import pytest

from datagen_batch.domain.records import (
    ChannelARecord,
    ChannelBRecord,
    CollateralRecord,
    DetailRecord,
    GeneratedDataset,
    SummaryRecord,
)
from datagen_batch.domain.types import CustomerDescriptor, GenerationFlags
from datagen_batch.services.checkpoint_store import FileCheckpointStore
from datagen_batch.services.controller import JobController
from datagen_batch.services.directory import StaticCustomerDirectory
from datagen_batch.services.persistence import SqlPersistenceAdapter
from datagen_kernel.exceptions import GenerationError

TEST_PERIOD = "2024-06"


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_customer(customer_id: str, name: str | None = None) -> CustomerDescriptor:
    return CustomerDescriptor(
        customer_id=customer_id,
        name=name or f"Customer {customer_id}",
        segment="SME",
        sector="Manufacturing",
    )


def make_dataset(
    banks: int = 2,
    loans: int = 2,
    channel_a: bool = True,
    channel_b: bool = True,
    collateral: bool = True,
) -> GeneratedDataset:
    """A fully valid dataset; bank ``A`` is the own bank."""
    codes = [chr(ord("A") + i) for i in range(banks)]
    summary = tuple(
        SummaryRecord(
            bank_code=code,
            our_bank_flag=(code == "A"),
            cash_loan=Decimal("150000.00"),
            non_cash_loan=Decimal("25000.50"),
            last_approval_date=date(2024, 3, 1),
        )
        for code in codes
    )
    detail = tuple(
        DetailRecord(
            bank_code=codes[i % banks],
            account_id=f"ACC-{i:03d}",
            our_bank_flag=(codes[i % banks] == "A"),
            loan_type="Spot",
            loan_status="Active",
            open_date=date(2023, 1, 10),
            open_amount=Decimal("50000"),
            current_amount=Decimal("32000.75"),
        )
        for i in range(loans)
    )
    return GeneratedDataset(
        summary=summary,
        detail=detail,
        channel_a=ChannelARecord(
            total_pos_volume=Decimal("80000"),
            our_bank_pos_volume=Decimal("20000"),
            number_of_banks=3,
            pos_share=Decimal("25.00"),
        ) if channel_a else None,
        channel_b=ChannelBRecord(
            cheque_volume_1m=Decimal("1000"),
            cheque_volume_3m=Decimal("3500"),
            cheque_volume_12m=Decimal("14000"),
        ) if channel_b else None,
        collateral=tuple(
            CollateralRecord(
                bank_code=code,
                our_bank_flag=(code == "A"),
                group1_amount=Decimal("10000"),
                group2_amount=Decimal("200000"),
                group3_amount=Decimal("0"),
                group4_amount=Decimal("5000"),
            )
            for code in codes
        ) if collateral else None,
    )


# ---------------------------------------------------------------------------
# Fake generation client
# ---------------------------------------------------------------------------


class ScriptedGenerationClient:
    """Generation client driven by per-customer outcomes.

    ``outcomes`` maps customer ids to a dataset, an exception to raise, or a
    callable ``(customer) -> dataset``.  Unlisted customers get
    ``make_dataset()``.  Every call is recorded in ``calls``.
    """

    def __init__(self, outcomes: dict | None = None):
        self.outcomes = dict(outcomes or {})
        self.calls: list[tuple[str, GenerationFlags, str]] = []
        self._lock = threading.Lock()

    def generate(
        self,
        customer: CustomerDescriptor,
        flags: GenerationFlags,
        period: str,
    ) -> GeneratedDataset:
        with self._lock:
            self.calls.append((customer.customer_id, flags, period))
        outcome = self.outcomes.get(customer.customer_id)
        if outcome is None:
            return make_dataset()
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return outcome(customer)
        return outcome

    @property
    def called_ids(self) -> list[str]:
        return [c[0] for c in self.calls]


def failing(customer_id: str, message: str = "upstream exploded") -> GenerationError:
    return GenerationError(customer_id, message)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def customers():
    # Directory order is the queue order
    return [make_customer(cid, name) for cid, name in (
        ("C-001", "Alpha Textiles"),
        ("C-002", "Beta Logistics"),
        ("C-003", "Gamma Foods"),
        ("C-004", "Delta Mining"),
        ("C-005", "Epsilon Retail"),
    )]


@pytest.fixture
def generation_client():
    return ScriptedGenerationClient()


@pytest.fixture
def persistence(session_factory):
    return SqlPersistenceAdapter(session_factory)


@pytest.fixture
def checkpoint_path(tmp_path):
    return tmp_path / "state" / "checkpoint.json"


@pytest.fixture
def checkpoint_store(checkpoint_path, clock):
    return FileCheckpointStore(checkpoint_path, clock=clock)


@pytest.fixture
def make_controller(
    customers, generation_client, persistence, checkpoint_store, clock,
) -> Callable[..., JobController]:
    """Build a controller; keyword overrides replace the default collaborators."""

    def _make(**overrides) -> JobController:
        kwargs = {
            "directory": StaticCustomerDirectory(customers),
            "generation_client": generation_client,
            "persistence": persistence,
            "checkpoint_store": checkpoint_store,
            "period": TEST_PERIOD,
            "clock": clock,
            "item_delay_seconds": 0,
        }
        kwargs.update(overrides)
        return JobController(**kwargs)

    return _make
