"""
Tests for datagen_batch.services.persistence.

Validates per-section upserts against the real ORM models on SQLite:
idempotent re-saves, updates on the natural key, SAVEPOINT isolation of a
failing section, the existence query, and reading datasets back.
"""

from dataclasses import replace
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from datagen_batch.domain.records import GeneratedDataset
from datagen_batch.domain.types import Section, SectionFlags
from datagen_batch.models.sections import (
    ChannelARecordModel,
    CollateralRecordModel,
    DetailRecordModel,
    SummaryRecordModel,
)
from datagen_batch.services.persistence import SqlPersistenceAdapter, section_rows
from tests.batch.conftest import TEST_PERIOD, make_customer, make_dataset


def _count(session_factory, model, **filters) -> int:
    session = session_factory()
    try:
        stmt = select(func.count()).select_from(model)
        for name, value in filters.items():
            stmt = stmt.where(getattr(model, name) == value)
        return session.execute(stmt).scalar_one()
    finally:
        session.close()


# =============================================================================
# section_rows
# =============================================================================


class TestSectionRows:
    def test_absent_section_has_no_rows(self):
        assert section_rows(GeneratedDataset(), Section.SUMMARY) == ()

    def test_single_record_section(self):
        rows = section_rows(make_dataset(), Section.CHANNEL_A)
        assert len(rows) == 1
        assert rows[0]["number_of_banks"] == 3

    def test_multi_record_section(self):
        rows = section_rows(make_dataset(banks=3), Section.SUMMARY)
        assert [r["bank_code"] for r in rows] == ["A", "B", "C"]


# =============================================================================
# save
# =============================================================================


class TestSave:
    def test_writes_every_present_section(self, persistence, session_factory):
        report = persistence.save(make_dataset(banks=2, loans=3), make_customer("C-1"), TEST_PERIOD)

        assert report.saved == tuple(Section)
        assert report.failed == ()
        assert _count(session_factory, SummaryRecordModel) == 2
        assert _count(session_factory, DetailRecordModel) == 3
        assert _count(session_factory, ChannelARecordModel) == 1
        assert _count(session_factory, CollateralRecordModel) == 2

    def test_absent_sections_are_not_written(self, persistence, session_factory):
        dataset = make_dataset(channel_a=False, channel_b=False, collateral=False)
        report = persistence.save(dataset, make_customer("C-1"), TEST_PERIOD)

        assert report.saved == (Section.SUMMARY, Section.DETAIL)
        assert _count(session_factory, ChannelARecordModel) == 0

    def test_resave_is_idempotent(self, persistence, session_factory):
        customer = make_customer("C-1")
        persistence.save(make_dataset(), customer, TEST_PERIOD)
        persistence.save(make_dataset(), customer, TEST_PERIOD)

        assert _count(session_factory, SummaryRecordModel) == 2
        assert _count(session_factory, DetailRecordModel) == 2
        assert _count(session_factory, ChannelARecordModel) == 1

    def test_conflict_updates_values(self, persistence):
        customer = make_customer("C-1")
        persistence.save(make_dataset(banks=1, loans=1), customer, TEST_PERIOD)

        original = make_dataset(banks=1, loans=1)
        changed = replace(
            original,
            summary=(replace(original.summary[0], cash_loan=Decimal("999.5")),),
        )
        persistence.save(changed, customer, TEST_PERIOD)

        loaded = persistence.load_dataset("C-1", TEST_PERIOD)
        assert len(loaded.summary) == 1
        assert loaded.summary[0].cash_loan == Decimal("999.5")

    def test_periods_are_separate_keys(self, persistence, session_factory):
        customer = make_customer("C-1")
        persistence.save(make_dataset(), customer, "2024-05")
        persistence.save(make_dataset(), customer, "2024-06")

        assert _count(session_factory, SummaryRecordModel, period="2024-05") == 2
        assert _count(session_factory, SummaryRecordModel, period="2024-06") == 2

    def test_failing_section_is_isolated(self, persistence, session_factory, captured_logs):
        """A NOT NULL violation in detail rolls back detail only."""
        dataset = make_dataset(banks=2, loans=2)
        broken = replace(
            dataset,
            detail=(replace(dataset.detail[0], open_date=None),) + dataset.detail[1:],
        )

        report = persistence.save(broken, make_customer("C-1"), TEST_PERIOD)

        assert [f.section for f in report.failed] == [Section.DETAIL]
        assert Section.DETAIL not in report.saved
        assert Section.SUMMARY in report.saved
        assert Section.COLLATERAL in report.saved
        assert report.has_failures
        assert report.wrote_anything

        # The valid second detail row was rolled back with its section
        assert _count(session_factory, DetailRecordModel) == 0
        assert _count(session_factory, SummaryRecordModel) == 2
        assert _count(session_factory, CollateralRecordModel) == 2

        logs = captured_logs()
        failures = [r for r in logs if r["message"] == "section_upsert_failed"]
        assert len(failures) == 1
        assert failures[0]["section"] == "detail"
        assert failures[0]["customer_id"] == "C-1"

    def test_empty_dataset_writes_nothing(self, persistence):
        report = persistence.save(GeneratedDataset(), make_customer("C-1"), TEST_PERIOD)
        assert report.saved == ()
        assert report.failed == ()

    def test_empty_lists_write_nothing(self, persistence):
        dataset = GeneratedDataset(summary=(), detail=(), collateral=())
        report = persistence.save(dataset, make_customer("C-1"), TEST_PERIOD)

        assert report.saved == ()
        assert not report.wrote_anything
        assert persistence.existing_sections(TEST_PERIOD) == {}


# =============================================================================
# existing_sections / load_dataset
# =============================================================================


class TestExistingSections:
    def test_empty_store(self, persistence):
        assert persistence.existing_sections(TEST_PERIOD) == {}

    def test_reports_sections_per_customer(self, persistence):
        persistence.save(make_dataset(), make_customer("C-1"), TEST_PERIOD)
        persistence.save(
            make_dataset(channel_a=False, channel_b=False, collateral=False),
            make_customer("C-2"),
            TEST_PERIOD,
        )

        existing = persistence.existing_sections(TEST_PERIOD)
        assert existing["C-1"] == SectionFlags(
            summary=True, detail=True, channel_a=True, channel_b=True, collateral=True,
        )
        assert existing["C-2"] == SectionFlags(summary=True, detail=True)

    def test_scoped_to_period(self, persistence):
        persistence.save(make_dataset(), make_customer("C-1"), "2024-05")
        assert persistence.existing_sections("2024-06") == {}


class TestLoadDataset:
    def test_reads_back_saved_dataset(self, persistence):
        dataset = make_dataset(banks=2, loans=2)
        persistence.save(dataset, make_customer("C-1"), TEST_PERIOD)

        loaded = persistence.load_dataset("C-1", TEST_PERIOD)
        assert loaded == dataset

    def test_missing_customer(self, persistence):
        assert persistence.load_dataset("nobody", TEST_PERIOD) == GeneratedDataset()


class TestUnsupportedDialect:
    def test_requires_upsert_dialect(self):
        from datagen_batch.services.persistence import _insert_for

        class _Dialect:
            name = "mysql"

        class _Bind:
            dialect = _Dialect()

        class _Session:
            def get_bind(self):
                return _Bind()

        with pytest.raises(NotImplementedError):
            _insert_for(_Session())


def test_adapter_satisfies_protocol(session_factory):
    from datagen_batch.services.persistence import PersistenceAdapter

    assert isinstance(SqlPersistenceAdapter(session_factory), PersistenceAdapter)
