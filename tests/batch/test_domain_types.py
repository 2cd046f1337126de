"""
Tests for datagen_batch.domain.types and datagen_batch.domain.records.

Validates enum values, frozen dataclass construction, section flag helpers,
progress counters, and wire parsing of generated datasets.
"""

from dataclasses import FrozenInstanceError
from datetime import date
from decimal import Decimal

import pytest

from datagen_batch.domain.records import (
    ChannelARecord,
    DetailRecord,
    GeneratedDataset,
    SummaryRecord,
)
from datagen_batch.domain.types import (
    CustomerResult,
    CustomerStatus,
    JobProgress,
    JobState,
    PersistReport,
    Section,
    SectionFailure,
    SectionFlags,
)
from tests.batch.conftest import make_dataset


# =============================================================================
# Enum tests
# =============================================================================


class TestCustomerStatus:
    def test_values(self):
        assert {s.value for s in CustomerStatus} == {
            "pending",
            "processing",
            "success",
            "partial_success",
            "error",
            "existing",
            "skipped",
        }

    def test_is_str_enum(self):
        assert isinstance(CustomerStatus.PENDING, str)


class TestJobState:
    @pytest.mark.parametrize("state", [JobState.RUNNING, JobState.PAUSED, JobState.STOPPING])
    def test_active_states(self, state):
        assert state.is_active

    @pytest.mark.parametrize("state", [JobState.IDLE, JobState.STOPPED, JobState.COMPLETED])
    def test_inactive_states(self, state):
        assert not state.is_active


# =============================================================================
# SectionFlags
# =============================================================================


class TestSectionFlags:
    def test_default_is_empty(self):
        flags = SectionFlags()
        assert not flags.any()
        assert flags.sections() == ()

    def test_from_sections(self):
        flags = SectionFlags.from_sections([Section.SUMMARY, Section.CHANNEL_B])
        assert flags.summary
        assert flags.channel_b
        assert not flags.detail
        assert flags.sections() == (Section.SUMMARY, Section.CHANNEL_B)

    def test_merge(self):
        a = SectionFlags(summary=True)
        b = SectionFlags(detail=True, summary=True)
        merged = a.merge(b)
        assert merged == SectionFlags(summary=True, detail=True)

    def test_dict_round_trip(self):
        flags = SectionFlags(detail=True, collateral=True)
        assert SectionFlags.from_dict(flags.to_dict()) == flags

    def test_frozen(self):
        with pytest.raises(FrozenInstanceError):
            SectionFlags().summary = True  # type: ignore[misc]


# =============================================================================
# PersistReport / CustomerResult / JobProgress
# =============================================================================


class TestPersistReport:
    def test_clean(self):
        report = PersistReport("C-1", "2024-06", saved=(Section.SUMMARY,))
        assert not report.has_failures
        assert report.wrote_anything

    def test_all_failed(self):
        report = PersistReport(
            "C-1", "2024-06",
            failed=(SectionFailure(Section.DETAIL, "boom"),),
        )
        assert report.has_failures
        assert not report.wrote_anything


class TestCustomerResult:
    def test_defaults(self):
        result = CustomerResult(customer_id="C-1", customer_name="Alpha")
        assert result.status == CustomerStatus.PENDING
        assert result.dataset is None
        assert result.error_message is None
        assert not result.has_existing_data

    def test_serialized_form_uses_camel_case(self):
        result = CustomerResult(
            customer_id="C-1",
            customer_name="Alpha",
            status=CustomerStatus.PARTIAL_SUCCESS,
            dataset=make_dataset(banks=1, loans=1),
            existing_section_flags=SectionFlags(summary=True),
            section_errors=(SectionFailure(Section.DETAIL, "not null"),),
        )
        data = result.to_dict()
        assert data["customerId"] == "C-1"
        assert data["status"] == "partial_success"
        assert data["existingSectionFlags"]["summary"] is True
        assert data["sectionErrors"] == [{"section": "detail", "message": "not null"}]
        assert data["dataset"]["summary"][0]["bank_code"] == "A"

    def test_from_dict_restores_dataset(self):
        result = CustomerResult(
            customer_id="C-1",
            customer_name="Alpha",
            status=CustomerStatus.SUCCESS,
            dataset=make_dataset(),
        )
        restored = CustomerResult.from_dict(result.to_dict())
        assert restored == result


class TestJobProgress:
    def test_counts(self):
        progress = JobProgress(
            total=4,
            current_index=3,
            counts={
                CustomerStatus.SUCCESS: 1,
                CustomerStatus.PARTIAL_SUCCESS: 1,
                CustomerStatus.ERROR: 1,
            },
        )
        assert progress.success_count == 2
        assert progress.error_count == 1
        assert progress.count(CustomerStatus.SKIPPED) == 0
        assert progress.percent == 75.0

    def test_empty_percent(self):
        assert JobProgress(total=0, current_index=0).percent == 0.0


# =============================================================================
# Records
# =============================================================================


class TestRecords:
    def test_summary_from_wire(self):
        record = SummaryRecord.from_wire({
            "bank_code": "B",
            "our_bank_flag": False,
            "cash_loan": 1200.5,
            "non_cash_loan": "300",
            "last_approval_date": "2024-02-29",
        })
        assert record.cash_loan == Decimal("1200.5")
        assert record.non_cash_loan == Decimal("300")
        assert record.last_approval_date == date(2024, 2, 29)

    def test_summary_optional_date(self):
        record = SummaryRecord.from_wire({
            "bank_code": "B",
            "our_bank_flag": False,
            "cash_loan": 1,
            "non_cash_loan": 2,
        })
        assert record.last_approval_date is None

    def test_amount_must_be_numeric(self):
        with pytest.raises(ValueError):
            SummaryRecord.from_wire({
                "bank_code": "B",
                "our_bank_flag": False,
                "cash_loan": "lots",
                "non_cash_loan": 2,
            })

    def test_flag_must_be_boolean(self):
        with pytest.raises(ValueError):
            SummaryRecord.from_wire({
                "bank_code": "B",
                "our_bank_flag": "yes",
                "cash_loan": 1,
                "non_cash_loan": 2,
            })

    def test_detail_requires_open_date(self):
        with pytest.raises(KeyError):
            DetailRecord.from_wire({
                "bank_code": "A",
                "account_id": "ACC-1",
                "our_bank_flag": True,
                "loan_type": "Spot",
                "loan_status": "Active",
                "open_amount": 1,
                "current_amount": 1,
            })

    def test_channel_a_bank_count_must_be_integer(self):
        with pytest.raises(ValueError):
            ChannelARecord.from_wire({
                "total_pos_volume": 1,
                "our_bank_pos_volume": 1,
                "number_of_banks": 2.5,
                "pos_share": 10,
            })


class TestGeneratedDataset:
    def test_absent_keys_mean_not_generated(self):
        dataset = GeneratedDataset.from_wire({
            "summary": [{
                "bank_code": "A",
                "our_bank_flag": True,
                "cash_loan": 10,
                "non_cash_loan": 0,
            }],
        })
        assert dataset.present_sections() == (Section.SUMMARY,)
        assert dataset.detail is None
        assert dataset.channel_a is None

    def test_empty_list_is_not_present(self):
        dataset = GeneratedDataset.from_wire({"detail": [], "summary": []})
        assert dataset.detail == ()
        assert dataset.present_sections() == ()

    def test_empty_list_beside_rows(self):
        dataset = make_dataset(loans=0, channel_a=False, channel_b=False, collateral=False)
        assert dataset.present_sections() == (Section.SUMMARY,)

    def test_wire_keys(self):
        wire = make_dataset().to_wire()
        assert set(wire) == {"summary", "detail", "channelA", "channelB", "collateral"}

    def test_rejects_non_object(self):
        with pytest.raises(ValueError):
            GeneratedDataset.from_wire(["summary"])

    def test_rejects_list_for_single_section(self):
        with pytest.raises(ValueError):
            GeneratedDataset.from_wire({"channelA": []})

    def test_describe_full(self):
        assert make_dataset(banks=3, loans=4).describe() == (
            "3 banks, 4 loans, POS, Cheque, 3 collaterals"
        )

    def test_describe_minimal(self):
        dataset = make_dataset(
            banks=1, loans=0, channel_a=False, channel_b=False, collateral=False,
        )
        assert dataset.describe() == "1 banks, 0 loans"
