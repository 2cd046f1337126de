"""
datagen_batch.domain.types -- Pure frozen dataclasses for the generation engine.

ZERO I/O.  Frozen dataclasses with ``str`` enum status fields and tuples for
immutable collections.  The job controller replaces ``CustomerResult`` values
with ``dataclasses.replace`` rather than mutating them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, TYPE_CHECKING

if TYPE_CHECKING:
    from datagen_batch.domain.records import GeneratedDataset


# =============================================================================
# Status enums
# =============================================================================


class CustomerStatus(str, Enum):
    """Per-customer lifecycle status within one run."""

    PENDING = "pending"  # Queued, not yet reached
    PROCESSING = "processing"  # Generation in flight
    SUCCESS = "success"  # Generated and every section persisted
    PARTIAL_SUCCESS = "partial_success"  # Generated, some sections failed to persist
    ERROR = "error"  # Generation failed
    EXISTING = "existing"  # Store already holds data for the period
    SKIPPED = "skipped"  # Existing data kept, index consumed without generating


class JobState(str, Enum):
    """Job controller lifecycle state."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPING = "stopping"  # Stop requested, in-flight customer finishing
    STOPPED = "stopped"
    COMPLETED = "completed"

    @property
    def is_active(self) -> bool:
        return self in (JobState.RUNNING, JobState.PAUSED, JobState.STOPPING)


class Section(str, Enum):
    """Independently nullable parts of a generated dataset."""

    SUMMARY = "summary"  # Per-bank loan summary
    DETAIL = "detail"  # Per-account loan detail
    CHANNEL_A = "channel_a"  # POS volumes
    CHANNEL_B = "channel_b"  # Cheque volumes
    COLLATERAL = "collateral"  # Per-bank collateral groups


# =============================================================================
# Inputs
# =============================================================================


@dataclass(frozen=True)
class CustomerDescriptor:
    """Read-only customer entry from the directory."""

    customer_id: str
    name: str
    segment: str
    sector: str


@dataclass(frozen=True)
class GenerationFlags:
    """Which optional sections to request for one customer.

    Always recomputed from the customer id by ``compute_flags``; never stored.
    """

    generate_summary: bool
    generate_detail: bool
    generate_channel_a: bool
    generate_channel_b: bool
    generate_collateral: bool

    def to_wire(self) -> dict[str, bool]:
        return {
            "generateSummary": self.generate_summary,
            "generateDetail": self.generate_detail,
            "generateChannelA": self.generate_channel_a,
            "generateChannelB": self.generate_channel_b,
            "generateCollateral": self.generate_collateral,
        }


@dataclass(frozen=True)
class SectionFlags:
    """Which sections already hold stored data for a customer and period."""

    summary: bool = False
    detail: bool = False
    channel_a: bool = False
    channel_b: bool = False
    collateral: bool = False

    def any(self) -> bool:
        return (
            self.summary
            or self.detail
            or self.channel_a
            or self.channel_b
            or self.collateral
        )

    def sections(self) -> tuple[Section, ...]:
        return tuple(s for s in Section if getattr(self, s.value))

    @classmethod
    def from_sections(cls, sections: Iterable[Section]) -> SectionFlags:
        return cls(**{Section(s).value: True for s in sections})

    def merge(self, other: SectionFlags) -> SectionFlags:
        return SectionFlags.from_sections(set(self.sections()) | set(other.sections()))

    def to_dict(self) -> dict[str, bool]:
        return {s.value: getattr(self, s.value) for s in Section}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SectionFlags:
        return cls(**{s.value: bool(data.get(s.value, False)) for s in Section})


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class SectionFailure:
    """One section whose upsert failed during persistence."""

    section: Section
    message: str


@dataclass(frozen=True)
class PersistReport:
    """Outcome of persisting one dataset, section by section."""

    customer_id: str
    period: str
    saved: tuple[Section, ...] = ()
    failed: tuple[SectionFailure, ...] = ()

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)

    @property
    def wrote_anything(self) -> bool:
        return bool(self.saved)


@dataclass(frozen=True)
class CustomerResult:
    """Per-customer row of the result table (one per customer per run)."""

    customer_id: str
    customer_name: str
    status: CustomerStatus = CustomerStatus.PENDING
    dataset: GeneratedDataset | None = None
    error_message: str | None = None
    existing_section_flags: SectionFlags | None = None
    section_errors: tuple[SectionFailure, ...] = ()

    @property
    def has_existing_data(self) -> bool:
        return (
            self.existing_section_flags is not None
            and self.existing_section_flags.any()
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "customerId": self.customer_id,
            "customerName": self.customer_name,
            "status": self.status.value,
            "dataset": self.dataset.to_wire() if self.dataset is not None else None,
            "error": self.error_message,
            "existingSectionFlags": (
                self.existing_section_flags.to_dict()
                if self.existing_section_flags is not None
                else None
            ),
            "sectionErrors": [
                {"section": f.section.value, "message": f.message}
                for f in self.section_errors
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CustomerResult:
        from datagen_batch.domain.records import GeneratedDataset

        dataset = data.get("dataset")
        flags = data.get("existingSectionFlags")
        return cls(
            customer_id=data["customerId"],
            customer_name=data.get("customerName", ""),
            status=CustomerStatus(data["status"]),
            dataset=GeneratedDataset.from_wire(dataset) if dataset is not None else None,
            error_message=data.get("error"),
            existing_section_flags=SectionFlags.from_dict(flags) if flags is not None else None,
            section_errors=tuple(
                SectionFailure(section=Section(e["section"]), message=e["message"])
                for e in data.get("sectionErrors") or ()
            ),
        )


@dataclass(frozen=True)
class JobProgress:
    """Aggregate counters for progress display."""

    total: int
    current_index: int
    counts: dict[CustomerStatus, int] = field(default_factory=dict)

    def count(self, status: CustomerStatus) -> int:
        return self.counts.get(status, 0)

    @property
    def percent(self) -> float:
        if self.total == 0:
            return 0.0
        return self.current_index / self.total * 100

    @property
    def error_count(self) -> int:
        return self.count(CustomerStatus.ERROR)

    @property
    def success_count(self) -> int:
        return self.count(CustomerStatus.SUCCESS) + self.count(
            CustomerStatus.PARTIAL_SUCCESS
        )
