"""
datagen_batch.domain -- Pure types and value objects for the generation engine.

ZERO I/O.  All types are frozen dataclasses.
"""

from datagen_batch.domain.checkpoint import EngineCheckpoint, is_checkpoint_valid
from datagen_batch.domain.flags import compute_flags, flag_bucket
from datagen_batch.domain.records import (
    ChannelARecord,
    ChannelBRecord,
    CollateralRecord,
    DetailRecord,
    GeneratedDataset,
    SummaryRecord,
)
from datagen_batch.domain.types import (
    CustomerDescriptor,
    CustomerResult,
    CustomerStatus,
    GenerationFlags,
    JobProgress,
    JobState,
    PersistReport,
    Section,
    SectionFailure,
    SectionFlags,
)

__all__ = [
    "ChannelARecord",
    "ChannelBRecord",
    "CollateralRecord",
    "CustomerDescriptor",
    "CustomerResult",
    "CustomerStatus",
    "DetailRecord",
    "EngineCheckpoint",
    "GeneratedDataset",
    "GenerationFlags",
    "JobProgress",
    "JobState",
    "PersistReport",
    "Section",
    "SectionFailure",
    "SectionFlags",
    "SummaryRecord",
    "compute_flags",
    "flag_bucket",
    "is_checkpoint_valid",
]
