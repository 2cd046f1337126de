"""
datagen_batch.models -- ORM models for engine persistence.

Architecture: datagen_batch/models. Imports from datagen_kernel.db.base only.
"""

from datagen_batch.models.checkpoint import EngineCheckpointModel
from datagen_batch.models.customer import CustomerModel
from datagen_batch.models.sections import (
    SECTION_TABLES,
    ChannelARecordModel,
    ChannelBRecordModel,
    CollateralRecordModel,
    DetailRecordModel,
    SectionTable,
    SummaryRecordModel,
)

__all__ = [
    "SECTION_TABLES",
    "ChannelARecordModel",
    "ChannelBRecordModel",
    "CollateralRecordModel",
    "CustomerModel",
    "DetailRecordModel",
    "EngineCheckpointModel",
    "SectionTable",
    "SummaryRecordModel",
]
