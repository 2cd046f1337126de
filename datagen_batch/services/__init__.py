"""Services for the generation engine: directory, generation, persistence, checkpoints, controller."""

from datagen_batch.services.checkpoint_store import (
    CheckpointStore,
    FileCheckpointStore,
    SqlCheckpointStore,
)
from datagen_batch.services.controller import JobController
from datagen_batch.services.directory import (
    CustomerDirectory,
    SqlCustomerDirectory,
    StaticCustomerDirectory,
)
from datagen_batch.services.generation_client import (
    GenerationClient,
    HttpGenerationClient,
)
from datagen_batch.services.persistence import (
    PersistenceAdapter,
    SqlPersistenceAdapter,
)

__all__ = [
    "CheckpointStore",
    "CustomerDirectory",
    "FileCheckpointStore",
    "GenerationClient",
    "HttpGenerationClient",
    "JobController",
    "PersistenceAdapter",
    "SqlCheckpointStore",
    "SqlCustomerDirectory",
    "SqlPersistenceAdapter",
    "StaticCustomerDirectory",
]
