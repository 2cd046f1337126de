"""
EngineOrchestrator -- DI container for the generation engine.

Contract:
    Wires the customer directory, generation client, persistence adapter,
    checkpoint store and clock, and creates the ``JobController``.  Single
    place where all engine dependencies are composed.

Invariants enforced:
    - Clock injection (controller and checkpoint store share one Clock).
    - datagen_kernel and datagen_config never import datagen_batch; the
      orchestrator lives here.
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Callable

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from datagen_batch.services.checkpoint_store import (
    CheckpointStore,
    FileCheckpointStore,
    SqlCheckpointStore,
)
from datagen_batch.services.controller import JobController
from datagen_batch.services.directory import CustomerDirectory, SqlCustomerDirectory
from datagen_batch.services.generation_client import (
    GenerationClient,
    HttpGenerationClient,
)
from datagen_batch.services.persistence import (
    PersistenceAdapter,
    SqlPersistenceAdapter,
)
from datagen_config.schema import CheckpointBackend, EngineConfig
from datagen_kernel.db.engine import (
    create_engine_from_url,
    create_session_factory,
    create_tables,
)
from datagen_kernel.domain.clock import Clock, SystemClock
from datagen_kernel.logging_config import get_logger

logger = get_logger("batch.orchestrator")


def build_checkpoint_store(
    config: EngineConfig,
    session_factory: Callable[[], Session],
    clock: Clock,
    base_dir: Path | None = None,
) -> CheckpointStore:
    """Checkpoint store for the configured backend.

    Relative file paths are resolved against ``base_dir`` when given.
    """
    if config.checkpoint.backend == CheckpointBackend.DATABASE:
        return SqlCheckpointStore(session_factory, config.engine_key, clock=clock)
    path = Path(config.checkpoint.path)
    if base_dir is not None and not path.is_absolute():
        path = base_dir / path
    return FileCheckpointStore(path, clock=clock)


class EngineOrchestrator:
    """DI container for the generation engine.

    Contract:
        - ``from_config()`` creates a fully wired orchestrator.
        - ``create_controller(period)`` returns a JobController for a period.

    Non-goals:
        - Does NOT start or restore a job -- the caller decides.
    """

    def __init__(
        self,
        config: EngineConfig,
        directory: CustomerDirectory,
        generation_client: GenerationClient,
        persistence: PersistenceAdapter,
        checkpoint_store: CheckpointStore,
        clock: Clock | None = None,
        db_engine: Engine | None = None,
    ) -> None:
        self._config = config
        self._directory = directory
        self._generation = generation_client
        self._persistence = persistence
        self._checkpoints = checkpoint_store
        self._clock = clock or SystemClock()
        self._db_engine = db_engine

    # -------------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------------

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        clock: Clock | None = None,
        session_factory: Callable[[], Session] | None = None,
        generation_client: GenerationClient | None = None,
        directory: CustomerDirectory | None = None,
        base_dir: Path | None = None,
        create_schema: bool = True,
    ) -> EngineOrchestrator:
        """Create a fully wired EngineOrchestrator from configuration.

        Args:
            config: Loaded engine configuration.
            clock: Optional clock for deterministic testing.
            session_factory: Optional session factory.  If None, an engine is
                built from ``config.database_url``.
            generation_client: Optional client override (tests inject fakes).
            directory: Optional directory override.  Defaults to the
                ``customers`` table.
            base_dir: Base for relative file checkpoint paths.
            create_schema: Create missing tables on the configured engine.
        """
        effective_clock = clock or SystemClock()

        engine = None
        if session_factory is None:
            engine = create_engine_from_url(config.database_url)
            if create_schema:
                create_tables(engine)
            session_factory = create_session_factory(engine)

        client = generation_client or HttpGenerationClient(
            endpoint_url=config.generation.endpoint_url,
            api_key=config.generation.api_key,
            timeout_seconds=config.generation.timeout_seconds,
            own_bank_code=config.generation.own_bank_code,
        )

        logger.info(
            "orchestrator_created",
            extra={
                "engine_key": config.engine_key,
                "checkpoint_backend": config.checkpoint.backend.value,
                "endpoint_url": config.generation.endpoint_url,
            },
        )

        return cls(
            config=config,
            directory=directory or SqlCustomerDirectory(session_factory),
            generation_client=client,
            persistence=SqlPersistenceAdapter(session_factory),
            checkpoint_store=build_checkpoint_store(
                config, session_factory, effective_clock, base_dir,
            ),
            clock=effective_clock,
            db_engine=engine,
        )

    # -------------------------------------------------------------------------
    # Controller
    # -------------------------------------------------------------------------

    def create_controller(self, period: str) -> JobController:
        """Create a JobController for ``period`` wired with shared dependencies."""
        return JobController(
            directory=self._directory,
            generation_client=self._generation,
            persistence=self._persistence,
            checkpoint_store=self._checkpoints,
            period=period,
            clock=self._clock,
            item_delay_seconds=self._config.item_delay_seconds,
            checkpoint_max_age=timedelta(hours=self._config.checkpoint_max_age_hours),
        )

    def close(self) -> None:
        """Close the generation client and dispose an engine built by from_config."""
        close = getattr(self._generation, "close", None)
        if close is not None:
            close()
        if self._db_engine is not None:
            self._db_engine.dispose()
            self._db_engine = None

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def directory(self) -> CustomerDirectory:
        return self._directory

    @property
    def persistence(self) -> PersistenceAdapter:
        return self._persistence

    @property
    def checkpoint_store(self) -> CheckpointStore:
        return self._checkpoints

    @property
    def generation_client(self) -> GenerationClient:
        return self._generation
