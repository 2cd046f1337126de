"""
Checkpoint Store -- single durable snapshot of engine progress.

Contract:
    - ``save(snapshot)`` stamps a fresh timestamp from the injected Clock and
      replaces the one record for this engine in a single write.
    - ``load()`` returns the snapshot or ``None`` when absent; an undecodable
      record raises ``CheckpointCorruptError``.
    - ``clear()`` removes the record (no-op when absent).

    There is no transactional guarantee beyond whole-snapshot replacement.
    Validity (period match, staleness window) is decided by the pure
    ``is_checkpoint_valid`` in datagen_batch.domain.checkpoint.

Implementations:
    - ``FileCheckpointStore`` -- one JSON file, written to a temp file and
      moved into place with ``os.replace``.
    - ``SqlCheckpointStore`` -- one row per ``engine_key``.
"""

from __future__ import annotations

import json
import os
from dataclasses import replace
from pathlib import Path
from typing import Callable, Protocol, runtime_checkable

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from datagen_batch.domain.checkpoint import EngineCheckpoint
from datagen_batch.models.checkpoint import EngineCheckpointModel
from datagen_kernel.db.engine import session_scope
from datagen_kernel.domain.clock import Clock, SystemClock
from datagen_kernel.exceptions import CheckpointCorruptError
from datagen_kernel.logging_config import get_logger

logger = get_logger("batch.checkpoint_store")


@runtime_checkable
class CheckpointStore(Protocol):
    def save(self, snapshot: EngineCheckpoint) -> EngineCheckpoint: ...

    def load(self) -> EngineCheckpoint | None: ...

    def clear(self) -> None: ...


def _decode(raw: str, location: str) -> EngineCheckpoint:
    try:
        return EngineCheckpoint.from_dict(json.loads(raw))
    except (ValueError, KeyError, TypeError) as exc:
        raise CheckpointCorruptError(location, f"{type(exc).__name__}: {exc}") from exc


class FileCheckpointStore:
    """Checkpoint kept as one JSON document on disk."""

    def __init__(self, path: Path | str, clock: Clock | None = None):
        self._path = Path(path)
        self._clock = clock or SystemClock()

    @property
    def path(self) -> Path:
        return self._path

    def save(self, snapshot: EngineCheckpoint) -> EngineCheckpoint:
        stamped = replace(snapshot, timestamp=self._clock.now())
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_name(self._path.name + ".tmp")
        tmp.write_text(json.dumps(stamped.to_dict()), encoding="utf-8")
        os.replace(tmp, self._path)
        logger.debug(
            "checkpoint_saved",
            extra={
                "path": str(self._path),
                "current_index": stamped.current_index,
                "is_running": stamped.is_running,
                "is_paused": stamped.is_paused,
            },
        )
        return stamped

    def load(self) -> EngineCheckpoint | None:
        if not self._path.exists():
            return None
        return _decode(self._path.read_text(encoding="utf-8"), str(self._path))

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)
        logger.debug("checkpoint_cleared", extra={"path": str(self._path)})


class SqlCheckpointStore:
    """Checkpoint kept as one row of ``engine_checkpoints``."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        engine_key: str,
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._engine_key = engine_key
        self._clock = clock or SystemClock()

    def save(self, snapshot: EngineCheckpoint) -> EngineCheckpoint:
        stamped = replace(snapshot, timestamp=self._clock.now())
        payload = json.dumps(stamped.to_dict())

        with session_scope(self._session_factory) as session:
            row = session.execute(
                select(EngineCheckpointModel).where(
                    EngineCheckpointModel.engine_key == self._engine_key,
                )
            ).scalar_one_or_none()
            if row is None:
                row = EngineCheckpointModel(engine_key=self._engine_key)
                session.add(row)
            row.period = stamped.period
            row.saved_at = stamped.timestamp
            row.payload = payload

        logger.debug(
            "checkpoint_saved",
            extra={
                "engine_key": self._engine_key,
                "current_index": stamped.current_index,
                "is_running": stamped.is_running,
                "is_paused": stamped.is_paused,
            },
        )
        return stamped

    def load(self) -> EngineCheckpoint | None:
        session = self._session_factory()
        try:
            payload = session.execute(
                select(EngineCheckpointModel.payload).where(
                    EngineCheckpointModel.engine_key == self._engine_key,
                )
            ).scalar_one_or_none()
        finally:
            session.close()
        if payload is None:
            return None
        return _decode(payload, f"engine_checkpoints[{self._engine_key}]")

    def clear(self) -> None:
        with session_scope(self._session_factory) as session:
            session.execute(
                delete(EngineCheckpointModel).where(
                    EngineCheckpointModel.engine_key == self._engine_key,
                )
            )
        logger.debug("checkpoint_cleared", extra={"engine_key": self._engine_key})
