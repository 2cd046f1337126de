"""
EngineCheckpoint -- durable snapshot of in-flight engine state.

ZERO I/O.  The snapshot is the sole recovery mechanism: last snapshot wins,
there is no event log.  ``is_checkpoint_valid`` is pure -- the caller passes
``now`` from its injected Clock.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from datagen_batch.domain.types import CustomerResult

CHECKPOINT_VERSION = 1
DEFAULT_MAX_AGE = timedelta(hours=24)


@dataclass(frozen=True)
class EngineCheckpoint:
    """Whole-state snapshot, replaced atomically on every save."""

    is_running: bool
    is_paused: bool
    current_index: int
    results: tuple[CustomerResult, ...]
    overwrite_existing: bool
    period: str
    existing_customer_ids: frozenset[str] = field(default_factory=frozenset)
    timestamp: datetime | None = None  # Stamped by CheckpointStore.save()
    job_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": CHECKPOINT_VERSION,
            "jobId": self.job_id,
            "isRunning": self.is_running,
            "isPaused": self.is_paused,
            "currentIndex": self.current_index,
            "results": [r.to_dict() for r in self.results],
            "overwriteExisting": self.overwrite_existing,
            "period": self.period,
            "existingCustomerIds": sorted(self.existing_customer_ids),
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EngineCheckpoint:
        """Rebuild a snapshot.  Raises KeyError/ValueError on bad input."""
        raw_ts = data.get("timestamp")
        timestamp = datetime.fromisoformat(raw_ts) if raw_ts else None
        if timestamp is not None and timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        current_index = int(data["currentIndex"])
        if current_index < 0:
            raise ValueError(f"currentIndex must be >= 0, got {current_index}")
        return cls(
            is_running=bool(data["isRunning"]),
            is_paused=bool(data["isPaused"]),
            current_index=current_index,
            results=tuple(CustomerResult.from_dict(r) for r in data["results"]),
            overwrite_existing=bool(data["overwriteExisting"]),
            period=str(data["period"]),
            existing_customer_ids=frozenset(data.get("existingCustomerIds") or ()),
            timestamp=timestamp,
            job_id=data.get("jobId"),
        )


def is_checkpoint_valid(
    snapshot: EngineCheckpoint,
    current_period: str,
    now: datetime,
    max_age: timedelta = DEFAULT_MAX_AGE,
) -> bool:
    """True iff the snapshot belongs to ``current_period`` and is younger than ``max_age``."""
    if snapshot.period != current_period:
        return False
    if snapshot.timestamp is None:
        return False
    return now - snapshot.timestamp < max_age
