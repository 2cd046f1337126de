"""
JobController -- resumable, checkpointed state machine over the customer queue.

Contract:
    Owns the customer queue, the per-customer result table, the existing-ids
    set and the run/pause/stop/resume/reset transitions.  Orchestrates the
    flag calculator, generation client, persistence adapter and checkpoint
    store strictly in sequence, one customer at a time.

    States: idle -> running -> (paused <-> running) -> stopping -> stopped
                                \\-> completed
    Commands: start, pause, resume, stop, reset, select_period,
              set_overwrite, restore, run_one, save_one.

Concurrency:
    One worker thread at a time runs the loop.  Pause and stop are
    cooperative: commands set ``threading.Event`` flags that the loop checks
    at the top of each iteration and after the inter-item delay; the delay
    itself waits on a wake event so a request ends it early.  An in-flight
    generation call always completes and is recorded before the loop exits.
    All state mutations happen under one re-entrant lock; the lock is never
    held across the generation call or the delay.

Invariants enforced:
    - At most one active job (running, paused or stopping).
    - ``current_index`` only grows while running; only reset/start/
      select_period put it back to 0.
    - Existing customers are skipped (index consumed, no generation call)
      unless ``overwrite_existing``.
    - A checkpoint is saved after every transition and every customer;
      stop and natural completion clear it.
    - Checkpoint read/write failures are logged and never stop the run.
"""

from __future__ import annotations

import threading
from collections import Counter
from dataclasses import replace
from datetime import timedelta
from uuid import uuid4

from datagen_batch.domain.checkpoint import (
    DEFAULT_MAX_AGE,
    EngineCheckpoint,
    is_checkpoint_valid,
)
from datagen_batch.domain.flags import compute_flags
from datagen_batch.domain.records import GeneratedDataset
from datagen_batch.domain.types import (
    CustomerDescriptor,
    CustomerResult,
    CustomerStatus,
    JobProgress,
    JobState,
    PersistReport,
    SectionFailure,
    SectionFlags,
)
from datagen_batch.services.checkpoint_store import CheckpointStore
from datagen_batch.services.directory import CustomerDirectory
from datagen_batch.services.generation_client import GenerationClient
from datagen_batch.services.persistence import PersistenceAdapter
from datagen_kernel.domain.clock import Clock, SystemClock
from datagen_kernel.exceptions import (
    EmptyDirectoryError,
    GenerationError,
    InvalidTransitionError,
    ManualRunWhileActiveError,
    NoManualResultError,
    OverwriteLockedError,
)
from datagen_kernel.logging_config import LogContext, get_logger

logger = get_logger("batch.controller")


class JobController:
    """Single-worker generation job over an ordered customer queue.

    Non-goals:
        - No parallel fan-out and no retries; a failed customer is recorded
          as ``error`` and the loop moves on.
        - Does NOT interrupt an in-flight generation call.
    """

    def __init__(
        self,
        directory: CustomerDirectory,
        generation_client: GenerationClient,
        persistence: PersistenceAdapter,
        checkpoint_store: CheckpointStore,
        period: str,
        clock: Clock | None = None,
        item_delay_seconds: float = 2.0,
        checkpoint_max_age: timedelta = DEFAULT_MAX_AGE,
        overwrite_existing: bool = False,
    ):
        self._directory = directory
        self._generation = generation_client
        self._persistence = persistence
        self._checkpoints = checkpoint_store
        self._clock = clock or SystemClock()
        self._item_delay = item_delay_seconds
        self._max_age = checkpoint_max_age

        self._lock = threading.RLock()
        self._pause_requested = threading.Event()
        self._stop_requested = threading.Event()
        self._wake = threading.Event()
        self._worker: threading.Thread | None = None

        self._period = period
        self._overwrite_existing = overwrite_existing
        self._state = JobState.IDLE
        self._job_id: str | None = None
        self._customers: list[CustomerDescriptor] = []
        self._results: list[CustomerResult] = []
        self._current_index = 0
        self._existing_ids: set[str] = set()
        self._manual_result: CustomerResult | None = None

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def state(self) -> JobState:
        return self._state

    @property
    def period(self) -> str:
        return self._period

    @property
    def job_id(self) -> str | None:
        return self._job_id

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def overwrite_existing(self) -> bool:
        return self._overwrite_existing

    @property
    def results(self) -> tuple[CustomerResult, ...]:
        with self._lock:
            return tuple(self._results)

    @property
    def existing_customer_ids(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._existing_ids)

    @property
    def manual_result(self) -> CustomerResult | None:
        return self._manual_result

    def progress(self) -> JobProgress:
        with self._lock:
            counts = Counter(r.status for r in self._results)
            return JobProgress(
                total=len(self._results),
                current_index=self._current_index,
                counts=dict(counts),
            )

    def wait(self, timeout: float | None = None) -> bool:
        """Join the worker thread.  Returns True when no worker is running."""
        worker = self._worker
        if worker is not None and worker is not threading.current_thread():
            worker.join(timeout)
            return not worker.is_alive()
        return worker is None or not worker.is_alive()

    # -------------------------------------------------------------------------
    # Queue preparation
    # -------------------------------------------------------------------------

    def refresh(self) -> tuple[CustomerResult, ...]:
        """Reload the directory and the existing-data snapshot while inactive."""
        with self._lock:
            self._require_inactive("refresh")
            self._load_queue()
            return tuple(self._results)

    def _load_queue(self) -> None:
        customers = list(self._directory.list_customers())
        existing = self._persistence.existing_sections(self._period)

        results = []
        for customer in customers:
            flags = existing.get(customer.customer_id)
            has_data = flags is not None and flags.any()
            results.append(
                CustomerResult(
                    customer_id=customer.customer_id,
                    customer_name=customer.name,
                    status=CustomerStatus.EXISTING if has_data else CustomerStatus.PENDING,
                    existing_section_flags=flags,
                )
            )

        self._customers = customers
        self._results = results
        self._existing_ids = {cid for cid, flags in existing.items() if flags.any()}
        logger.info(
            "queue_loaded",
            extra={
                "period": self._period,
                "customers": len(customers),
                "existing": len(self._existing_ids),
            },
        )

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def start(self, background: bool = True) -> None:
        """Start a fresh run from index 0.

        Raises:
            InvalidTransitionError: If a job is already active.
            EmptyDirectoryError: If the directory has no customers.
        """
        with self._lock:
            self._require_inactive("start")
            self._join_worker()
            self._load_queue()
            if not self._customers:
                raise EmptyDirectoryError(self._period)

            self._current_index = 0
            self._job_id = str(uuid4())
            self._pause_requested.clear()
            self._stop_requested.clear()
            self._wake.clear()
            self._state = JobState.RUNNING
            self._save_checkpoint()

            logger.info(
                "job_started",
                extra={
                    "job_id": self._job_id,
                    "period": self._period,
                    "total_customers": len(self._customers),
                    "overwrite_existing": self._overwrite_existing,
                },
            )
        self._launch(background)

    def pause(self) -> None:
        """Request a pause; the loop honours it at its next check point."""
        with self._lock:
            if self._state != JobState.RUNNING:
                raise InvalidTransitionError("pause", self._state.value)
            self._pause_requested.set()
            self._wake.set()
            logger.info(
                "job_pause_requested",
                extra={"job_id": self._job_id, "current_index": self._current_index},
            )

    def resume(self, background: bool = True) -> None:
        """Continue a paused run at ``current_index``."""
        with self._lock:
            if self._state != JobState.PAUSED:
                raise InvalidTransitionError("resume", self._state.value)
            self._join_worker()
            self._pause_requested.clear()
            self._stop_requested.clear()
            self._wake.clear()
            self._state = JobState.RUNNING
            self._save_checkpoint()
            logger.info(
                "job_resumed",
                extra={"job_id": self._job_id, "current_index": self._current_index},
            )
        self._launch(background)

    def stop(self, wait: bool = False, timeout: float | None = None) -> None:
        """Stop the active run and clear the checkpoint.

        From ``running`` the stop is cooperative (state ``stopping`` until the
        in-flight customer is recorded); from ``paused`` it is immediate.
        """
        with self._lock:
            if self._state == JobState.RUNNING:
                self._stop_requested.set()
                self._wake.set()
                self._state = JobState.STOPPING
                logger.info(
                    "job_stop_requested",
                    extra={"job_id": self._job_id, "current_index": self._current_index},
                )
            elif self._state == JobState.PAUSED:
                self._state = JobState.STOPPED
                self._clear_checkpoint()
                logger.info(
                    "job_stopped",
                    extra={"job_id": self._job_id, "current_index": self._current_index},
                )
            elif self._state != JobState.STOPPING:
                raise InvalidTransitionError("stop", self._state.value)
        if wait:
            self.wait(timeout)

    def _stop_if_active(self) -> None:
        with self._lock:
            if not self._state.is_active:
                return
            self.stop()
        self.wait()

    def reset(self) -> None:
        """Stop if active, clear the checkpoint and rebuild statuses from the store."""
        self._stop_if_active()
        with self._lock:
            self._clear_checkpoint()
            self._pause_requested.clear()
            self._stop_requested.clear()
            self._wake.clear()
            self._current_index = 0
            self._job_id = None
            self._manual_result = None
            self._state = JobState.IDLE
            self._load_queue()
            logger.info("job_reset", extra={"period": self._period})

    def select_period(self, period: str) -> None:
        """Switch the active period; any in-progress run is discarded."""
        self._stop_if_active()
        with self._lock:
            self._clear_checkpoint()
            previous = self._period
            self._period = period
            self._current_index = 0
            self._job_id = None
            self._manual_result = None
            self._state = JobState.IDLE
            self._load_queue()
            logger.info(
                "period_selected",
                extra={"previous_period": previous, "period": period},
            )

    def set_overwrite(self, overwrite: bool) -> None:
        """Change the overwrite flag.  Refused while the queue is executing."""
        with self._lock:
            if self._state in (JobState.RUNNING, JobState.STOPPING):
                raise OverwriteLockedError(self._state.value)
            self._overwrite_existing = overwrite
            if self._state == JobState.PAUSED:
                self._save_checkpoint(is_running=False, is_paused=True)
            logger.info("overwrite_changed", extra={"overwrite_existing": overwrite})

    def restore(
        self,
        background: bool = True,
        auto_resume: bool = True,
    ) -> EngineCheckpoint | None:
        """Read the checkpoint once at startup and rebuild state from it.

        Invalid (other period, stale, unreadable) checkpoints are cleared.
        A snapshot saved while running resumes automatically unless
        ``auto_resume`` is False; one saved while paused comes back as
        ``paused``.
        """
        with self._lock:
            self._require_inactive("restore")
            try:
                snapshot = self._checkpoints.load()
            except Exception:
                logger.warning("checkpoint_load_failed", exc_info=True)
                self._clear_checkpoint()
                return None

            if snapshot is None:
                return None

            now = self._clock.now()
            if not is_checkpoint_valid(snapshot, self._period, now, self._max_age):
                logger.info(
                    "checkpoint_discarded",
                    extra={
                        "checkpoint_period": snapshot.period,
                        "period": self._period,
                        "checkpoint_timestamp": snapshot.timestamp,
                    },
                )
                self._clear_checkpoint()
                return None

            self._apply_snapshot(snapshot)
            auto_resume = auto_resume and snapshot.is_running
            if auto_resume:
                self._pause_requested.clear()
                self._stop_requested.clear()
                self._wake.clear()
                self._state = JobState.RUNNING
            else:
                self._state = JobState.PAUSED

            logger.info(
                "checkpoint_restored",
                extra={
                    "job_id": self._job_id,
                    "current_index": self._current_index,
                    "state": self._state.value,
                    "auto_resume": auto_resume,
                },
            )
        if auto_resume:
            self._launch(background)
        return snapshot

    def _apply_snapshot(self, snapshot: EngineCheckpoint) -> None:
        by_id = {c.customer_id: c for c in self._directory.list_customers()}
        customers = []
        for result in snapshot.results:
            customer = by_id.get(result.customer_id)
            if customer is None:
                logger.warning(
                    "checkpoint_customer_missing_from_directory",
                    extra={"customer_id": result.customer_id},
                )
                customer = CustomerDescriptor(
                    customer_id=result.customer_id,
                    name=result.customer_name,
                    segment="",
                    sector="",
                )
            customers.append(customer)

        # A customer caught mid-flight by a crash is retried from pending.
        results = [
            replace(r, status=CustomerStatus.PENDING)
            if r.status == CustomerStatus.PROCESSING
            else r
            for r in snapshot.results
        ]

        self._customers = customers
        self._results = results
        self._current_index = min(snapshot.current_index, len(results))
        self._overwrite_existing = snapshot.overwrite_existing
        self._existing_ids = set(snapshot.existing_customer_ids)
        self._job_id = snapshot.job_id or str(uuid4())

    # -------------------------------------------------------------------------
    # Worker loop
    # -------------------------------------------------------------------------

    def _launch(self, background: bool) -> None:
        if not background:
            self._run_loop()
            return
        self._worker = threading.Thread(
            target=self._run_loop,
            name="datagen-worker",
            daemon=True,
        )
        self._worker.start()

    def _join_worker(self) -> None:
        worker = self._worker
        if (
            worker is not None
            and worker.is_alive()
            and worker is not threading.current_thread()
        ):
            worker.join()

    def _requested(self) -> bool:
        return self._pause_requested.is_set() or self._stop_requested.is_set()

    def _run_loop(self) -> None:
        with LogContext.bind(job_id=self._job_id, period=self._period):
            try:
                self._process_queue()
            except Exception:
                logger.exception(
                    "job_loop_crashed",
                    extra={"current_index": self._current_index},
                )
                with self._lock:
                    self._state = JobState.PAUSED
                    self._save_checkpoint(is_running=False, is_paused=True)

    def _process_queue(self) -> None:
        i = self._current_index
        total = len(self._results)

        while i < total:
            if self._requested():
                break

            customer = self._customers[i]
            skip = (
                customer.customer_id in self._existing_ids
                and not self._overwrite_existing
            )

            if skip:
                with self._lock:
                    self._results[i] = replace(self._results[i], status=CustomerStatus.SKIPPED)
                    self._current_index = i + 1
                    self._save_checkpoint()
                logger.info(
                    "customer_skipped",
                    extra={"customer_id": customer.customer_id, "index": i},
                )
                i += 1
                continue

            with self._lock:
                self._results[i] = replace(
                    self._results[i],
                    status=CustomerStatus.PROCESSING,
                    error_message=None,
                )
                self._save_checkpoint()

            outcome = self._process_customer(customer, self._results[i])

            with self._lock:
                self._results[i] = outcome
                self._current_index = i + 1
                self._save_checkpoint()
            i += 1

            if i < total and not self._requested():
                self._wake.wait(self._item_delay)

        self._finish(i >= total)

    def _finish(self, exhausted: bool) -> None:
        with self._lock:
            if self._stop_requested.is_set():
                self._state = JobState.STOPPED
                self._clear_checkpoint()
                event = "job_stopped"
            elif exhausted:
                self._state = JobState.COMPLETED
                self._clear_checkpoint()
                event = "job_completed"
            else:
                self._state = JobState.PAUSED
                self._save_checkpoint(is_running=False, is_paused=True)
                event = "job_paused"

            progress = self.progress()
            logger.info(
                event,
                extra={
                    "job_id": self._job_id,
                    "current_index": self._current_index,
                    "total": progress.total,
                    "succeeded": progress.success_count,
                    "failed": progress.error_count,
                    "skipped": progress.count(CustomerStatus.SKIPPED),
                },
            )

    def _process_customer(
        self,
        customer: CustomerDescriptor,
        result: CustomerResult,
    ) -> CustomerResult:
        """Flags -> generate -> persist for one customer.  Never raises."""
        flags = compute_flags(customer.customer_id)
        logger.info(
            "customer_processing",
            extra={
                "customer_id": customer.customer_id,
                "index": self._current_index,
                "flags": flags.to_wire(),
            },
        )

        try:
            dataset = self._generation.generate(customer, flags, self._period)
        except GenerationError as exc:
            logger.warning(
                "customer_failed",
                exc_info=True,
                extra={"customer_id": customer.customer_id, "error_code": exc.code},
            )
            return replace(result, status=CustomerStatus.ERROR, error_message=str(exc))
        except Exception as exc:
            logger.exception(
                "customer_failed",
                extra={"customer_id": customer.customer_id, "error_code": "UNHANDLED_EXCEPTION"},
            )
            return replace(result, status=CustomerStatus.ERROR, error_message=str(exc))

        report = self._persist(dataset, customer)
        with self._lock:
            return self._apply_report(result, dataset, report)

    # -------------------------------------------------------------------------
    # Persistence helpers
    # -------------------------------------------------------------------------

    def _persist(
        self,
        dataset: GeneratedDataset,
        customer: CustomerDescriptor,
    ) -> PersistReport:
        try:
            return self._persistence.save(dataset, customer, self._period)
        except Exception as exc:
            logger.exception(
                "dataset_persist_failed",
                extra={"customer_id": customer.customer_id},
            )
            return PersistReport(
                customer_id=customer.customer_id,
                period=self._period,
                failed=tuple(
                    SectionFailure(section=s, message=str(exc))
                    for s in dataset.present_sections()
                ),
            )

    def _apply_report(
        self,
        result: CustomerResult,
        dataset: GeneratedDataset,
        report: PersistReport,
    ) -> CustomerResult:
        """Success or partial success, and the existing-ids update."""
        if report.has_failures:
            status = CustomerStatus.PARTIAL_SUCCESS
        else:
            status = CustomerStatus.SUCCESS

        if report.wrote_anything:
            self._existing_ids.add(result.customer_id)

        saved = SectionFlags.from_sections(report.saved)
        previous = result.existing_section_flags
        existing_flags = previous.merge(saved) if previous is not None else saved

        logger.info(
            "customer_succeeded" if status == CustomerStatus.SUCCESS else "customer_partially_saved",
            extra={
                "customer_id": result.customer_id,
                "summary": dataset.describe(),
                "failed_sections": [f.section.value for f in report.failed],
            },
        )
        return replace(
            result,
            status=status,
            dataset=dataset,
            error_message=None,
            existing_section_flags=existing_flags,
            section_errors=report.failed,
        )

    # -------------------------------------------------------------------------
    # Manual invocation
    # -------------------------------------------------------------------------

    def run_one(self, customer_id: str) -> CustomerResult:
        """Generate for one customer outside the queue (not persisted).

        Raises:
            ManualRunWhileActiveError: While the queue is executing.
            CustomerNotFoundError: Unknown customer id.
        """
        with self._lock:
            if self._state in (JobState.RUNNING, JobState.STOPPING):
                raise ManualRunWhileActiveError(customer_id, self._state.value)
            customer = self._directory.get_customer(customer_id)
            base = self._queue_entry(customer_id) or CustomerResult(
                customer_id=customer.customer_id,
                customer_name=customer.name,
            )

        flags = compute_flags(customer.customer_id)
        logger.info(
            "manual_run_started",
            extra={"customer_id": customer_id, "flags": flags.to_wire()},
        )
        try:
            dataset = self._generation.generate(customer, flags, self._period)
        except GenerationError as exc:
            logger.warning(
                "manual_run_failed",
                exc_info=True,
                extra={"customer_id": customer_id, "error_code": exc.code},
            )
            result = replace(
                base, status=CustomerStatus.ERROR, dataset=None,
                error_message=str(exc), section_errors=(),
            )
        except Exception as exc:
            logger.exception(
                "manual_run_failed",
                extra={"customer_id": customer_id, "error_code": "UNHANDLED_EXCEPTION"},
            )
            result = replace(
                base, status=CustomerStatus.ERROR, dataset=None,
                error_message=str(exc), section_errors=(),
            )
        else:
            result = replace(
                base, status=CustomerStatus.SUCCESS, dataset=dataset,
                error_message=None, section_errors=(),
            )

        self._manual_result = result
        return result

    def save_one(self, result: CustomerResult | None = None) -> CustomerResult:
        """Persist a manual result; updates existing ids and the queue entry.

        Never touches ``current_index`` or the checkpoint.

        Raises:
            NoManualResultError: Nothing generated to save.
            ManualRunWhileActiveError: While the queue is executing.
        """
        target = result or self._manual_result
        if target is None:
            raise NoManualResultError()
        if target.dataset is None:
            raise NoManualResultError(target.customer_id)

        with self._lock:
            if self._state in (JobState.RUNNING, JobState.STOPPING):
                raise ManualRunWhileActiveError(target.customer_id, self._state.value)
            customer = self._directory.get_customer(target.customer_id)
            report = self._persist(target.dataset, customer)
            saved = self._apply_report(target, target.dataset, report)

            for idx, entry in enumerate(self._results):
                if entry.customer_id == saved.customer_id:
                    self._results[idx] = saved
                    break

            self._manual_result = saved
            logger.info(
                "manual_result_saved",
                extra={"customer_id": saved.customer_id, "status": saved.status.value},
            )
            return saved

    def _queue_entry(self, customer_id: str) -> CustomerResult | None:
        for entry in self._results:
            if entry.customer_id == customer_id:
                return entry
        return None

    # -------------------------------------------------------------------------
    # Checkpoint helpers
    # -------------------------------------------------------------------------

    def _snapshot(self, is_running: bool, is_paused: bool) -> EngineCheckpoint:
        return EngineCheckpoint(
            is_running=is_running,
            is_paused=is_paused,
            current_index=self._current_index,
            results=tuple(self._results),
            overwrite_existing=self._overwrite_existing,
            period=self._period,
            existing_customer_ids=frozenset(self._existing_ids),
            job_id=self._job_id,
        )

    def _save_checkpoint(self, is_running: bool = True, is_paused: bool = False) -> None:
        try:
            self._checkpoints.save(self._snapshot(is_running, is_paused))
        except Exception:
            logger.warning(
                "checkpoint_save_failed",
                exc_info=True,
                extra={"current_index": self._current_index},
            )

    def _clear_checkpoint(self) -> None:
        try:
            self._checkpoints.clear()
        except Exception:
            logger.warning("checkpoint_clear_failed", exc_info=True)

    def _require_inactive(self, command: str) -> None:
        if self._state.is_active:
            raise InvalidTransitionError(command, self._state.value)
