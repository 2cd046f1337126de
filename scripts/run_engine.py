#!/usr/bin/env python3
"""
Drive the primary-bank data generation engine from the command line.

Uses the active config (get_active_config) for the database, the generation
endpoint and the checkpoint backend.  The API key is read from the
environment variable the config names (DATAGEN_GENERATION_API_KEY by default).

Usage:
    python3 scripts/run_engine.py [--config PATH] --period YYYY-MM <command>

Examples:
    # Resume a valid checkpoint, or start a fresh run (Ctrl-C pauses)
    python3 scripts/run_engine.py --period 2024-06 run

    # Regenerate customers that already hold data
    python3 scripts/run_engine.py --period 2024-06 run --overwrite

    # Show the checkpoint and whether it would be resumed
    python3 scripts/run_engine.py --period 2024-06 status

    # Discard a paused run
    python3 scripts/run_engine.py --period 2024-06 stop

    # Generate one customer and persist it
    python3 scripts/run_engine.py --period 2024-06 run-one C-0042 --save
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

POLL_SECONDS = 1.0


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run, inspect or reset the per-customer generation engine.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Engine config YAML (default: datagen_config/sets/default.yaml).",
    )
    parser.add_argument(
        "--period",
        required=True,
        help="Reporting period the run generates data for (e.g. 2024-06).",
    )
    parser.add_argument(
        "--db-url",
        default=None,
        help="Override the configured database URL.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Log level for the JSON log stream on stderr (default: INFO).",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Resume a valid checkpoint or start a new run.")
    run.add_argument(
        "--overwrite",
        action="store_true",
        help="Regenerate customers that already hold data for the period.",
    )

    sub.add_parser("status", help="Show the checkpoint and its validity.")
    sub.add_parser("stop", help="Stop a paused run and clear its checkpoint.")
    sub.add_parser("reset", help="Clear the checkpoint and show queue statuses.")

    one = sub.add_parser("run-one", help="Generate data for a single customer.")
    one.add_argument("customer_id", help="Customer id from the directory.")
    one.add_argument(
        "--save",
        action="store_true",
        help="Persist the generated dataset.",
    )
    return parser.parse_args(argv)


def _print_progress(controller) -> None:
    progress = controller.progress()
    print(
        f"[{controller.state.value}] {progress.current_index}/{progress.total} "
        f"({progress.percent:.0f}%)  ok={progress.success_count} "
        f"errors={progress.error_count}"
    )


def _print_results(controller) -> None:
    for result in controller.results:
        line = f"  {result.customer_id:<12} {result.customer_name:<30} {result.status.value}"
        if result.dataset is not None:
            line += f"  {result.dataset.describe()}"
        if result.error_message:
            line += f"  error: {result.error_message}"
        for failure in result.section_errors:
            line += f"  [{failure.section.value} failed: {failure.message}]"
        print(line)


def _cmd_run(controller, overwrite: bool) -> int:
    from datagen_batch.domain.types import JobState
    from datagen_kernel.exceptions import DatagenError, InvalidTransitionError

    # Restored runs come back paused so --overwrite applies before resuming
    snapshot = controller.restore(auto_resume=False)
    try:
        if controller.state == JobState.PAUSED:
            kind = "interrupted" if snapshot.is_running else "paused"
            print(f"Resuming {kind} run at {controller.current_index}.")
            controller.set_overwrite(overwrite or controller.overwrite_existing)
            controller.resume()
        else:
            controller.set_overwrite(overwrite)
            controller.start()
    except DatagenError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    try:
        while not controller.wait(POLL_SECONDS):
            _print_progress(controller)
    except KeyboardInterrupt:
        print("Pausing after the current customer...")
        try:
            controller.pause()
        except InvalidTransitionError:
            pass  # loop already left the running state
        controller.wait()

    _print_progress(controller)
    _print_results(controller)
    if controller.state == JobState.PAUSED:
        print("Paused. Run again to resume.")
    return 0


def _cmd_status(orchestrator, period: str) -> int:
    from datetime import timedelta

    from datagen_batch.domain.checkpoint import is_checkpoint_valid
    from datagen_kernel.exceptions import CheckpointCorruptError

    try:
        snapshot = orchestrator.checkpoint_store.load()
    except CheckpointCorruptError as e:
        print(f"Checkpoint unreadable: {e}")
        return 1
    if snapshot is None:
        print("No checkpoint.")
        return 0

    max_age = timedelta(hours=orchestrator.config.checkpoint_max_age_hours)
    valid = is_checkpoint_valid(snapshot, period, orchestrator.clock.now(), max_age)
    print(f"Checkpoint period:  {snapshot.period}")
    print(f"Saved at:           {snapshot.timestamp}")
    print(f"Running / paused:   {snapshot.is_running} / {snapshot.is_paused}")
    print(f"Position:           {snapshot.current_index}/{len(snapshot.results)}")
    print(f"Overwrite existing: {snapshot.overwrite_existing}")
    print(f"Resumable for {period}: {'yes' if valid else 'no'}")
    return 0


def _cmd_stop(controller) -> int:
    controller.restore(auto_resume=False)
    if controller.state.is_active:
        controller.stop(wait=True)
        print("Stopped; checkpoint cleared.")
    else:
        print("No active run.")
    return 0


def _cmd_reset(controller) -> int:
    controller.reset()
    print("Checkpoint cleared.")
    _print_results(controller)
    return 0


def _cmd_run_one(controller, customer_id: str, save: bool) -> int:
    from datagen_kernel.exceptions import DatagenError

    try:
        result = controller.run_one(customer_id)
    except DatagenError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    if result.dataset is None:
        print(f"ERROR: generation failed: {result.error_message}", file=sys.stderr)
        return 1
    print(f"{result.customer_id}: {result.dataset.describe()}")

    if save:
        saved = controller.save_one()
        print(f"Saved: {saved.status.value}")
        for failure in saved.section_errors:
            print(f"  {failure.section.value} failed: {failure.message}")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    # Lazy imports so we fail fast on args first
    from datagen_batch.orchestrator import EngineOrchestrator
    from datagen_config import get_active_config
    from datagen_kernel.logging_config import configure_logging

    configure_logging(level=args.log_level)

    try:
        config = get_active_config(args.config)
    except Exception as e:
        print(f"ERROR: Failed to load config: {e}", file=sys.stderr)
        return 1
    if args.db_url:
        config = replace(config, database_url=args.db_url)

    try:
        orchestrator = EngineOrchestrator.from_config(config)
    except Exception as e:
        print(f"ERROR: Engine init failed: {e}", file=sys.stderr)
        return 1

    try:
        if args.command == "status":
            return _cmd_status(orchestrator, args.period)

        controller = orchestrator.create_controller(args.period)
        if args.command == "run":
            return _cmd_run(controller, args.overwrite)
        if args.command == "stop":
            return _cmd_stop(controller)
        if args.command == "reset":
            return _cmd_reset(controller)
        if args.command == "run-one":
            return _cmd_run_one(controller, args.customer_id, args.save)
    finally:
        orchestrator.close()
    return 1


if __name__ == "__main__":
    sys.exit(main())
