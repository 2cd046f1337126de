"""
Shared fixtures for the engine test suite.

Logging is configured once for the session and LogContext is cleared around
every test; ``captured_logs`` reads back the JSON lines a test produced.
SQLite databases live in ``tmp_path`` files rather than ``:memory:`` so the
controller's worker thread and the test thread hold separate connections.
"""

import json
import logging
from datetime import datetime, timezone
from io import StringIO

import pytest

from datagen_kernel.db.engine import (
    create_engine_from_url,
    create_session_factory,
    create_tables,
)
from datagen_kernel.domain.clock import DeterministicClock
from datagen_kernel.logging_config import (
    LOGGER_NAMESPACE,
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _session_logging():
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _isolated_log_context():
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """Reader over the engine's JSON log lines emitted during the test.

    ``captured_logs()`` returns every record; ``captured_logs("job_paused")``
    only records with that event message.
    """
    buffer = StringIO()
    capture = logging.StreamHandler(buffer)
    capture.setFormatter(StructuredFormatter())
    namespace = logging.getLogger(LOGGER_NAMESPACE)
    level_before = namespace.level
    namespace.setLevel(logging.DEBUG)
    namespace.addHandler(capture)

    def _read(event: str | None = None) -> list[dict]:
        records = [json.loads(line) for line in buffer.getvalue().splitlines() if line]
        if event is None:
            return records
        return [r for r in records if r["message"] == event]

    yield _read

    namespace.removeHandler(capture)
    namespace.setLevel(level_before)


# =============================================================================
# Database and time
# =============================================================================


@pytest.fixture
def db_engine(tmp_path):
    engine = create_engine_from_url(f"sqlite:///{tmp_path / 'datagen.db'}")
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
def clock():
    return DeterministicClock(
        fixed_time=datetime(2024, 6, 15, 9, 0, 0, tzinfo=timezone.utc),
    )
