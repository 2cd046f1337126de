"""
Persistence Adapter -- section-scoped, idempotent upserts of generated datasets.

Contract:
    ``save(dataset, customer, period)`` writes every non-null section to its
    table with ``INSERT ... ON CONFLICT (natural key) DO UPDATE``.  Each
    section runs inside its own SAVEPOINT: a failing section is rolled back
    to its savepoint, logged, and reported, and the remaining sections are
    still attempted.  The outer transaction commits whatever succeeded.

    ``existing_sections(period)`` answers the existence query used at job
    start: which customers already hold which sections for the period.

Non-goals:
    - Does NOT decide the CustomerResult status -- the controller reads the
      returned ``PersistReport``.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Callable, Protocol, runtime_checkable
from uuid import uuid4

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from datagen_batch.domain.records import GeneratedDataset
from datagen_batch.domain.types import (
    CustomerDescriptor,
    PersistReport,
    Section,
    SectionFailure,
    SectionFlags,
)
from datagen_batch.models.sections import SECTION_TABLES, SectionTable
from datagen_kernel.logging_config import get_logger

logger = get_logger("batch.persistence")


@runtime_checkable
class PersistenceAdapter(Protocol):
    def save(
        self,
        dataset: GeneratedDataset,
        customer: CustomerDescriptor,
        period: str,
    ) -> PersistReport: ...

    def existing_sections(self, period: str) -> dict[str, SectionFlags]: ...


def section_rows(dataset: GeneratedDataset, section: Section) -> tuple[dict[str, Any], ...]:
    """Column dicts for one section (without period/customer_id)."""
    value = getattr(dataset, section.value)
    if value is None:
        return ()
    records = value if isinstance(value, tuple) else (value,)
    return tuple(vars(record).copy() for record in records)


def _insert_for(session: Session):
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Upsert not supported for dialect {dialect}")


class SqlPersistenceAdapter:
    """Writes datasets to the five section tables."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def save(
        self,
        dataset: GeneratedDataset,
        customer: CustomerDescriptor,
        period: str,
    ) -> PersistReport:
        saved: list[Section] = []
        failed: list[SectionFailure] = []

        session = self._session_factory()
        try:
            insert = _insert_for(session)
            for section in dataset.present_sections():
                rows = section_rows(dataset, section)
                savepoint = session.begin_nested()
                try:
                    self._upsert(
                        session, insert, SECTION_TABLES[section],
                        rows, customer.customer_id, period,
                    )
                    savepoint.commit()
                    saved.append(section)
                except Exception as exc:
                    savepoint.rollback()
                    failed.append(SectionFailure(section=section, message=str(exc)))
                    logger.warning(
                        "section_upsert_failed",
                        exc_info=True,
                        extra={
                            "customer_id": customer.customer_id,
                            "period": period,
                            "section": section.value,
                            "rows": len(rows),
                        },
                    )
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

        logger.info(
            "dataset_persisted",
            extra={
                "customer_id": customer.customer_id,
                "period": period,
                "saved_sections": [s.value for s in saved],
                "failed_sections": [f.section.value for f in failed],
            },
        )
        return PersistReport(
            customer_id=customer.customer_id,
            period=period,
            saved=tuple(saved),
            failed=tuple(failed),
        )

    def _upsert(
        self,
        session: Session,
        insert,
        table: SectionTable,
        rows: tuple[dict[str, Any], ...],
        customer_id: str,
        period: str,
    ) -> None:
        model = table.model
        for row in rows:
            values = {"id": uuid4(), "period": period, "customer_id": customer_id, **row}
            stmt = insert(model).values(**values)
            updates = {
                name: stmt.excluded[name]
                for name in row
                if name not in table.natural_key
            }
            updates["updated_at"] = func.now()
            stmt = stmt.on_conflict_do_update(
                index_elements=list(table.natural_key),
                set_=updates,
            )
            session.execute(stmt)

    def existing_sections(self, period: str) -> dict[str, SectionFlags]:
        found: dict[str, set[Section]] = defaultdict(set)
        session = self._session_factory()
        try:
            for section, table in SECTION_TABLES.items():
                model = table.model
                customer_ids = session.execute(
                    select(model.customer_id)
                    .where(model.period == period)
                    .distinct()
                ).scalars().all()
                for customer_id in customer_ids:
                    found[customer_id].add(section)
        finally:
            session.close()
        return {cid: SectionFlags.from_sections(s) for cid, s in found.items()}

    def load_dataset(self, customer_id: str, period: str) -> GeneratedDataset:
        """Read back what the store holds for one customer (inspection/tests)."""
        parts: dict[str, Any] = {}
        session = self._session_factory()
        try:
            for section, table in SECTION_TABLES.items():
                model = table.model
                rows = session.execute(
                    select(model)
                    .where(model.period == period, model.customer_id == customer_id)
                    .order_by(*(getattr(model, c) for c in table.natural_key))
                ).scalars().all()
                if not rows:
                    continue
                records = tuple(row.to_record() for row in rows)
                if section in (Section.CHANNEL_A, Section.CHANNEL_B):
                    parts[section.value] = records[0]
                else:
                    parts[section.value] = records
        finally:
            session.close()
        return GeneratedDataset(**parts)
