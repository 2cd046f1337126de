"""
Customer directory adapters.

Contract:
    ``CustomerDirectory`` returns the ordered, read-only customer list the
    engine walks.  The engine pulls it once per ``start()`` and never writes
    to it.

Implementations:
    - ``SqlCustomerDirectory`` -- reads the ``customers`` table ordered by name.
    - ``StaticCustomerDirectory`` -- fixed in-memory list (CLI fixtures, tests).
"""

from __future__ import annotations

from typing import Callable, Iterable, Protocol, runtime_checkable

from sqlalchemy import select
from sqlalchemy.orm import Session

from datagen_batch.domain.types import CustomerDescriptor
from datagen_batch.models.customer import CustomerModel
from datagen_kernel.exceptions import CustomerNotFoundError


@runtime_checkable
class CustomerDirectory(Protocol):
    def list_customers(self) -> tuple[CustomerDescriptor, ...]: ...

    def get_customer(self, customer_id: str) -> CustomerDescriptor:
        """Raises CustomerNotFoundError for an unknown id."""
        ...


class StaticCustomerDirectory:
    """Directory over a fixed list, kept in the given order."""

    def __init__(self, customers: Iterable[CustomerDescriptor]):
        self._customers = tuple(customers)

    def list_customers(self) -> tuple[CustomerDescriptor, ...]:
        return self._customers

    def get_customer(self, customer_id: str) -> CustomerDescriptor:
        for customer in self._customers:
            if customer.customer_id == customer_id:
                return customer
        raise CustomerNotFoundError(customer_id)


class SqlCustomerDirectory:
    """Directory backed by the ``customers`` table, ordered by name."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def list_customers(self) -> tuple[CustomerDescriptor, ...]:
        session = self._session_factory()
        try:
            rows = session.execute(
                select(CustomerModel).order_by(
                    CustomerModel.name, CustomerModel.customer_id,
                )
            ).scalars().all()
            return tuple(row.to_dto() for row in rows)
        finally:
            session.close()

    def get_customer(self, customer_id: str) -> CustomerDescriptor:
        session = self._session_factory()
        try:
            row = session.execute(
                select(CustomerModel).where(
                    CustomerModel.customer_id == customer_id,
                )
            ).scalar_one_or_none()
            if row is None:
                raise CustomerNotFoundError(customer_id)
            return row.to_dto()
        finally:
            session.close()
