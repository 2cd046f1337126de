"""Tests for datagen_batch.services.directory."""

import pytest

from datagen_batch.models.customer import CustomerModel
from datagen_batch.services.directory import (
    CustomerDirectory,
    SqlCustomerDirectory,
    StaticCustomerDirectory,
)
from datagen_kernel.exceptions import CustomerNotFoundError
from tests.batch.conftest import make_customer


@pytest.fixture
def seeded_directory(session_factory):
    session = session_factory()
    try:
        for cid, name in (("C-3", "Zeta Farms"), ("C-1", "Alpha Textiles"), ("C-2", "Mu Energy")):
            session.add(CustomerModel.from_dto(make_customer(cid, name)))
        session.commit()
    finally:
        session.close()
    return SqlCustomerDirectory(session_factory)


class TestStaticCustomerDirectory:
    def test_keeps_given_order(self):
        directory = StaticCustomerDirectory([make_customer("B"), make_customer("A")])
        assert [c.customer_id for c in directory.list_customers()] == ["B", "A"]

    def test_get_customer(self):
        directory = StaticCustomerDirectory([make_customer("A")])
        assert directory.get_customer("A").customer_id == "A"

    def test_unknown_customer(self):
        directory = StaticCustomerDirectory([])
        with pytest.raises(CustomerNotFoundError) as exc_info:
            directory.get_customer("nope")
        assert exc_info.value.customer_id == "nope"


class TestSqlCustomerDirectory:
    def test_ordered_by_name(self, seeded_directory):
        names = [c.name for c in seeded_directory.list_customers()]
        assert names == ["Alpha Textiles", "Mu Energy", "Zeta Farms"]

    def test_get_customer(self, seeded_directory):
        customer = seeded_directory.get_customer("C-2")
        assert customer == make_customer("C-2", "Mu Energy")

    def test_unknown_customer(self, seeded_directory):
        with pytest.raises(CustomerNotFoundError):
            seeded_directory.get_customer("C-404")

    def test_empty_table(self, session_factory):
        assert SqlCustomerDirectory(session_factory).list_customers() == ()

    def test_satisfies_protocol(self, session_factory):
        assert isinstance(SqlCustomerDirectory(session_factory), CustomerDirectory)
