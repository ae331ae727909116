"""
Tests for SqlAlchemyLeaseRepository.

Runs against the ``repository`` fixture (in-memory SQLite unless
DATABASE_URL points elsewhere).
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from rental_kernel.db.engine import session_scope
from rental_kernel.exceptions import (
    InvalidStatusError,
    LeaseNotFoundError,
    MissingTermsError,
    PaymentNotFoundError,
)
from rental_modules.agreement.models import (
    LeaseStatus,
    PaymentRecord,
    PaymentStatus,
    PaymentType,
)
from rental_modules.agreement.orm import LeaseModel, PaymentRecordModel
from rental_modules.agreement.repository import LeaseReader, LeaseWriter


def _payment(lease, amount="3000", on=date(2024, 1, 3), **overrides):
    values = {
        "id": uuid4(),
        "lease_id": lease.id,
        "amount": Decimal(amount),
        "payment_date": on,
    }
    values.update(overrides)
    return PaymentRecord(**values)


class TestLeases:

    def test_implements_both_ports(self, repository):
        assert isinstance(repository, LeaseReader)
        assert isinstance(repository, LeaseWriter)

    def test_add_and_get(self, repository, make_lease):
        lease = make_lease(customer_name="Fatima Al-Sulaiti")

        repository.add_lease(lease)
        loaded = repository.get_lease(lease.id)

        assert loaded == lease

    def test_get_by_string_id(self, repository, make_lease):
        lease = repository.add_lease(make_lease())

        assert repository.get_lease(str(lease.id)).id == lease.id

    def test_unknown_lease(self, repository):
        with pytest.raises(LeaseNotFoundError):
            repository.get_lease(uuid4())

    def test_malformed_id_is_not_found(self, repository):
        with pytest.raises(LeaseNotFoundError):
            repository.get_lease("not-a-uuid")

    def test_get_lease_term_applies_defaults(self, repository, make_lease):
        lease = repository.add_lease(make_lease(due_day_of_month=None, late_fee_cap=None))

        term = repository.get_lease_term(lease.id)

        assert term.due_day_of_month == 1
        assert term.late_fee_cap == Decimal("3000.00")
        assert term.monthly_rent_amount == Decimal("3000.00")

    def test_get_lease_term_without_rent(self, repository, make_lease):
        lease = repository.add_lease(make_lease(monthly_rent_amount=None))

        with pytest.raises(MissingTermsError):
            repository.get_lease_term(lease.id)

    def test_list_by_status(self, repository, make_lease):
        repository.add_lease(make_lease(status=LeaseStatus.ACTIVE))
        repository.add_lease(make_lease(status=LeaseStatus.ACTIVE))
        repository.add_lease(make_lease(status=LeaseStatus.CLOSED))

        assert len(repository.list_leases()) == 3
        assert len(repository.list_leases(LeaseStatus.ACTIVE)) == 2
        assert len(repository.list_leases("closed")) == 1

    def test_update_status(self, repository, make_lease):
        lease = repository.add_lease(make_lease())

        updated = repository.update_lease_status(lease.id, LeaseStatus.ACTIVE)

        assert updated.status is LeaseStatus.ACTIVE
        assert repository.get_lease(lease.id).status is LeaseStatus.ACTIVE

    def test_legacy_status_string_parsed(self, repository, make_lease):
        lease = repository.add_lease(make_lease())
        with session_scope() as session:
            session.get(LeaseModel, lease.id).status = "Pending-Payment"

        assert repository.get_lease(lease.id).status is LeaseStatus.PENDING_PAYMENT

    def test_unknown_stored_status_rejected(self, repository, make_lease):
        lease = repository.add_lease(make_lease())
        with session_scope() as session:
            session.get(LeaseModel, lease.id).status = "suspended"

        with pytest.raises(InvalidStatusError):
            repository.get_lease(lease.id)


class TestPaymentRecords:

    def test_create_and_list_in_date_order(self, repository, make_lease):
        lease = repository.add_lease(make_lease())
        later = repository.create_payment_record(_payment(lease, on=date(2024, 2, 1)))
        earlier = repository.create_payment_record(_payment(lease, on=date(2024, 1, 1)))

        records = repository.get_payment_records(lease.id)

        assert [r.id for r in records] == [earlier.id, later.id]
        assert records[0].amount == Decimal("3000.00")

    def test_create_for_unknown_lease(self, repository, make_lease):
        with pytest.raises(LeaseNotFoundError):
            repository.create_payment_record(_payment(make_lease()))

    def test_schedule_entry_round_trips(self, repository, make_lease):
        lease = repository.add_lease(make_lease())
        entry = _payment(
            lease,
            amount="0",
            status=PaymentStatus.PENDING,
            amount_due=Decimal("3000"),
            period_key="2024-01",
        )

        stored = repository.create_payment_record(entry)

        assert stored.amount == Decimal("0.00")
        assert stored.amount_due == Decimal("3000.00")
        assert stored.period_key == "2024-01"
        assert stored.status is PaymentStatus.PENDING

    def test_update(self, repository, make_lease):
        lease = repository.add_lease(make_lease())
        record = repository.create_payment_record(_payment(lease, amount="1000"))

        updated = repository.update_payment_record(
            PaymentRecord(
                id=record.id,
                lease_id=lease.id,
                amount=Decimal("3000"),
                payment_date=record.payment_date,
                status=PaymentStatus.COMPLETED,
            )
        )

        assert updated.amount == Decimal("3000.00")
        assert repository.get_payment_record(record.id).amount == Decimal("3000.00")

    def test_update_unknown(self, repository, make_lease):
        lease = repository.add_lease(make_lease())

        with pytest.raises(PaymentNotFoundError):
            repository.update_payment_record(_payment(lease))

    def test_delete(self, repository, make_lease):
        lease = repository.add_lease(make_lease())
        record = repository.create_payment_record(_payment(lease))

        repository.delete_payment_record(record.id)

        assert repository.get_payment_records(lease.id) == ()
        with pytest.raises(PaymentNotFoundError):
            repository.get_payment_record(record.id)

    def test_delete_unknown(self, repository):
        with pytest.raises(PaymentNotFoundError):
            repository.delete_payment_record(uuid4())

    def test_legacy_type_and_status_strings(self, repository, make_lease):
        lease = repository.add_lease(make_lease())
        record = repository.create_payment_record(_payment(lease))
        with session_scope() as session:
            row = session.get(PaymentRecordModel, record.id)
            row.payment_type = "income"
            row.status = "partially_paid"

        loaded = repository.get_payment_record(record.id)

        assert loaded.payment_type is PaymentType.RENT
        assert loaded.status is PaymentStatus.PENDING
