"""
Lease persistence ports and their SQLAlchemy adapter.

Responsibility
--------------
``LeaseReader`` and ``LeaseWriter`` are the only ways the services reach
storage.  ``SqlAlchemyLeaseRepository`` implements both over the
``lease_agreements`` and ``lease_payment_records`` tables and returns
frozen DTOs, never ORM rows.

Architecture position
---------------------
**Modules layer** -- persistence adapter.  One short-lived session per
operation (``session_scope``), so a call made from the scheduling worker
thread never shares a session with its caller.

Failure modes
-------------
* ``LeaseNotFoundError`` / ``PaymentNotFoundError`` for unknown IDs.
* ``InvalidStatusError`` when a stored status or type string falls outside
  the closed enum sets.
* SQLAlchemy errors propagate after the session is rolled back.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from rental_config.schema import BillingDefaults
from rental_kernel.db.engine import get_session_factory, session_scope
from rental_kernel.exceptions import LeaseNotFoundError, PaymentNotFoundError
from rental_kernel.logging_config import get_logger
from rental_modules.agreement.models import (
    Lease,
    LeaseStatus,
    LeaseTerm,
    PaymentRecord,
)
from rental_modules.agreement.orm import LeaseModel, PaymentRecordModel

logger = get_logger("modules.agreement.repository")


@runtime_checkable
class LeaseReader(Protocol):
    """Read port for lease agreements and their payment records."""

    def get_lease(self, lease_id: UUID | str) -> Lease:
        """Raises LeaseNotFoundError."""
        ...

    def get_lease_term(self, lease_id: UUID | str) -> LeaseTerm:
        """Raises LeaseNotFoundError or MissingTermsError."""
        ...

    def get_payment_records(self, lease_id: UUID | str) -> tuple[PaymentRecord, ...]:
        ...

    def get_payment_record(self, payment_id: UUID | str) -> PaymentRecord:
        """Raises PaymentNotFoundError."""
        ...

    def list_leases(self, status: LeaseStatus | str | None = None) -> tuple[Lease, ...]:
        ...


@runtime_checkable
class LeaseWriter(Protocol):
    """Write port for lease status and payment records."""

    def create_payment_record(self, record: PaymentRecord) -> PaymentRecord:
        ...

    def update_payment_record(self, record: PaymentRecord) -> PaymentRecord:
        ...

    def delete_payment_record(self, payment_id: UUID | str) -> None:
        ...

    def update_lease_status(self, lease_id: UUID | str, status: LeaseStatus) -> Lease:
        ...


def _lease_key(lease_id: UUID | str) -> UUID:
    if isinstance(lease_id, UUID):
        return lease_id
    try:
        return UUID(str(lease_id))
    except ValueError as e:
        raise LeaseNotFoundError(str(lease_id)) from e


def _payment_key(payment_id: UUID | str) -> UUID:
    if isinstance(payment_id, UUID):
        return payment_id
    try:
        return UUID(str(payment_id))
    except ValueError as e:
        raise PaymentNotFoundError(str(payment_id)) from e


class SqlAlchemyLeaseRepository:
    """
    ``LeaseReader`` and ``LeaseWriter`` over SQLAlchemy.

    Args:
        session_factory: Session factory; defaults to the one configured by
            ``init_engine_from_url``.
        billing_defaults: Fill-ins for unset late-fee terms and due day.
        actor_id: Recorded as created_by/updated_by on writes.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        billing_defaults: BillingDefaults | None = None,
        actor_id: UUID | None = None,
    ):
        self._factory = session_factory or get_session_factory()
        self._defaults = billing_defaults or BillingDefaults()
        self._actor_id = actor_id

    # -- helpers -------------------------------------------------------------

    def _require_lease(self, session: Session, lease_id: UUID | str) -> LeaseModel:
        row = session.get(LeaseModel, _lease_key(lease_id))
        if row is None:
            raise LeaseNotFoundError(str(lease_id))
        return row

    def _require_payment(self, session: Session, payment_id: UUID | str) -> PaymentRecordModel:
        row = session.get(PaymentRecordModel, _payment_key(payment_id))
        if row is None:
            raise PaymentNotFoundError(str(payment_id))
        return row

    # -- leases --------------------------------------------------------------

    def add_lease(self, lease: Lease) -> Lease:
        """Persist a new lease agreement."""
        with session_scope(self._factory) as session:
            row = LeaseModel.from_dto(lease, created_by_id=self._actor_id)
            session.add(row)
            session.flush()
            dto = row.to_dto()
        logger.info("lease_added", extra={
            "lease_id": str(dto.id),
            "agreement_number": dto.agreement_number,
            "status": dto.status.value,
        })
        return dto

    def get_lease(self, lease_id: UUID | str) -> Lease:
        with session_scope(self._factory) as session:
            return self._require_lease(session, lease_id).to_dto()

    def get_lease_term(self, lease_id: UUID | str) -> LeaseTerm:
        return self.get_lease(lease_id).to_term(self._defaults)

    def list_leases(self, status: LeaseStatus | str | None = None) -> tuple[Lease, ...]:
        stmt = select(LeaseModel).order_by(LeaseModel.agreement_number)
        if status is not None:
            stmt = stmt.where(LeaseModel.status == LeaseStatus.parse(status).value)
        with session_scope(self._factory) as session:
            return tuple(row.to_dto() for row in session.scalars(stmt))

    def update_lease_status(self, lease_id: UUID | str, status: LeaseStatus) -> Lease:
        status = LeaseStatus.parse(status)
        with session_scope(self._factory) as session:
            row = self._require_lease(session, lease_id)
            row.status = status.value
            row.updated_by_id = self._actor_id
            session.flush()
            return row.to_dto()

    # -- payment records -----------------------------------------------------

    def get_payment_records(self, lease_id: UUID | str) -> tuple[PaymentRecord, ...]:
        stmt = (
            select(PaymentRecordModel)
            .where(PaymentRecordModel.lease_id == _lease_key(lease_id))
            .order_by(PaymentRecordModel.payment_date, PaymentRecordModel.id)
        )
        with session_scope(self._factory) as session:
            return tuple(row.to_dto() for row in session.scalars(stmt))

    def get_payment_record(self, payment_id: UUID | str) -> PaymentRecord:
        with session_scope(self._factory) as session:
            return self._require_payment(session, payment_id).to_dto()

    def create_payment_record(self, record: PaymentRecord) -> PaymentRecord:
        with session_scope(self._factory) as session:
            self._require_lease(session, record.lease_id)
            row = PaymentRecordModel.from_dto(record, created_by_id=self._actor_id)
            session.add(row)
            session.flush()
            dto = row.to_dto()
        logger.info("payment_record_created", extra={
            "lease_id": str(dto.lease_id),
            "payment_id": str(dto.id),
            "payment_type": dto.payment_type.value,
            "status": dto.status.value,
            "amount": str(dto.amount),
        })
        return dto

    def update_payment_record(self, record: PaymentRecord) -> PaymentRecord:
        with session_scope(self._factory) as session:
            row = self._require_payment(session, record.id)
            row.apply_dto(record, updated_by_id=self._actor_id)
            session.flush()
            return row.to_dto()

    def delete_payment_record(self, payment_id: UUID | str) -> None:
        with session_scope(self._factory) as session:
            row = self._require_payment(session, payment_id)
            session.delete(row)
        logger.info("payment_record_deleted", extra={"payment_id": str(payment_id)})
