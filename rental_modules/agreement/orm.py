"""
Module: rental_modules.agreement.orm
Responsibility:
    SQLAlchemy ORM persistence models for lease agreements and the payment
    records stored against them.  Maps the frozen DTOs from
    ``rental_modules.agreement.models`` to relational tables.

Architecture position:
    **Modules layer** -- ORM models inheriting from ``TrackedBase``
    (kernel DB base).

Invariants enforced:
    - All monetary fields use Decimal (Numeric(38,9) via the base type map);
      ``to_dto`` rounds them to cents.
    - Enum fields are stored as String(50).  ``to_dto`` is the persistence
      boundary: raw strings are validated through the enum ``parse``
      methods, so unknown values raise ``InvalidStatusError``.
    - TrackedBase provides id, created_at, updated_at, created_by_id,
      updated_by_id automatically.

Failure modes:
    - IntegrityError on a duplicate agreement number.
    - ForeignKey violation for a payment record on an unknown lease.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rental_kernel.db.base import TrackedBase, UUIDString
from rental_kernel.domain.money import quantize_money


def _money(value: Decimal | None) -> Decimal | None:
    if value is None:
        return None
    return quantize_money(value)


def _as_uuid(value) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))


def _enum_value(value) -> str:
    return value.value if hasattr(value, "value") else value


# =============================================================================
# Lease agreement
# =============================================================================


class LeaseModel(TrackedBase):
    """
    A vehicle lease agreement.

    Guarantees:
        - ``agreement_number`` is unique (uq_lease_agreement_number).
        - Billing columns are nullable: drafts may not have terms yet.
    """

    __tablename__ = "lease_agreements"

    __table_args__ = (
        UniqueConstraint("agreement_number", name="uq_lease_agreement_number"),
        Index("idx_lease_agreement_status", "status"),
        Index("idx_lease_agreement_end_date", "end_date"),
    )

    agreement_number: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(50), default="draft")
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    monthly_rent_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    due_day_of_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    daily_late_fee_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    late_fee_cap: Mapped[Decimal | None] = mapped_column(nullable=True)
    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    payments: Mapped[list["PaymentRecordModel"]] = relationship(
        "PaymentRecordModel",
        back_populates="lease",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def to_dto(self):
        from rental_modules.agreement.models import Lease, LeaseStatus

        return Lease(
            id=self.id,
            agreement_number=self.agreement_number,
            status=LeaseStatus.parse(self.status),
            start_date=self.start_date,
            end_date=self.end_date,
            monthly_rent_amount=_money(self.monthly_rent_amount),
            due_day_of_month=self.due_day_of_month,
            daily_late_fee_rate=_money(self.daily_late_fee_rate),
            late_fee_cap=_money(self.late_fee_cap),
            customer_name=self.customer_name,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID | None = None) -> "LeaseModel":
        return cls(
            id=dto.id,
            agreement_number=dto.agreement_number,
            status=_enum_value(dto.status),
            start_date=dto.start_date,
            end_date=dto.end_date,
            monthly_rent_amount=dto.monthly_rent_amount,
            due_day_of_month=dto.due_day_of_month,
            daily_late_fee_rate=dto.daily_late_fee_rate,
            late_fee_cap=dto.late_fee_cap,
            customer_name=dto.customer_name,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<LeaseModel {self.agreement_number} [{self.status}]>"


# =============================================================================
# Payment record
# =============================================================================


class PaymentRecordModel(TrackedBase):
    """
    A payment recorded against a lease, or a pending schedule entry.

    Guarantees:
        - ``lease_id`` references lease_agreements.id.
        - ``payment_type`` and ``status`` hold the raw strings written by
          the back office, legacy values included.
    """

    __tablename__ = "lease_payment_records"

    __table_args__ = (
        Index("idx_lease_payment_record_lease", "lease_id"),
        Index("idx_lease_payment_record_date", "payment_date"),
    )

    lease_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("lease_agreements.id"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    amount_due: Mapped[Decimal | None] = mapped_column(nullable=True)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_type: Mapped[str] = mapped_column(String(50), default="rent")
    status: Mapped[str] = mapped_column(String(50), default="completed")
    period_key: Mapped[str | None] = mapped_column(String(7), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    lease: Mapped["LeaseModel"] = relationship(
        "LeaseModel",
        back_populates="payments",
    )

    def to_dto(self):
        from rental_engines.billing_types import (
            PaymentRecord,
            PaymentStatus,
            PaymentType,
        )

        return PaymentRecord(
            id=self.id,
            lease_id=self.lease_id,
            amount=_money(self.amount),
            payment_date=self.payment_date,
            payment_type=PaymentType.parse(self.payment_type),
            status=PaymentStatus.parse(self.status),
            amount_due=_money(self.amount_due),
            period_key=self.period_key,
            description=self.description,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID | None = None) -> "PaymentRecordModel":
        return cls(
            id=_as_uuid(dto.id),
            lease_id=_as_uuid(dto.lease_id),
            amount=dto.amount,
            amount_due=dto.amount_due,
            payment_date=dto.payment_date,
            payment_type=_enum_value(dto.payment_type),
            status=_enum_value(dto.status),
            period_key=dto.period_key,
            description=dto.description,
            created_by_id=created_by_id,
        )

    def apply_dto(self, dto, updated_by_id: UUID | None = None) -> None:
        """Copy mutable fields from ``dto`` onto this row."""
        self.amount = dto.amount
        self.amount_due = dto.amount_due
        self.payment_date = dto.payment_date
        self.payment_type = _enum_value(dto.payment_type)
        self.status = _enum_value(dto.status)
        self.period_key = dto.period_key
        self.description = dto.description
        self.updated_by_id = updated_by_id

    def __repr__(self) -> str:
        return (
            f"<PaymentRecordModel {self.payment_date} "
            f"{self.payment_type} {self.amount} [{self.status}]>"
        )
