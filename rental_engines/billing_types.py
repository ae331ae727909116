"""
Billing domain types for lease payment reconciliation.

Pure frozen dataclasses and closed enums shared by the obligation calendar,
payment matcher, late-fee calculator and reconciliation engine.  The
persistence adapter populates ``LeaseTerm`` and ``PaymentRecord``; the
engines derive everything else and never persist it.

Architecture: rental_engines -- pure domain, zero I/O.

Invariants supported:
    - All monetary fields are ``Decimal`` (coerced at construction).
    - Raw status/type strings are validated once, at the boundary, through
      the ``parse`` classmethods; business logic only sees enum members.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from rental_kernel.domain.money import ZERO, quantize_money, to_decimal
from rental_kernel.exceptions import InvalidStatusError, InvalidTermError


def _normalize(value: object) -> str:
    return str(value).strip().lower().replace("-", "_").replace(" ", "_")


# =============================================================================
# Closed enums
# =============================================================================


class PaymentType(str, Enum):
    """What a recorded payment is for."""

    RENT = "rent"
    DEPOSIT = "deposit"
    LATE_FEE = "late_fee"
    OTHER = "other"

    @classmethod
    def parse(cls, value: PaymentType | str) -> PaymentType:
        """Validate a raw type string from storage or a form."""
        if isinstance(value, cls):
            return value
        key = _normalize(value)
        member = _PAYMENT_TYPE_ALIASES.get(key)
        if member is None:
            raise InvalidStatusError("payment type", value)
        return member


_PAYMENT_TYPE_ALIASES: dict[str, PaymentType] = {
    "rent": PaymentType.RENT,
    "income": PaymentType.RENT,
    "deposit": PaymentType.DEPOSIT,
    "security_deposit": PaymentType.DEPOSIT,
    "late_fee": PaymentType.LATE_FEE,
    "latefee": PaymentType.LATE_FEE,
    "late_payment_fee": PaymentType.LATE_FEE,
    "fee": PaymentType.LATE_FEE,
    "other": PaymentType.OTHER,
}


class PaymentStatus(str, Enum):
    """Lifecycle status of a recorded payment."""

    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value: PaymentStatus | str) -> PaymentStatus:
        """Validate a raw status string, folding legacy back-office values."""
        if isinstance(value, cls):
            return value
        member = _PAYMENT_STATUS_ALIASES.get(_normalize(value))
        if member is None:
            raise InvalidStatusError("payment status", value)
        return member


_PAYMENT_STATUS_ALIASES: dict[str, PaymentStatus] = {
    "pending": PaymentStatus.PENDING,
    "partially_paid": PaymentStatus.PENDING,
    "overdue": PaymentStatus.PENDING,
    "scheduled": PaymentStatus.PENDING,
    "processing": PaymentStatus.PENDING,
    "completed": PaymentStatus.COMPLETED,
    "paid": PaymentStatus.COMPLETED,
    "cancelled": PaymentStatus.CANCELLED,
    "canceled": PaymentStatus.CANCELLED,
    "refunded": PaymentStatus.CANCELLED,
}


class PeriodMatchStatus(str, Enum):
    """How well an obligation period is covered by recorded rent."""

    SATISFIED = "satisfied"
    PARTIAL = "partial"
    MISSING = "missing"


# =============================================================================
# Input types (populated by the persistence adapter, consumed by engines)
# =============================================================================


@dataclass(frozen=True)
class LeaseTerm:
    """
    Billing terms of one lease.

    Contract:
        Numeric fields are coerced to ``Decimal`` on construction.  Range
        checks live in ``validate()`` so that a malformed term can still be
        carried to the calendar, which reports it as ``InvalidTermError``.
    """

    lease_id: UUID | str
    start_date: date
    monthly_rent_amount: Decimal
    end_date: date | None = None
    due_day_of_month: int = 1
    daily_late_fee_rate: Decimal = ZERO
    late_fee_cap: Decimal = ZERO

    def __post_init__(self) -> None:
        for name in ("monthly_rent_amount", "daily_late_fee_rate", "late_fee_cap"):
            raw = getattr(self, name)
            try:
                object.__setattr__(self, name, to_decimal(raw, name))
            except ValueError as e:
                raise InvalidTermError(self.lease_id, name, raw, "not a number") from e

    def validate(self) -> None:
        """
        Check the term invariants.

        Raises:
            InvalidTermError: negative rent, rate or cap; due day outside
                1-31; end date before start date.
        """
        if self.monthly_rent_amount < 0:
            raise InvalidTermError(
                self.lease_id, "monthly_rent_amount", self.monthly_rent_amount,
                "must be non-negative",
            )
        if isinstance(self.due_day_of_month, bool) or not isinstance(self.due_day_of_month, int) \
                or not 1 <= self.due_day_of_month <= 31:
            raise InvalidTermError(
                self.lease_id, "due_day_of_month", self.due_day_of_month,
                "must be an integer within 1-31",
            )
        if self.daily_late_fee_rate < 0:
            raise InvalidTermError(
                self.lease_id, "daily_late_fee_rate", self.daily_late_fee_rate,
                "must be non-negative",
            )
        if self.late_fee_cap < 0:
            raise InvalidTermError(
                self.lease_id, "late_fee_cap", self.late_fee_cap,
                "must be non-negative",
            )
        if self.end_date is not None and self.end_date < self.start_date:
            raise InvalidTermError(
                self.lease_id, "end_date", self.end_date.isoformat(),
                f"precedes start_date {self.start_date.isoformat()}",
            )


@dataclass(frozen=True)
class PaymentRecord:
    """
    A payment recorded against a lease.

    ``amount`` is what was paid.  Schedule entries created on activation
    carry ``amount=0`` with the expected rent in ``amount_due``.
    ``period_key`` ("YYYY-MM") is an informational link; matching uses the
    calendar month of ``payment_date``.
    """

    id: UUID | str
    lease_id: UUID | str
    amount: Decimal
    payment_date: date
    payment_type: PaymentType = PaymentType.RENT
    status: PaymentStatus = PaymentStatus.COMPLETED
    amount_due: Decimal | None = None
    period_key: str | None = None
    description: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount, "amount"))
        if self.amount_due is not None:
            object.__setattr__(self, "amount_due", to_decimal(self.amount_due, "amount_due"))
        object.__setattr__(self, "payment_type", PaymentType.parse(self.payment_type))
        object.__setattr__(self, "status", PaymentStatus.parse(self.status))
        if self.amount < 0:
            raise ValueError(f"Payment amount cannot be negative: {self.amount}")

    @property
    def counts_toward_rent(self) -> bool:
        """Rent records that have not been cancelled."""
        return (
            self.payment_type == PaymentType.RENT
            and self.status != PaymentStatus.CANCELLED
        )

    @property
    def month_key(self) -> tuple[int, int]:
        return (self.payment_date.year, self.payment_date.month)


# =============================================================================
# Derived types (computed per reconciliation, never persisted)
# =============================================================================


@dataclass(frozen=True)
class ObligationPeriod:
    """One calendar month of rent owed under a lease."""

    period_start: date
    period_end: date
    due_date: date
    amount_due: Decimal
    is_prorated: bool = False

    @property
    def key(self) -> str:
        return f"{self.period_start.year:04d}-{self.period_start.month:02d}"

    @property
    def month_key(self) -> tuple[int, int]:
        return (self.period_start.year, self.period_start.month)

    @property
    def days_in_period(self) -> int:
        return (self.period_end - self.period_start).days + 1


@dataclass(frozen=True)
class PeriodMatch:
    """Result of bucketing rent payments into one obligation period."""

    period: ObligationPeriod
    status: PeriodMatchStatus
    paid_amount: Decimal
    payment_ids: tuple[str, ...] = ()

    @property
    def remaining(self) -> Decimal:
        return max(ZERO, self.period.amount_due - self.paid_amount)


@dataclass(frozen=True)
class LateFeeAssessment:
    """Days overdue and the capped late fee for one period."""

    days_overdue: int
    late_fee: Decimal

    @classmethod
    def none(cls) -> LateFeeAssessment:
        return cls(days_overdue=0, late_fee=Decimal("0.00"))


@dataclass(frozen=True)
class PeriodReconciliation:
    """One row of a reconciliation report."""

    period: ObligationPeriod
    status: PeriodMatchStatus
    paid_amount: Decimal
    late_fee: Decimal
    days_overdue: int
    outstanding_principal: Decimal

    @property
    def outstanding(self) -> Decimal:
        return self.outstanding_principal + self.late_fee

    def to_dict(self) -> dict[str, Any]:
        return {
            "period": self.period.key,
            "period_start": self.period.period_start.isoformat(),
            "period_end": self.period.period_end.isoformat(),
            "due_date": self.period.due_date.isoformat(),
            "amount_due": str(quantize_money(self.period.amount_due)),
            "is_prorated": self.period.is_prorated,
            "status": self.status.value,
            "paid_amount": str(quantize_money(self.paid_amount)),
            "late_fee": str(quantize_money(self.late_fee)),
            "days_overdue": self.days_overdue,
            "outstanding_principal": str(quantize_money(self.outstanding_principal)),
        }


@dataclass(frozen=True)
class ReconciliationReport:
    """
    Full reconciliation of one lease as of a date.

    Guarantees:
        - ``total_outstanding`` equals ``total_principal_outstanding +
          total_late_fees`` and is never negative.
        - ``periods`` is in chronological order.
    """

    lease_id: str
    as_of: date
    periods: tuple[PeriodReconciliation, ...]
    total_principal_outstanding: Decimal
    total_late_fees: Decimal
    total_outstanding: Decimal
    total_paid: Decimal
    suggested_next_payment: Decimal

    def _with_status(self, status: PeriodMatchStatus) -> tuple[PeriodReconciliation, ...]:
        return tuple(p for p in self.periods if p.status == status)

    def satisfied_periods(self) -> tuple[PeriodReconciliation, ...]:
        return self._with_status(PeriodMatchStatus.SATISFIED)

    def partial_periods(self) -> tuple[PeriodReconciliation, ...]:
        return self._with_status(PeriodMatchStatus.PARTIAL)

    def missing_periods(self) -> tuple[PeriodReconciliation, ...]:
        return self._with_status(PeriodMatchStatus.MISSING)

    def period(self, key: str) -> PeriodReconciliation | None:
        """Row for a "YYYY-MM" month, if the calendar produced one."""
        for row in self.periods:
            if row.period.key == key:
                return row
        return None

    @property
    def is_settled(self) -> bool:
        return self.total_outstanding == 0

    def to_dict(self) -> dict[str, Any]:
        """Canonical JSON-safe form; decimals are rendered as strings."""
        return {
            "lease_id": self.lease_id,
            "as_of": self.as_of.isoformat(),
            "periods": [p.to_dict() for p in self.periods],
            "total_principal_outstanding": str(quantize_money(self.total_principal_outstanding)),
            "total_late_fees": str(quantize_money(self.total_late_fees)),
            "total_outstanding": str(quantize_money(self.total_outstanding)),
            "total_paid": str(quantize_money(self.total_paid)),
            "suggested_next_payment": str(quantize_money(self.suggested_next_payment)),
        }
