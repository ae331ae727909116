"""
Lease Agreement Domain Models (``rental_modules.agreement.models``).

Responsibility
--------------
Frozen dataclass value objects and closed enums for the nouns of the
rental back office: lease agreements, their lifecycle status, and the
status taxonomies of the adjacent traffic-fine and legal-case records.
The billing types shared with the engines are re-exported from
``rental_engines.billing_types``.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Consumed by the
status policy, the repository and the services.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* Raw status strings become enum members only through ``parse()``, which
  raises ``InvalidStatusError`` for values outside the closed set.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from rental_config.schema import BillingDefaults
from rental_engines.billing_types import (
    LateFeeAssessment,
    LeaseTerm,
    ObligationPeriod,
    PaymentRecord,
    PaymentStatus,
    PaymentType,
    PeriodMatch,
    PeriodMatchStatus,
    PeriodReconciliation,
    ReconciliationReport,
)
from rental_kernel.exceptions import InvalidStatusError, MissingTermsError
from rental_kernel.logging_config import get_logger

logger = get_logger("modules.agreement.models")


def _parse_member(enum_cls: type[Enum], value: object, kind: str) -> Enum:
    if isinstance(value, enum_cls):
        return value
    key = str(value).strip().lower().replace("-", "_").replace(" ", "_")
    try:
        return enum_cls(key)
    except ValueError as e:
        raise InvalidStatusError(kind, value) from e


class LeaseStatus(str, Enum):
    """Lease agreement lifecycle states."""
    DRAFT = "draft"
    PENDING = "pending"
    PENDING_PAYMENT = "pending_payment"
    PENDING_DEPOSIT = "pending_deposit"
    ACTIVE = "active"
    CANCELLED = "cancelled"
    CLOSED = "closed"
    COMPLETED = "completed"
    TERMINATED = "terminated"
    ARCHIVED = "archived"

    @classmethod
    def parse(cls, value: LeaseStatus | str) -> LeaseStatus:
        return _parse_member(cls, value, "lease status")


class TrafficFinePaymentStatus(str, Enum):
    """Payment state of a traffic fine attached to a rental."""
    PENDING = "pending"
    PAID = "paid"
    DISPUTED = "disputed"
    REFUNDED = "refunded"

    @classmethod
    def parse(cls, value: TrafficFinePaymentStatus | str) -> TrafficFinePaymentStatus:
        return _parse_member(cls, value, "traffic fine payment status")


class LegalCaseStatus(str, Enum):
    """Progress of a legal case opened against a defaulting customer."""
    PENDING_REMINDER = "pending_reminder"
    IN_LEGAL_PROCESS = "in_legal_process"
    ESCALATED = "escalated"
    RESOLVED = "resolved"
    SETTLED = "settled"
    CLOSED = "closed"

    @classmethod
    def parse(cls, value: LegalCaseStatus | str) -> LegalCaseStatus:
        return _parse_member(cls, value, "legal case status")


@dataclass(frozen=True)
class Lease:
    """
    A lease agreement as the back office stores it.

    Billing fields may be unset on drafts.  ``to_term()`` fills the optional
    ones from ``BillingDefaults`` but refuses to invent a rent amount.
    """
    id: UUID
    agreement_number: str
    start_date: date
    status: LeaseStatus = LeaseStatus.DRAFT
    end_date: date | None = None
    monthly_rent_amount: Decimal | None = None
    due_day_of_month: int | None = None
    daily_late_fee_rate: Decimal | None = None
    late_fee_cap: Decimal | None = None
    customer_name: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", LeaseStatus.parse(self.status))

    @property
    def has_billing_terms(self) -> bool:
        return self.monthly_rent_amount is not None

    def with_status(self, status: LeaseStatus) -> Lease:
        return dataclasses.replace(self, status=status)

    def to_term(self, defaults: BillingDefaults | None = None) -> LeaseTerm:
        """
        Billing terms for the engines.

        Raises:
            MissingTermsError: If ``monthly_rent_amount`` is unset.
            InvalidTermError: If a numeric field cannot be parsed.
        """
        if self.monthly_rent_amount is None:
            raise MissingTermsError(self.id, ("monthly_rent_amount",))
        defaults = defaults or BillingDefaults()
        return LeaseTerm(
            lease_id=self.id,
            start_date=self.start_date,
            end_date=self.end_date,
            monthly_rent_amount=self.monthly_rent_amount,
            due_day_of_month=(
                self.due_day_of_month
                if self.due_day_of_month is not None
                else defaults.due_day_of_month
            ),
            daily_late_fee_rate=(
                self.daily_late_fee_rate
                if self.daily_late_fee_rate is not None
                else defaults.daily_late_fee_rate
            ),
            late_fee_cap=(
                self.late_fee_cap
                if self.late_fee_cap is not None
                else defaults.late_fee_cap
            ),
        )


@dataclass(frozen=True)
class PortfolioMetrics:
    """Counts across the lease portfolio as of a date."""
    as_of: date
    total: int
    by_status: dict[str, int]
    active: int
    expiring_soon: int
    overdue: int
    total_outstanding: Decimal


__all__ = [
    "LateFeeAssessment",
    "Lease",
    "LeaseStatus",
    "LeaseTerm",
    "LegalCaseStatus",
    "ObligationPeriod",
    "PaymentRecord",
    "PaymentStatus",
    "PaymentType",
    "PeriodMatch",
    "PeriodMatchStatus",
    "PeriodReconciliation",
    "PortfolioMetrics",
    "ReconciliationReport",
    "TrafficFinePaymentStatus",
]
