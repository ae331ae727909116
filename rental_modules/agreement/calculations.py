"""
Lease Agreement Pure Calculation Functions.

Domain math that the billing engines don't cover:
- First obligation due date on activation
- The pending schedule entry written on activation
- Suspicious payment detection
- Expiry windows for portfolio metrics
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

from rental_engines.billing_types import (
    LeaseTerm,
    PaymentRecord,
    PaymentStatus,
    PaymentType,
)
from rental_engines.obligations import clamped_day, next_month
from rental_modules.agreement.models import Lease, LeaseStatus


def first_obligation_due_date(term: LeaseTerm, as_of: date) -> date:
    """
    Due date of the first rent obligation for a lease activated on ``as_of``.

    The due day (clamped) in the month of ``max(start_date, as_of)``; if that
    lands before the lease starts, the due day of the following month.
    """
    anchor = max(term.start_date, as_of)
    due = clamped_day(anchor.year, anchor.month, term.due_day_of_month)
    if due < term.start_date:
        year, month = next_month(anchor.year, anchor.month)
        due = clamped_day(year, month, term.due_day_of_month)
    return due


def period_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def has_rent_schedule(payments: Sequence[PaymentRecord]) -> bool:
    """True if any non-cancelled rent record exists."""
    return any(p.counts_toward_rent for p in payments)


def first_obligation_entry(
    term: LeaseTerm,
    as_of: date,
    payment_id: UUID | None = None,
) -> PaymentRecord:
    """
    The pending rent record written when a lease is activated.

    ``amount`` is zero: the entry announces what is owed (``amount_due``)
    and does not count as money received.
    """
    due = first_obligation_due_date(term, as_of)
    return PaymentRecord(
        id=payment_id or uuid4(),
        lease_id=term.lease_id,
        amount=Decimal("0"),
        payment_date=due,
        payment_type=PaymentType.RENT,
        status=PaymentStatus.PENDING,
        amount_due=term.monthly_rent_amount,
        period_key=period_key(due),
        description=f"Scheduled rent for {period_key(due)}",
    )


def is_suspicious_payment(
    amount: Decimal,
    monthly_rent_amount: Decimal,
    multiplier: Decimal,
) -> bool:
    """A rent payment far larger than the rent is likely a data-entry error."""
    if monthly_rent_amount <= 0:
        return False
    return amount > monthly_rent_amount * multiplier


def settled_status(amount: Decimal, amount_due: Decimal | None) -> PaymentStatus:
    """Status of a record after money has been applied to it."""
    if amount_due is None or amount >= amount_due:
        return PaymentStatus.COMPLETED
    return PaymentStatus.PENDING


def is_expiring_soon(lease: Lease, as_of: date, window_days: int) -> bool:
    """Active lease whose end date falls within ``window_days`` of ``as_of``."""
    if lease.status != LeaseStatus.ACTIVE or lease.end_date is None:
        return False
    return as_of <= lease.end_date <= as_of + timedelta(days=window_days)
