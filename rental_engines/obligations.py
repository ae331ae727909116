"""
Module: rental_engines.obligations
Responsibility:
    Expand a lease's billing terms into the ordered sequence of monthly
    rent obligations that fall due up to a reconciliation date.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import rental_kernel.domain and sibling engine modules.

Invariants enforced:
    - Purity: ``as_of`` is always an explicit parameter; no clock access.
    - One period per calendar month, chronological, no gaps.
    - Boundary months are pro-rated by calendar days, quantized half-up to
      cents; full months owe exactly ``monthly_rent_amount``.
    - Due day is clamped to the last day of short months.

Failure modes:
    - InvalidTermError for malformed terms (see ``LeaseTerm.validate``).

Usage:
    from rental_engines.obligations import ObligationCalendar

    periods = ObligationCalendar().generate(term, as_of=date(2024, 2, 5))
"""

from __future__ import annotations

import calendar
from datetime import date
from decimal import Decimal

from rental_engines.billing_types import LeaseTerm, ObligationPeriod
from rental_engines.tracer import traced_engine
from rental_kernel.domain.money import quantize_money
from rental_kernel.logging_config import get_logger

logger = get_logger("engines.obligations")


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def clamped_day(year: int, month: int, day: int) -> date:
    """``day`` of the given month, clamped to the month's last day."""
    return date(year, month, min(day, days_in_month(year, month)))


def next_month(year: int, month: int) -> tuple[int, int]:
    if month == 12:
        return year + 1, 1
    return year, month + 1


class ObligationCalendar:
    """
    Generate monthly obligation periods for a lease.

    Contract:
        Pure functions -- no I/O, no database access.
    Guarantees:
        - ``generate`` returns an empty tuple when the lease starts after
          ``as_of``.
        - Every returned period lies within the lease bounds.
    Non-goals:
        - Does not look at payments; see ``PaymentMatcher``.
    """

    def period_for_month(self, term: LeaseTerm, year: int, month: int) -> ObligationPeriod | None:
        """
        Obligation for one calendar month, clamped to the lease bounds.

        Returns None when the lease does not run on any day of that month.
        The month may lie after any ``as_of``; callers use this to preview
        the next obligation.
        """
        term.validate()
        dim = days_in_month(year, month)
        month_start = date(year, month, 1)
        month_end = date(year, month, dim)

        period_start = max(month_start, term.start_date)
        period_end = month_end
        if term.end_date is not None:
            period_end = min(month_end, term.end_date)
        if period_start > period_end:
            return None

        days = (period_end - period_start).days + 1
        is_prorated = days != dim
        if is_prorated:
            amount_due = quantize_money(
                term.monthly_rent_amount * Decimal(days) / Decimal(dim)
            )
        else:
            amount_due = term.monthly_rent_amount

        return ObligationPeriod(
            period_start=period_start,
            period_end=period_end,
            due_date=clamped_day(year, month, term.due_day_of_month),
            amount_due=amount_due,
            is_prorated=is_prorated,
        )

    @traced_engine("obligations", "1.0", fingerprint_fields=("term", "as_of"))
    def generate(self, term: LeaseTerm, as_of: date) -> tuple[ObligationPeriod, ...]:
        """
        All obligation periods from the lease's first month through the
        month of ``min(as_of, end_date)``.

        Raises:
            InvalidTermError: If the term fails validation.
        """
        term.validate()
        if term.start_date > as_of:
            logger.debug("obligations_not_started", extra={
                "lease_id": str(term.lease_id),
                "start_date": term.start_date.isoformat(),
                "as_of": as_of.isoformat(),
            })
            return ()

        last_day = as_of
        if term.end_date is not None and term.end_date < as_of:
            last_day = term.end_date

        periods: list[ObligationPeriod] = []
        year, month = term.start_date.year, term.start_date.month
        while (year, month) <= (last_day.year, last_day.month):
            period = self.period_for_month(term, year, month)
            if period is not None:
                periods.append(period)
            year, month = next_month(year, month)

        logger.debug("obligations_generated", extra={
            "lease_id": str(term.lease_id),
            "as_of": as_of.isoformat(),
            "period_count": len(periods),
        })
        return tuple(periods)
