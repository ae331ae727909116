"""
Module: rental_engines.late_fees
Responsibility:
    Compute days overdue and the capped late fee for an obligation period
    that has not been fully paid.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - An obligation is not late on its due date.  Once ``as_of`` is past
      the due date, the due date itself counts as the first overdue day.
    - ``0 <= late_fee <= cap``; the fee is quantized half-up to cents and
      a sub-cent cap is rounded down first.
    - Satisfied periods never accrue a fee.

Usage:
    from rental_engines.late_fees import LateFeeCalculator

    assessment = LateFeeCalculator().compute(
        period, match, daily_rate=Decimal("120"), cap=Decimal("3000"),
        as_of=date(2024, 2, 5),
    )
"""

from __future__ import annotations

from datetime import date
from decimal import ROUND_DOWN, Decimal

from rental_engines.billing_types import (
    LateFeeAssessment,
    ObligationPeriod,
    PeriodMatch,
    PeriodMatchStatus,
)
from rental_kernel.domain.money import ZERO, quantize_money
from rental_kernel.logging_config import get_logger

logger = get_logger("engines.late_fees")


def days_overdue_between(due_date: date, as_of: date) -> int:
    """
    Overdue day count for an obligation due on ``due_date``.

    >>> days_overdue_between(date(2024, 2, 1), date(2024, 2, 5))
    5
    >>> days_overdue_between(date(2024, 2, 1), date(2024, 2, 1))
    0
    """
    if as_of <= due_date:
        return 0
    return (as_of - due_date).days + 1


class LateFeeCalculator:
    """
    Late fee assessment for one period.

    Contract:
        Pure functions -- no I/O, no clock access.
    """

    def compute(
        self,
        period: ObligationPeriod,
        match: PeriodMatch,
        daily_rate: Decimal,
        cap: Decimal,
        as_of: date,
    ) -> LateFeeAssessment:
        if match.status == PeriodMatchStatus.SATISFIED:
            return LateFeeAssessment.none()

        days = days_overdue_between(period.due_date, as_of)
        if days == 0:
            return LateFeeAssessment.none()

        accrued = Decimal(days) * daily_rate
        fee = min(quantize_money(accrued), quantize_money(cap, ROUND_DOWN))
        if fee < ZERO:
            fee = quantize_money(ZERO)

        logger.debug("late_fee_assessed", extra={
            "period": period.key,
            "due_date": period.due_date.isoformat(),
            "as_of": as_of.isoformat(),
            "days_overdue": days,
            "late_fee": str(fee),
            "capped": accrued > cap,
        })
        return LateFeeAssessment(days_overdue=days, late_fee=fee)
