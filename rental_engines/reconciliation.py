"""
Module: rental_engines.reconciliation
Responsibility:
    Compose the obligation calendar, payment matcher and late-fee
    calculator into one reconciliation report for a lease as of a date.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    The only time source is an injected ``Clock``, read once at the call
    boundary when the caller omits ``as_of``.

Invariants enforced:
    - Determinism: identical (term, payments, as_of) yield equal reports
      and identical ``to_dict()`` output.
    - ``total_outstanding`` is the sum of unpaid principal and late fees
      over non-satisfied periods, and is never negative.
    - ``InvalidTermError`` propagates unchanged.

Usage:
    from rental_engines.reconciliation import reconcile

    report = reconcile(term, payments, as_of=date(2024, 2, 5))
    report.total_outstanding   # Decimal("3600.00")
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal

from rental_engines.billing_types import (
    LeaseTerm,
    PaymentRecord,
    PeriodMatchStatus,
    PeriodReconciliation,
    ReconciliationReport,
)
from rental_engines.late_fees import LateFeeCalculator
from rental_engines.matching import PaymentMatcher
from rental_engines.obligations import ObligationCalendar, next_month
from rental_engines.tracer import traced_engine
from rental_kernel.domain.clock import Clock, SystemClock
from rental_kernel.domain.money import ZERO
from rental_kernel.logging_config import get_logger

logger = get_logger("engines.reconciliation")


class ReconciliationEngine:
    """
    Reconcile recorded payments against a lease's obligations.

    Contract:
        Pure apart from the single optional clock read.
    Guarantees:
        - Periods in the report are chronological.
        - An empty payment list yields an all-missing report.
    Non-goals:
        - Does not persist anything; callers own storage.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        calendar: ObligationCalendar | None = None,
        matcher: PaymentMatcher | None = None,
        late_fees: LateFeeCalculator | None = None,
    ):
        self._clock = clock or SystemClock()
        self._calendar = calendar or ObligationCalendar()
        self._matcher = matcher or PaymentMatcher()
        self._late_fees = late_fees or LateFeeCalculator()

    def reconcile(
        self,
        term: LeaseTerm,
        payments: Sequence[PaymentRecord],
        as_of: date | None = None,
    ) -> ReconciliationReport:
        """
        Reconcile ``payments`` against ``term`` as of ``as_of``.

        When ``as_of`` is omitted, today's date is read from the injected
        clock exactly once.

        Raises:
            InvalidTermError: If the term fails validation.
        """
        if as_of is None:
            as_of = self._clock.today()
        return self.reconcile_as_of(term, tuple(payments), as_of)

    @traced_engine("reconciliation", "1.0", fingerprint_fields=("term", "payments", "as_of"))
    def reconcile_as_of(
        self,
        term: LeaseTerm,
        payments: Sequence[PaymentRecord],
        as_of: date,
    ) -> ReconciliationReport:
        periods = self._calendar.generate(term, as_of)
        matches = self._matcher.match(periods, payments, lease_id=term.lease_id)

        rows: list[PeriodReconciliation] = []
        principal = ZERO
        fees = ZERO
        paid = ZERO
        for period, match in zip(periods, matches):
            assessment = self._late_fees.compute(
                period,
                match,
                daily_rate=term.daily_late_fee_rate,
                cap=term.late_fee_cap,
                as_of=as_of,
            )
            outstanding_principal = ZERO
            if match.status != PeriodMatchStatus.SATISFIED:
                outstanding_principal = match.remaining
            rows.append(PeriodReconciliation(
                period=period,
                status=match.status,
                paid_amount=match.paid_amount,
                late_fee=assessment.late_fee,
                days_overdue=assessment.days_overdue,
                outstanding_principal=outstanding_principal,
            ))
            principal += outstanding_principal
            fees += assessment.late_fee
            paid += match.paid_amount

        total_outstanding = principal + fees
        report = ReconciliationReport(
            lease_id=str(term.lease_id),
            as_of=as_of,
            periods=tuple(rows),
            total_principal_outstanding=principal,
            total_late_fees=fees,
            total_outstanding=total_outstanding,
            total_paid=paid,
            suggested_next_payment=self._suggested_next_payment(
                term, as_of, total_outstanding,
            ),
        )

        logger.info("lease_reconciled", extra={
            "lease_id": report.lease_id,
            "as_of": as_of.isoformat(),
            "period_count": len(rows),
            "missing_count": len(report.missing_periods()),
            "partial_count": len(report.partial_periods()),
            "total_outstanding": str(total_outstanding),
        })
        return report

    def _suggested_next_payment(
        self,
        term: LeaseTerm,
        as_of: date,
        total_outstanding: Decimal,
    ) -> Decimal:
        if total_outstanding > ZERO:
            return total_outstanding
        if term.end_date is not None and term.end_date <= as_of:
            return ZERO
        year, month = next_month(as_of.year, as_of.month)
        upcoming = self._calendar.period_for_month(term, year, month)
        if upcoming is None:
            return ZERO
        return upcoming.amount_due


def reconcile(
    term: LeaseTerm,
    payments: Sequence[PaymentRecord],
    as_of: date | None = None,
    clock: Clock | None = None,
) -> ReconciliationReport:
    """Module-level convenience around ``ReconciliationEngine.reconcile``."""
    return ReconciliationEngine(clock=clock).reconcile(term, payments, as_of)
