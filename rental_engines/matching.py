"""
Module: rental_engines.matching
Responsibility:
    Attribute recorded rent payments to obligation periods by calendar
    month and classify each period as satisfied, partial or missing.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Only ``rent`` payments that are not ``cancelled`` count.
    - Given a ``lease_id``, payments recorded against any other lease are
      skipped; without one the caller is trusted to have pre-filtered.
    - A payment counts toward the period whose calendar month contains its
      ``payment_date``; payments outside every period are ignored.
    - Input order never affects the result; ``payment_ids`` are sorted.

Usage:
    from rental_engines.matching import PaymentMatcher

    matches = PaymentMatcher().match(periods, payments)
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from rental_engines.billing_types import (
    ObligationPeriod,
    PaymentRecord,
    PeriodMatch,
    PeriodMatchStatus,
)
from rental_engines.tracer import traced_engine
from rental_kernel.domain.money import ZERO
from rental_kernel.logging_config import get_logger

logger = get_logger("engines.matching")


def classify_coverage(paid: Decimal, due: Decimal) -> PeriodMatchStatus:
    if paid >= due:
        return PeriodMatchStatus.SATISFIED
    if paid > ZERO:
        return PeriodMatchStatus.PARTIAL
    return PeriodMatchStatus.MISSING


class PaymentMatcher:
    """
    Bucket rent payments into obligation periods.

    Contract:
        Pure functions -- no I/O, no database access.
    Guarantees:
        - One ``PeriodMatch`` per input period, in input order.
        - A zero-amount obligation is always satisfied.
    """

    @traced_engine("matching", "1.0", fingerprint_fields=("periods", "payments"))
    def match(
        self,
        periods: Sequence[ObligationPeriod],
        payments: Sequence[PaymentRecord],
        lease_id: UUID | str | None = None,
    ) -> tuple[PeriodMatch, ...]:
        months = {p.month_key for p in periods}
        paid: dict[tuple[int, int], Decimal] = defaultdict(lambda: ZERO)
        ids: dict[tuple[int, int], list[str]] = defaultdict(list)
        ignored = 0
        foreign = 0

        for payment in payments:
            if lease_id is not None and str(payment.lease_id) != str(lease_id):
                foreign += 1
                continue
            if not payment.counts_toward_rent:
                continue
            key = payment.month_key
            if key not in months:
                ignored += 1
                continue
            paid[key] += payment.amount
            ids[key].append(str(payment.id))

        if ignored:
            logger.debug("payments_outside_periods", extra={
                "ignored_count": ignored,
                "period_count": len(periods),
            })
        if foreign:
            logger.warning("payments_for_other_lease", extra={
                "lease_id": str(lease_id),
                "skipped_count": foreign,
            })

        return tuple(
            PeriodMatch(
                period=period,
                status=classify_coverage(paid[period.month_key], period.amount_due),
                paid_amount=paid[period.month_key],
                payment_ids=tuple(sorted(ids[period.month_key])),
            )
            for period in periods
        )
