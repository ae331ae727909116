"""
Module: rental_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    billing engines.  This is the canonical import surface for higher
    layers (rental_modules, rental_services).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import rental_kernel (domain, exceptions, logging) and sibling
    engine modules.  MUST NOT import rental_modules or rental_services.

Invariants enforced:
    - Purity: engines never call ``datetime.now()`` or ``date.today()``.
      The reconciliation engine reads an injected Clock once, and only
      when the caller omits ``as_of``.
    - Decimal-only arithmetic for every monetary amount.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine invocations are traced via ``@traced_engine`` (see
    ``rental_engines.tracer``), emitting RENTAL_ENGINE_TRACE records with
    engine name, version, input fingerprint and duration.

Usage:
    from rental_engines import LeaseTerm, PaymentRecord, reconcile
"""

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
from rental_engines.late_fees import LateFeeCalculator, days_overdue_between
from rental_engines.matching import PaymentMatcher
from rental_engines.obligations import ObligationCalendar
from rental_engines.reconciliation import ReconciliationEngine, reconcile
from rental_engines.tracer import traced_engine

__all__ = [
    # Types
    "LateFeeAssessment",
    "LeaseTerm",
    "ObligationPeriod",
    "PaymentRecord",
    "PaymentStatus",
    "PaymentType",
    "PeriodMatch",
    "PeriodMatchStatus",
    "PeriodReconciliation",
    "ReconciliationReport",
    # Engines
    "LateFeeCalculator",
    "ObligationCalendar",
    "PaymentMatcher",
    "ReconciliationEngine",
    "days_overdue_between",
    "reconcile",
    "traced_engine",
]
