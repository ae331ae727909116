"""
Property tests for reconciliation.

Generates arbitrary leases and payment histories and checks the
properties every report must hold:
1. Determinism: same inputs, same report and same canonical dict
2. Non-negativity: no negative outstanding, fee or principal
3. Cap: no period's late fee exceeds the lease cap
4. Coverage: every period lies inside the lease bounds
"""

from datetime import date, timedelta
from decimal import Decimal

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from rental_engines.billing_types import (
    LeaseTerm,
    PaymentRecord,
    PaymentStatus,
    PaymentType,
)
from rental_engines.reconciliation import reconcile

money = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("20000"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
fine_money = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("5000"),
    places=4,
    allow_nan=False,
    allow_infinity=False,
)
days = st.dates(min_value=date(2022, 1, 1), max_value=date(2026, 12, 31))


@st.composite
def lease_terms(draw):
    start = draw(days)
    has_end = draw(st.booleans())
    end = None
    if has_end:
        end = start + timedelta(days=draw(st.integers(min_value=0, max_value=900)))
    return LeaseTerm(
        lease_id="lease-under-test",
        start_date=start,
        end_date=end,
        monthly_rent_amount=draw(money),
        due_day_of_month=draw(st.integers(min_value=1, max_value=31)),
        daily_late_fee_rate=draw(fine_money),
        late_fee_cap=draw(fine_money),
    )


@st.composite
def payment_histories(draw):
    count = draw(st.integers(min_value=0, max_value=12))
    return [
        PaymentRecord(
            id=f"p-{i}",
            lease_id="lease-under-test",
            amount=draw(money),
            payment_date=draw(days),
            payment_type=draw(st.sampled_from(list(PaymentType))),
            status=draw(st.sampled_from(list(PaymentStatus))),
        )
        for i in range(count)
    ]


PROPERTY_SETTINGS = settings(
    max_examples=150,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture, HealthCheck.too_slow],
)


class TestReconciliationProperties:
    """Properties that hold for every generated lease."""

    @PROPERTY_SETTINGS
    @given(term=lease_terms(), payments=payment_histories(), as_of=days)
    def test_deterministic(self, term, payments, as_of):
        first = reconcile(term, payments, as_of)
        second = reconcile(term, list(reversed(payments)), as_of)

        assert first == second
        assert first.to_dict() == second.to_dict()

    @PROPERTY_SETTINGS
    @given(term=lease_terms(), payments=payment_histories(), as_of=days)
    def test_never_negative_and_capped(self, term, payments, as_of):
        report = reconcile(term, payments, as_of)

        assert report.total_outstanding >= 0
        assert report.total_outstanding == (
            report.total_principal_outstanding + report.total_late_fees
        )
        for row in report.periods:
            assert row.outstanding_principal >= 0
            assert row.days_overdue >= 0
            assert Decimal("0") <= row.late_fee <= term.late_fee_cap

    @PROPERTY_SETTINGS
    @given(term=lease_terms(), as_of=days)
    def test_periods_inside_lease_bounds(self, term, as_of):
        report = reconcile(term, [], as_of)

        keys = [row.period.key for row in report.periods]
        assert keys == sorted(keys)
        assert len(set(keys)) == len(keys)
        for row in report.periods:
            assert row.period.period_start >= term.start_date
            if term.end_date is not None:
                assert row.period.period_end <= term.end_date
            assert row.period.amount_due <= term.monthly_rent_amount
