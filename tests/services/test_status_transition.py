"""
Tests for LeaseStatusService and the bounded scheduling side effect.

Covers:
- Policy errors leave the status and the payment records untouched
- Activation writes exactly one pending first-rent entry
- A slow schedule write reports PENDING; a failing one reports FAILED;
  the status change stands in both cases
- retry_schedule and the SQLAlchemy-backed path
"""

import time
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from rental_kernel.exceptions import (
    InvalidTransitionError,
    LeaseNotFoundError,
    MissingTermsError,
    TerminalStatusError,
)
from rental_modules.agreement.models import (
    LeaseStatus,
    PaymentRecord,
    PaymentStatus,
    PaymentType,
)
from rental_services.status_transition import (
    BoundedSideEffectRunner,
    LeaseStatusService,
    SideEffectStatus,
    TransitionOutcome,
)


@pytest.fixture
def make_service(memory_repo, notifier, clock, fast_runner):
    def _make(writer=None, runner=None):
        return LeaseStatusService(
            reader=memory_repo,
            writer=writer or memory_repo,
            notifier=notifier,
            clock=clock,
            runner=runner or fast_runner,
        )

    return _make


class TestPolicyErrors:
    """Nothing is written when the policy refuses."""

    def test_activation_without_rent(self, make_service, memory_repo, make_lease):
        lease = memory_repo.add_lease(make_lease(monthly_rent_amount=None))

        with pytest.raises(MissingTermsError):
            make_service().transition_status(lease.id, LeaseStatus.ACTIVE)

        assert memory_repo.get_lease(lease.id).status is LeaseStatus.DRAFT
        assert memory_repo.get_payment_records(lease.id) == ()

    @pytest.mark.parametrize("terminal", [LeaseStatus.CLOSED, LeaseStatus.CANCELLED])
    def test_terminal_lease(self, make_service, memory_repo, make_lease, terminal):
        lease = memory_repo.add_lease(make_lease(status=terminal))

        with pytest.raises(TerminalStatusError):
            make_service().transition_status(lease.id, LeaseStatus.ACTIVE)

        assert memory_repo.get_lease(lease.id).status is terminal
        assert memory_repo.get_payment_records(lease.id) == ()

    def test_undeclared_transition(self, make_service, memory_repo, make_lease):
        lease = memory_repo.add_lease(make_lease())

        with pytest.raises(InvalidTransitionError):
            make_service().transition_status(lease.id, "terminated")

        assert memory_repo.get_lease(lease.id).status is LeaseStatus.DRAFT

    def test_unknown_lease(self, make_service):
        with pytest.raises(LeaseNotFoundError):
            make_service().transition_status(uuid4(), LeaseStatus.ACTIVE)


class TestActivation:

    def test_activation_schedules_first_rent(self, make_service, memory_repo, make_lease):
        lease = memory_repo.add_lease(make_lease())

        result = make_service().transition_status(lease.id, LeaseStatus.ACTIVE)

        assert result.primary is TransitionOutcome.SUCCESS
        assert result.side_effect is SideEffectStatus.SUCCESS
        assert result.from_status is LeaseStatus.DRAFT
        assert result.to_status is LeaseStatus.ACTIVE
        assert not result.needs_schedule_retry
        assert not result.is_degraded
        assert memory_repo.get_lease(lease.id).status is LeaseStatus.ACTIVE

        (entry,) = memory_repo.get_payment_records(lease.id)
        assert entry.payment_type is PaymentType.RENT
        assert entry.status is PaymentStatus.PENDING
        assert entry.amount == Decimal("0")
        assert entry.amount_due == Decimal("3000.00")
        assert entry.payment_date == date(2024, 1, 1)
        assert entry.period_key == "2024-01"

    def test_existing_rent_record_skips_scheduling(
        self, make_service, memory_repo, active_lease,
    ):
        memory_repo.create_payment_record(PaymentRecord(
            id=uuid4(),
            lease_id=active_lease.id,
            amount=Decimal("3000"),
            payment_date=date(2024, 1, 1),
        ))

        result = make_service().transition_status(active_lease.id, LeaseStatus.ACTIVE)

        assert result.side_effect is SideEffectStatus.SKIPPED
        assert len(memory_repo.get_payment_records(active_lease.id)) == 1

    def test_repeated_activation_writes_one_entry(self, make_service, memory_repo, make_lease):
        lease = memory_repo.add_lease(make_lease())
        service = make_service()

        service.transition_status(lease.id, LeaseStatus.ACTIVE)
        second = service.transition_status(lease.id, LeaseStatus.ACTIVE)

        assert second.side_effect is SideEffectStatus.SKIPPED
        assert len(memory_repo.rent_records(lease.id)) == 1

    def test_cancelled_rent_record_does_not_count(self, make_service, memory_repo, make_lease):
        lease = memory_repo.add_lease(make_lease(status=LeaseStatus.PENDING))
        memory_repo.create_payment_record(PaymentRecord(
            id=uuid4(),
            lease_id=lease.id,
            amount=Decimal("3000"),
            payment_date=date(2024, 1, 1),
            status=PaymentStatus.CANCELLED,
        ))

        result = make_service().transition_status(lease.id, LeaseStatus.ACTIVE)

        assert result.side_effect is SideEffectStatus.SUCCESS
        assert len(memory_repo.rent_records(lease.id)) == 1

    def test_non_activation_needs_no_side_effect(self, make_service, memory_repo, active_lease):
        result = make_service().transition_status(active_lease.id, LeaseStatus.CLOSED)

        assert result.side_effect is SideEffectStatus.NOT_REQUIRED
        assert memory_repo.get_lease(active_lease.id).status is LeaseStatus.CLOSED
        assert memory_repo.get_payment_records(active_lease.id) == ()


class TestDegradedScheduling:
    """The status change stands even when scheduling does not finish."""

    def test_slow_write_reports_pending(
        self, make_service, memory_repo, make_lease, slow_writer, sink,
    ):
        lease = memory_repo.add_lease(make_lease())
        writer = slow_writer(0.6)

        t0 = time.monotonic()
        result = make_service(writer=writer).transition_status(lease.id, LeaseStatus.ACTIVE)
        elapsed = time.monotonic() - t0

        assert elapsed < 0.55
        assert result.primary is TransitionOutcome.SUCCESS
        assert result.side_effect is SideEffectStatus.PENDING
        assert result.needs_schedule_retry
        assert "did not finish in time" in result.warning
        assert memory_repo.get_lease(lease.id).status is LeaseStatus.ACTIVE
        assert sink.messages == [(f"schedule:{lease.id}", result.warning)]

        # the overrunning write still lands
        assert writer.finished.wait(timeout=5)
        assert len(memory_repo.rent_records(lease.id)) == 1

    def test_activation_during_slow_write_joins_it(
        self, make_service, memory_repo, make_lease, slow_writer, fast_runner,
    ):
        lease = memory_repo.add_lease(make_lease())
        writer = slow_writer(0.6)
        service = make_service(writer=writer)

        first = service.transition_status(lease.id, LeaseStatus.ACTIVE)
        assert fast_runner.in_flight(str(lease.id))
        second = service.transition_status(lease.id, LeaseStatus.ACTIVE)

        assert first.side_effect is SideEffectStatus.PENDING
        assert second.side_effect is SideEffectStatus.PENDING

        fast_runner.shutdown(wait=True)
        assert len(memory_repo.rent_records(lease.id)) == 1
        assert not fast_runner.in_flight(str(lease.id))

    def test_failing_write_reports_failed(
        self, make_service, memory_repo, make_lease, failing_writer, sink, captured_logs,
    ):
        lease = memory_repo.add_lease(make_lease())

        result = make_service(writer=failing_writer()).transition_status(
            lease.id, LeaseStatus.ACTIVE,
        )

        assert result.side_effect is SideEffectStatus.FAILED
        assert result.needs_schedule_retry
        assert "database unavailable" in result.warning
        assert memory_repo.get_lease(lease.id).status is LeaseStatus.ACTIVE
        assert memory_repo.get_payment_records(lease.id) == ()
        assert len(sink.messages) == 1

        failures = [r for r in captured_logs() if r["message"] == "schedule_side_effect_failed"]
        assert failures[0]["error_type"] == "ConnectionError"
        assert failures[0]["lease_id"] == str(lease.id)

    def test_status_write_failure_propagates(
        self, make_service, memory_repo, make_lease, failing_writer,
    ):
        lease = memory_repo.add_lease(make_lease())
        writer = failing_writer(fail_on=("update_lease_status",))

        with pytest.raises(ConnectionError):
            make_service(writer=writer).transition_status(lease.id, LeaseStatus.ACTIVE)

        assert memory_repo.get_lease(lease.id).status is LeaseStatus.DRAFT

    def test_retry_after_failure(self, make_service, memory_repo, make_lease, failing_writer):
        lease = memory_repo.add_lease(make_lease())
        make_service(writer=failing_writer()).transition_status(lease.id, LeaseStatus.ACTIVE)

        service = make_service()
        assert service.retry_schedule(lease.id) is SideEffectStatus.SUCCESS
        assert service.retry_schedule(lease.id) is SideEffectStatus.SKIPPED
        assert len(memory_repo.rent_records(lease.id)) == 1


class TestBoundedSideEffectRunner:

    def test_returns_value(self):
        with BoundedSideEffectRunner(timeout_seconds=1) as runner:
            run = runner.run("add", lambda a, b: a + b, 2, 3)

        assert run.status is SideEffectStatus.SUCCESS
        assert run.value == 5
        assert run.error is None

    def test_exception_captured(self):
        def boom():
            raise RuntimeError("boom")

        with BoundedSideEffectRunner(timeout_seconds=1) as runner:
            run = runner.run("boom", boom)

        assert run.status is SideEffectStatus.FAILED
        assert isinstance(run.error, RuntimeError)

    def test_timeout_reported(self):
        runner = BoundedSideEffectRunner(timeout_seconds=0.05)
        try:
            run = runner.run("sleepy", time.sleep, 0.3)
        finally:
            runner.shutdown(wait=True)

        assert run.status is SideEffectStatus.PENDING
        assert run.error.code == "SCHEDULE_CREATION_TIMEOUT"

    def test_same_name_joins_unfinished_call(self):
        calls = []

        def slow():
            calls.append(1)
            time.sleep(0.3)
            return len(calls)

        runner = BoundedSideEffectRunner(timeout_seconds=0.05, max_workers=2)
        try:
            first = runner.run("lease-1", slow)
            second = runner.run("lease-1", slow)
        finally:
            runner.shutdown(wait=True)

        assert first.status is SideEffectStatus.PENDING
        assert second.status is SideEffectStatus.PENDING
        assert calls == [1]
        assert not runner.in_flight("lease-1")

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValueError):
            BoundedSideEffectRunner(timeout_seconds=0)


class TestWithDatabase:
    """The same flow through SqlAlchemyLeaseRepository."""

    def test_activation_persists_status_and_entry(self, repository, make_lease, clock, notifier):
        lease = repository.add_lease(make_lease())
        service = LeaseStatusService(
            reader=repository,
            writer=repository,
            notifier=notifier,
            clock=clock,
        )
        try:
            result = service.transition_status(lease.id, "active", actor_id="clerk-7")
        finally:
            service.close()

        assert result.side_effect is SideEffectStatus.SUCCESS
        assert repository.get_lease(lease.id).status is LeaseStatus.ACTIVE
        (entry,) = repository.get_payment_records(lease.id)
        assert entry.status is PaymentStatus.PENDING
        assert entry.amount_due == Decimal("3000.00")
