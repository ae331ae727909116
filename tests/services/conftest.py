"""
Service-layer fixtures.

``InMemoryLeaseRepository`` implements both persistence ports over dicts so
the status and account services can be driven without a database.  The
writer wrappers inject the slow and failing writes the scheduling side
effect has to survive.
"""

import threading
import time
from datetime import date

import pytest

from rental_config.schema import BillingDefaults
from rental_kernel.domain.clock import DeterministicClock
from rental_kernel.exceptions import LeaseNotFoundError, PaymentNotFoundError
from rental_modules.agreement.models import LeaseStatus
from rental_services.notifier import RateLimitedNotifier
from rental_services.status_transition import BoundedSideEffectRunner


class InMemoryLeaseRepository:
    """LeaseReader and LeaseWriter over dicts keyed by string id."""

    def __init__(self, billing_defaults=None):
        self._defaults = billing_defaults or BillingDefaults()
        self.leases = {}
        self.payments = {}
        self._lock = threading.Lock()

    def add_lease(self, lease):
        self.leases[str(lease.id)] = lease
        return lease

    def get_lease(self, lease_id):
        try:
            return self.leases[str(lease_id)]
        except KeyError:
            raise LeaseNotFoundError(str(lease_id)) from None

    def get_lease_term(self, lease_id):
        return self.get_lease(lease_id).to_term(self._defaults)

    def list_leases(self, status=None):
        leases = sorted(self.leases.values(), key=lambda lease: lease.agreement_number)
        if status is None:
            return tuple(leases)
        status = LeaseStatus.parse(status)
        return tuple(lease for lease in leases if lease.status == status)

    def update_lease_status(self, lease_id, status):
        lease = self.get_lease(lease_id).with_status(LeaseStatus.parse(status))
        self.leases[str(lease_id)] = lease
        return lease

    def get_payment_records(self, lease_id):
        with self._lock:
            records = [p for p in self.payments.values() if str(p.lease_id) == str(lease_id)]
        return tuple(sorted(records, key=lambda p: (p.payment_date, str(p.id))))

    def get_payment_record(self, payment_id):
        try:
            return self.payments[str(payment_id)]
        except KeyError:
            raise PaymentNotFoundError(str(payment_id)) from None

    def create_payment_record(self, record):
        self.get_lease(record.lease_id)
        with self._lock:
            self.payments[str(record.id)] = record
        return record

    def update_payment_record(self, record):
        self.get_payment_record(record.id)
        with self._lock:
            self.payments[str(record.id)] = record
        return record

    def delete_payment_record(self, payment_id):
        self.get_payment_record(payment_id)
        with self._lock:
            del self.payments[str(payment_id)]

    def rent_records(self, lease_id):
        return [p for p in self.get_payment_records(lease_id) if p.counts_toward_rent]


class SlowWriter:
    """Delays create_payment_record, delegating everything else."""

    def __init__(self, inner, delay_seconds):
        self._inner = inner
        self._delay = delay_seconds
        self.finished = threading.Event()

    def __getattr__(self, name):
        return getattr(self._inner, name)

    def create_payment_record(self, record):
        time.sleep(self._delay)
        try:
            return self._inner.create_payment_record(record)
        finally:
            self.finished.set()


class FailingWriter:
    """Raises from the chosen write operations."""

    def __init__(self, inner, fail_on=("create_payment_record",), error=None):
        self._inner = inner
        self._fail_on = set(fail_on)
        self._error = error or ConnectionError("database unavailable")
        self.calls = 0

    def __getattr__(self, name):
        attr = getattr(self._inner, name)
        if name not in self._fail_on:
            return attr

        def _fail(*args, **kwargs):
            self.calls += 1
            raise self._error

        return _fail


class CollectingSink:
    def __init__(self):
        self.messages = []

    def notify(self, key, message):
        self.messages.append((key, message))


@pytest.fixture
def memory_repo():
    return InMemoryLeaseRepository()


@pytest.fixture
def clock():
    return DeterministicClock.on(date(2024, 1, 1))


@pytest.fixture
def sink():
    return CollectingSink()


@pytest.fixture
def notifier(sink, clock):
    return RateLimitedNotifier(sink=sink, failure_threshold=3, min_interval_seconds=30, clock=clock)


@pytest.fixture
def fast_runner():
    runner = BoundedSideEffectRunner(timeout_seconds=0.2, max_workers=2)
    yield runner
    runner.shutdown(wait=True)


@pytest.fixture
def active_lease(memory_repo, make_lease):
    return memory_repo.add_lease(make_lease(status=LeaseStatus.ACTIVE))


@pytest.fixture
def slow_writer(memory_repo):
    """Factory: a writer whose schedule writes take ``delay_seconds``."""

    def _make(delay_seconds):
        return SlowWriter(memory_repo, delay_seconds)

    return _make


@pytest.fixture
def failing_writer(memory_repo):
    """Factory: a writer that raises from ``fail_on`` operations."""

    def _make(fail_on=("create_payment_record",), error=None):
        return FailingWriter(memory_repo, fail_on=fail_on, error=error)

    return _make
