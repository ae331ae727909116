"""
Pytest fixtures for the rental billing core test suite.

Provides:
- Structured logging configured once per session, and a ``captured_logs``
  fixture returning parsed JSON log records
- SQLite in-memory database and a ``SqlAlchemyLeaseRepository`` over it
- Lease and term factories

Environment Variables:
- DATABASE_URL: SQLAlchemy URL for the persistence tests.  Defaults to an
  in-memory SQLite database.
"""

import json
import logging
import os
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from rental_config.schema import BillingDefaults
from rental_engines.billing_types import LeaseTerm
from rental_kernel.db.engine import (
    create_tables,
    drop_tables,
    init_engine_from_url,
    reset_engine,
)
from rental_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from rental_modules.agreement.models import Lease, LeaseStatus
from rental_modules.agreement.repository import SqlAlchemyLeaseRepository

DEFAULT_DATABASE_URL = "sqlite://"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture rental_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            reconcile(term, payments, as_of)
            logs = captured_logs()
            assert any(r["message"] == "lease_reconciled" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("rental_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


@pytest.fixture
def db_engine():
    """Fresh schema per test."""
    reset_engine()
    engine = init_engine_from_url(get_database_url())
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture
def repository(db_engine):
    return SqlAlchemyLeaseRepository(billing_defaults=BillingDefaults())


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_term():
    """Build a LeaseTerm with the standard back-office defaults."""

    def _make(**overrides) -> LeaseTerm:
        values = {
            "lease_id": uuid4(),
            "start_date": date(2024, 1, 1),
            "end_date": date(2024, 12, 31),
            "monthly_rent_amount": Decimal("3000"),
            "due_day_of_month": 1,
            "daily_late_fee_rate": Decimal("120"),
            "late_fee_cap": Decimal("3000"),
        }
        values.update(overrides)
        return LeaseTerm(**values)

    return _make


@pytest.fixture
def make_lease():
    """Build a Lease DTO; each call gets a unique agreement number."""
    counter = {"n": 0}

    def _make(**overrides) -> Lease:
        counter["n"] += 1
        values = {
            "id": uuid4(),
            "agreement_number": f"LA-{counter['n']:04d}",
            "status": LeaseStatus.DRAFT,
            "start_date": date(2024, 1, 1),
            "end_date": date(2024, 12, 31),
            "monthly_rent_amount": Decimal("3000.00"),
            "due_day_of_month": 1,
            "daily_late_fee_rate": Decimal("120.00"),
            "late_fee_cap": Decimal("3000.00"),
        }
        values.update(overrides)
        return Lease(**values)

    return _make
