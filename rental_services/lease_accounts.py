"""
rental_services.lease_accounts -- Payment recording and lease reconciliation.

Responsibility:
    The back-office entry points around a lease's account: reconcile a
    lease as of a date, record payments (optionally with the accrued late
    fee as a separate record), top up or correct an existing record, settle
    stale pending records, delete a record, and summarise the portfolio.

Architecture position:
    Services -- composes the pure reconciliation engine with the
    ``LeaseReader``/``LeaseWriter`` ports.  Reads the clock at most once per
    call, and only when the caller does not pass ``as_of``.

Failure modes:
    - Domain errors (LeaseNotFoundError, MissingTermsError,
      InvalidTermError, InvalidPaymentError, ...) propagate unchanged.
    - Any other error raised by the persistence ports is counted through
      the notifier under the ``persistence`` key and re-raised.
"""

from __future__ import annotations

import dataclasses
from collections import Counter
from collections.abc import Callable
from datetime import date
from decimal import Decimal
from typing import TypeVar
from uuid import UUID, uuid4

from rental_config.schema import RentalConfig
from rental_engines.reconciliation import ReconciliationEngine
from rental_kernel.domain.clock import Clock, SystemClock
from rental_kernel.domain.money import ZERO, to_decimal
from rental_kernel.exceptions import (
    InvalidPaymentError,
    LeaseTermError,
    RentalKernelError,
)
from rental_kernel.logging_config import LogContext, get_logger
from rental_modules.agreement.calculations import (
    is_expiring_soon,
    is_suspicious_payment,
    period_key,
    settled_status,
)
from rental_modules.agreement.models import (
    LeaseStatus,
    PaymentRecord,
    PaymentStatus,
    PaymentType,
    PortfolioMetrics,
    ReconciliationReport,
)
from rental_modules.agreement.repository import LeaseReader, LeaseWriter
from rental_services.notifier import RateLimitedNotifier

logger = get_logger("services.lease_accounts")

T = TypeVar("T")

PERSISTENCE_KEY = "persistence"


class LeaseAccountService:
    """
    Lease account operations for the presentation layer.

    Contract:
        Returns frozen DTOs; never exposes ORM rows.
    Non-goals:
        - Does not change lease status; see ``LeaseStatusService``.
    """

    def __init__(
        self,
        reader: LeaseReader,
        writer: LeaseWriter,
        notifier: RateLimitedNotifier | None = None,
        clock: Clock | None = None,
        config: RentalConfig | None = None,
    ):
        self._config = config or RentalConfig()
        self._reader = reader
        self._writer = writer
        self._notifier = notifier or RateLimitedNotifier.from_settings(self._config.notifications)
        self._clock = clock or SystemClock()
        self._engine = ReconciliationEngine(clock=self._clock)

    def _persist(self, operation: str, call: Callable[[], T]) -> T:
        """Run a port call, counting non-domain failures."""
        try:
            result = call()
        except RentalKernelError:
            raise
        except Exception as e:
            logger.error("persistence_call_failed", extra={
                "persistence_operation": operation,
                "error_type": type(e).__name__,
                "error": str(e),
            })
            self._notifier.record_failure(
                PERSISTENCE_KEY,
                f"Lease data could not be {operation}; please try again.",
            )
            raise
        return result

    # -- reconciliation -----------------------------------------------------

    def reconcile_lease(
        self,
        lease_id: UUID | str,
        as_of: date | None = None,
    ) -> ReconciliationReport:
        """
        Reconcile one lease's recorded payments as of ``as_of``.

        Raises:
            LeaseNotFoundError, MissingTermsError, InvalidTermError.
        """
        with LogContext.bind(lease_id=str(lease_id), operation="reconcile_lease"):
            if as_of is None:
                as_of = self._clock.today()
            term = self._persist("loaded", lambda: self._reader.get_lease_term(lease_id))
            payments = self._persist("loaded", lambda: self._reader.get_payment_records(lease_id))
            self._notifier.reset(PERSISTENCE_KEY)
            return self._engine.reconcile(term, payments, as_of)

    # -- payments -----------------------------------------------------------

    def record_payment(
        self,
        lease_id: UUID | str,
        amount: Decimal | int | str,
        payment_date: date,
        payment_type: PaymentType | str = PaymentType.RENT,
        include_late_fee: bool = False,
        as_of: date | None = None,
        description: str | None = None,
    ) -> tuple[PaymentRecord, ...]:
        """
        Record a completed payment.

        With ``include_late_fee``, the late fee accrued on the payment's
        month as of ``as_of`` (default: the payment date) is recorded as a
        separate ``late_fee`` record.

        Returns:
            The created records: the payment, then the late fee if any.

        Raises:
            InvalidPaymentError: Amount is not a non-negative number.
            InvalidStatusError: Unknown payment type.
            LeaseNotFoundError: Unknown lease.
        """
        try:
            amount = to_decimal(amount)
        except ValueError as e:
            raise InvalidPaymentError("amount", amount, "not a number") from e
        if amount < ZERO:
            raise InvalidPaymentError("amount", amount, "must be non-negative")
        payment_type = PaymentType.parse(payment_type)

        with LogContext.bind(lease_id=str(lease_id), operation="record_payment"):
            lease = self._persist("loaded", lambda: self._reader.get_lease(lease_id))

            if payment_type == PaymentType.RENT and lease.monthly_rent_amount is not None:
                multiplier = self._config.billing.suspicious_payment_multiplier
                if is_suspicious_payment(amount, lease.monthly_rent_amount, multiplier):
                    logger.warning("suspicious_payment_amount", extra={
                        "amount": str(amount),
                        "monthly_rent_amount": str(lease.monthly_rent_amount),
                        "multiplier": str(multiplier),
                    })
                    self._notifier.warn(
                        f"suspicious_payment:{lease.id}",
                        f"Payment of {amount} on {lease.agreement_number} is more "
                        f"than {multiplier}x the monthly rent. Please double-check it.",
                    )

            late_fee = ZERO
            if include_late_fee and payment_type == PaymentType.RENT:
                report = self.reconcile_lease(lease.id, as_of or payment_date)
                row = report.period(period_key(payment_date))
                if row is not None:
                    late_fee = row.late_fee

            created = [self._persist("saved", lambda: self._writer.create_payment_record(
                PaymentRecord(
                    id=uuid4(),
                    lease_id=lease.id,
                    amount=amount,
                    payment_date=payment_date,
                    payment_type=payment_type,
                    status=PaymentStatus.COMPLETED,
                    period_key=period_key(payment_date),
                    description=description,
                )
            ))]
            if late_fee > ZERO:
                created.append(self._persist("saved", lambda: self._writer.create_payment_record(
                    PaymentRecord(
                        id=uuid4(),
                        lease_id=lease.id,
                        amount=late_fee,
                        payment_date=payment_date,
                        payment_type=PaymentType.LATE_FEE,
                        status=PaymentStatus.COMPLETED,
                        period_key=period_key(payment_date),
                        description=f"Late fee for {period_key(payment_date)}",
                    )
                )))

            logger.info("payment_recorded", extra={
                "payment_type": payment_type.value,
                "amount": str(amount),
                "payment_date": payment_date.isoformat(),
                "late_fee": str(late_fee),
            })
            return tuple(created)

    def apply_additional_payment(
        self,
        payment_id: UUID | str,
        amount: Decimal | int | str,
    ) -> PaymentRecord:
        """
        Add ``amount`` to an existing record.

        The record becomes ``completed`` once its amount reaches
        ``amount_due``; until then it stays ``pending``.
        """
        try:
            amount = to_decimal(amount)
        except ValueError as e:
            raise InvalidPaymentError("amount", amount, "not a number") from e
        if amount <= ZERO:
            raise InvalidPaymentError("amount", amount, "must be positive")

        record = self._persist("loaded", lambda: self._reader.get_payment_record(payment_id))
        if record.status == PaymentStatus.CANCELLED:
            raise InvalidPaymentError("status", record.status.value, "payment is cancelled")

        new_amount = record.amount + amount
        updated = dataclasses.replace(
            record,
            amount=new_amount,
            status=settled_status(new_amount, record.amount_due),
        )
        saved = self._persist("saved", lambda: self._writer.update_payment_record(updated))
        logger.info("additional_payment_applied", extra={
            "lease_id": str(record.lease_id),
            "payment_id": str(record.id),
            "added": str(amount),
            "amount": str(new_amount),
            "status": saved.status.value,
        })
        return saved

    def correct_payment(
        self,
        payment_id: UUID | str,
        amount: Decimal | int | str | None = None,
        status: PaymentStatus | str | None = None,
        payment_date: date | None = None,
    ) -> PaymentRecord:
        """
        Correct the amount, status or date of a recorded payment.

        When only the amount changes on a record that is not cancelled, its
        status is re-derived against ``amount_due``.  A new date also moves
        the record's ``period_key``.

        Raises:
            InvalidPaymentError: Nothing to change, or a negative amount.
            InvalidStatusError: Unknown status.
            PaymentNotFoundError: Unknown record.
        """
        if amount is None and status is None and payment_date is None:
            raise InvalidPaymentError("correction", "none", "no fields to change")
        if amount is not None:
            try:
                amount = to_decimal(amount)
            except ValueError as e:
                raise InvalidPaymentError("amount", amount, "not a number") from e
            if amount < ZERO:
                raise InvalidPaymentError("amount", amount, "must be non-negative")
        if status is not None:
            status = PaymentStatus.parse(status)

        record = self._persist("loaded", lambda: self._reader.get_payment_record(payment_id))
        changes: dict[str, object] = {}
        if amount is not None:
            changes["amount"] = amount
            if status is None and record.status != PaymentStatus.CANCELLED:
                changes["status"] = settled_status(amount, record.amount_due)
        if status is not None:
            changes["status"] = status
        if payment_date is not None:
            changes["payment_date"] = payment_date
            changes["period_key"] = period_key(payment_date)

        updated = dataclasses.replace(record, **changes)
        saved = self._persist("saved", lambda: self._writer.update_payment_record(updated))
        logger.info("payment_corrected", extra={
            "lease_id": str(record.lease_id),
            "payment_id": str(record.id),
            "changed_fields": sorted(changes),
            "from_status": record.status.value,
            "to_status": saved.status.value,
        })
        return saved

    def settle_pending_before(self, lease_id: UUID | str, cutoff: date) -> int:
        """
        Mark a lease's pending records dated before ``cutoff`` completed.

        Only the status changes; amounts are left as recorded.

        Returns:
            How many records were updated.
        """
        with LogContext.bind(lease_id=str(lease_id), operation="settle_pending_before"):
            self._persist("loaded", lambda: self._reader.get_lease(lease_id))
            records = self._persist("loaded", lambda: self._reader.get_payment_records(lease_id))
            stale = [
                r for r in records
                if r.status == PaymentStatus.PENDING and r.payment_date < cutoff
            ]
            for record in stale:
                settled = dataclasses.replace(record, status=PaymentStatus.COMPLETED)
                self._persist("saved", lambda: self._writer.update_payment_record(settled))

            logger.info("pending_payments_settled", extra={
                "cutoff": cutoff.isoformat(),
                "updated_count": len(stale),
            })
            return len(stale)

    def delete_payment(self, payment_id: UUID | str) -> None:
        self._persist("deleted", lambda: self._writer.delete_payment_record(payment_id))
        logger.info("payment_deleted", extra={"payment_id": str(payment_id)})

    # -- portfolio ----------------------------------------------------------

    def portfolio_metrics(self, as_of: date | None = None) -> PortfolioMetrics:
        """
        Counts across every lease: by status, active, expiring within the
        configured window, and active leases with money outstanding.
        """
        if as_of is None:
            as_of = self._clock.today()
        leases = self._persist("loaded", self._reader.list_leases)
        window = self._config.portfolio.expiring_soon_days

        by_status = Counter(lease.status.value for lease in leases)
        active = [lease for lease in leases if lease.status == LeaseStatus.ACTIVE]
        expiring = sum(1 for lease in active if is_expiring_soon(lease, as_of, window))

        overdue = 0
        outstanding = ZERO
        for lease in active:
            try:
                term = lease.to_term(self._config.billing)
                payments = self._persist(
                    "loaded", lambda: self._reader.get_payment_records(lease.id),
                )
                report = self._engine.reconcile(term, payments, as_of)
            except LeaseTermError as e:
                logger.warning("portfolio_lease_skipped", extra={
                    "lease_id": str(lease.id),
                    "error_code": e.code,
                })
                continue
            if report.total_outstanding > ZERO:
                overdue += 1
                outstanding += report.total_outstanding

        metrics = PortfolioMetrics(
            as_of=as_of,
            total=len(leases),
            by_status=dict(sorted(by_status.items())),
            active=len(active),
            expiring_soon=expiring,
            overdue=overdue,
            total_outstanding=outstanding,
        )
        logger.info("portfolio_metrics_computed", extra={
            "as_of": as_of.isoformat(),
            "total": metrics.total,
            "active": metrics.active,
            "expiring_soon": metrics.expiring_soon,
            "overdue": metrics.overdue,
        })
        return metrics
