"""
rental_services.status_transition -- Lease status changes with a bounded
first-obligation side effect.

Responsibility:
    Apply a requested lease status change through the status policy and,
    on activation, make sure the lease has a first rent obligation on
    record.  The status change is the primary effect; scheduling is a
    secondary effect whose outcome is reported, never rolled back into the
    primary.

Architecture position:
    Services -- stateful orchestration over modules + engines.  Reaches
    storage only through the ``LeaseReader``/``LeaseWriter`` ports and time
    only through the injected ``Clock``.

Invariants enforced:
    - Policy errors propagate before any write; the status is unchanged.
    - Scheduling is idempotent: a lease that already has a non-cancelled
      rent record gets no second schedule entry, and a schedule call still
      running after a timeout is joined rather than repeated.
    - A slow or failing schedule write never fails the transition.  A
      timeout yields ``SideEffectStatus.PENDING`` (the write may still
      land), an exception yields ``SideEffectStatus.FAILED``.

Failure modes:
    - LeaseNotFoundError, InvalidStatusError, TerminalStatusError,
      InvalidTransitionError, MissingTermsError, InvalidTermError from the
      read port and the policy.
    - Errors from ``update_lease_status`` propagate (primary effect failed).

Usage:
    service = LeaseStatusService(reader=repo, writer=repo, notifier=notifier)
    result = service.transition_status(lease_id, LeaseStatus.ACTIVE)
    if result.needs_schedule_retry:
        service.retry_schedule(lease_id)
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from enum import Enum
from typing import Any
from uuid import UUID

from rental_config.schema import RentalConfig
from rental_kernel.domain.clock import Clock, SystemClock
from rental_kernel.exceptions import ScheduleCreationTimeout
from rental_kernel.logging_config import LogContext, get_logger
from rental_modules.agreement.calculations import (
    first_obligation_entry,
    has_rent_schedule,
)
from rental_modules.agreement.models import LeaseStatus
from rental_modules.agreement.repository import LeaseReader, LeaseWriter
from rental_modules.agreement.workflows import StatusTransitionPolicy
from rental_services.notifier import RateLimitedNotifier

logger = get_logger("services.status_transition")


class TransitionOutcome(str, Enum):
    """Outcome of the primary effect (the status write)."""
    SUCCESS = "success"


class SideEffectStatus(str, Enum):
    """Outcome of the first-obligation scheduling side effect."""
    NOT_REQUIRED = "not_required"
    SUCCESS = "success"
    SKIPPED = "skipped"
    PENDING = "pending"
    FAILED = "failed"


@dataclass(frozen=True)
class TransitionResult:
    """Two-phase result of ``transition_status``."""
    lease_id: str
    from_status: LeaseStatus
    to_status: LeaseStatus
    primary: TransitionOutcome
    side_effect: SideEffectStatus
    warning: str | None = None

    @property
    def needs_schedule_retry(self) -> bool:
        return self.side_effect in (SideEffectStatus.PENDING, SideEffectStatus.FAILED)

    @property
    def is_degraded(self) -> bool:
        return self.warning is not None


@dataclass(frozen=True)
class SideEffectRun:
    """What the bounded runner observed within its time budget."""
    status: SideEffectStatus
    value: Any = None
    error: BaseException | None = None
    elapsed_ms: float = 0.0


class BoundedSideEffectRunner:
    """
    Runs a callable on a worker thread and waits at most ``timeout_seconds``.

    A call that overruns is not cancelled; it keeps running and its eventual
    outcome is logged.  While a call is unfinished, a second ``run`` under the
    same name waits on that call instead of submitting another.  Use as a
    context manager, or call ``shutdown()``.
    """

    def __init__(self, timeout_seconds: float = 15.0, max_workers: int = 2):
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self._timeout = timeout_seconds
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="rental-side-effect",
        )
        self._lock = threading.Lock()
        self._in_flight: dict[str, Future] = {}

    @property
    def timeout_seconds(self) -> float:
        return self._timeout

    def in_flight(self, name: str) -> bool:
        with self._lock:
            future = self._in_flight.get(name)
            return future is not None and not future.done()

    def _submit(self, name: str, fn: Callable[..., Any], args: tuple) -> Future:
        with self._lock:
            future = self._in_flight.get(name)
            if future is not None and not future.done():
                logger.info("side_effect_joined_in_flight", extra={"side_effect": name})
                return future
            future = self._executor.submit(fn, *args)
            self._in_flight[name] = future
        future.add_done_callback(lambda f: self._forget(name, f))
        return future

    def _forget(self, name: str, future: Future) -> None:
        with self._lock:
            if self._in_flight.get(name) is future:
                del self._in_flight[name]

    def run(self, name: str, fn: Callable[..., Any], *args: Any) -> SideEffectRun:
        t0 = time.monotonic()
        future = self._submit(name, fn, args)
        try:
            value = future.result(timeout=self._timeout)
        except FutureTimeoutError:
            future.add_done_callback(lambda f: self._log_late(name, f))
            return SideEffectRun(
                status=SideEffectStatus.PENDING,
                error=ScheduleCreationTimeout(name, self._timeout),
                elapsed_ms=round((time.monotonic() - t0) * 1000, 2),
            )
        except Exception as e:
            return SideEffectRun(
                status=SideEffectStatus.FAILED,
                error=e,
                elapsed_ms=round((time.monotonic() - t0) * 1000, 2),
            )
        return SideEffectRun(
            status=SideEffectStatus.SUCCESS,
            value=value,
            elapsed_ms=round((time.monotonic() - t0) * 1000, 2),
        )

    @staticmethod
    def _log_late(name: str, future: Future) -> None:
        error = future.exception()
        if error is None:
            logger.info("side_effect_completed_late", extra={"side_effect": name})
        else:
            logger.warning("side_effect_failed_late", extra={
                "side_effect": name,
                "error": str(error),
            })

    def shutdown(self, wait: bool = False) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> BoundedSideEffectRunner:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.shutdown()


class FirstObligationScheduler:
    """
    Writes the pending first-rent record for an activated lease.

    ``schedule`` returns True when it created the record and False when a
    non-cancelled rent record already existed.
    """

    def __init__(self, reader: LeaseReader, writer: LeaseWriter, clock: Clock | None = None):
        self._reader = reader
        self._writer = writer
        self._clock = clock or SystemClock()

    def schedule(self, lease_id: UUID | str) -> bool:
        if has_rent_schedule(self._reader.get_payment_records(lease_id)):
            logger.debug("first_obligation_exists", extra={"lease_id": str(lease_id)})
            return False
        term = self._reader.get_lease_term(lease_id)
        entry = first_obligation_entry(term, self._clock.today())
        self._writer.create_payment_record(entry)
        logger.info("first_obligation_scheduled", extra={
            "lease_id": str(lease_id),
            "due_date": entry.payment_date.isoformat(),
            "amount_due": str(entry.amount_due),
            "period_key": entry.period_key,
        })
        return True


_PENDING_WARNING = (
    "Lease {lease_id} is active, but creating its first payment schedule "
    "did not finish in time. Retry scheduling later."
)
_FAILED_WARNING = (
    "Lease {lease_id} is active, but its first payment schedule could not "
    "be created: {error}"
)


class LeaseStatusService:
    """
    Orchestrates lease status changes.

    Contract:
        ``transition_status`` either raises before writing anything, or
        returns a ``TransitionResult`` with ``primary == SUCCESS``.
    Non-goals:
        - No locking across concurrent transitions of the same lease;
          that belongs to the storage behind the write port.
    """

    def __init__(
        self,
        reader: LeaseReader,
        writer: LeaseWriter,
        policy: StatusTransitionPolicy | None = None,
        notifier: RateLimitedNotifier | None = None,
        clock: Clock | None = None,
        runner: BoundedSideEffectRunner | None = None,
        config: RentalConfig | None = None,
    ):
        config = config or RentalConfig()
        self._reader = reader
        self._writer = writer
        self._policy = policy or StatusTransitionPolicy(billing_defaults=config.billing)
        self._notifier = notifier or RateLimitedNotifier.from_settings(config.notifications)
        self._clock = clock or SystemClock()
        self._runner = runner or BoundedSideEffectRunner(
            timeout_seconds=config.scheduling.side_effect_timeout_seconds,
            max_workers=config.scheduling.max_workers,
        )
        self._scheduler = FirstObligationScheduler(reader, writer, self._clock)

    def transition_status(
        self,
        lease_id: UUID | str,
        target: LeaseStatus | str,
        actor_id: str | None = None,
    ) -> TransitionResult:
        with LogContext.bind(
            lease_id=str(lease_id),
            actor_id=actor_id,
            operation="transition_status",
        ):
            target = LeaseStatus.parse(target)
            lease = self._reader.get_lease(lease_id)
            transition = self._policy.check(lease, target)

            self._writer.update_lease_status(lease.id, target)
            logger.info("lease_status_transitioned", extra={
                "from_status": lease.status.value,
                "to_status": target.value,
                "action": transition.action,
            })

            side_effect = SideEffectStatus.NOT_REQUIRED
            warning = None
            if transition.schedules_obligation:
                side_effect, warning = self._run_schedule(lease.id)

            return TransitionResult(
                lease_id=str(lease.id),
                from_status=lease.status,
                to_status=target,
                primary=TransitionOutcome.SUCCESS,
                side_effect=side_effect,
                warning=warning,
            )

    def retry_schedule(self, lease_id: UUID | str) -> SideEffectStatus:
        """Re-run first-obligation scheduling, whatever the lease status."""
        with LogContext.bind(lease_id=str(lease_id), operation="retry_schedule"):
            status, _ = self._run_schedule(lease_id)
            return status

    def _run_schedule(self, lease_id: UUID | str) -> tuple[SideEffectStatus, str | None]:
        run = self._runner.run(str(lease_id), self._scheduler.schedule, lease_id)

        if run.status == SideEffectStatus.SUCCESS:
            status = SideEffectStatus.SUCCESS if run.value else SideEffectStatus.SKIPPED
            logger.info("schedule_side_effect_finished", extra={
                "side_effect_status": status.value,
                "elapsed_ms": run.elapsed_ms,
            })
            return status, None

        if run.status == SideEffectStatus.PENDING:
            warning = _PENDING_WARNING.format(lease_id=lease_id)
            logger.warning("schedule_side_effect_timed_out", extra={
                "timeout_seconds": self._runner.timeout_seconds,
                "elapsed_ms": run.elapsed_ms,
            })
        else:
            warning = _FAILED_WARNING.format(lease_id=lease_id, error=run.error)
            logger.warning("schedule_side_effect_failed", extra={
                "error_type": type(run.error).__name__,
                "error": str(run.error),
                "elapsed_ms": run.elapsed_ms,
            })
        self._notifier.warn(f"schedule:{lease_id}", warning)
        return run.status, warning

    def close(self) -> None:
        self._runner.shutdown()
