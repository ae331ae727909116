"""
rental_services.schedule_maintenance -- Sweep for active leases with no
rent schedule.

Responsibility:
    Catch up on first-obligation scheduling that timed out or failed when
    a lease was activated.  Every active lease without a non-cancelled rent
    record gets its schedule entry written.

Architecture position:
    Services -- batch-style sweep over the ``LeaseReader``/``LeaseWriter``
    ports, reusing ``FirstObligationScheduler``.

Failure modes:
    - Per-lease failures are logged and counted in ``errors``; the sweep
      continues with the next lease.
    - A failure to list the leases propagates.
"""

from __future__ import annotations

from dataclasses import dataclass

from rental_kernel.domain.clock import Clock, SystemClock
from rental_kernel.logging_config import LogContext, get_logger
from rental_modules.agreement.calculations import has_rent_schedule
from rental_modules.agreement.models import LeaseStatus
from rental_modules.agreement.repository import LeaseReader, LeaseWriter
from rental_services.status_transition import FirstObligationScheduler

logger = get_logger("services.schedule_maintenance")


@dataclass(frozen=True)
class MaintenanceResult:
    checked: int
    generated: int
    errors: int

    def to_dict(self) -> dict[str, int]:
        return {"checked": self.checked, "generated": self.generated, "errors": self.errors}


class ScheduleMaintenance:
    """Writes missing first-obligation entries for active leases."""

    def __init__(self, reader: LeaseReader, writer: LeaseWriter, clock: Clock | None = None):
        self._reader = reader
        self._scheduler = FirstObligationScheduler(reader, writer, clock or SystemClock())

    def run(self) -> MaintenanceResult:
        checked = generated = errors = 0
        for lease in self._reader.list_leases(LeaseStatus.ACTIVE):
            checked += 1
            with LogContext.bind(lease_id=str(lease.id), operation="schedule_maintenance"):
                try:
                    if has_rent_schedule(self._reader.get_payment_records(lease.id)):
                        continue
                    if self._scheduler.schedule(lease.id):
                        generated += 1
                except Exception:
                    errors += 1
                    logger.warning("schedule_maintenance_lease_failed", exc_info=True)

        result = MaintenanceResult(checked=checked, generated=generated, errors=errors)
        logger.info("schedule_maintenance_completed", extra=result.to_dict())
        return result
