"""
rental_services -- Package init and public API.

Responsibility:
    Stateful orchestration services that compose the pure billing engines
    with the lease persistence ports, the clock and the notifier.  This is
    the only layer that writes lease data or reads wall-clock time on its
    own initiative.

Architecture position:
    Services -- stateful orchestration over modules + engines + kernel.

    Dependency direction:
        rental_services/ -> rental_modules/  (allowed)
        rental_services/ -> rental_engines/  (allowed)
        rental_engines/  -> rental_services/ (FORBIDDEN)
        rental_kernel/   -> rental_services/ (FORBIDDEN)

Invariants enforced:
    - DI transparency: notifiers, clocks, runners and ports are passed in;
      no service keeps module-level mutable state.
"""

from rental_services.lease_accounts import LeaseAccountService
from rental_services.notifier import LoggingSink, NotificationSink, RateLimitedNotifier
from rental_services.schedule_maintenance import MaintenanceResult, ScheduleMaintenance
from rental_services.status_transition import (
    BoundedSideEffectRunner,
    FirstObligationScheduler,
    LeaseStatusService,
    SideEffectStatus,
    TransitionOutcome,
    TransitionResult,
)

__all__ = [
    "BoundedSideEffectRunner",
    "FirstObligationScheduler",
    "LeaseAccountService",
    "LeaseStatusService",
    "LoggingSink",
    "MaintenanceResult",
    "NotificationSink",
    "RateLimitedNotifier",
    "ScheduleMaintenance",
    "SideEffectStatus",
    "TransitionOutcome",
    "TransitionResult",
]
