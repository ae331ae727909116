"""
Lease Agreement Module (``rental_modules.agreement``).

Responsibility
--------------
The lease agreement record and its lifecycle: status workflow and
transition policy, the first-obligation schedule written on activation,
and persistence of agreements and payment records.

Architecture position
---------------------
**Modules layer** -- declarative workflow, pure calculations, ORM models
and a repository implementing the ``LeaseReader``/``LeaseWriter`` ports.
Billing arithmetic lives in ``rental_engines``.

Invariants enforced
-------------------
* No status change leaves a terminal status.
* Activation requires a monthly rent amount.
* Raw status and type strings are validated at the ORM boundary.

Failure modes
-------------
* ``TerminalStatusError`` / ``InvalidTransitionError`` for disallowed moves.
* ``MissingTermsError`` when activating a lease without billing terms.
"""

from rental_modules.agreement.calculations import (
    first_obligation_due_date,
    first_obligation_entry,
)
from rental_modules.agreement.models import (
    Lease,
    LeaseStatus,
    LegalCaseStatus,
    PortfolioMetrics,
    TrafficFinePaymentStatus,
)
from rental_modules.agreement.repository import (
    LeaseReader,
    LeaseWriter,
    SqlAlchemyLeaseRepository,
)
from rental_modules.agreement.workflows import (
    LEASE_STATUS_WORKFLOW,
    TERMINAL_STATUSES,
    StatusTransitionPolicy,
)

__all__ = [
    "LEASE_STATUS_WORKFLOW",
    "TERMINAL_STATUSES",
    "Lease",
    "LeaseReader",
    "LeaseStatus",
    "LeaseWriter",
    "LegalCaseStatus",
    "PortfolioMetrics",
    "SqlAlchemyLeaseRepository",
    "StatusTransitionPolicy",
    "TrafficFinePaymentStatus",
    "first_obligation_due_date",
    "first_obligation_entry",
]
