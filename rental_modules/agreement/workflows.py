"""Lease Agreement Status Workflow.

State machine for the lease agreement lifecycle, plus the policy that
evaluates a requested status change against it.
"""

from __future__ import annotations

from rental_config.schema import BillingDefaults
from rental_kernel.domain.workflow import Guard, Transition, Workflow
from rental_kernel.exceptions import (
    InvalidTransitionError,
    MissingTermsError,
    TerminalStatusError,
)
from rental_kernel.logging_config import get_logger
from rental_modules.agreement.models import Lease, LeaseStatus

logger = get_logger("modules.agreement.workflows")


BILLING_TERMS_PRESENT = Guard(
    "billing_terms_present",
    "Lease has a monthly rent amount and valid billing terms",
)

ENTRY_STATUSES: tuple[LeaseStatus, ...] = (LeaseStatus.DRAFT, LeaseStatus.PENDING)

TERMINAL_STATUSES: tuple[LeaseStatus, ...] = (
    LeaseStatus.CLOSED,
    LeaseStatus.COMPLETED,
    LeaseStatus.TERMINATED,
    LeaseStatus.ARCHIVED,
    LeaseStatus.CANCELLED,
)

NON_TERMINAL_STATUSES: tuple[LeaseStatus, ...] = tuple(
    s for s in LeaseStatus if s not in TERMINAL_STATUSES
)

_CLOSING_ACTIONS: dict[LeaseStatus, str] = {
    LeaseStatus.CLOSED: "close",
    LeaseStatus.COMPLETED: "complete",
    LeaseStatus.TERMINATED: "terminate",
    LeaseStatus.ARCHIVED: "archive",
}

_STAGING: tuple[tuple[LeaseStatus, LeaseStatus, str], ...] = (
    (LeaseStatus.DRAFT, LeaseStatus.PENDING, "submit"),
    (LeaseStatus.DRAFT, LeaseStatus.PENDING_PAYMENT, "await_payment"),
    (LeaseStatus.DRAFT, LeaseStatus.PENDING_DEPOSIT, "await_deposit"),
    (LeaseStatus.PENDING, LeaseStatus.PENDING_PAYMENT, "await_payment"),
    (LeaseStatus.PENDING, LeaseStatus.PENDING_DEPOSIT, "await_deposit"),
    (LeaseStatus.PENDING_PAYMENT, LeaseStatus.PENDING_DEPOSIT, "await_deposit"),
    (LeaseStatus.PENDING_DEPOSIT, LeaseStatus.PENDING_PAYMENT, "await_payment"),
)


def _build_transitions() -> tuple[Transition, ...]:
    transitions: list[Transition] = []
    for status in NON_TERMINAL_STATUSES:
        transitions.append(Transition(
            status.value,
            LeaseStatus.ACTIVE.value,
            action="activate",
            guard=BILLING_TERMS_PRESENT,
            schedules_obligation=True,
        ))
        transitions.append(Transition(status.value, LeaseStatus.CANCELLED.value, action="cancel"))
    for target, action in _CLOSING_ACTIONS.items():
        transitions.append(Transition(LeaseStatus.ACTIVE.value, target.value, action=action))
    for source, target, action in _STAGING:
        transitions.append(Transition(source.value, target.value, action=action))
    return tuple(transitions)


LEASE_STATUS_WORKFLOW = Workflow(
    name="lease_status",
    description="Lease agreement lifecycle",
    initial_state=LeaseStatus.DRAFT.value,
    states=tuple(s.value for s in LeaseStatus),
    transitions=_build_transitions(),
    terminal_states=tuple(s.value for s in TERMINAL_STATUSES),
    entry_states=tuple(s.value for s in ENTRY_STATUSES),
)

logger.info(
    "lease_status_workflow_registered",
    extra={
        "workflow_name": LEASE_STATUS_WORKFLOW.name,
        "state_count": len(LEASE_STATUS_WORKFLOW.states),
        "transition_count": len(LEASE_STATUS_WORKFLOW.transitions),
    },
)


class StatusTransitionPolicy:
    """
    Decides whether a lease may move to a target status.

    Contract:
        Pure -- reads the lease value object, never persistence.
    Guarantees:
        - No transition leaves a terminal status.
        - Activation requires billing terms that pass validation.
    """

    def __init__(
        self,
        workflow: Workflow = LEASE_STATUS_WORKFLOW,
        billing_defaults: BillingDefaults | None = None,
    ):
        self._workflow = workflow
        self._defaults = billing_defaults or BillingDefaults()

    @property
    def workflow(self) -> Workflow:
        return self._workflow

    def is_terminal(self, status: LeaseStatus | str) -> bool:
        return LeaseStatus.parse(status).value in self._workflow.terminal_states

    def allowed_targets(self, status: LeaseStatus | str) -> tuple[LeaseStatus, ...]:
        return tuple(
            LeaseStatus(s) for s in self._workflow.targets(LeaseStatus.parse(status).value)
        )

    def check(self, lease: Lease, target: LeaseStatus | str) -> Transition:
        """
        Validate ``lease.status -> target`` and return the declared transition.

        Raises:
            InvalidStatusError: ``target`` is not a lease status.
            TerminalStatusError: The lease is in a terminal status.
            InvalidTransitionError: The workflow declares no such transition.
            MissingTermsError: Activation without a monthly rent amount.
            InvalidTermError: Activation with malformed billing terms.
        """
        target = LeaseStatus.parse(target)
        current = lease.status
        if self.is_terminal(current):
            raise TerminalStatusError(lease.id, current.value, target.value)

        transition = self._workflow.find(current.value, target.value)
        if transition is None:
            raise InvalidTransitionError(lease.id, current.value, target.value)

        if transition.guard == BILLING_TERMS_PRESENT:
            if not lease.has_billing_terms:
                raise MissingTermsError(lease.id, ("monthly_rent_amount",))
            lease.to_term(self._defaults).validate()

        logger.debug("lease_transition_permitted", extra={
            "lease_id": str(lease.id),
            "from_status": current.value,
            "to_status": target.value,
            "action": transition.action,
        })
        return transition
