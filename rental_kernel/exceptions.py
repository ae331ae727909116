"""
Typed Exception Hierarchy for the Rental Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The presentation layer has to react differently to a malformed lease, a
lease that cannot be activated yet, and a status change that is simply
not allowed.  Parsing message strings for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        service.transition_status(lease_id, LeaseStatus.ACTIVE)
    except MissingTermsError as e:
        form.show_error(field=e.missing_fields[0], code=e.code)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from RentalKernelError:

    RentalKernelError (base)
    |
    +-- LeaseTermError
    |   +-- InvalidTermError
    |   +-- MissingTermsError
    |
    +-- LeaseStatusError
    |   +-- InvalidStatusError
    |   +-- InvalidTransitionError
    |   +-- TerminalStatusError
    |
    +-- PaymentError
    |   +-- InvalidPaymentError
    |   +-- PaymentNotFoundError
    |
    +-- LeaseNotFoundError
    |
    +-- ScheduleError
        +-- ScheduleCreationTimeout

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category   | Code                        | When Raised
-----------|-----------------------------|-------------------------------------------
Term       | INVALID_TERM                | Negative rent/fees, due day outside 1-31,
           |                             | end date before start date
           | MISSING_TERMS               | Activation without billing terms
-----------|-----------------------------|-------------------------------------------
Status     | INVALID_STATUS              | Unknown status string at the boundary
           | INVALID_TRANSITION          | Transition not declared by the workflow
           | TERMINAL_STATUS             | Any transition out of a terminal status
-----------|-----------------------------|-------------------------------------------
Payment    | INVALID_PAYMENT             | Negative amount, unknown type
           | PAYMENT_NOT_FOUND           | Payment ID doesn't exist
-----------|-----------------------------|-------------------------------------------
Lease      | LEASE_NOT_FOUND             | Lease ID doesn't exist
-----------|-----------------------------|-------------------------------------------
Schedule   | SCHEDULE_CREATION_TIMEOUT   | First-obligation write did not finish in
           |                             | time (soft: reported, never propagated
           |                             | out of a status transition)
"""


class RentalKernelError(Exception):
    """
    Base exception for all rental kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "RENTAL_KERNEL_ERROR"


# Lease term exceptions


class LeaseTermError(RentalKernelError):
    """Base exception for lease billing term errors."""

    code: str = "LEASE_TERM_ERROR"


class InvalidTermError(LeaseTermError):
    """Lease billing terms are malformed and cannot be reconciled."""

    code: str = "INVALID_TERM"

    def __init__(self, lease_id: str, field: str, value: object, reason: str):
        self.lease_id = str(lease_id)
        self.field = field
        self.value = str(value)
        self.reason = reason
        super().__init__(
            f"Invalid lease term for {lease_id}: {field}={value} ({reason})"
        )


class MissingTermsError(LeaseTermError):
    """Lease lacks the billing terms required for the requested operation."""

    code: str = "MISSING_TERMS"

    def __init__(self, lease_id: str, missing_fields: tuple[str, ...]):
        self.lease_id = str(lease_id)
        self.missing_fields = tuple(missing_fields)
        super().__init__(
            f"Lease {lease_id} is missing required terms: "
            f"{', '.join(self.missing_fields)}"
        )


# Lease status exceptions


class LeaseStatusError(RentalKernelError):
    """Base exception for lease status errors."""

    code: str = "LEASE_STATUS_ERROR"


class InvalidStatusError(LeaseStatusError):
    """A raw status string does not belong to the closed status set."""

    code: str = "INVALID_STATUS"

    def __init__(self, kind: str, value: object):
        self.kind = kind
        self.value = str(value)
        super().__init__(f"Unknown {kind} value: {value!r}")


class InvalidTransitionError(LeaseStatusError):
    """The workflow declares no transition between the two statuses."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        lease_id: str,
        from_status: str,
        to_status: str,
        reason: str = "no such transition",
    ):
        self.lease_id = str(lease_id)
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        super().__init__(
            f"Lease {lease_id} cannot move from {from_status} to "
            f"{to_status}: {reason}"
        )


class TerminalStatusError(InvalidTransitionError):
    """The lease is in a terminal status; its status can no longer change."""

    code: str = "TERMINAL_STATUS"

    def __init__(self, lease_id: str, from_status: str, to_status: str):
        super().__init__(
            lease_id, from_status, to_status, reason=f"{from_status} is terminal",
        )


# Payment exceptions


class PaymentError(RentalKernelError):
    """Base exception for payment record errors."""

    code: str = "PAYMENT_ERROR"


class InvalidPaymentError(PaymentError):
    """Payment record data is invalid."""

    code: str = "INVALID_PAYMENT"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = str(value)
        self.reason = reason
        super().__init__(f"Invalid payment {field}={value}: {reason}")


class PaymentNotFoundError(PaymentError):
    """Payment record with given ID was not found."""

    code: str = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id: str):
        self.payment_id = str(payment_id)
        super().__init__(f"Payment record not found: {payment_id}")


class LeaseNotFoundError(RentalKernelError):
    """Lease with given ID was not found."""

    code: str = "LEASE_NOT_FOUND"

    def __init__(self, lease_id: str):
        self.lease_id = str(lease_id)
        super().__init__(f"Lease not found: {lease_id}")


# Scheduling exceptions


class ScheduleError(RentalKernelError):
    """Base exception for obligation scheduling errors."""

    code: str = "SCHEDULE_ERROR"


class ScheduleCreationTimeout(ScheduleError):
    """
    First-obligation scheduling did not complete within its time budget.

    Soft error: the status service converts it into a PENDING side-effect
    result so the caller can retry scheduling later.
    """

    code: str = "SCHEDULE_CREATION_TIMEOUT"

    def __init__(self, lease_id: str, timeout_seconds: float):
        self.lease_id = str(lease_id)
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Scheduling first obligation for lease {lease_id} did not "
            f"complete within {timeout_seconds}s"
        )
