"""
Configuration schema (``rental_config.schema``).

Responsibility
--------------
Frozen dataclasses describing every tunable of the lease billing core:
default late-fee terms, the scheduling side-effect time budget, notifier
throttling and portfolio reporting windows.

Architecture position
---------------------
**Config layer** -- pure data.  No dependency on kernel, modules, or
services; those layers receive a ``RentalConfig`` instance by injection.

Invariants enforced
-------------------
* Monetary defaults are ``Decimal`` and non-negative.
* ``due_day_of_month`` is within 1-31.
* Time budgets and thresholds are positive.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class BillingDefaults:
    """Billing terms applied when a lease record leaves them unset."""

    due_day_of_month: int = 1
    daily_late_fee_rate: Decimal = Decimal("120.00")
    late_fee_cap: Decimal = Decimal("3000.00")
    suspicious_payment_multiplier: Decimal = Decimal("5")

    def __post_init__(self) -> None:
        if not 1 <= self.due_day_of_month <= 31:
            raise ValueError("due_day_of_month must be within 1-31")
        if self.daily_late_fee_rate < 0:
            raise ValueError("daily_late_fee_rate cannot be negative")
        if self.late_fee_cap < 0:
            raise ValueError("late_fee_cap cannot be negative")
        if self.suspicious_payment_multiplier <= 0:
            raise ValueError("suspicious_payment_multiplier must be positive")


@dataclass(frozen=True)
class SchedulingSettings:
    """Time budget for the first-obligation scheduling side effect."""

    side_effect_timeout_seconds: float = 15.0
    max_workers: int = 2

    def __post_init__(self) -> None:
        if self.side_effect_timeout_seconds <= 0:
            raise ValueError("side_effect_timeout_seconds must be positive")
        if self.max_workers <= 0:
            raise ValueError("max_workers must be positive")


@dataclass(frozen=True)
class NotificationSettings:
    """Throttling for user-facing warnings."""

    failure_threshold: int = 3
    min_interval_seconds: float = 30.0

    def __post_init__(self) -> None:
        if self.failure_threshold < 0:
            raise ValueError("failure_threshold cannot be negative")
        if self.min_interval_seconds < 0:
            raise ValueError("min_interval_seconds cannot be negative")


@dataclass(frozen=True)
class PortfolioSettings:
    """Windows used by portfolio metrics."""

    expiring_soon_days: int = 30

    def __post_init__(self) -> None:
        if self.expiring_soon_days <= 0:
            raise ValueError("expiring_soon_days must be positive")


@dataclass(frozen=True)
class RentalConfig:
    """The complete runtime configuration."""

    config_id: str = "rental-defaults"
    version: int = 1
    currency: str = "QAR"
    billing: BillingDefaults = field(default_factory=BillingDefaults)
    scheduling: SchedulingSettings = field(default_factory=SchedulingSettings)
    notifications: NotificationSettings = field(default_factory=NotificationSettings)
    portfolio: PortfolioSettings = field(default_factory=PortfolioSettings)
    checksum: str = ""
