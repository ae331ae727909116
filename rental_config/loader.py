"""
Configuration Loader (``rental_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the typed
``rental_config.schema`` dataclasses.  Runtime callers go through
``rental_config.get_active_config()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required top-level keys have no silent defaults.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Non-numeric amounts  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from rental_config.schema import (
    BillingDefaults,
    NotificationSettings,
    PortfolioSettings,
    RentalConfig,
    SchedulingSettings,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, field_name: str) -> Decimal:
    """Parse a Decimal from YAML (quoted string or number)."""
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"{field_name}: cannot parse decimal from {value!r}") from e


def parse_billing(data: dict[str, Any]) -> BillingDefaults:
    """Parse BillingDefaults from a dict."""
    defaults = BillingDefaults()
    return BillingDefaults(
        due_day_of_month=int(data.get("due_day_of_month", defaults.due_day_of_month)),
        daily_late_fee_rate=parse_decimal(
            data.get("daily_late_fee_rate", defaults.daily_late_fee_rate),
            "billing.daily_late_fee_rate",
        ),
        late_fee_cap=parse_decimal(
            data.get("late_fee_cap", defaults.late_fee_cap),
            "billing.late_fee_cap",
        ),
        suspicious_payment_multiplier=parse_decimal(
            data.get("suspicious_payment_multiplier", defaults.suspicious_payment_multiplier),
            "billing.suspicious_payment_multiplier",
        ),
    )


def parse_scheduling(data: dict[str, Any]) -> SchedulingSettings:
    """Parse SchedulingSettings from a dict."""
    defaults = SchedulingSettings()
    return SchedulingSettings(
        side_effect_timeout_seconds=float(
            data.get("side_effect_timeout_seconds", defaults.side_effect_timeout_seconds)
        ),
        max_workers=int(data.get("max_workers", defaults.max_workers)),
    )


def parse_notifications(data: dict[str, Any]) -> NotificationSettings:
    """Parse NotificationSettings from a dict."""
    defaults = NotificationSettings()
    return NotificationSettings(
        failure_threshold=int(data.get("failure_threshold", defaults.failure_threshold)),
        min_interval_seconds=float(
            data.get("min_interval_seconds", defaults.min_interval_seconds)
        ),
    )


def parse_portfolio(data: dict[str, Any]) -> PortfolioSettings:
    """Parse PortfolioSettings from a dict."""
    defaults = PortfolioSettings()
    return PortfolioSettings(
        expiring_soon_days=int(data.get("expiring_soon_days", defaults.expiring_soon_days)),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of the parsed YAML document."""
    canonical = json.dumps(data, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_config(data: dict[str, Any]) -> RentalConfig:
    """
    Parse a ``RentalConfig`` from a YAML document.

    Preconditions:
        ``data`` carries ``config_id`` and ``version``; every section is
        optional and falls back to schema defaults.
    Raises:
        KeyError: if ``config_id`` or ``version`` is missing.
        ValueError: if a section fails schema validation.
    """
    return RentalConfig(
        config_id=data["config_id"],
        version=int(data["version"]),
        currency=str(data.get("currency", "QAR")).upper(),
        billing=parse_billing(data.get("billing") or {}),
        scheduling=parse_scheduling(data.get("scheduling") or {}),
        notifications=parse_notifications(data.get("notifications") or {}),
        portfolio=parse_portfolio(data.get("portfolio") or {}),
        checksum=compute_checksum(data),
    )


def load_config(path: Path) -> RentalConfig:
    """Load and parse a configuration file."""
    return parse_config(load_yaml_file(path))
