"""
rental_config -- single public entrypoint for back-office configuration.

Responsibility:
    ``get_active_config()`` is the only way services obtain configuration.
    It reads the packaged ``defaults.yaml`` unless a path is passed in or the
    ``RENTAL_CONFIG_PATH`` environment variable names another file.

Architecture position:
    Configuration layer.  Sits beside ``rental_kernel``; modules and
    services receive the returned ``RentalConfig`` by injection.

Failure modes:
    - ``FileNotFoundError`` -- configured path does not exist.
    - ``ValueError`` / ``KeyError`` -- schema validation failures.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from rental_config.loader import load_config
from rental_config.schema import (
    BillingDefaults,
    NotificationSettings,
    PortfolioSettings,
    RentalConfig,
    SchedulingSettings,
)

_logger = logging.getLogger("rental_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"
CONFIG_PATH_ENV = "RENTAL_CONFIG_PATH"


def get_active_config(path: Path | str | None = None) -> RentalConfig:
    """Load the active configuration.

    Resolution order: explicit ``path``, then ``RENTAL_CONFIG_PATH``, then
    the packaged defaults.  Emits a ``RENTAL_CONFIG_TRACE`` log entry on
    every successful call.
    """
    resolved = Path(path or os.environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)
    config = load_config(resolved)

    _logger.info(
        "RENTAL_CONFIG_TRACE",
        extra={
            "trace_type": "RENTAL_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": str(resolved),
        },
    )
    return config


__all__ = [
    "get_active_config",
    "RentalConfig",
    "BillingDefaults",
    "SchedulingSettings",
    "NotificationSettings",
    "PortfolioSettings",
    "DEFAULT_CONFIG_PATH",
    "CONFIG_PATH_ENV",
]
