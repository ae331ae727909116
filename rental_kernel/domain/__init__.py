"""
Pure domain layer.

Value helpers and types with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Wall-clock time (only the injectable Clock lives here)
- I/O
"""

from rental_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from rental_kernel.domain.money import (
    CENT,
    ZERO,
    quantize_money,
    to_decimal,
)
from rental_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "CENT",
    "ZERO",
    "quantize_money",
    "to_decimal",
    "Guard",
    "Transition",
    "Workflow",
]
