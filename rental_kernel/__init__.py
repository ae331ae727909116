"""
Rental Kernel

Shared foundation for the car-rental lease back office:
- Typed exception hierarchy with machine-readable codes
- Structured JSON logging with request-scoped context
- Injectable clock (no wall-clock reads inside pure code)
- Decimal money helpers and workflow value types
- SQLAlchemy declarative base and engine/session management
"""

__version__ = "0.1.0"
