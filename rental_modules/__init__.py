"""
Rental Modules.

Thin domain layers over the Rental Kernel and Engines.
Each module contains:
- Domain models (the nouns)
- Workflows (state machines and the policies evaluating them)
- Pure calculations the engines don't cover
- ORM models and the persistence adapter

Modules:
- Agreement: lease agreements, payment records, status lifecycle
"""
