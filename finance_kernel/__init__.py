"""
Finance Kernel.

Shared foundation for the project finance modules:
- Declarative persistence base, Decimal column types, engine/session factory
- Clock abstraction (system and deterministic)
- Ledger line value objects and the LedgerGateway posting boundary
- Typed exception hierarchy
- Structured JSON logging
"""

__version__ = "0.1.0"
