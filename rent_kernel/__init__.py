"""
Rent Kernel - shared infrastructure for the rent billing engine.

Provides:
- Declarative ORM base with UUID keys and audit columns
- Engine / session factory management
- Injectable clock (no direct datetime.now() in services)
- Structured JSON logging
- Typed exception hierarchy with machine-readable codes
"""

__version__ = "0.1.0"
