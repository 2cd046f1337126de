"""
Datagen Kernel - shared infrastructure for the generation engine.

Provides:
- Structured JSON logging with request-scoped context
- Typed exception hierarchy with machine-readable codes
- Injectable clocks
- SQLAlchemy declarative base and engine/session management
"""

__version__ = "0.1.0"
