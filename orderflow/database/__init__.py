"""
Database package initialization.

The package follows a modular structure:
- base: declarative base and column mixins
- connection: async engine and session management
- models: SQLAlchemy ORM models for orders and every dependent relation
"""

# Import submodules explicitly when needed to avoid circular dependencies

__all__ = []
