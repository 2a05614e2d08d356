"""
SQLAlchemy declarative base and common model mixins.

This module provides the SQLAlchemy DeclarativeBase with async attribute
support, mixins for UUID primary keys, timestamps and soft deletion, and a
helper for building ``__table_args__``.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import DateTime, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column


class Base(AsyncAttrs, DeclarativeBase):
    """
    Base class for all SQLAlchemy models with async support.

    Provides async attribute loading and a primary-key based repr for
    every mapped table.
    """

    __abstract__ = True

    def __repr__(self) -> str:
        pk_values = []
        for column in self.__table__.primary_key.columns:
            value = getattr(self, column.key, None)
            if value is not None:
                pk_values.append(f"{column.name}={value!r}")

        pk_str = ", ".join(pk_values) if pk_values else "no primary key"
        return f"<{self.__class__.__name__}({pk_str})>"


class UUIDMixin:
    """
    Mixin for UUID primary key.

    Uses PostgreSQL's native UUID type, generated client-side with uuid4.
    """

    @declared_attr
    def id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            UUID(as_uuid=True),
            primary_key=True,
            default=uuid.uuid4,
            nullable=False,
            comment="Unique identifier for the record",
        )


class TimestampMixin:
    """
    Mixin for automatic timestamp management.

    Adds created_at and updated_at columns managed by the database.
    """

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            nullable=False,
            server_default=func.now(),
            index=True,
            comment="Timestamp when record was created",
        )

    @declared_attr
    def updated_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            nullable=False,
            server_default=func.now(),
            onupdate=func.now(),
            comment="Timestamp when record was last updated",
        )


class SoftDeleteMixin:
    """
    Mixin for soft delete functionality.

    Soft-deleted rows stay in place for history and are ignored by
    worklist classification.
    """

    @declared_attr
    def deleted_at(cls) -> Mapped[Optional[datetime]]:
        return mapped_column(
            DateTime(timezone=True),
            nullable=True,
            default=None,
            comment="Timestamp when record was soft deleted",
        )


class BaseModel(Base, UUIDMixin, TimestampMixin):
    """
    Base model with UUID primary key and timestamps.

    Example:
        class Client(BaseModel):
            __tablename__ = "clients"

            name: Mapped[str] = mapped_column(String(255))
    """

    __abstract__ = True


def create_table_args(
    *constraints: Any,
    comment: Optional[str] = None,
    **kwargs: Any,
) -> tuple:
    """
    Create a ``__table_args__`` tuple from constraints and table options.

    Args:
        *constraints: Index and constraint objects
        comment: Table comment for documentation
        **kwargs: Additional table keyword arguments

    Returns:
        Tuple suitable for __table_args__
    """
    options: Dict[str, Any] = {}
    if comment:
        options["comment"] = comment
    options.update(kwargs)
    return (*constraints, options)
