"""
Notification and delivery history models.

These rows reference orders by id without a foreign key; they are removed
best-effort when an order is deleted.
"""

import uuid
from typing import Optional

from sqlalchemy import Boolean, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from orderflow.database.base import BaseModel, create_table_args


class Notification(BaseModel):
    """In-app notification for a user."""

    __tablename__ = "notifications"

    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True, index=True
    )
    order_product_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True
    )
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = create_table_args(comment="User notifications")


class ManufacturerNotification(BaseModel):
    """Notification addressed to a manufacturer account."""

    __tablename__ = "manufacturer_notifications"

    manufacturer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True, index=True
    )
    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True, index=True
    )
    order_product_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = create_table_args(comment="Manufacturer notifications")


class ManufacturerView(BaseModel):
    """Record of a manufacturer opening an order."""

    __tablename__ = "manufacturer_views"

    manufacturer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True
    )
    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True, index=True
    )

    __table_args__ = create_table_args(comment="Manufacturer order views")


class EmailHistory(BaseModel):
    """Outbound email sent about an order."""

    __tablename__ = "email_history"

    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True, index=True
    )
    recipient: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    subject: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    __table_args__ = create_table_args(comment="Order email delivery history")
