"""
Order history, pricing and note models.

Workflow and audit entries are keyed by order id or order line id. Like the
notification tables they are removed best-effort when an order is deleted.
"""

import uuid
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from orderflow.database.base import BaseModel, create_table_args


class WorkflowLog(BaseModel):
    """Routing and status transition of an order or line."""

    __tablename__ = "workflow_log"

    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True, index=True
    )
    order_product_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True, index=True
    )
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    from_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    to_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    performed_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = create_table_args(comment="Order workflow transitions")


class AuditLog(BaseModel):
    """Generic audit entry; ``target_id`` is an order or line id."""

    __tablename__ = "audit_log"

    target_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True, index=True
    )
    target_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    user_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    details: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONB, nullable=True)

    __table_args__ = create_table_args(comment="Audit trail")


class OrderMargin(BaseModel):
    """Margin percentages applied to an order."""

    __tablename__ = "order_margins"

    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True, index=True
    )
    product_margin: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    shipping_margin: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    __table_args__ = create_table_args(comment="Per-order margins")


class OrderBackupNumber(BaseModel):
    """Previous order number kept after a draft was converted."""

    __tablename__ = "orders_backup_numbers"

    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True, index=True
    )
    order_number: Mapped[str] = mapped_column(String(50), nullable=False)

    __table_args__ = create_table_args(comment="Superseded order numbers")


class ClientAdminNote(BaseModel):
    """Admin-only note about a client order."""

    __tablename__ = "client_admin_notes"

    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True, index=True
    )
    note: Mapped[str] = mapped_column(Text, nullable=False)
    created_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    __table_args__ = create_table_args(comment="Admin notes on client orders")


class OrderAccessory(BaseModel):
    """Accessory added to an order."""

    __tablename__ = "order_accessories"

    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=12, scale=2), nullable=True
    )

    __table_args__ = create_table_args(comment="Order accessories")
