"""
Order, order line, variant quantity and media models.

Status and routing columns are stored as plain strings: rows written by
older flows may hold values outside the current enums, and classification
tolerates them.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orderflow.database.base import BaseModel, SoftDeleteMixin, create_table_args
from orderflow.database.models.party import Client, Manufacturer
from orderflow.services.orders.enums import OrderStatus


def _money(comment: str) -> Mapped[Optional[Decimal]]:
    return mapped_column(Numeric(precision=12, scale=2), nullable=True, comment=comment)


class Order(BaseModel):
    """
    Multi-party manufacturing order.

    Order rows are deleted only through the deletion orchestrator, which
    removes every dependent row first; no relationship here cascades.
    """

    __tablename__ = "orders"

    order_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
        comment="PREFIX-NNNNNN, DRAFT prefix while the order is a draft",
    )

    order_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=OrderStatus.DRAFT.value,
        index=True,
        comment="Order lifecycle status",
    )

    workflow_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Sample sub-workflow
    sample_required: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    sample_routed_to: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    sample_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    sample_workflow_status: Mapped[Optional[str]] = mapped_column(
        String(50), nullable=True
    )

    # Associations
    client_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("clients.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    manufacturer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("manufacturers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    sub_manufacturer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("manufacturers.id", ondelete="SET NULL"),
        nullable=True,
        comment="Secondary manufacturer when the order is split",
    )

    created_by: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        comment="User ID who created the order",
    )

    # Relationships
    client: Mapped[Optional[Client]] = relationship(
        Client,
        foreign_keys=[client_id],
        lazy="selectin",
    )

    manufacturer: Mapped[Optional[Manufacturer]] = relationship(
        Manufacturer,
        foreign_keys=[manufacturer_id],
        lazy="selectin",
    )

    order_products: Mapped[list["OrderProduct"]] = relationship(
        "OrderProduct",
        back_populates="order",
        lazy="selectin",
        passive_deletes=True,
        order_by="OrderProduct.created_at",
    )

    __table_args__ = create_table_args(
        Index("ix_orders_manufacturer_status", "manufacturer_id", "status"),
        Index("ix_orders_status_created_at", "status", "created_at"),
        comment="Manufacturing orders",
    )


class OrderProduct(BaseModel, SoftDeleteMixin):
    """Order line with independent routing and production status."""

    __tablename__ = "order_products"

    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("orders.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    product_order_number: Mapped[Optional[str]] = mapped_column(String(60), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        nullable=True,
        comment="Catalog product reference",
    )

    # Routing and production axes
    routed_to: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        index=True,
        comment="Party currently holding the line: admin, manufacturer or client",
    )
    routed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    product_status: Mapped[Optional[str]] = mapped_column(
        String(50), nullable=True, index=True
    )
    sample_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Pricing
    product_price: Mapped[Optional[Decimal]] = _money("Manufacturer unit cost")
    client_product_price: Mapped[Optional[Decimal]] = _money("Client unit price")
    sample_fee: Mapped[Optional[Decimal]] = _money("Sample fee")
    shipping_air_price: Mapped[Optional[Decimal]] = _money("Air shipping cost")
    shipping_boat_price: Mapped[Optional[Decimal]] = _money("Boat shipping cost")
    client_shipping_air_price: Mapped[Optional[Decimal]] = _money(
        "Air shipping client price"
    )
    client_shipping_boat_price: Mapped[Optional[Decimal]] = _money(
        "Boat shipping client price"
    )

    # Shipping selection
    selected_shipping_method: Mapped[Optional[str]] = mapped_column(
        String(10), nullable=True
    )
    estimated_ship_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    order: Mapped[Order] = relationship(Order, back_populates="order_products")

    order_items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order_product",
        lazy="selectin",
        passive_deletes=True,
    )

    __table_args__ = create_table_args(
        Index("ix_order_products_order_routed_to", "order_id", "routed_to"),
        comment="Order lines",
    )


class OrderItem(BaseModel):
    """Variant/quantity row of an order line."""

    __tablename__ = "order_items"

    order_product_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("order_products.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    variant_combo: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    order_product: Mapped[OrderProduct] = relationship(
        OrderProduct, back_populates="order_items"
    )

    __table_args__ = create_table_args(
        CheckConstraint("quantity >= 0", name="ck_order_items_quantity_non_negative"),
        comment="Variant quantities per order line",
    )


class OrderMedia(BaseModel):
    """File attached to an order or to one of its lines."""

    __tablename__ = "order_media"

    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True, index=True
    )
    order_product_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True, index=True
    )
    file_url: Mapped[str] = mapped_column(Text, nullable=False)
    file_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    __table_args__ = create_table_args(comment="Order and order line attachments")
