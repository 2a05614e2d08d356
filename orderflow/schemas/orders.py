"""
Order snapshot schemas consumed by the classification core.

An ``OrderSnapshot`` is the read-only, in-memory shape of an order with its
client, manufacturer and line items embedded. Every optional numeric, date or
string field may be absent; validators normalise what the datastore hands us
(enum members, padded or mixed-case status strings, malformed amounts,
ISO datetimes in date columns) so downstream predicates never have to.
Snapshots can be built straight from ORM rows (``from_attributes=True``).
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator


def _normalize_tag(value: Any) -> Optional[str]:
    """Lower-case, strip and unwrap enum members; blank becomes None."""
    if value is None:
        return None
    if isinstance(value, Enum):
        value = value.value
    value = str(value).strip().lower()
    return value or None


def _coerce_amount(value: Any) -> Optional[Decimal]:
    """Parse a stored amount; unparseable or non-finite input becomes None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return amount if amount.is_finite() else None


def to_calendar_date(value: Any) -> Optional[date]:
    """
    Reduce a date, datetime or ISO string to a calendar day.

    Time of day is dropped. Blank, unparseable or out-of-range input becomes
    None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00")).date()
        except ValueError:
            return None
    return None


def _coerce_identifier(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def _blank_to_none(value: Any) -> Any:
    return None if value == "" else value


def _none_to_list(value: Any) -> Any:
    return [] if value is None else value


Tag = Annotated[Optional[str], BeforeValidator(_normalize_tag)]
Amount = Annotated[Optional[Decimal], BeforeValidator(_coerce_amount)]
Identifier = Annotated[Optional[str], BeforeValidator(_coerce_identifier)]
RequiredIdentifier = Annotated[str, BeforeValidator(_coerce_identifier)]
Timestamp = Annotated[Optional[datetime], BeforeValidator(_blank_to_none)]


class OrderItemSnapshot(BaseModel):
    """Variant/quantity row of an order line."""

    model_config = ConfigDict(from_attributes=True)

    id: Identifier = None
    variant_combo: Optional[str] = None
    quantity: Optional[int] = None

    @field_validator("quantity", mode="before")
    @classmethod
    def coerce_quantity(cls, v: Any) -> Optional[int]:
        """Accept numeric strings and floats; anything else is absent."""
        if v is None or v == "" or isinstance(v, bool):
            return None
        try:
            quantity = Decimal(str(v).strip())
        except (InvalidOperation, ValueError):
            return None
        return int(quantity) if quantity.is_finite() else None


class OrderProductSnapshot(BaseModel):
    """Line item of an order with routing, pricing and shipping state."""

    model_config = ConfigDict(from_attributes=True)

    id: RequiredIdentifier
    product_order_number: Optional[str] = None
    description: Optional[str] = None
    product_id: Identifier = None

    # Routing and production axes
    routed_to: Tag = None
    routed_at: Timestamp = None
    product_status: Tag = None
    sample_status: Tag = None

    # Pricing: cost (manufacturer) and client-facing columns
    product_price: Amount = None
    client_product_price: Amount = None
    sample_fee: Amount = None
    shipping_air_price: Amount = None
    shipping_boat_price: Amount = None
    client_shipping_air_price: Amount = None
    client_shipping_boat_price: Amount = None

    # Shipping selection
    selected_shipping_method: Tag = None
    estimated_ship_date: Optional[date] = None

    deleted_at: Timestamp = None
    order_items: Annotated[
        list[OrderItemSnapshot], BeforeValidator(_none_to_list)
    ] = Field(default_factory=list)

    @field_validator("estimated_ship_date", mode="before")
    @classmethod
    def truncate_to_date(cls, v: Any) -> Optional[date]:
        """Ship dates are calendar days; malformed values count as absent."""
        return to_calendar_date(v)

    @property
    def is_deleted(self) -> bool:
        """Soft-deleted lines stay on the order for history only."""
        return self.deleted_at is not None


class PartySummary(BaseModel):
    """Client or manufacturer embedded in an order."""

    model_config = ConfigDict(from_attributes=True)

    id: Identifier = None
    name: Optional[str] = None
    email: Optional[str] = None


class OrderSnapshot(BaseModel):
    """Order header with embedded parties and line items."""

    model_config = ConfigDict(from_attributes=True)

    id: RequiredIdentifier
    order_number: Optional[str] = None
    order_name: Optional[str] = None
    status: Tag = None
    workflow_status: Tag = None

    # Sample sub-workflow
    sample_required: bool = False
    sample_routed_to: Tag = None
    sample_status: Tag = None
    sample_workflow_status: Tag = None

    # Associations
    client_id: Identifier = None
    manufacturer_id: Identifier = None
    sub_manufacturer_id: Identifier = None
    created_by: Identifier = None
    client: Optional[PartySummary] = None
    manufacturer: Optional[PartySummary] = None

    created_at: Timestamp = None
    updated_at: Timestamp = None

    order_products: Annotated[
        list[OrderProductSnapshot], BeforeValidator(_none_to_list)
    ] = Field(default_factory=list)

    @field_validator("sample_required", mode="before")
    @classmethod
    def coerce_flag(cls, v: Any) -> bool:
        return bool(v)

    @property
    def active_products(self) -> list[OrderProductSnapshot]:
        """Line items that have not been soft-deleted."""
        return [p for p in self.order_products if not p.is_deleted]


class TabCounts(BaseModel):
    """Badge counts per worklist tab."""

    my_orders: int = 0
    invoice_approval: int = 0
    sent_to_other: int = 0
    sample_approved: int = 0
    approved_for_production: int = 0
    in_production: int = 0
    ready_to_ship: int = 0
    shipped: int = 0
    production_total: int = 0


class OrderRow(OrderSnapshot):
    """Order snapshot with the derived figures shown in a worklist row."""

    routing_status: Optional[str] = None
    routing_label: Optional[str] = None
    order_total: Decimal = Decimal("0")
    invoice_fees: Decimal = Decimal("0")
    days_awaiting_invoice: Optional[int] = None


class OrderListResponse(BaseModel):
    """Orders belonging to one worklist tab plus badge counts for every tab."""

    tab: str
    sub_tab: Optional[str] = None
    total: int
    orders: list[OrderRow]
    counts: TabCounts
    ship_queue_label: Optional[str] = None
