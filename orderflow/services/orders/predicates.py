"""
Eligibility predicates over order snapshots.

Every predicate is total: absent, malformed or negative numeric fields count
as zero and absent string fields as "not set", so callers never need to guard
against partially populated rows. Predicates accept ``OrderSnapshot`` /
``OrderProductSnapshot`` instances or any object exposing the same attribute
names (ORM rows included).
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from orderflow.services.orders.enums import (
    APPROVED_FOR_PRODUCTION_STATUSES,
    SAMPLE_APPROVED_STATUSES,
    SHIPPED_STATUSES,
    ActionOwner,
    ProductStatus,
    RoutedTo,
    SampleStatus,
    ShippingMethod,
)
from orderflow.services.orders.state_machine import (
    classify,
    is_production_status,
    normalize_tag,
)

ZERO = Decimal("0")


def to_amount(value: Any) -> Decimal:
    """Coerce a stored amount to a non-negative Decimal."""
    if value is None or isinstance(value, bool):
        return ZERO
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return ZERO
    if not value.is_finite() or value < ZERO:
        return ZERO
    return value


def to_quantity(value: Any) -> int:
    """Coerce a stored quantity to a non-negative int."""
    amount = to_amount(value)
    return int(amount)


def get_product_quantity(product: Any) -> int:
    """Total units across a line's variant/quantity rows."""
    items = getattr(product, "order_items", None) or []
    return sum(to_quantity(getattr(item, "quantity", None)) for item in items)


def _first_present(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def effective_unit_price(product: Any) -> Decimal:
    """Client-facing unit price, falling back to cost when none is stored."""
    return to_amount(
        _first_present(
            getattr(product, "client_product_price", None),
            getattr(product, "product_price", None),
        )
    )


def product_has_fees(product: Any) -> bool:
    """A line is billable when it carries a sample fee or a unit price."""
    return (
        to_amount(getattr(product, "sample_fee", None)) > ZERO
        or effective_unit_price(product) > ZERO
    )


def selected_shipping_method(product: Any) -> Optional[ShippingMethod]:
    method = normalize_tag(getattr(product, "selected_shipping_method", None))
    if method == ShippingMethod.AIR.value:
        return ShippingMethod.AIR
    if method == ShippingMethod.BOAT.value:
        return ShippingMethod.BOAT
    return None


def has_shipping_selected(product: Any) -> bool:
    """
    Check if a shipping method is chosen and priced for the client.

    Only the client-facing price of the selected method counts; a cost-only
    shipping quote is not yet invoiceable.
    """
    method = selected_shipping_method(product)
    if method is ShippingMethod.AIR:
        return to_amount(getattr(product, "client_shipping_air_price", None)) > ZERO
    if method is ShippingMethod.BOAT:
        return to_amount(getattr(product, "client_shipping_boat_price", None)) > ZERO
    return False


def is_sample_active(order: Any) -> bool:
    """Order-level sample workflow is required and not opted out."""
    if not getattr(order, "sample_required", False):
        return False
    status = normalize_tag(getattr(order, "sample_status", None))
    return status is not None and status != SampleStatus.NO_SAMPLE.value


def is_sample_routed_to(order: Any, party: RoutedTo) -> bool:
    """Active order-level sample currently held by ``party``."""
    return (
        is_sample_active(order)
        and normalize_tag(getattr(order, "sample_routed_to", None)) == party.value
    )


def is_order_sample_approved(order: Any) -> bool:
    return (
        normalize_tag(getattr(order, "sample_status", None))
        in SAMPLE_APPROVED_STATUSES
    )


def is_line_sample_approved(product: Any) -> bool:
    return (
        normalize_tag(getattr(product, "sample_status", None))
        in SAMPLE_APPROVED_STATUSES
    )


def is_production_stage(product: Any) -> bool:
    """Line is at or past approval for production."""
    return is_production_status(getattr(product, "product_status", None))


def is_approved_for_production(product: Any) -> bool:
    return (
        normalize_tag(getattr(product, "product_status", None))
        in APPROVED_FOR_PRODUCTION_STATUSES
    )


def is_in_production(product: Any) -> bool:
    return (
        normalize_tag(getattr(product, "product_status", None))
        == ProductStatus.IN_PRODUCTION.value
    )


def is_shipped(product: Any) -> bool:
    return normalize_tag(getattr(product, "product_status", None)) in SHIPPED_STATUSES


def is_held_by(product: Any, party: RoutedTo) -> bool:
    """
    Check if ``party`` can currently act on a line.

    A line is held when it is routed to the party and production has not
    been approved yet. Production-stage lines are held by nobody.
    """
    owner = classify(
        getattr(product, "routed_to", None),
        getattr(product, "product_status", None),
    )
    return owner is not ActionOwner.NONE and owner.value == party.value


def is_held_by_any(product: Any, parties: frozenset) -> bool:
    """Check if any of the routing party values in ``parties`` holds a line."""
    owner = classify(
        getattr(product, "routed_to", None),
        getattr(product, "product_status", None),
    )
    return owner is not ActionOwner.NONE and owner.value in parties


def is_invoice_ready(product: Any) -> bool:
    """Admin-held billable line still awaiting invoicing."""
    return is_held_by(product, RoutedTo.ADMIN) and product_has_fees(product)


def active_lines(order: Any) -> list:
    """Line items of an order that have not been soft-deleted."""
    products = getattr(order, "order_products", None) or []
    return [p for p in products if getattr(p, "deleted_at", None) is None]
