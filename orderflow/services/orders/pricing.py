"""
Fee and total calculations for order lines and orders.

Two families of calculations live here:

* Invoice fees (``calculate_product_fees`` / ``calculate_order_fees``) always
  use client-facing prices, falling back to cost when no client price has been
  stored. They drive the invoice-approval queue and are not role-sensitive.
* Role-scoped totals (``calculate_product_total`` / ``calculate_order_total``)
  take a ``PricingView`` selected once per request. Client-facing views never
  fall back to cost and cost views never see client prices.

All results are non-negative ``Decimal`` values; absent or negative stored
amounts count as zero.
"""

import math
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional, Union

from orderflow.core.logging import get_logger
from orderflow.services.orders.enums import (
    ActorRole,
    PricingView,
    RoutedTo,
    ShippingMethod,
)
from orderflow.services.orders.predicates import (
    ZERO,
    active_lines,
    effective_unit_price,
    get_product_quantity,
    is_invoice_ready,
    selected_shipping_method,
    to_amount,
)
from orderflow.services.orders.state_machine import normalize_tag

logger = get_logger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60

ViewOrRole = Union[PricingView, ActorRole, str, None]


def _resolve_view(view: ViewOrRole) -> PricingView:
    if isinstance(view, PricingView):
        return view
    if isinstance(view, str):
        try:
            return PricingView(view)
        except ValueError:
            pass
    return PricingView.for_role(view)


def _client_shipping_price(product: Any) -> Decimal:
    """Client shipping price for the selected method, no fallback."""
    method = selected_shipping_method(product)
    if method is ShippingMethod.AIR:
        return to_amount(getattr(product, "client_shipping_air_price", None))
    if method is ShippingMethod.BOAT:
        return to_amount(getattr(product, "client_shipping_boat_price", None))
    return ZERO


def _cost_shipping_price(product: Any) -> Decimal:
    method = selected_shipping_method(product)
    if method is ShippingMethod.AIR:
        return to_amount(getattr(product, "shipping_air_price", None))
    if method is ShippingMethod.BOAT:
        return to_amount(getattr(product, "shipping_boat_price", None))
    return ZERO


def _invoice_shipping_price(product: Any) -> Decimal:
    """Client shipping price, falling back to cost when none is stored."""
    method = selected_shipping_method(product)
    if method is ShippingMethod.AIR:
        client, cost = "client_shipping_air_price", "shipping_air_price"
    elif method is ShippingMethod.BOAT:
        client, cost = "client_shipping_boat_price", "shipping_boat_price"
    else:
        return ZERO

    value = getattr(product, client, None)
    if value is None:
        value = getattr(product, cost, None)
    return to_amount(value)


def calculate_product_fees(product: Any) -> Decimal:
    """
    Calculate the invoiceable amount of a single line.

    Sums the sample fee, the effective client unit price times the total
    quantity, and the client shipping price for the selected method.

    Args:
        product: Order line snapshot

    Returns:
        Non-negative fee total
    """
    fees = to_amount(getattr(product, "sample_fee", None))
    fees += effective_unit_price(product) * get_product_quantity(product)
    fees += _invoice_shipping_price(product)
    return fees


def calculate_product_total(product: Any, view: ViewOrRole) -> Decimal:
    """
    Calculate a line total in the price columns the view may see.

    Args:
        product: Order line snapshot
        view: PricingView, or a role tag the view is derived from

    Returns:
        Non-negative total; zero for views without price access
    """
    pricing_view = _resolve_view(view)

    if pricing_view is PricingView.CLIENT_FACING:
        unit_price = to_amount(getattr(product, "client_product_price", None))
        shipping = _client_shipping_price(product)
    elif pricing_view is PricingView.COST:
        unit_price = to_amount(getattr(product, "product_price", None))
        shipping = _cost_shipping_price(product)
    else:
        return ZERO

    sample_fee = to_amount(getattr(product, "sample_fee", None))
    return unit_price * get_product_quantity(product) + shipping + sample_fee


def calculate_order_total(order: Any, view: ViewOrRole) -> Decimal:
    """Sum of role-scoped line totals over every active line."""
    pricing_view = _resolve_view(view)
    return sum(
        (calculate_product_total(p, pricing_view) for p in active_lines(order)),
        ZERO,
    )


def calculate_order_fees(order: Any) -> Decimal:
    """Sum of invoice fees over lines currently routed to admin."""
    return sum(
        (
            calculate_product_fees(p)
            for p in active_lines(order)
            if normalize_tag(getattr(p, "routed_to", None)) == RoutedTo.ADMIN.value
        ),
        ZERO,
    )


def get_earliest_invoice_ready_date(order: Any) -> Optional[datetime]:
    """
    Find when the order first had a line waiting for invoicing.

    Args:
        order: Order snapshot

    Returns:
        Earliest ``routed_at`` among admin-held, billable, pre-production
        lines, or None when no such line has a routing timestamp
    """
    dates = [
        p.routed_at
        for p in active_lines(order)
        if is_invoice_ready(p) and getattr(p, "routed_at", None) is not None
    ]
    if not dates:
        return None
    return min(dates, key=_as_aware)


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def days_since_invoice_ready(
    ready_at: Optional[datetime],
    now: datetime,
) -> int:
    """
    Whole days a line has waited for invoicing, rounded up.

    Args:
        ready_at: Routing timestamp, naive values are taken as UTC
        now: Current time supplied by the caller's clock

    Returns:
        Ceiling of elapsed days, 0 when ``ready_at`` is absent
    """
    if ready_at is None:
        return 0
    elapsed = abs((_as_aware(now) - _as_aware(ready_at)).total_seconds())
    return math.ceil(elapsed / SECONDS_PER_DAY)


def calculate_margin(cost: Any, client_price: Any) -> int:
    """
    Markup of the client price over cost, as a rounded percentage.

    Returns 0 when cost is absent or zero.
    """
    cost_amount = to_amount(cost)
    if cost_amount == ZERO:
        return 0
    margin = (to_amount(client_price) - cost_amount) / cost_amount * 100
    return int(margin.to_integral_value(rounding=ROUND_HALF_UP))


class OrderPricingCalculator:
    """
    Per-request calculator bound to a single pricing view.

    Built once from the actor role and passed to every consumer that needs
    totals, so role checks are not repeated per call.
    """

    def __init__(self, view: PricingView):
        self.view = view

    @classmethod
    def for_role(cls, role: "Optional[str | ActorRole]") -> "OrderPricingCalculator":
        view = PricingView.for_role(role)
        logger.debug(
            "Pricing view selected",
            role=getattr(role, "value", role),
            view=view.value,
        )
        return cls(view)

    def product_total(self, product: Any) -> Decimal:
        return calculate_product_total(product, self.view)

    def order_total(self, order: Any) -> Decimal:
        return calculate_order_total(order, self.view)

    def product_fees(self, product: Any) -> Decimal:
        return calculate_product_fees(product)

    def order_fees(self, order: Any) -> Decimal:
        return calculate_order_fees(order)
