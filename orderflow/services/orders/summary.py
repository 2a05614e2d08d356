"""Per-order routing summary and line counts shown on list rows."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel

from orderflow.services.orders.enums import ActorRole, ProductStatus, RoutedTo
from orderflow.services.orders.predicates import active_lines
from orderflow.services.orders.state_machine import normalize_tag


class RoutingSummaryStatus(str, Enum):
    """Aggregate routing state of an order's lines."""

    NO_PRODUCTS = "no_products"
    NONE_ASSIGNED = "none_assigned"
    COMPLETED = "completed"
    IN_PRODUCTION = "in_production"
    WITH_MANUFACTURER = "with_manufacturer"
    ALL_WITH_ADMIN = "all_with_admin"
    ALL_WITH_MANUFACTURER = "all_with_manufacturer"
    SPLIT = "split"


class RoutingStatus(BaseModel):
    status: RoutingSummaryStatus
    label: str


class ProductCounts(BaseModel):
    """Line counts by holder and production stage."""

    total: int = 0
    with_admin: int = 0
    with_manufacturer: int = 0
    in_production: int = 0
    completed: int = 0


def _routing(product: Any) -> Optional[str]:
    return normalize_tag(getattr(product, "routed_to", None))


def _status(product: Any) -> Optional[str]:
    return normalize_tag(getattr(product, "product_status", None))


def get_order_routing_status(order: Any, role: "Optional[str | ActorRole]") -> RoutingStatus:
    """
    Summarise where an order's lines currently sit.

    Manufacturers only see the lines routed to them; every other role sees
    the full split between admin and manufacturer.
    """
    products = active_lines(order)
    if not products:
        return RoutingStatus(status=RoutingSummaryStatus.NO_PRODUCTS, label="No Products")

    actor = ActorRole.parse(role)
    if actor is not None and actor.is_manufacturer():
        mine = [p for p in products if _routing(p) == RoutedTo.MANUFACTURER.value]
        if not mine:
            return RoutingStatus(
                status=RoutingSummaryStatus.NONE_ASSIGNED, label="None Assigned"
            )
        if all(_status(p) == ProductStatus.COMPLETED.value for p in mine):
            return RoutingStatus(
                status=RoutingSummaryStatus.COMPLETED, label="All Completed"
            )
        if all(_status(p) == ProductStatus.IN_PRODUCTION.value for p in mine):
            return RoutingStatus(
                status=RoutingSummaryStatus.IN_PRODUCTION, label="In Production"
            )
        return RoutingStatus(
            status=RoutingSummaryStatus.WITH_MANUFACTURER,
            label=f"{len(mine)} With You",
        )

    if all(_status(p) == ProductStatus.COMPLETED.value for p in products):
        return RoutingStatus(status=RoutingSummaryStatus.COMPLETED, label="All Completed")
    if all(_status(p) == ProductStatus.IN_PRODUCTION.value for p in products):
        return RoutingStatus(
            status=RoutingSummaryStatus.IN_PRODUCTION, label="All In Production"
        )
    if all(_routing(p) == RoutedTo.ADMIN.value for p in products):
        return RoutingStatus(
            status=RoutingSummaryStatus.ALL_WITH_ADMIN, label="All With Admin"
        )
    if all(_routing(p) == RoutedTo.MANUFACTURER.value for p in products):
        return RoutingStatus(
            status=RoutingSummaryStatus.ALL_WITH_MANUFACTURER,
            label="All With Manufacturer",
        )

    with_admin = sum(1 for p in products if _routing(p) == RoutedTo.ADMIN.value)
    with_manufacturer = sum(
        1 for p in products if _routing(p) == RoutedTo.MANUFACTURER.value
    )
    return RoutingStatus(
        status=RoutingSummaryStatus.SPLIT,
        label=f"Split ({with_admin} Admin / {with_manufacturer} Mfr)",
    )


def get_product_counts(order: Any) -> ProductCounts:
    """
    Count lines by holder and stage.

    Unrouted lines count as held by admin. Lines in production or completed
    count toward neither holder.
    """
    if order is None:
        return ProductCounts()

    products = active_lines(order)
    finished = {ProductStatus.IN_PRODUCTION.value, ProductStatus.COMPLETED.value}

    return ProductCounts(
        total=len(products),
        with_admin=sum(
            1
            for p in products
            if _routing(p) in (RoutedTo.ADMIN.value, None) and _status(p) not in finished
        ),
        with_manufacturer=sum(
            1
            for p in products
            if _routing(p) == RoutedTo.MANUFACTURER.value and _status(p) not in finished
        ),
        in_production=sum(
            1 for p in products if _status(p) == ProductStatus.IN_PRODUCTION.value
        ),
        completed=sum(1 for p in products if _status(p) == ProductStatus.COMPLETED.value),
    )
