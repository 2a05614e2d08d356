"""Routing/production combination table and action-owner classification.

An order line carries two independent axes: ``routed_to`` (which party holds
it) and ``product_status`` (how far production has progressed). This module
keeps the table of combinations that are expected to occur and a pure
``classify`` function mapping any pair to the party that can act on the line.

Illegal combinations are representable: ``inspect_line`` flags them instead
of raising, so classification stays total over whatever the datastore holds.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from orderflow.core.logging import get_logger
from orderflow.services.orders.enums import (
    PRODUCTION_STAGE_STATUSES,
    ActionOwner,
    ProductStatus,
    RoutedTo,
)

logger = get_logger(__name__)


# Pre-production statuses each routing party may legitimately hold.
# Production-stage statuses are valid under any routing.
VALID_COMBINATIONS: dict[RoutedTo, frozenset[ProductStatus]] = {
    RoutedTo.ADMIN: frozenset({
        ProductStatus.PENDING,
        ProductStatus.QUESTION_FOR_ADMIN,
        ProductStatus.CLIENT_REVIEW,
    }),
    RoutedTo.MANUFACTURER: frozenset({
        ProductStatus.PENDING,
        ProductStatus.SENT_TO_MANUFACTURER,
    }),
    RoutedTo.CLIENT: frozenset({
        ProductStatus.PENDING,
        ProductStatus.CLIENT_REVIEW,
    }),
}

_OWNER_BY_ROUTING: dict[str, ActionOwner] = {
    RoutedTo.ADMIN.value: ActionOwner.ADMIN,
    RoutedTo.MANUFACTURER.value: ActionOwner.MANUFACTURER,
    RoutedTo.CLIENT.value: ActionOwner.CLIENT,
}


@dataclass(frozen=True)
class LineClassification:
    """Action owner of a line and whether its axes form a known combination."""

    owner: ActionOwner
    valid: bool


def normalize_tag(value: Any) -> Optional[str]:
    """Reduce an enum member or raw string to its lower-case value."""
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    return str(value).strip().lower() or None


def is_production_status(product_status: Any) -> bool:
    """Check if a status is at or past approval for production."""
    return normalize_tag(product_status) in PRODUCTION_STAGE_STATUSES


def classify(routed_to: Any, product_status: Any) -> ActionOwner:
    """
    Determine which party can act on a line.

    Args:
        routed_to: Routing party (enum member, raw string or None)
        product_status: Production status (enum member, raw string or None)

    Returns:
        ActionOwner.NONE once production has been approved or when the
        routing party is unknown, otherwise the routing party
    """
    if is_production_status(product_status):
        return ActionOwner.NONE
    return _OWNER_BY_ROUTING.get(normalize_tag(routed_to), ActionOwner.NONE)


def is_valid_combination(routed_to: Any, product_status: Any) -> bool:
    """
    Check a (routing, status) pair against the combination table.

    Missing or unrecognised statuses are treated as pre-production and are
    valid under any known routing. Unknown routing is valid only for
    production-stage lines, where routing no longer matters.
    """
    if is_production_status(product_status):
        return True

    routing = RoutedTo.parse(normalize_tag(routed_to))
    if routing is None:
        return False

    status = ProductStatus.parse(normalize_tag(product_status))
    if status is None:
        return True
    return status in VALID_COMBINATIONS[routing]


def inspect_line(product: Any) -> LineClassification:
    """
    Classify a line and flag illegal routing/status pairs.

    Args:
        product: Any object exposing ``routed_to`` and ``product_status``

    Returns:
        LineClassification with the action owner and validity flag
    """
    routed_to = getattr(product, "routed_to", None)
    product_status = getattr(product, "product_status", None)

    owner = classify(routed_to, product_status)
    valid = is_valid_combination(routed_to, product_status)

    if not valid:
        logger.debug(
            "Unexpected routing/status combination",
            product_id=getattr(product, "id", None),
            routed_to=normalize_tag(routed_to),
            product_status=normalize_tag(product_status),
        )

    return LineClassification(owner=owner, valid=valid)
