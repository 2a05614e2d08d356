"""Order, routing, role and worklist enums.

This module defines the enums shared by the classification core: order
lifecycle status, per-line production status, routing party, sample status,
actor roles, worklist tabs and the pricing view selected per request.

Status values arrive from the datastore as plain strings and may include
values not listed here. Membership checks therefore go through the value
sets at the bottom of this module (``frozenset`` of ``str``) rather than
through sets of enum members.
"""

from enum import Enum
from typing import Optional


class OrderStatus(str, Enum):
    """Order lifecycle status.

    ``IN_PROGRESS`` is the catch-all used by the newer creation flow in place
    of the granular submission states.
    """

    DRAFT = "draft"
    SUBMITTED_TO_MANUFACTURER = "submitted_to_manufacturer"
    PRICED_BY_MANUFACTURER = "priced_by_manufacturer"
    SUBMITTED_TO_CLIENT = "submitted_to_client"
    CLIENT_APPROVED = "client_approved"
    READY_FOR_PRODUCTION = "ready_for_production"
    IN_PRODUCTION = "in_production"
    COMPLETED = "completed"
    IN_PROGRESS = "in_progress"
    REJECTED = "rejected"

    @classmethod
    def from_string(cls, value: str) -> "OrderStatus":
        """Convert string to OrderStatus enum.

        Args:
            value: String representation of status

        Returns:
            OrderStatus enum value

        Raises:
            ValueError: If value is not a valid status
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            valid_values = ", ".join([s.value for s in cls])
            raise ValueError(
                f"Invalid order status: {value}. "
                f"Valid values are: {valid_values}"
            )

    @property
    def display_name(self) -> str:
        """Human-readable workflow label."""
        return ORDER_STATUS_LABELS.get(self.value, self.value)


class ProductStatus(str, Enum):
    """Production-lifecycle stage of a single order line.

    ``APPROVED_FOR_PRODUCTION`` and ``READY_FOR_PRODUCTION`` are synonyms
    written by different flows.
    """

    PENDING = "pending"
    SENT_TO_MANUFACTURER = "sent_to_manufacturer"
    QUESTION_FOR_ADMIN = "question_for_admin"
    CLIENT_REVIEW = "client_review"
    APPROVED_FOR_PRODUCTION = "approved_for_production"
    READY_FOR_PRODUCTION = "ready_for_production"
    IN_PRODUCTION = "in_production"
    SHIPPED = "shipped"
    COMPLETED = "completed"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["ProductStatus"]:
        """Tolerant conversion; unknown or missing values give None."""
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None

    def is_production_stage(self) -> bool:
        """Check if the line is at or past approval for production."""
        return self.value in PRODUCTION_STAGE_STATUSES

    def is_exception(self) -> bool:
        """Check if the line is parked in an exception state."""
        return self in {
            ProductStatus.QUESTION_FOR_ADMIN,
            ProductStatus.CLIENT_REVIEW,
        }


class RoutedTo(str, Enum):
    """Party currently holding an order line (or sample) for action."""

    ADMIN = "admin"
    MANUFACTURER = "manufacturer"
    CLIENT = "client"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["RoutedTo"]:
        """Tolerant conversion; unknown or missing values give None."""
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class SampleStatus(str, Enum):
    """Status of the pre-production sample sub-workflow."""

    PENDING = "pending"
    APPROVED = "approved"
    SAMPLE_APPROVED = "sample_approved"
    NO_SAMPLE = "no_sample"
    IN_PROGRESS = "in_progress"
    REJECTED = "rejected"


class ShippingMethod(str, Enum):
    """Shipping method selected for a line."""

    AIR = "air"
    BOAT = "boat"


class ActorRole(str, Enum):
    """Role tag supplied explicitly with every classification request."""

    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    MANUFACTURER = "manufacturer"
    CLIENT = "client"
    ORDER_CREATOR = "order_creator"

    @classmethod
    def parse(cls, value: "Optional[str | ActorRole]") -> Optional["ActorRole"]:
        """Tolerant conversion; unknown or missing roles give None."""
        if isinstance(value, ActorRole):
            return value
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None

    def is_admin(self) -> bool:
        """Admin and super-admin are the same class for classification."""
        return self in {ActorRole.ADMIN, ActorRole.SUPER_ADMIN}

    def is_manufacturer(self) -> bool:
        return self == ActorRole.MANUFACTURER

    def is_client(self) -> bool:
        return self == ActorRole.CLIENT

    @property
    def own_party(self) -> Optional[RoutedTo]:
        """Routing party whose lines this role acts on."""
        if self.is_admin():
            return RoutedTo.ADMIN
        if self.is_manufacturer():
            return RoutedTo.MANUFACTURER
        if self.is_client():
            return RoutedTo.CLIENT
        return None

    @property
    def other_parties(self) -> frozenset:
        """Routing parties counted as "sent to other" for this role."""
        if self.is_admin():
            return frozenset({RoutedTo.MANUFACTURER.value})
        if self.is_manufacturer():
            return frozenset({RoutedTo.ADMIN.value})
        if self.is_client():
            return frozenset({RoutedTo.ADMIN.value, RoutedTo.MANUFACTURER.value})
        return frozenset()


class ActionOwner(str, Enum):
    """Who can act on a line given its routing and production stage."""

    ADMIN = "admin"
    MANUFACTURER = "manufacturer"
    CLIENT = "client"
    NONE = "none"


class OrderTab(str, Enum):
    """Top-level worklist tabs."""

    MY_ORDERS = "my_orders"
    INVOICE_APPROVAL = "invoice_approval"
    SENT_TO_OTHER = "sent_to_other"
    PRODUCTION_STATUS = "production_status"
    READY_TO_SHIP = "ready_to_ship"
    SHIPPED = "shipped"

    @classmethod
    def from_string(cls, value: str) -> "OrderTab":
        """Convert string to OrderTab enum.

        Raises:
            ValueError: If value is not a valid tab
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            valid_values = ", ".join([t.value for t in cls])
            raise ValueError(
                f"Invalid tab: {value}. Valid values are: {valid_values}"
            )


class ProductionSubTab(str, Enum):
    """Sub-tabs under the production status tab."""

    SAMPLE_APPROVED = "sample_approved"
    APPROVED_FOR_PRODUCTION = "approved_for_production"
    IN_PRODUCTION = "in_production"

    @classmethod
    def from_string(cls, value: str) -> "ProductionSubTab":
        """Convert string to ProductionSubTab enum.

        Raises:
            ValueError: If value is not a valid sub-tab
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            valid_values = ", ".join([t.value for t in cls])
            raise ValueError(
                f"Invalid production sub-tab: {value}. "
                f"Valid values are: {valid_values}"
            )


class PricingView(str, Enum):
    """Which price columns a request is allowed to see.

    Selected once per request from the actor role and threaded into every
    calculator call.
    """

    CLIENT_FACING = "client_facing"
    COST = "cost"
    NONE = "none"

    @classmethod
    def for_role(cls, role: "Optional[str | ActorRole]") -> "PricingView":
        """Admin-class actors see client prices, manufacturers see cost."""
        actor = ActorRole.parse(role)
        if actor is None:
            return cls.NONE
        if actor.is_admin():
            return cls.CLIENT_FACING
        if actor.is_manufacturer():
            return cls.COST
        return cls.NONE


class NotificationType(str, Enum):
    """Type tag carried by outbound work notifications."""

    NEW_ORDER = "new_order"
    PRODUCT_UPDATE = "product_update"
    SAMPLE_READY = "sample_ready"
    APPROVAL_NEEDED = "approval_needed"


# Value sets used for membership checks against raw datastore strings
PRODUCTION_STAGE_STATUSES: frozenset = frozenset({
    ProductStatus.APPROVED_FOR_PRODUCTION.value,
    ProductStatus.READY_FOR_PRODUCTION.value,
    ProductStatus.IN_PRODUCTION.value,
    ProductStatus.SHIPPED.value,
    ProductStatus.COMPLETED.value,
})

APPROVED_FOR_PRODUCTION_STATUSES: frozenset = frozenset({
    ProductStatus.APPROVED_FOR_PRODUCTION.value,
    ProductStatus.READY_FOR_PRODUCTION.value,
})

SHIPPED_STATUSES: frozenset = frozenset({
    ProductStatus.SHIPPED.value,
    ProductStatus.COMPLETED.value,
})

SAMPLE_APPROVED_STATUSES: frozenset = frozenset({
    SampleStatus.APPROVED.value,
    SampleStatus.SAMPLE_APPROVED.value,
})

ORDER_STATUS_LABELS: dict[str, str] = {
    OrderStatus.DRAFT.value: "Draft",
    OrderStatus.SUBMITTED_TO_MANUFACTURER.value: "Sent to Manufacturer",
    OrderStatus.PRICED_BY_MANUFACTURER.value: "Priced",
    OrderStatus.SUBMITTED_TO_CLIENT.value: "Sent to Client",
    OrderStatus.CLIENT_APPROVED.value: "Client Approved",
    OrderStatus.READY_FOR_PRODUCTION.value: "Ready for Production",
    OrderStatus.IN_PRODUCTION.value: "In Production",
    OrderStatus.COMPLETED.value: "Completed",
    OrderStatus.IN_PROGRESS.value: "In Progress",
    OrderStatus.REJECTED.value: "Rejected",
}
