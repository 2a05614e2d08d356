"""
Routing notification rule.

When a line (or the order-level sample) is routed to a party, the party gets
a notification only if the line now sits in one of its action queues. The
rule is the same ``classify`` check the tab classifier uses, so a
notification is raised exactly when new work appears in the receiver's
``my_orders``/``invoice_approval`` queues.
"""

from typing import Any, Optional, Protocol

from pydantic import BaseModel

from orderflow.services.orders.enums import (
    ActionOwner,
    ActorRole,
    NotificationType,
    ProductStatus,
    RoutedTo,
)
from orderflow.services.orders.state_machine import classify, normalize_tag


class NotificationError(Exception):
    """Raised by notifiers when a notification cannot be stored or sent."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


class RoutingChange(BaseModel):
    """A routing transition of one line or of the order-level sample."""

    order_id: str
    order_number: Optional[str] = None
    order_product_id: Optional[str] = None
    product_order_number: Optional[str] = None
    previous_routed_to: Optional[str] = None
    routed_to: Optional[str] = None
    product_status: Optional[str] = None
    is_new_order: bool = False
    is_sample: bool = False


class NotificationDraft(BaseModel):
    """Notification row ready to be stored for a receiving user."""

    user_id: str
    order_id: str
    order_product_id: Optional[str] = None
    type: NotificationType
    message: str
    is_read: bool = False


class Notifier(Protocol):
    """Outbound notification sink."""

    async def notify(self, draft: NotificationDraft) -> None: ...


def is_new_work_for(
    role: "Optional[str | ActorRole]",
    routed_to: Any,
    product_status: Any,
) -> bool:
    """
    Check if a line with this routing and status is actionable by the role.

    Args:
        role: Receiving actor role
        routed_to: Routing party of the line
        product_status: Production status of the line

    Returns:
        True when the line lands in one of the role's action queues
    """
    actor = ActorRole.parse(role)
    if actor is None or actor.own_party is None:
        return False
    owner = classify(routed_to, product_status)
    return owner is not ActionOwner.NONE and owner.value == actor.own_party.value


def _notification_type(change: RoutingChange, receiver: RoutedTo) -> NotificationType:
    if change.is_new_order:
        return NotificationType.NEW_ORDER
    if change.is_sample:
        return NotificationType.SAMPLE_READY
    status = normalize_tag(change.product_status)
    if receiver is RoutedTo.CLIENT or status == ProductStatus.CLIENT_REVIEW.value:
        return NotificationType.APPROVAL_NEEDED
    return NotificationType.PRODUCT_UPDATE


_MESSAGES: dict[NotificationType, str] = {
    NotificationType.NEW_ORDER: "New order received",
    NotificationType.SAMPLE_READY: "Sample routed to you",
    NotificationType.APPROVAL_NEEDED: "Product awaiting your approval",
    NotificationType.PRODUCT_UPDATE: "Product routed to you",
}


def build_routing_notification(
    change: RoutingChange,
    recipient_id: Optional[str],
) -> Optional[NotificationDraft]:
    """
    Build the notification for the party a change was routed to.

    Returns None when there is no recipient, when the routing did not move
    to a new party, or when the line is not new work for the receiver.
    """
    if not recipient_id:
        return None

    receiver = RoutedTo.parse(change.routed_to)
    if receiver is None:
        return None

    previous = normalize_tag(change.previous_routed_to)
    if previous == receiver.value and not change.is_new_order:
        return None

    status = None if change.is_sample else change.product_status
    if not is_new_work_for(receiver.value, receiver.value, status):
        return None

    notification_type = _notification_type(change, receiver)
    message = _MESSAGES[notification_type]
    if change.product_order_number and not change.is_sample:
        message = f"{message}: {change.product_order_number}"
    if change.order_number:
        message = f"{message} - Order {change.order_number}"

    return NotificationDraft(
        user_id=str(recipient_id),
        order_id=change.order_id,
        order_product_id=change.order_product_id,
        type=notification_type,
        message=message,
    )
