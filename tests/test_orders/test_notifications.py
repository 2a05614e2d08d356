"""
Tests for the routing notification rule.

The notification rule must agree with the classifier on what counts as new
work for a receiving party.
"""

import pytest

from orderflow.services.orders.enums import NotificationType, RoutedTo
from orderflow.services.orders.notifications import (
    RoutingChange,
    build_routing_notification,
    is_new_work_for,
)
from orderflow.services.orders.predicates import is_held_by

PRODUCT_STATUSES = [
    "pending",
    "sent_to_manufacturer",
    "question_for_admin",
    "client_review",
    "approved_for_production",
    "in_production",
    "shipped",
    None,
]


# ============================================================================
# is_new_work_for
# ============================================================================


class TestIsNewWorkFor:
    """Test the shared new-work predicate."""

    @pytest.mark.parametrize(
        "role,routed_to,product_status,expected",
        [
            ("manufacturer", "manufacturer", "sent_to_manufacturer", True),
            ("manufacturer", "manufacturer", "in_production", False),
            ("manufacturer", "admin", "pending", False),
            ("admin", "admin", "question_for_admin", True),
            ("super_admin", "admin", "pending", True),
            ("client", "client", "client_review", True),
            ("order_creator", "admin", "pending", False),
            (None, "admin", "pending", False),
        ],
    )
    def test_is_new_work_for(self, role, routed_to, product_status, expected):
        assert is_new_work_for(role, routed_to, product_status) is expected

    @pytest.mark.parametrize("party", list(RoutedTo))
    @pytest.mark.parametrize("routed_to", ["admin", "manufacturer", "client", None])
    @pytest.mark.parametrize("product_status", PRODUCT_STATUSES)
    def test_agrees_with_classifier_holding_rule(
        self, make_product, party, routed_to, product_status
    ):
        line = make_product(routed_to=routed_to, product_status=product_status)

        assert is_new_work_for(party.value, routed_to, product_status) is is_held_by(
            line, party
        )


# ============================================================================
# build_routing_notification
# ============================================================================


class TestBuildRoutingNotification:
    """Test notification drafts for routing changes."""

    def test_line_routed_to_manufacturer(self):
        change = RoutingChange(
            order_id="o-1",
            order_number="HAL-001203",
            order_product_id="p-1",
            product_order_number="HAL-001203-01",
            previous_routed_to="admin",
            routed_to="manufacturer",
            product_status="sent_to_manufacturer",
        )

        draft = build_routing_notification(change, "user-9")

        assert draft is not None
        assert draft.user_id == "user-9"
        assert draft.order_id == "o-1"
        assert draft.order_product_id == "p-1"
        assert draft.type is NotificationType.PRODUCT_UPDATE
        assert draft.message == "Product routed to you: HAL-001203-01 - Order HAL-001203"
        assert draft.is_read is False

    def test_new_order(self):
        change = RoutingChange(
            order_id="o-1",
            routed_to="manufacturer",
            previous_routed_to="manufacturer",
            product_status="pending",
            is_new_order=True,
        )

        draft = build_routing_notification(change, "user-9")

        assert draft.type is NotificationType.NEW_ORDER
        assert draft.message == "New order received"

    def test_sample_routing_ignores_line_status(self):
        change = RoutingChange(
            order_id="o-1",
            routed_to="admin",
            previous_routed_to="manufacturer",
            product_status="in_production",
            product_order_number="X-01",
            is_sample=True,
        )

        draft = build_routing_notification(change, "user-1")

        assert draft.type is NotificationType.SAMPLE_READY
        assert draft.message == "Sample routed to you"

    @pytest.mark.parametrize(
        "routed_to,product_status",
        [("client", "client_review"), ("admin", "client_review")],
    )
    def test_approval_needed(self, routed_to, product_status):
        change = RoutingChange(
            order_id="o-1", routed_to=routed_to, product_status=product_status
        )

        draft = build_routing_notification(change, "user-1")

        assert draft.type is NotificationType.APPROVAL_NEEDED

    @pytest.mark.parametrize(
        "change,recipient",
        [
            (RoutingChange(order_id="o-1", routed_to="admin"), None),
            (RoutingChange(order_id="o-1", routed_to="warehouse"), "u"),
            (
                RoutingChange(
                    order_id="o-1", routed_to="admin", previous_routed_to="Admin"
                ),
                "u",
            ),
            (
                RoutingChange(
                    order_id="o-1",
                    routed_to="manufacturer",
                    product_status="in_production",
                ),
                "u",
            ),
        ],
    )
    def test_no_notification(self, change, recipient):
        assert build_routing_notification(change, recipient) is None
