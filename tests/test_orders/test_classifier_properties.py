"""
Property tests over randomly generated order sets.

Orders are generated from a seeded ``random.Random`` so failures are
reproducible. Each property is checked for every role the classifier knows.
"""

import random
from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest

from conftest import TODAY, build_order, build_product
from orderflow.services.orders.classifier import OrderTabClassifier
from orderflow.services.orders.enums import OrderTab, ProductionSubTab, RoutedTo
from orderflow.services.orders.pricing import (
    calculate_order_fees,
    calculate_order_total,
    calculate_product_fees,
    calculate_product_total,
    days_since_invoice_ready,
    get_earliest_invoice_ready_date,
)
from orderflow.services.orders.predicates import (
    has_shipping_selected,
    is_held_by,
    is_invoice_ready,
    is_sample_active,
    product_has_fees,
)
from orderflow.services.orders.threshold import ShipQueueConfig, is_within_ship_threshold

SEEDS = range(20)
ROLES = ["admin", "super_admin", "manufacturer", "client", "order_creator", None]

ROUTING = ["admin", "manufacturer", "client", None]
PRODUCT_STATUSES = [
    "pending",
    "sent_to_manufacturer",
    "question_for_admin",
    "client_review",
    "approved_for_production",
    "ready_for_production",
    "in_production",
    "shipped",
    "completed",
    None,
]
SAMPLE_STATUSES = ["pending", "approved", "sample_approved", "no_sample", None]
AMOUNTS = [None, 0, 5, "12.5", -3, "abc"]
SHIPPING = ["air", "boat", None]

PRE_PRODUCTION = {
    "pending",
    "sent_to_manufacturer",
    "question_for_admin",
    "client_review",
    None,
}


def random_product(rng: random.Random):
    fields = {
        "routed_to": rng.choice(ROUTING),
        "product_status": rng.choice(PRODUCT_STATUSES),
        "sample_status": rng.choice(SAMPLE_STATUSES),
        "selected_shipping_method": rng.choice(SHIPPING),
        "estimated_ship_date": rng.choice(
            [None, TODAY, TODAY + timedelta(days=2), TODAY + timedelta(days=6)]
        ),
    }
    for name in (
        "product_price",
        "client_product_price",
        "sample_fee",
        "shipping_air_price",
        "client_shipping_air_price",
        "shipping_boat_price",
        "client_shipping_boat_price",
    ):
        fields[name] = rng.choice(AMOUNTS)
    if rng.random() < 0.7:
        fields["order_items"] = [
            {"quantity": rng.choice([None, -1, 0, 1, 3])}
            for _ in range(rng.randint(0, 3))
        ]
    if rng.random() < 0.1:
        fields["deleted_at"] = "2026-01-01T00:00:00+00:00"
    return build_product(**fields)


def random_orders(seed: int) -> list:
    rng = random.Random(seed)
    return [
        build_order(
            *[random_product(rng) for _ in range(rng.randint(0, 4))],
            sample_required=rng.random() < 0.5,
            sample_status=rng.choice(SAMPLE_STATUSES),
            sample_routed_to=rng.choice(ROUTING),
        )
        for _ in range(rng.randint(1, 8))
    ]


def classifier_for(role):
    return OrderTabClassifier(role, TODAY, ShipQueueConfig(threshold_days=3))


def live_lines(order):
    return [p for p in order.order_products if p.deleted_at is None]


# ============================================================================
# Count / membership consistency
# ============================================================================


@pytest.mark.parametrize("seed", SEEDS)
@pytest.mark.parametrize("role", ROLES)
def test_counts_match_membership(seed, role):
    orders = random_orders(seed)
    classifier = classifier_for(role)
    counts = classifier.count_tabs(orders).model_dump()

    selectors = {
        "my_orders": (OrderTab.MY_ORDERS, None),
        "invoice_approval": (OrderTab.INVOICE_APPROVAL, None),
        "sent_to_other": (OrderTab.SENT_TO_OTHER, None),
        "sample_approved": (OrderTab.PRODUCTION_STATUS, ProductionSubTab.SAMPLE_APPROVED),
        "approved_for_production": (
            OrderTab.PRODUCTION_STATUS,
            ProductionSubTab.APPROVED_FOR_PRODUCTION,
        ),
        "in_production": (OrderTab.PRODUCTION_STATUS, ProductionSubTab.IN_PRODUCTION),
        "ready_to_ship": (OrderTab.READY_TO_SHIP, None),
        "shipped": (OrderTab.SHIPPED, None),
    }
    for key, (tab, sub_tab) in selectors.items():
        members = classifier.filter_orders(orders, tab, sub_tab)
        unit_total = sum(
            len(classifier.matching_units(o, tab, sub_tab)) for o in orders
        )

        assert counts[key] == unit_total
        assert (counts[key] > 0) == bool(members)
        assert all(classifier.is_member(o, tab, sub_tab) for o in members)

    assert counts["production_total"] == (
        counts["sample_approved"]
        + counts["approved_for_production"]
        + counts["in_production"]
    )


@pytest.mark.parametrize("seed", SEEDS)
@pytest.mark.parametrize("role", ["admin", "manufacturer", "client"])
def test_line_tab_counts_match_independent_oracle(seed, role):
    orders = random_orders(seed)
    counts = classifier_for(role).count_tabs(orders)
    lines = [p for o in orders for p in live_lines(o)]

    assert counts.shipped == sum(p.product_status in {"shipped", "completed"} for p in lines)
    assert counts.in_production == sum(p.product_status == "in_production" for p in lines)
    assert counts.approved_for_production == sum(
        p.product_status in {"approved_for_production", "ready_for_production"}
        for p in lines
    )

    invoice_ready = [
        p
        for p in lines
        if p.routed_to == "admin"
        and p.product_status in PRE_PRODUCTION
        and (
            (p.sample_fee or Decimal("0")) > 0
            or (
                p.client_product_price
                if p.client_product_price is not None
                else (p.product_price or Decimal("0"))
            )
            > 0
        )
    ]
    expected_invoice = len(invoice_ready) if role in {"admin", "client"} else 0
    assert counts.invoice_approval == expected_invoice

    if role == "manufacturer":
        assert counts.ready_to_ship == sum(
            p.product_status == "in_production"
            and is_within_ship_threshold(p.estimated_ship_date, 3, TODAY)
            for p in lines
        )
    else:
        assert counts.ready_to_ship == 0


# ============================================================================
# Mutual exclusion
# ============================================================================


@pytest.mark.parametrize("seed", SEEDS)
@pytest.mark.parametrize("role", ROLES)
def test_my_orders_and_sent_to_other_are_exclusive(seed, role):
    classifier = classifier_for(role)

    for order in random_orders(seed):
        assert not (
            classifier.is_member(order, OrderTab.MY_ORDERS)
            and classifier.is_member(order, OrderTab.SENT_TO_OTHER)
        )


@pytest.mark.parametrize("seed", SEEDS)
def test_admin_action_queues_partition_held_lines(seed):
    classifier = classifier_for("admin")

    for order in random_orders(seed):
        held = {str(p.id) for p in live_lines(order) if is_held_by(p, RoutedTo.ADMIN)}
        my_orders = set(classifier.matching_units(order, OrderTab.MY_ORDERS))
        invoice = set(classifier.matching_units(order, OrderTab.INVOICE_APPROVAL))
        line_units = {u for u in my_orders if not u.startswith("sample:")}

        assert not line_units & invoice
        assert line_units | invoice == held


# ============================================================================
# Non-negativity and totality
# ============================================================================


@pytest.mark.parametrize("seed", SEEDS)
def test_amounts_are_never_negative(seed, clock):
    for order in random_orders(seed):
        assert calculate_order_fees(order) >= 0
        for role in ROLES:
            assert calculate_order_total(order, role) >= 0
        for product in order.order_products:
            assert calculate_product_fees(product) >= 0
            assert calculate_product_total(product, "admin") >= 0
            assert calculate_product_total(product, "manufacturer") >= 0
        ready_at = get_earliest_invoice_ready_date(order)
        assert days_since_invoice_ready(ready_at, clock.now()) >= 0


@pytest.mark.parametrize("seed", SEEDS)
def test_predicates_are_total_over_partial_objects(seed):
    rng = random.Random(seed)
    fields = {
        "id": str(uuid4()),
        "routed_to": "admin",
        "product_status": "pending",
        "sample_fee": 4,
        "client_product_price": "abc",
        "selected_shipping_method": "air",
        "client_shipping_air_price": None,
        "sample_required": True,
        "sample_status": "pending",
        "order_items": [],
    }
    kept = {k: v for k, v in fields.items() if rng.random() < 0.5}
    partial = SimpleNamespace(**kept)

    assert product_has_fees(partial) in {True, False}
    assert has_shipping_selected(partial) in {True, False}
    assert is_sample_active(partial) in {True, False}
    assert is_invoice_ready(partial) in {True, False}
    assert calculate_product_fees(partial) >= 0
    assert calculate_product_total(partial, "admin") >= 0


@pytest.mark.parametrize("seed", SEEDS)
@pytest.mark.parametrize("role", ROLES)
def test_classifier_is_total_over_partial_objects(seed, role):
    rng = random.Random(seed)
    fields = {
        "id": str(uuid4()),
        "routed_to": rng.choice(["admin", "manufacturer"]),
        "product_status": rng.choice(["pending", "in_production", "shipped"]),
        "sample_status": "approved",
        "estimated_ship_date": TODAY,
    }
    kept = {k: v for k, v in fields.items() if rng.random() < 0.6}
    order = SimpleNamespace(id=str(uuid4()), order_products=[SimpleNamespace(**kept)])

    counts = classifier_for(role).count_tabs([order])

    assert all(value >= 0 for value in counts.model_dump().values())


def test_manufacturer_ready_to_ship_without_ship_date():
    line = SimpleNamespace(
        id="p-1", routed_to="manufacturer", product_status="in_production"
    )
    order = SimpleNamespace(id="o-1", order_products=[line])

    counts = classifier_for("manufacturer").count_tabs([order])

    assert counts.in_production == 1
    assert counts.ready_to_ship == 0
