"""
Pytest configuration and shared test fixtures.

This module provides the test client, a fixed clock, order snapshot
factories and a reset of the process-wide caches between tests.
"""

import os
from datetime import date, datetime, timezone
from typing import Any, Generator
from uuid import uuid4

os.environ.setdefault("ORDERFLOW_ENVIRONMENT", "test")

import pytest
from fastapi.testclient import TestClient

from orderflow.main import app
from orderflow.schemas.orders import OrderProductSnapshot, OrderSnapshot
from orderflow.services.orders.service import snapshot_cache
from orderflow.services.orders.threshold import FixedClock

TODAY = date(2026, 3, 10)
NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def build_product(**fields: Any) -> OrderProductSnapshot:
    """
    Build an order line snapshot.

    Defaults to a pending line routed to admin. ``quantity`` is a shortcut
    for a single variant row.
    """
    data: dict[str, Any] = {
        "id": str(uuid4()),
        "routed_to": "admin",
        "product_status": "pending",
    }
    quantity = fields.pop("quantity", None)
    if quantity is not None:
        data["order_items"] = [{"quantity": quantity}]
    data.update(fields)
    return OrderProductSnapshot(**data)


def build_order(*products: OrderProductSnapshot, **fields: Any) -> OrderSnapshot:
    """Build an order snapshot holding the given lines."""
    data: dict[str, Any] = {
        "id": str(uuid4()),
        "order_number": "ORD-001200",
        "status": "submitted_to_manufacturer",
        "order_products": list(products),
    }
    data.update(fields)
    return OrderSnapshot(**data)


@pytest.fixture
def make_product():
    """Factory for order line snapshots."""
    return build_product


@pytest.fixture
def make_order():
    """Factory for order snapshots."""
    return build_order


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def clock() -> FixedClock:
    """Clock pinned to noon UTC on the test day."""
    return FixedClock(NOW)


@pytest.fixture(scope="function")
def test_client() -> Generator[TestClient, None, None]:
    """
    Create a synchronous test client for FastAPI application.

    Yields:
        TestClient: Synchronous test client for FastAPI app
    """
    with TestClient(app) as client:
        yield client


@pytest.fixture(autouse=True)
def reset_app_state() -> Generator[None, None, None]:
    """
    Reset application state between tests.

    Clears the snapshot cache and dependency overrides so tests stay
    isolated.
    """
    snapshot_cache.clear()
    yield
    snapshot_cache.clear()
    app.dependency_overrides.clear()
