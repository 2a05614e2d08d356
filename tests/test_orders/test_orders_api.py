"""
Tests for the order worklist API endpoints.

The worklist service is replaced through FastAPI dependency overrides, so
these tests cover request parsing, actor headers, cleanup authorization and
the mapping of service errors onto HTTP responses.
"""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from orderflow.api import deps
from orderflow.api.deps import get_worklist_service
from orderflow.core.config import Settings
from orderflow.main import app
from orderflow.schemas.orders import OrderListResponse, OrderRow, TabCounts
from orderflow.services.orders.classifier import ClassificationError
from orderflow.services.orders.deletion import (
    DeletionInProgressError,
    DeletionReport,
    DeletionStepError,
    OrderStillReferencedError,
)
from orderflow.services.orders.repository import (
    OrderNotFoundError,
    OrderRepositoryError,
)
from orderflow.services.orders.service import (
    DraftCleanupResult,
    OrderPermissionError,
    OrderWorklistService,
)

ORDERS_URL = "/api/v1/orders"
ADMIN = {"X-Actor-Role": "admin", "X-Actor-Id": "admin-1"}
MANUFACTURER = {
    "X-Actor-Role": "manufacturer",
    "X-Actor-Id": "mfr-user",
    "X-Manufacturer-Id": "mfr-1",
}
CUTOFF = datetime(2026, 2, 23, 12, 0, tzinfo=timezone.utc)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def mock_service() -> MagicMock:
    """
    Create mock worklist service.

    Returns:
        MagicMock: Worklist service with async operations mocked
    """
    service = MagicMock(spec=OrderWorklistService)
    service.get_tab = AsyncMock()
    service.get_tab_counts = AsyncMock(return_value=TabCounts(my_orders=2))
    service.delete_order = AsyncMock()
    service.cleanup_stale_drafts = AsyncMock()
    service.count_stale_drafts = AsyncMock(return_value=(3, CUTOFF))
    return service


@pytest.fixture
def client(mock_service, test_client: TestClient) -> TestClient:
    app.dependency_overrides[get_worklist_service] = lambda: mock_service
    return test_client


@pytest.fixture
def cleanup_key(monkeypatch):
    """Require a bearer token for the cleanup endpoints."""
    settings = Settings(cleanup_api_key="s3cret")
    monkeypatch.setattr(deps, "get_settings", lambda: settings)
    return "s3cret"


def tab_response(tab: str = "my_orders") -> OrderListResponse:
    row = OrderRow(
        id="o-1",
        order_number="HAL-001203",
        status="submitted_to_manufacturer",
        routing_status="all_with_admin",
        order_total=Decimal("60"),
    )
    return OrderListResponse(
        tab=tab,
        total=1,
        orders=[row],
        counts=TabCounts(my_orders=1),
    )


# ============================================================================
# Actor headers
# ============================================================================


class TestActorHeaders:
    """Test actor identification from request headers."""

    def test_missing_role_is_rejected(self, client, mock_service):
        response = client.get(f"{ORDERS_URL}/tab-counts")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["detail"] == "X-Actor-Role header is required"
        mock_service.get_tab_counts.assert_not_awaited()

    def test_actor_is_built_from_headers(self, client, mock_service):
        response = client.get(f"{ORDERS_URL}/tab-counts", headers=MANUFACTURER)

        assert response.status_code == status.HTTP_200_OK
        actor = mock_service.get_tab_counts.call_args.args[0]
        assert actor.role == "manufacturer"
        assert actor.actor_id == "mfr-user"
        assert actor.manufacturer_id == "mfr-1"
        assert actor.client_id is None

    def test_role_is_normalised(self, client, mock_service):
        client.get(f"{ORDERS_URL}/tab-counts", headers={"X-Actor-Role": "Super_Admin"})

        assert mock_service.get_tab_counts.call_args.args[0].role == "super_admin"


# ============================================================================
# Tabs
# ============================================================================


class TestListTab:
    """Test worklist tab listings."""

    def test_list_tab(self, client, mock_service):
        mock_service.get_tab.return_value = tab_response()

        response = client.get(f"{ORDERS_URL}/tabs/my_orders", headers=ADMIN)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["tab"] == "my_orders"
        assert data["total"] == 1
        assert data["orders"][0]["routing_status"] == "all_with_admin"
        assert data["counts"]["my_orders"] == 1

    def test_query_parameters_are_forwarded(self, client, mock_service):
        mock_service.get_tab.return_value = tab_response("production")

        client.get(
            f"{ORDERS_URL}/tabs/production",
            headers=ADMIN,
            params={
                "sub_tab": "in_production",
                "search": "1203",
                "status": "draft",
                "refresh": "true",
            },
        )

        call = mock_service.get_tab.call_args
        assert call.args[1] == "production"
        assert call.kwargs == {
            "sub_tab": "in_production",
            "search": "1203",
            "status": "draft",
            "refresh": True,
        }

    def test_unknown_tab(self, client, mock_service):
        mock_service.get_tab.side_effect = ClassificationError(
            "Unknown tab: archive", tab="archive"
        )

        response = client.get(f"{ORDERS_URL}/tabs/archive", headers=ADMIN)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"] == "Unknown tab: archive"

    def test_repository_failure(self, client, mock_service):
        mock_service.get_tab.side_effect = OrderRepositoryError("Failed to list orders")

        response = client.get(f"{ORDERS_URL}/tabs/my_orders", headers=ADMIN)

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["detail"] == "Failed to load orders"


class TestTabCounts:
    """Test badge count endpoint."""

    def test_counts(self, client, mock_service):
        response = client.get(
            f"{ORDERS_URL}/tab-counts", headers=ADMIN, params={"refresh": "true"}
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["my_orders"] == 2
        assert mock_service.get_tab_counts.call_args.kwargs == {"refresh": True}

    def test_repository_failure(self, client, mock_service):
        mock_service.get_tab_counts.side_effect = OrderRepositoryError("down")

        response = client.get(f"{ORDERS_URL}/tab-counts", headers=ADMIN)

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR


# ============================================================================
# Deletion
# ============================================================================


class TestDeleteOrder:
    """Test order deletion endpoint."""

    def test_delete(self, client, mock_service):
        mock_service.delete_order.return_value = DeletionReport(
            order_id="o-1", success=True, product_ids=["p-1"]
        )

        response = client.delete(f"{ORDERS_URL}/o-1", headers=ADMIN)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["success"] is True
        assert mock_service.delete_order.call_args.args[0] == "o-1"

    @pytest.mark.parametrize(
        "error,status_code,detail",
        [
            (
                OrderNotFoundError("Order not found", order_id="o-1"),
                status.HTTP_404_NOT_FOUND,
                "Order not found",
            ),
            (
                OrderPermissionError("Only draft orders can be deleted"),
                status.HTTP_403_FORBIDDEN,
                "Only draft orders can be deleted",
            ),
            (
                DeletionInProgressError("busy"),
                status.HTTP_409_CONFLICT,
                "Deletion already in progress for this order",
            ),
            (
                OrderStillReferencedError("referenced"),
                status.HTTP_409_CONFLICT,
                "Cannot delete order: related records still exist",
            ),
            (
                DeletionStepError("invoices failed", step=4, table="invoices"),
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Failed to delete order: invoices failed",
            ),
            (
                OrderRepositoryError("lookup failed"),
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Failed to delete order",
            ),
        ],
    )
    def test_error_mapping(self, client, mock_service, error, status_code, detail):
        mock_service.delete_order.side_effect = error

        response = client.delete(f"{ORDERS_URL}/o-1", headers=ADMIN)

        assert response.status_code == status_code
        assert response.json()["detail"] == detail


# ============================================================================
# Draft cleanup
# ============================================================================


class TestDraftCleanup:
    """Test stale draft cleanup endpoints and their authorization."""

    def test_open_when_no_key_configured(self, client, mock_service):
        mock_service.cleanup_stale_drafts.return_value = DraftCleanupResult(
            cutoff=CUTOFF, deleted=["DRAFT-001200"]
        )

        response = client.post(f"{ORDERS_URL}/cleanup/old-drafts")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["deleted"] == ["DRAFT-001200"]

    @pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer wrong"}])
    def test_rejects_bad_credentials(self, client, mock_service, cleanup_key, headers):
        response = client.post(f"{ORDERS_URL}/cleanup/old-drafts", headers=headers)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.headers["WWW-Authenticate"] == "Bearer"
        mock_service.cleanup_stale_drafts.assert_not_awaited()

    def test_accepts_bearer_token(self, client, mock_service, cleanup_key):
        mock_service.cleanup_stale_drafts.return_value = DraftCleanupResult(cutoff=CUTOFF)

        response = client.post(
            f"{ORDERS_URL}/cleanup/old-drafts",
            headers={"Authorization": f"Bearer {cleanup_key}"},
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["errors"] == []

    def test_super_admin_needs_no_token(self, client, mock_service, cleanup_key):
        mock_service.cleanup_stale_drafts.return_value = DraftCleanupResult(cutoff=CUTOFF)

        response = client.post(
            f"{ORDERS_URL}/cleanup/old-drafts",
            headers={"X-Actor-Role": "super_admin"},
        )

        assert response.status_code == status.HTTP_200_OK

    def test_admin_still_needs_token(self, client, cleanup_key):
        response = client.post(f"{ORDERS_URL}/cleanup/old-drafts", headers=ADMIN)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_cleanup_failure(self, client, mock_service):
        mock_service.cleanup_stale_drafts.side_effect = OrderRepositoryError("down")

        response = client.post(f"{ORDERS_URL}/cleanup/old-drafts")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["detail"] == "Draft cleanup failed"

    def test_count(self, client, mock_service):
        response = client.get(f"{ORDERS_URL}/cleanup/old-drafts")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "count": 3,
            "cutoff": CUTOFF.isoformat(),
            "retention_days": 15,
        }
