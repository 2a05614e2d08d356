"""
Order worklist API endpoints.

This module implements the FastAPI router for the role-scoped order
worklist: tab listings with badge counts, order deletion with per-table
outcome reporting, and the stale draft cleanup job.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from orderflow.api.deps import CleanupAccess, CurrentActor, WorklistService
from orderflow.core.config import get_settings
from orderflow.core.logging import get_logger
from orderflow.schemas.orders import OrderListResponse, TabCounts
from orderflow.services.orders.classifier import ClassificationError
from orderflow.services.orders.deletion import (
    DeletionInProgressError,
    DeletionReport,
    OrderDeletionError,
    OrderStillReferencedError,
)
from orderflow.services.orders.repository import OrderNotFoundError, OrderRepositoryError
from orderflow.services.orders.service import DraftCleanupResult, OrderPermissionError

logger = get_logger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get(
    "/tabs/{tab}",
    response_model=OrderListResponse,
    summary="List orders in a worklist tab",
    description="Orders belonging to one tab for the requesting actor, with badge counts",
)
async def list_tab(
    tab: str,
    actor: CurrentActor,
    service: WorklistService,
    sub_tab: Optional[str] = Query(None, description="Production sub-tab"),
    search: Optional[str] = Query(None, description="Order number, name or party name"),
    status_filter: Optional[str] = Query(
        None, alias="status", description="Order lifecycle status, 'all' for any"
    ),
    refresh: bool = Query(False, description="Bypass cached snapshots"),
) -> OrderListResponse:
    """
    List orders in a worklist tab.

    Raises:
        HTTPException: 400 for an unknown tab or sub-tab, 500 if loading fails
    """
    try:
        return await service.get_tab(
            actor,
            tab,
            sub_tab=sub_tab,
            search=search,
            status=status_filter,
            refresh=refresh,
        )

    except ClassificationError as e:
        logger.warning("Invalid worklist selector", tab=tab, sub_tab=sub_tab, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e

    except OrderRepositoryError as e:
        logger.error(
            "Failed to load worklist",
            tab=tab,
            role=actor.role,
            error=str(e),
            context=e.context,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load orders",
        ) from e


@router.get(
    "/tab-counts",
    response_model=TabCounts,
    summary="Worklist badge counts",
)
async def tab_counts(
    actor: CurrentActor,
    service: WorklistService,
    refresh: bool = Query(False, description="Bypass cached snapshots"),
) -> TabCounts:
    try:
        return await service.get_tab_counts(actor, refresh=refresh)
    except OrderRepositoryError as e:
        logger.error(
            "Failed to count worklist tabs",
            role=actor.role,
            error=str(e),
            context=e.context,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load orders",
        ) from e


@router.delete(
    "/{order_id}",
    response_model=DeletionReport,
    summary="Delete order",
    description="Delete an order and every dependent record in dependency order",
)
async def delete_order(
    order_id: str,
    actor: CurrentActor,
    service: WorklistService,
) -> DeletionReport:
    """
    Delete an order.

    Raises:
        HTTPException: 404 if not found, 403 if not allowed, 409 if a
            deletion is in flight or related records still exist, 500 for
            any other failure
    """
    logger.info("Deleting order", order_id=order_id, role=actor.role)

    try:
        return await service.delete_order(order_id, actor)

    except OrderNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Order not found",
        ) from e

    except OrderPermissionError as e:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(e),
        ) from e

    except DeletionInProgressError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Deletion already in progress for this order",
        ) from e

    except OrderStillReferencedError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Cannot delete order: related records still exist",
        ) from e

    except OrderDeletionError as e:
        logger.error(
            "Order deletion failed",
            order_id=order_id,
            error=str(e),
            failed_tables=e.report.failed_tables if e.report else [],
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete order: {e}",
        ) from e

    except OrderRepositoryError as e:
        logger.error("Order lookup failed", order_id=order_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete order",
        ) from e


@router.post(
    "/cleanup/old-drafts",
    response_model=DraftCleanupResult,
    summary="Purge stale draft orders",
    dependencies=[CleanupAccess],
)
async def cleanup_old_drafts(service: WorklistService) -> DraftCleanupResult:
    """
    Delete drafts older than the retention window.

    Raises:
        HTTPException: 401 without cleanup access, 500 if drafts cannot be listed
    """
    try:
        return await service.cleanup_stale_drafts()
    except OrderRepositoryError as e:
        logger.error("Draft cleanup failed", error=str(e), context=e.context)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Draft cleanup failed",
        ) from e


@router.get(
    "/cleanup/old-drafts",
    summary="Count stale draft orders",
    dependencies=[CleanupAccess],
)
async def count_old_drafts(service: WorklistService) -> dict:
    try:
        count, cutoff = await service.count_stale_drafts()
    except OrderRepositoryError as e:
        logger.error("Draft count failed", error=str(e), context=e.context)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to count drafts",
        ) from e

    return {
        "count": count,
        "cutoff": cutoff.isoformat(),
        "retention_days": get_settings().draft_retention_days,
    }
