"""
Order worklist service orchestrating classification, deletion and cleanup.

This module implements the OrderWorklistService class, which loads the
orders visible to an actor, classifies them into worklist tabs, computes
badge counts and per-row figures, deletes orders through the deletion
orchestrator, purges stale drafts and raises routing notifications.
Loaded snapshots are cached per actor for a short time; a deleted order is
evicted from every cached view once its deletion is committed.
"""

import time
from datetime import datetime, timedelta
from typing import Any, Optional

from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from orderflow.core.config import Settings, get_settings
from orderflow.core.logging import get_logger, log_performance
from orderflow.schemas.orders import OrderListResponse, OrderRow, OrderSnapshot, TabCounts
from orderflow.services.orders.classifier import (
    OrderTabClassifier,
    TabSelector,
    filter_by_search,
    filter_by_status,
    resolve_selector,
)
from orderflow.services.orders.deletion import (
    DeletionGuard,
    DeletionReport,
    OrderDeletionError,
    OrderDeletionOrchestrator,
    default_guard,
)
from orderflow.services.orders.enums import ActorRole, OrderStatus
from orderflow.services.orders.notifications import (
    NotificationDraft,
    NotificationError,
    Notifier,
    RoutingChange,
    build_routing_notification,
)
from orderflow.services.orders.pricing import (
    OrderPricingCalculator,
    days_since_invoice_ready,
    get_earliest_invoice_ready_date,
)
from orderflow.services.orders.repository import OrderRepository, OrderRepositoryError
from orderflow.services.orders.state_machine import normalize_tag
from orderflow.services.orders.summary import get_order_routing_status
from orderflow.services.orders.threshold import Clock, ShipQueueConfig, SystemClock

logger = get_logger(__name__)


class OrderServiceError(Exception):
    """Base exception for order service errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


class OrderPermissionError(OrderServiceError):
    """Raised when the actor may not perform an operation on an order."""

    pass


class Actor(BaseModel):
    """Explicit identity of the caller; never inferred from session state."""

    role: Optional[str] = None
    actor_id: Optional[str] = None
    manufacturer_id: Optional[str] = None
    client_id: Optional[str] = None

    @property
    def parsed_role(self) -> Optional[ActorRole]:
        return ActorRole.parse(self.role)

    @property
    def cache_key(self) -> tuple:
        return (
            normalize_tag(self.role),
            self.manufacturer_id,
            self.client_id,
        )


class DraftCleanupFailure(BaseModel):
    order_id: str
    order_number: Optional[str] = None
    error: str


class DraftCleanupResult(BaseModel):
    """Outcome of a stale draft purge."""

    cutoff: datetime
    deleted: list[str] = Field(default_factory=list)
    errors: list[DraftCleanupFailure] = Field(default_factory=list)

    @property
    def deleted_count(self) -> int:
        return len(self.deleted)


def can_delete_order(role: "Optional[str | ActorRole]", status: Any) -> bool:
    """
    Check if a role may delete an order in the given lifecycle status.

    Super-admins may delete any order, admins only drafts.
    """
    actor = ActorRole.parse(role)
    if actor is ActorRole.SUPER_ADMIN:
        return True
    if actor is ActorRole.ADMIN:
        return normalize_tag(status) == OrderStatus.DRAFT.value
    return False


class SnapshotCache:
    """
    Process-wide cache of loaded order snapshots keyed by actor.

    Entries expire after ``ttl_seconds``; a TTL of 0 disables caching.
    """

    def __init__(self, ttl_seconds: int = 30):
        self.ttl_seconds = ttl_seconds
        self._entries: dict[tuple, tuple[float, list[OrderSnapshot]]] = {}

    def get(self, key: tuple) -> Optional[list[OrderSnapshot]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, orders = entry
        if time.monotonic() - stored_at > self.ttl_seconds:
            del self._entries[key]
            return None
        return orders

    def put(self, key: tuple, orders: list[OrderSnapshot]) -> None:
        if self.ttl_seconds <= 0:
            return
        self._entries[key] = (time.monotonic(), orders)

    def evict_order(self, order_id: str) -> int:
        """Remove an order from every cached view; returns views touched."""
        touched = 0
        for key, (stored_at, orders) in list(self._entries.items()):
            kept = [o for o in orders if str(o.id) != order_id]
            if len(kept) != len(orders):
                self._entries[key] = (stored_at, kept)
                touched += 1
        return touched

    def clear(self) -> None:
        self._entries.clear()


snapshot_cache = SnapshotCache(get_settings().snapshot_cache_ttl_seconds)


class DatabaseNotifier:
    """Notifier storing drafts as notification rows."""

    def __init__(self, repository: OrderRepository):
        self.repository = repository

    async def notify(self, draft: NotificationDraft) -> None:
        try:
            await self.repository.add_notification(draft)
        except OrderRepositoryError as e:
            raise NotificationError(
                "Failed to store notification",
                user_id=draft.user_id,
                order_id=draft.order_id,
            ) from e


class OrderWorklistService:
    """
    Worklist service for one request.

    Attributes:
        repository: Order repository for data access
        clock: Source of "today" for the ready-to-ship window and draft ages
        notifier: Sink for routing notifications
        cache: Per-actor snapshot cache
        guard: In-flight deletion registry
    """

    def __init__(
        self,
        session: AsyncSession,
        clock: Optional[Clock] = None,
        notifier: Optional[Notifier] = None,
        cache: Optional[SnapshotCache] = None,
        guard: Optional[DeletionGuard] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize worklist service.

        Args:
            session: Async database session
            clock: Optional clock, system UTC clock by default
            notifier: Optional notifier, stores notification rows by default
            cache: Optional snapshot cache, the process-wide cache by default
            guard: Optional deletion guard, the process-wide guard by default
            settings: Optional settings override
        """
        self.repository = OrderRepository(session)
        self.clock = clock or SystemClock()
        self.notifier = notifier or DatabaseNotifier(self.repository)
        self.cache = cache if cache is not None else snapshot_cache
        self.guard = guard or default_guard
        self.settings = settings or get_settings()

    def _orchestrator(self) -> OrderDeletionOrchestrator:
        return OrderDeletionOrchestrator(
            self.repository,
            concurrent=self.settings.concurrent_auxiliary_deletes,
            guard=self.guard,
        )

    # ------------------------------------------------------------------
    # Worklist
    # ------------------------------------------------------------------

    async def load_orders(self, actor: Actor, refresh: bool = False) -> list[OrderSnapshot]:
        """
        Snapshots of every order visible to the actor, newest first.

        Args:
            actor: Requesting actor
            refresh: Bypass the snapshot cache

        Returns:
            List of order snapshots
        """
        key = actor.cache_key
        if not refresh:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("Order snapshots served from cache", role=actor.role)
                return cached

        rows = await self.repository.list_orders_for_actor(
            actor.role,
            manufacturer_id=actor.manufacturer_id,
            client_id=actor.client_id,
        )
        orders = [OrderSnapshot.model_validate(row) for row in rows]
        self.cache.put(key, orders)
        return orders

    async def _ship_queue(self, actor: Actor) -> ShipQueueConfig:
        role = actor.parsed_role
        if role is not None and role.is_manufacturer():
            return await self.repository.get_ship_queue_config(actor.manufacturer_id)
        return ShipQueueConfig.default()

    def _row(self, order: OrderSnapshot, actor: Actor, pricing: OrderPricingCalculator) -> OrderRow:
        routing = get_order_routing_status(order, actor.role)
        ready_at = get_earliest_invoice_ready_date(order)
        return OrderRow(
            **order.model_dump(),
            routing_status=routing.status.value,
            routing_label=routing.label,
            order_total=pricing.order_total(order),
            invoice_fees=pricing.order_fees(order),
            days_awaiting_invoice=(
                days_since_invoice_ready(ready_at, self.clock.now())
                if ready_at is not None
                else None
            ),
        )

    async def get_tab(
        self,
        actor: Actor,
        tab: TabSelector,
        sub_tab: Optional[str] = None,
        search: Optional[str] = None,
        status: Optional[str] = None,
        refresh: bool = False,
    ) -> OrderListResponse:
        """
        Orders in one worklist tab with badge counts for every tab.

        Search and status filters narrow the listed orders only; badge
        counts always cover every order visible to the actor.

        Raises:
            ClassificationError: If the tab or sub-tab is unknown
            OrderRepositoryError: If loading orders fails
        """
        resolved_tab, resolved_sub_tab = resolve_selector(tab, sub_tab)
        orders = await self.load_orders(actor, refresh=refresh)
        ship_queue = await self._ship_queue(actor)
        classifier = OrderTabClassifier(actor.role, self.clock.today(), ship_queue)
        pricing = OrderPricingCalculator.for_role(actor.role)

        narrowed = filter_by_status(filter_by_search(orders, search), status)
        members = classifier.filter_orders(narrowed, resolved_tab, resolved_sub_tab)
        counts = classifier.count_tabs(orders)

        logger.info(
            "Worklist tab loaded",
            role=actor.role,
            tab=resolved_tab.value,
            sub_tab=resolved_sub_tab.value if resolved_sub_tab else None,
            visible=len(orders),
            listed=len(members),
        )

        return OrderListResponse(
            tab=resolved_tab.value,
            sub_tab=resolved_sub_tab.value if resolved_sub_tab else None,
            total=len(members),
            orders=[self._row(order, actor, pricing) for order in members],
            counts=counts,
            ship_queue_label=ship_queue.label,
        )

    async def get_tab_counts(self, actor: Actor, refresh: bool = False) -> TabCounts:
        orders = await self.load_orders(actor, refresh=refresh)
        ship_queue = await self._ship_queue(actor)
        classifier = OrderTabClassifier(actor.role, self.clock.today(), ship_queue)
        return classifier.count_tabs(orders)

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    async def delete_order(self, order_id: str, actor: Actor) -> DeletionReport:
        """
        Delete an order and all dependent records.

        Args:
            order_id: Order to delete
            actor: Requesting actor

        Returns:
            DeletionReport of the successful deletion

        Raises:
            OrderNotFoundError: If the order does not exist
            OrderPermissionError: If the actor may not delete the order
            OrderDeletionError: If the deletion fails; the order remains
            OrderRepositoryError: If the lookup or the commit fails
        """
        order = await self.repository.get_order(order_id)

        if not can_delete_order(actor.role, order.status):
            logger.warning(
                "Order deletion refused",
                order_id=str(order_id),
                role=actor.role,
                status=order.status,
            )
            raise OrderPermissionError(
                "Not allowed to delete this order",
                order_id=str(order_id),
                role=actor.role,
                status=order.status,
            )

        report = await self._orchestrator().delete_order(str(order.id))
        # Cached views drop the order only once the deletion is durable
        await self.repository.commit()
        evicted = self.cache.evict_order(report.order_id)

        logger.info(
            "Order deletion completed",
            order_id=report.order_id,
            order_number=order.order_number,
            actor_id=actor.actor_id,
            evicted_views=evicted,
        )
        return report

    async def cleanup_stale_drafts(self, now: Optional[datetime] = None) -> DraftCleanupResult:
        """
        Delete drafts older than the retention window.

        Each draft is deleted inside its own savepoint; a failed draft is
        recorded and the purge continues with the next one. Successful
        deletions are committed together before cached views drop them.
        """
        now = now or self.clock.now()
        cutoff = now - timedelta(days=self.settings.draft_retention_days)
        result = DraftCleanupResult(cutoff=cutoff)

        drafts = await self.repository.list_stale_drafts(cutoff)
        orchestrator = self._orchestrator()
        deleted_ids: list[str] = []

        with log_performance(logger, "draft_cleanup", candidates=len(drafts)):
            for draft in drafts:
                order_id = str(draft.id)
                try:
                    async with self.repository.savepoint():
                        await orchestrator.delete_order(order_id)
                except OrderDeletionError as e:
                    logger.warning(
                        "Stale draft deletion failed",
                        order_id=order_id,
                        order_number=draft.order_number,
                        error=str(e),
                    )
                    result.errors.append(
                        DraftCleanupFailure(
                            order_id=order_id,
                            order_number=draft.order_number,
                            error=str(e),
                        )
                    )
                    continue

                deleted_ids.append(order_id)
                result.deleted.append(draft.order_number or order_id)

            if deleted_ids:
                await self.repository.commit()
            for order_id in deleted_ids:
                self.cache.evict_order(order_id)

        logger.info(
            "Stale drafts cleaned up",
            cutoff=cutoff.isoformat(),
            deleted=result.deleted_count,
            failed=len(result.errors),
        )
        return result

    async def count_stale_drafts(self, now: Optional[datetime] = None) -> tuple[int, datetime]:
        now = now or self.clock.now()
        cutoff = now - timedelta(days=self.settings.draft_retention_days)
        return await self.repository.count_stale_drafts(cutoff), cutoff

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    async def notify_routing_change(
        self,
        change: RoutingChange,
        recipient_id: Optional[str],
    ) -> Optional[NotificationDraft]:
        """
        Notify the receiving party of a routing change if it is new work.

        A notifier failure is logged and does not fail the routing change.

        Returns:
            The delivered notification, or None
        """
        draft = build_routing_notification(change, recipient_id)
        if draft is None:
            return None

        try:
            await self.notifier.notify(draft)
        except NotificationError as e:
            logger.warning(
                "Routing notification not delivered",
                order_id=change.order_id,
                recipient_id=recipient_id,
                error=str(e),
            )
            return None

        logger.info(
            "Routing notification sent",
            order_id=change.order_id,
            recipient_id=recipient_id,
            type=draft.type.value,
        )
        return draft
