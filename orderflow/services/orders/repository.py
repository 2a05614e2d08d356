"""
Order data access repository.

This module implements the OrderRepository class: the read boundary that
loads orders (with embedded client, manufacturer, lines and variant rows)
visible to an actor, and the write boundary used by the deletion
orchestrator. Best-effort deletes run inside a SAVEPOINT so a failure in one
auxiliary table does not abort the surrounding transaction.
"""

import uuid
from datetime import datetime
from typing import Any, Optional, Sequence

from sqlalchemy import Table, delete, exists, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, AsyncSessionTransaction

from orderflow.core.logging import get_logger
from orderflow.database.models import Base
from orderflow.database.models.invoice import Invoice, InvoiceItem
from orderflow.database.models.notification import Notification
from orderflow.database.models.order import Order, OrderProduct
from orderflow.database.models.party import Manufacturer
from orderflow.services.orders.deletion import (
    AuxiliaryTable,
    DeletionStoreError,
    ReferencedRecordError,
)
from orderflow.services.orders.enums import ActorRole, OrderStatus, RoutedTo
from orderflow.services.orders.notifications import NotificationDraft
from orderflow.services.orders.threshold import ShipQueueConfig

logger = get_logger(__name__)


class OrderRepositoryError(Exception):
    """Base exception for order repository errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


class OrderNotFoundError(OrderRepositoryError):
    """Raised when order is not found."""

    pass


def _as_uuid(value: Any) -> Optional[uuid.UUID]:
    if value is None or isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _as_uuids(values: Sequence[Any]) -> list[uuid.UUID]:
    return [u for u in (_as_uuid(v) for v in values) if u is not None]


class OrderRepository:
    """
    Repository for order reads and dependency-ordered deletes.

    Implements the deletion store protocol. A single ``AsyncSession`` cannot
    run statements concurrently, so auxiliary deletes are issued one at a
    time.
    """

    supports_concurrency = False

    def __init__(self, session: AsyncSession):
        """
        Initialize order repository.

        Args:
            session: Async database session
        """
        self.session = session

    def savepoint(self) -> AsyncSessionTransaction:
        """Nested transaction; rolled back on its own if the block raises."""
        return self.session.begin_nested()

    async def commit(self) -> None:
        """
        Commit the current transaction.

        Raises:
            OrderRepositoryError: If the commit fails; the session is rolled back
        """
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Failed to commit order changes", error=str(e))
            raise OrderRepositoryError("Failed to commit order changes") from e

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_order(self, order_id: Any) -> Order:
        """
        Get order by ID with parties and lines loaded.

        Raises:
            OrderNotFoundError: If no order has this ID
            OrderRepositoryError: If the query fails
        """
        order_uuid = _as_uuid(order_id)
        if order_uuid is None:
            raise OrderNotFoundError("Order not found", order_id=str(order_id))

        try:
            result = await self.session.execute(
                select(Order).where(Order.id == order_uuid)
            )
            order = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(
                "Database error retrieving order",
                order_id=str(order_id),
                error=str(e),
            )
            raise OrderRepositoryError(
                "Failed to retrieve order",
                order_id=str(order_id),
            ) from e

        if order is None:
            raise OrderNotFoundError("Order not found", order_id=str(order_id))
        return order

    async def list_orders_for_actor(
        self,
        role: "Optional[str | ActorRole]",
        manufacturer_id: Optional[str] = None,
        client_id: Optional[str] = None,
    ) -> list[Order]:
        """
        List orders an actor may see, newest first.

        Admins see every order. Manufacturers see orders assigned to them
        that are past draft and have at least one line routed to the
        manufacturer. Clients see their own non-draft orders. Other roles
        see nothing.

        Raises:
            OrderRepositoryError: If the query fails
        """
        actor = ActorRole.parse(role)
        query = select(Order).order_by(Order.created_at.desc())

        if actor is None or not (
            actor.is_admin() or actor.is_manufacturer() or actor.is_client()
        ):
            return []

        if actor.is_manufacturer():
            manufacturer_uuid = _as_uuid(manufacturer_id)
            if manufacturer_uuid is None:
                return []
            has_manufacturer_line = exists().where(
                OrderProduct.order_id == Order.id,
                OrderProduct.routed_to == RoutedTo.MANUFACTURER.value,
                OrderProduct.deleted_at.is_(None),
            )
            query = query.where(
                Order.manufacturer_id == manufacturer_uuid,
                Order.status != OrderStatus.DRAFT.value,
                has_manufacturer_line,
            )
        elif actor.is_client():
            client_uuid = _as_uuid(client_id)
            if client_uuid is None:
                return []
            query = query.where(
                Order.client_id == client_uuid,
                Order.status != OrderStatus.DRAFT.value,
            )

        try:
            result = await self.session.execute(query)
            orders = list(result.scalars().unique().all())
        except SQLAlchemyError as e:
            logger.error(
                "Database error listing orders",
                role=actor.value,
                error=str(e),
            )
            raise OrderRepositoryError("Failed to list orders", role=actor.value) from e

        logger.debug("Orders listed for actor", role=actor.value, count=len(orders))
        return orders

    async def get_ship_queue_config(
        self, manufacturer_id: Optional[str]
    ) -> ShipQueueConfig:
        """Ready-to-ship settings of a manufacturer, defaults when absent."""
        manufacturer_uuid = _as_uuid(manufacturer_id)
        if manufacturer_uuid is None:
            return ShipQueueConfig.default()

        try:
            manufacturer = await self.session.get(Manufacturer, manufacturer_uuid)
        except SQLAlchemyError as e:
            logger.error(
                "Database error loading manufacturer settings",
                manufacturer_id=str(manufacturer_id),
                error=str(e),
            )
            raise OrderRepositoryError(
                "Failed to load manufacturer settings",
                manufacturer_id=str(manufacturer_id),
            ) from e

        return ShipQueueConfig.from_manufacturer(manufacturer)

    async def list_stale_drafts(self, cutoff: datetime) -> list[Order]:
        """Draft orders created before ``cutoff``, oldest first."""
        try:
            result = await self.session.execute(
                select(Order)
                .where(
                    Order.status == OrderStatus.DRAFT.value,
                    Order.created_at < cutoff,
                )
                .order_by(Order.created_at)
            )
            return list(result.scalars().unique().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing stale drafts", error=str(e))
            raise OrderRepositoryError(
                "Failed to list stale drafts",
                cutoff=cutoff.isoformat(),
            ) from e

    async def count_stale_drafts(self, cutoff: datetime) -> int:
        try:
            result = await self.session.execute(
                select(func.count(Order.id)).where(
                    Order.status == OrderStatus.DRAFT.value,
                    Order.created_at < cutoff,
                )
            )
            return int(result.scalar_one())
        except SQLAlchemyError as e:
            logger.error("Database error counting stale drafts", error=str(e))
            raise OrderRepositoryError(
                "Failed to count stale drafts",
                cutoff=cutoff.isoformat(),
            ) from e

    async def add_notification(self, draft: NotificationDraft) -> Notification:
        """Insert a notification row built from a draft."""
        notification = Notification(
            user_id=draft.user_id,
            order_id=_as_uuid(draft.order_id),
            order_product_id=_as_uuid(draft.order_product_id),
            type=draft.type.value,
            message=draft.message,
            is_read=draft.is_read,
        )
        try:
            async with self.savepoint():
                self.session.add(notification)
                await self.session.flush()
        except SQLAlchemyError as e:
            logger.error(
                "Database error storing notification",
                order_id=draft.order_id,
                error=str(e),
            )
            raise OrderRepositoryError(
                "Failed to store notification",
                order_id=draft.order_id,
            ) from e
        return notification

    # ------------------------------------------------------------------
    # Deletion store
    # ------------------------------------------------------------------

    async def get_product_ids(self, order_id: str) -> list[str]:
        result = await self.session.execute(
            select(OrderProduct.id).where(OrderProduct.order_id == _as_uuid(order_id))
        )
        return [str(i) for i in result.scalars().all()]

    async def get_invoice_ids(self, order_id: str) -> list[str]:
        result = await self.session.execute(
            select(Invoice.id).where(Invoice.order_id == _as_uuid(order_id))
        )
        return [str(i) for i in result.scalars().all()]

    async def delete_invoice_items(self, invoice_ids: Sequence[str]) -> int:
        result = await self.session.execute(
            delete(InvoiceItem).where(InvoiceItem.invoice_id.in_(_as_uuids(invoice_ids)))
        )
        return result.rowcount or 0

    async def delete_invoices(self, order_id: str) -> int:
        result = await self.session.execute(
            delete(Invoice).where(Invoice.order_id == _as_uuid(order_id))
        )
        return result.rowcount or 0

    async def delete_auxiliary(
        self,
        table: AuxiliaryTable,
        order_id: str,
        product_ids: Sequence[str],
    ) -> int:
        """
        Delete rows of an auxiliary table keyed by the order or its lines.

        Raises:
            DeletionStoreError: If the table is unknown or the delete fails;
                the savepoint has already been rolled back
        """
        target: Optional[Table] = Base.metadata.tables.get(table.name)
        if target is None:
            raise DeletionStoreError(f"Unknown table {table.name}", table=table.name)

        conditions = []
        if table.order_column is not None:
            conditions.append(target.c[table.order_column] == _as_uuid(order_id))
        if table.product_column is not None and product_ids:
            conditions.append(target.c[table.product_column].in_(_as_uuids(product_ids)))
        if not conditions:
            return 0

        try:
            async with self.savepoint():
                result = await self.session.execute(delete(target).where(or_(*conditions)))
        except SQLAlchemyError as e:
            raise DeletionStoreError(
                f"Failed to delete from {table.name}",
                table=table.name,
                cause=str(e),
            ) from e
        return result.rowcount or 0

    async def delete_order_products(self, order_id: str) -> int:
        result = await self.session.execute(
            delete(OrderProduct).where(OrderProduct.order_id == _as_uuid(order_id))
        )
        return result.rowcount or 0

    async def delete_order(self, order_id: str) -> int:
        """
        Delete the order row.

        Raises:
            ReferencedRecordError: If a foreign key still references the order
        """
        try:
            result = await self.session.execute(
                delete(Order).where(Order.id == _as_uuid(order_id))
            )
        except IntegrityError as e:
            raise ReferencedRecordError(
                "Order is still referenced by related records",
                table="orders",
                cause=str(e.orig),
            ) from e
        return result.rowcount or 0
