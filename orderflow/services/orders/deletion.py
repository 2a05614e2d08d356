"""
Order deletion orchestration.

Deleting an order removes the order row and every record that references it
or its lines, in dependency order:

1. resolve the order's line ids
2. resolve the order's invoice ids
3. delete invoice items of those invoices
4. delete the invoices
5. delete auxiliary records (history, media, variant rows, logs, notes)
6. delete the order lines
7. delete the order row

Steps 1-4 and 6 are structural: the final delete cannot succeed without them,
so a failure aborts the deletion before the order row is touched. Step 5 is
best-effort: every auxiliary table is attempted, failures are logged and
recorded, and the deletion carries on. A failure in step 7 is fatal and is
reported separately when a foreign key still references the order.

Every attempt produces a ``DeletionReport`` listing the outcome per table.
"""

import asyncio
import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Iterator, Optional, Protocol, Sequence

from pydantic import BaseModel, Field

from orderflow.core.logging import get_logger, log_performance

logger = get_logger(__name__)


# ============================================================================
# Tables
# ============================================================================


@dataclass(frozen=True)
class AuxiliaryTable:
    """
    A best-effort dependent relation.

    Attributes:
        name: Table name
        order_column: Column holding the order id, None when not keyed by order
        product_column: Column holding a line id, None when not keyed by line
    """

    name: str
    order_column: Optional[str] = "order_id"
    product_column: Optional[str] = None


AUXILIARY_TABLES: tuple[AuxiliaryTable, ...] = (
    AuxiliaryTable("email_history"),
    AuxiliaryTable("order_media", product_column="order_product_id"),
    AuxiliaryTable("order_items", order_column=None, product_column="order_product_id"),
    AuxiliaryTable("notifications"),
    AuxiliaryTable("manufacturer_notifications"),
    AuxiliaryTable("manufacturer_views"),
    AuxiliaryTable("workflow_log", product_column="order_product_id"),
    AuxiliaryTable("order_margins"),
    AuxiliaryTable("orders_backup_numbers"),
    AuxiliaryTable("client_admin_notes"),
    AuxiliaryTable("order_accessories"),
    AuxiliaryTable("audit_log", order_column="target_id", product_column="target_id"),
)

INVOICE_ITEMS_TABLE = "invoice_items"
INVOICES_TABLE = "invoices"
ORDER_PRODUCTS_TABLE = "order_products"
ORDERS_TABLE = "orders"


# ============================================================================
# Report
# ============================================================================


class TableOutcomeStatus(str, Enum):
    DELETED = "deleted"
    SKIPPED = "skipped"
    FAILED = "failed"


class TableOutcome(BaseModel):
    """Result of one delete (or lookup) against one table."""

    step: int
    table: str
    status: TableOutcomeStatus
    rows: Optional[int] = None
    critical: bool = True
    error: Optional[str] = None


class DeletionReport(BaseModel):
    """Structured record of a deletion attempt."""

    order_id: str
    success: bool = False
    product_ids: list[str] = Field(default_factory=list)
    invoice_ids: list[str] = Field(default_factory=list)
    outcomes: list[TableOutcome] = Field(default_factory=list)
    error: Optional[str] = None
    duration_ms: Optional[float] = None

    @property
    def tolerated_failures(self) -> list[TableOutcome]:
        """Auxiliary tables that failed without aborting the deletion."""
        return [
            o
            for o in self.outcomes
            if o.status is TableOutcomeStatus.FAILED and not o.critical
        ]

    @property
    def failed_tables(self) -> list[str]:
        return [
            o.table for o in self.outcomes if o.status is TableOutcomeStatus.FAILED
        ]

    def record(
        self,
        step: int,
        table: str,
        status: TableOutcomeStatus,
        **fields: Any,
    ) -> TableOutcome:
        """Append the outcome of one table to the report."""
        outcome = TableOutcome(step=step, table=table, status=status, **fields)
        self.outcomes.append(outcome)
        return outcome


# ============================================================================
# Errors
# ============================================================================


class DeletionStoreError(Exception):
    """Raised by a deletion store when a datastore operation fails."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


class ReferencedRecordError(DeletionStoreError):
    """Raised by a deletion store when a foreign key blocks a delete."""

    pass


class OrderDeletionError(Exception):
    """Base exception for fatal deletion failures."""

    def __init__(
        self,
        message: str,
        report: Optional[DeletionReport] = None,
        **context: Any,
    ):
        super().__init__(message)
        self.report = report
        self.context = context


class DeletionStepError(OrderDeletionError):
    """Raised when a structural step fails before the order row is deleted."""

    def __init__(
        self,
        message: str,
        step: int,
        table: str,
        report: Optional[DeletionReport] = None,
        **context: Any,
    ):
        super().__init__(message, report=report, step=step, table=table, **context)
        self.step = step
        self.table = table


class OrderStillReferencedError(OrderDeletionError):
    """Raised when the order row is still referenced by a related record."""

    pass


class DeletionInProgressError(OrderDeletionError):
    """Raised when a deletion for the same order is already running."""

    pass


# ============================================================================
# Store protocol and in-flight guard
# ============================================================================


class DeletionStore(Protocol):
    """Datastore operations used by the orchestrator."""

    supports_concurrency: bool

    async def get_product_ids(self, order_id: str) -> list[str]: ...

    async def get_invoice_ids(self, order_id: str) -> list[str]: ...

    async def delete_invoice_items(self, invoice_ids: Sequence[str]) -> int: ...

    async def delete_invoices(self, order_id: str) -> int: ...

    async def delete_auxiliary(
        self,
        table: AuxiliaryTable,
        order_id: str,
        product_ids: Sequence[str],
    ) -> int: ...

    async def delete_order_products(self, order_id: str) -> int: ...

    async def delete_order(self, order_id: str) -> int: ...


class DeletionGuard:
    """Tracks order ids with a deletion in flight within this process."""

    def __init__(self) -> None:
        self._in_flight: set[str] = set()

    def is_in_flight(self, order_id: str) -> bool:
        return order_id in self._in_flight

    @contextmanager
    def hold(self, order_id: str) -> Iterator[None]:
        """
        Mark an order as being deleted for the duration of the block.

        Raises:
            DeletionInProgressError: If the order is already held
        """
        if order_id in self._in_flight:
            raise DeletionInProgressError(
                "Deletion already in progress for this order",
                order_id=order_id,
            )
        self._in_flight.add(order_id)
        try:
            yield
        finally:
            self._in_flight.discard(order_id)


default_guard = DeletionGuard()


# ============================================================================
# Orchestrator
# ============================================================================


class OrderDeletionOrchestrator:
    """
    Deletes an order and its dependents in dependency order.

    Attributes:
        store: Datastore the deletes are issued against
        concurrent: Issue auxiliary deletes concurrently; only honoured when
            the store supports concurrent statements
        auxiliary_tables: Best-effort tables deleted in step 5
        guard: In-flight registry preventing overlapping deletes of one order
    """

    def __init__(
        self,
        store: DeletionStore,
        concurrent: bool = True,
        auxiliary_tables: Sequence[AuxiliaryTable] = AUXILIARY_TABLES,
        guard: Optional[DeletionGuard] = None,
    ):
        self.store = store
        self.concurrent = concurrent and getattr(store, "supports_concurrency", False)
        self.auxiliary_tables = tuple(auxiliary_tables)
        self.guard = guard or default_guard

    async def delete_order(self, order_id: str) -> DeletionReport:
        """
        Delete an order and every dependent record.

        Args:
            order_id: Order to delete

        Returns:
            DeletionReport with ``success=True`` and per-table outcomes

        Raises:
            DeletionInProgressError: If the order is already being deleted
            DeletionStepError: If a structural step fails
            OrderStillReferencedError: If a foreign key blocks the final delete
            OrderDeletionError: If the final delete fails for any other reason
        """
        order_id = str(order_id)
        report = DeletionReport(order_id=order_id)
        started = time.perf_counter()

        with self.guard.hold(order_id):
            try:
                with log_performance(logger, "order_deletion", order_id=order_id):
                    await self._run(order_id, report)
            except OrderDeletionError as e:
                report.error = str(e)
                e.report = report
                raise
            finally:
                report.duration_ms = round((time.perf_counter() - started) * 1000, 2)

        logger.info(
            "Order deleted",
            order_id=order_id,
            product_count=len(report.product_ids),
            invoice_count=len(report.invoice_ids),
            tolerated_failures=[o.table for o in report.tolerated_failures],
        )
        return report

    async def _run(self, order_id: str, report: DeletionReport) -> None:
        product_ids = await self._structural(
            report, 1, ORDER_PRODUCTS_TABLE, self.store.get_product_ids, order_id
        )
        report.product_ids = [str(i) for i in product_ids or []]

        invoice_ids = await self._structural(
            report, 2, INVOICES_TABLE, self.store.get_invoice_ids, order_id
        )
        report.invoice_ids = [str(i) for i in invoice_ids or []]

        if report.invoice_ids:
            rows = await self._structural(
                report,
                3,
                INVOICE_ITEMS_TABLE,
                self.store.delete_invoice_items,
                report.invoice_ids,
            )
            report.record(3, INVOICE_ITEMS_TABLE, TableOutcomeStatus.DELETED, rows=rows)
        else:
            report.record(3, INVOICE_ITEMS_TABLE, TableOutcomeStatus.SKIPPED)

        rows = await self._structural(
            report, 4, INVOICES_TABLE, self.store.delete_invoices, order_id
        )
        report.record(4, INVOICES_TABLE, TableOutcomeStatus.DELETED, rows=rows)

        # Every auxiliary table settles before the lines are deleted
        await self._delete_auxiliary_tables(order_id, report)

        rows = await self._structural(
            report, 6, ORDER_PRODUCTS_TABLE, self.store.delete_order_products, order_id
        )
        report.record(6, ORDER_PRODUCTS_TABLE, TableOutcomeStatus.DELETED, rows=rows)

        await self._delete_order_row(order_id, report)
        report.success = True

    async def _structural(
        self,
        report: DeletionReport,
        step: int,
        table: str,
        operation: Callable[..., Awaitable[Any]],
        *args: Any,
    ) -> Any:
        """Run a structural step, converting any failure into DeletionStepError."""
        try:
            return await operation(*args)
        except Exception as e:
            report.record(step, table, TableOutcomeStatus.FAILED, error=str(e))
            logger.error(
                "Structural deletion step failed",
                order_id=report.order_id,
                step=step,
                table=table,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise DeletionStepError(
                f"Failed to delete {table} for order",
                step=step,
                table=table,
                report=report,
                order_id=report.order_id,
                cause=str(e),
            ) from e

    async def _delete_auxiliary(
        self,
        table: AuxiliaryTable,
        order_id: str,
        product_ids: Sequence[str],
    ) -> TableOutcome:
        if table.order_column is None and not product_ids:
            return TableOutcome(
                step=5,
                table=table.name,
                status=TableOutcomeStatus.SKIPPED,
                critical=False,
            )

        try:
            rows = await self.store.delete_auxiliary(table, order_id, product_ids)
        except Exception as e:
            logger.warning(
                "Auxiliary deletion failed, continuing",
                order_id=order_id,
                table=table.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return TableOutcome(
                step=5,
                table=table.name,
                status=TableOutcomeStatus.FAILED,
                critical=False,
                error=str(e),
            )

        return TableOutcome(
            step=5,
            table=table.name,
            status=TableOutcomeStatus.DELETED,
            rows=rows,
            critical=False,
        )

    async def _delete_auxiliary_tables(
        self, order_id: str, report: DeletionReport
    ) -> None:
        product_ids = list(report.product_ids)

        if self.concurrent:
            outcomes = await asyncio.gather(
                *(
                    self._delete_auxiliary(table, order_id, product_ids)
                    for table in self.auxiliary_tables
                )
            )
        else:
            outcomes = [
                await self._delete_auxiliary(table, order_id, product_ids)
                for table in self.auxiliary_tables
            ]

        report.outcomes.extend(outcomes)

    async def _delete_order_row(self, order_id: str, report: DeletionReport) -> None:
        try:
            rows = await self.store.delete_order(order_id)
        except ReferencedRecordError as e:
            report.record(7, ORDERS_TABLE, TableOutcomeStatus.FAILED, error=str(e))
            logger.error(
                "Order row still referenced",
                order_id=order_id,
                error=str(e),
            )
            raise OrderStillReferencedError(
                "Cannot delete order: related records still exist",
                report=report,
                order_id=order_id,
                cause=str(e),
            ) from e
        except Exception as e:
            report.record(7, ORDERS_TABLE, TableOutcomeStatus.FAILED, error=str(e))
            logger.error(
                "Order row deletion failed",
                order_id=order_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise OrderDeletionError(
                "Failed to delete order",
                report=report,
                order_id=order_id,
                cause=str(e),
            ) from e

        if not rows:
            report.record(
                7, ORDERS_TABLE, TableOutcomeStatus.FAILED, rows=0, error="not found"
            )
            logger.error("Order row not found at final delete", order_id=order_id)
            raise OrderDeletionError(
                "Order row was not deleted",
                report=report,
                order_id=order_id,
            )

        report.record(7, ORDERS_TABLE, TableOutcomeStatus.DELETED, rows=rows)
