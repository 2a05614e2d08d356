"""
Worklist tab classification and badge counts.

The classifier decides, for one viewing actor, which worklist tabs an order
belongs to. Every tab rule is expressed as a function returning the *units*
that qualify an order: the ids of matching lines plus, where the order-level
sample workflow qualifies, a ``sample:<order id>`` pseudo-unit. An order is a
member of a tab when it has at least one unit there, and a tab's badge count
is the number of units across all orders. Membership and counts therefore
come from the same rule.

Action queues (``my_orders``, ``invoice_approval``, ``sent_to_other``) only
consider lines that have not reached production. ``sent_to_other`` is
exclusive with the viewer's own side: an order with anything outstanding for
the viewer stays out of it, even when the other side also has work.

The classifier is pure and holds no mutable state after construction, so a
single instance can serve concurrent readers.
"""

from datetime import date
from typing import Any, Callable, Iterable, Optional, Union

from orderflow.core.logging import get_logger, log_performance
from orderflow.schemas.orders import OrderSnapshot, TabCounts
from orderflow.services.orders.enums import (
    ActorRole,
    OrderTab,
    ProductionSubTab,
    RoutedTo,
)
from orderflow.services.orders.numbering import format_order_number
from orderflow.services.orders.predicates import (
    active_lines,
    is_approved_for_production,
    is_held_by,
    is_held_by_any,
    is_in_production,
    is_invoice_ready,
    is_line_sample_approved,
    is_order_sample_approved,
    is_sample_active,
    is_shipped,
    product_has_fees,
)
from orderflow.services.orders.state_machine import inspect_line, normalize_tag
from orderflow.services.orders.threshold import ShipQueueConfig

logger = get_logger(__name__)

SAMPLE_UNIT_PREFIX = "sample:"
ALL_STATUSES = "all"

TabSelector = Union[OrderTab, ProductionSubTab, str]


class ClassificationError(Exception):
    """Raised when a tab or sub-tab selector cannot be resolved."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


def sample_unit(order: Any) -> str:
    return f"{SAMPLE_UNIT_PREFIX}{getattr(order, 'id', None)}"


def line_unit(product: Any) -> str:
    return str(getattr(product, "id", None))


def resolve_selector(
    tab: TabSelector,
    sub_tab: Optional[Union[ProductionSubTab, str]] = None,
) -> tuple[OrderTab, Optional[ProductionSubTab]]:
    """
    Resolve raw tab and sub-tab selectors.

    A production sub-tab may be passed directly as ``tab``. A sub-tab given
    with any tab other than ``production_status`` is ignored.

    Raises:
        ClassificationError: If either selector is not a known value
    """
    if isinstance(tab, ProductionSubTab):
        return OrderTab.PRODUCTION_STATUS, tab

    if not isinstance(tab, OrderTab):
        raw = str(tab or "").strip().lower()
        if raw in {s.value for s in ProductionSubTab}:
            return OrderTab.PRODUCTION_STATUS, ProductionSubTab(raw)
        try:
            tab = OrderTab.from_string(raw)
        except ValueError as e:
            raise ClassificationError(str(e), tab=raw) from e

    if tab is not OrderTab.PRODUCTION_STATUS or sub_tab in (None, ""):
        return tab, None

    if isinstance(sub_tab, ProductionSubTab):
        return tab, sub_tab
    try:
        return tab, ProductionSubTab.from_string(str(sub_tab))
    except ValueError as e:
        raise ClassificationError(str(e), tab=tab.value, sub_tab=sub_tab) from e


class OrderTabClassifier:
    """
    Role-scoped tab classifier for a snapshot of orders.

    Attributes:
        role: Parsed viewing role, None for unknown roles
        today: Calendar day used by the ready-to-ship window
        ship_queue: Ready-to-ship window of the viewing manufacturer
    """

    def __init__(
        self,
        role: "Optional[str | ActorRole]",
        today: date,
        ship_queue: Optional[ShipQueueConfig] = None,
    ):
        self.role = ActorRole.parse(role)
        self.today = today
        self.ship_queue = ship_queue or ShipQueueConfig.default()
        self._own_party: Optional[RoutedTo] = self.role.own_party if self.role else None
        self._other_parties: frozenset = (
            self.role.other_parties if self.role else frozenset()
        )

    # ------------------------------------------------------------------
    # Per-tab unit rules
    # ------------------------------------------------------------------

    def _sample_units_for(self, order: Any, parties: Iterable[str]) -> list[str]:
        if not is_sample_active(order):
            return []
        if normalize_tag(getattr(order, "sample_routed_to", None)) in parties:
            return [sample_unit(order)]
        return []

    def _own_units(self, order: Any) -> list[str]:
        """Everything outstanding on the viewer's side, billable or not."""
        if self._own_party is None:
            return []
        units = [
            line_unit(p) for p in active_lines(order) if is_held_by(p, self._own_party)
        ]
        return units + self._sample_units_for(order, {self._own_party.value})

    def _my_orders_units(self, order: Any) -> list[str]:
        if self._own_party is None:
            return []
        lines = [p for p in active_lines(order) if is_held_by(p, self._own_party)]
        if self.role.is_admin():
            # Billable admin lines are queued under invoice approval instead
            lines = [p for p in lines if not product_has_fees(p)]
        units = [line_unit(p) for p in lines]
        return units + self._sample_units_for(order, {self._own_party.value})

    def _invoice_approval_units(self, order: Any) -> list[str]:
        if self.role is None or not (self.role.is_admin() or self.role.is_client()):
            return []
        return [line_unit(p) for p in active_lines(order) if is_invoice_ready(p)]

    def _sent_to_other_units(self, order: Any) -> list[str]:
        if not self._other_parties or self._own_units(order):
            return []
        units = [
            line_unit(p)
            for p in active_lines(order)
            if is_held_by_any(p, self._other_parties)
        ]
        return units + self._sample_units_for(order, self._other_parties)

    def _sample_approved_units(self, order: Any) -> list[str]:
        if self._own_party is None:
            return []
        units = [sample_unit(order)] if is_order_sample_approved(order) else []
        return units + [
            line_unit(p) for p in active_lines(order) if is_line_sample_approved(p)
        ]

    def _lines_matching(self, order: Any, predicate: Callable[[Any], bool]) -> list[str]:
        # Roles without a routing party of their own have no worklist
        if self._own_party is None:
            return []
        return [line_unit(p) for p in active_lines(order) if predicate(p)]

    def _ready_to_ship_units(self, order: Any) -> list[str]:
        if self.role is None or not self.role.is_manufacturer():
            return []
        return [
            line_unit(p)
            for p in active_lines(order)
            if is_in_production(p)
            and self.ship_queue.is_ready(
                getattr(p, "estimated_ship_date", None), self.today
            )
        ]

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    def matching_units(
        self,
        order: Any,
        tab: TabSelector,
        sub_tab: Optional[Union[ProductionSubTab, str]] = None,
    ) -> list[str]:
        """
        Units that place an order in a tab for this viewer.

        Args:
            order: Order snapshot
            tab: Tab selector (enum or string); production sub-tabs allowed
            sub_tab: Production sub-tab; None with ``production_status``
                selects all three sub-tabs

        Returns:
            Line ids and sample pseudo-units; empty when the order is not
            a member

        Raises:
            ClassificationError: If the selector is unknown
        """
        resolved_tab, resolved_sub_tab = resolve_selector(tab, sub_tab)

        if resolved_tab is OrderTab.MY_ORDERS:
            return self._my_orders_units(order)
        if resolved_tab is OrderTab.INVOICE_APPROVAL:
            return self._invoice_approval_units(order)
        if resolved_tab is OrderTab.SENT_TO_OTHER:
            return self._sent_to_other_units(order)
        if resolved_tab is OrderTab.READY_TO_SHIP:
            return self._ready_to_ship_units(order)
        if resolved_tab is OrderTab.SHIPPED:
            return self._lines_matching(order, is_shipped)

        sub_tabs = (
            [resolved_sub_tab] if resolved_sub_tab is not None else list(ProductionSubTab)
        )
        units: list[str] = []
        for sub in sub_tabs:
            if sub is ProductionSubTab.SAMPLE_APPROVED:
                units.extend(self._sample_approved_units(order))
            elif sub is ProductionSubTab.APPROVED_FOR_PRODUCTION:
                units.extend(self._lines_matching(order, is_approved_for_production))
            else:
                units.extend(self._lines_matching(order, is_in_production))
        return units

    def is_member(
        self,
        order: Any,
        tab: TabSelector,
        sub_tab: Optional[Union[ProductionSubTab, str]] = None,
    ) -> bool:
        return bool(self.matching_units(order, tab, sub_tab))

    def filter_orders(
        self,
        orders: list[OrderSnapshot],
        tab: TabSelector,
        sub_tab: Optional[Union[ProductionSubTab, str]] = None,
    ) -> list[OrderSnapshot]:
        """Orders belonging to a tab, in their original order."""
        resolved_tab, resolved_sub_tab = resolve_selector(tab, sub_tab)
        with log_performance(
            logger,
            "filter_orders",
            tab=resolved_tab.value,
            sub_tab=resolved_sub_tab.value if resolved_sub_tab else None,
            role=self.role.value if self.role else None,
            order_count=len(orders),
        ):
            return [
                order
                for order in orders
                if self.matching_units(order, resolved_tab, resolved_sub_tab)
            ]

    def count_tabs(self, orders: list[OrderSnapshot]) -> TabCounts:
        """
        Badge counts for every tab.

        Each count is the number of matching units across all orders;
        ``production_total`` sums the three production sub-tabs.
        """
        with log_performance(
            logger,
            "count_tabs",
            role=self.role.value if self.role else None,
            order_count=len(orders),
        ):
            counts = {
                "my_orders": 0,
                "invoice_approval": 0,
                "sent_to_other": 0,
                "sample_approved": 0,
                "approved_for_production": 0,
                "in_production": 0,
                "ready_to_ship": 0,
                "shipped": 0,
            }
            selectors = {
                "my_orders": (OrderTab.MY_ORDERS, None),
                "invoice_approval": (OrderTab.INVOICE_APPROVAL, None),
                "sent_to_other": (OrderTab.SENT_TO_OTHER, None),
                "sample_approved": (
                    OrderTab.PRODUCTION_STATUS,
                    ProductionSubTab.SAMPLE_APPROVED,
                ),
                "approved_for_production": (
                    OrderTab.PRODUCTION_STATUS,
                    ProductionSubTab.APPROVED_FOR_PRODUCTION,
                ),
                "in_production": (
                    OrderTab.PRODUCTION_STATUS,
                    ProductionSubTab.IN_PRODUCTION,
                ),
                "ready_to_ship": (OrderTab.READY_TO_SHIP, None),
                "shipped": (OrderTab.SHIPPED, None),
            }

            for order in orders:
                for key, (tab, sub_tab) in selectors.items():
                    counts[key] += len(self.matching_units(order, tab, sub_tab))

            invalid = invalid_lines(orders)
            if invalid:
                logger.warning(
                    "Lines with unexpected routing/status combinations",
                    role=self.role.value if self.role else None,
                    count=len(invalid),
                    product_ids=invalid,
                )

            return TabCounts(
                **counts,
                production_total=(
                    counts["sample_approved"]
                    + counts["approved_for_production"]
                    + counts["in_production"]
                ),
            )


def invalid_lines(orders: list[OrderSnapshot]) -> list[str]:
    """Ids of active lines whose routing and status do not form a known pair."""
    return [
        line_unit(p)
        for order in orders
        for p in active_lines(order)
        if not inspect_line(p).valid
    ]


def _search_fields(order: Any) -> list[str]:
    client = getattr(order, "client", None)
    manufacturer = getattr(order, "manufacturer", None)
    values = [
        format_order_number(getattr(order, "order_number", None)),
        getattr(order, "order_number", None),
        getattr(order, "order_name", None),
        getattr(client, "name", None) if client else None,
        getattr(manufacturer, "name", None) if manufacturer else None,
    ]
    return [v.lower() for v in values if v]


def filter_by_search(orders: list[OrderSnapshot], term: Optional[str]) -> list[OrderSnapshot]:
    """
    Case-insensitive substring match on order number, order name and party
    names. A blank term returns the input unchanged.
    """
    needle = (term or "").strip().lower()
    if not needle:
        return orders
    return [o for o in orders if any(needle in field for field in _search_fields(o))]


def filter_by_status(orders: list[OrderSnapshot], status: Optional[str]) -> list[OrderSnapshot]:
    """Orders whose lifecycle status matches; ``all`` or blank keeps every order."""
    wanted = normalize_tag(status)
    if wanted is None or wanted == ALL_STATUSES:
        return orders
    return [o for o in orders if normalize_tag(getattr(o, "status", None)) == wanted]
