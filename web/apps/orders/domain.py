"""Domain models, ports and the order lifecycle service.

This module contains the dataclasses used as DTOs for orders, the status
state machine, protocol definitions (ports) for the catalog, the order
store, the real-time notifier and the locker, and ``OrderService`` which
creates orders and advances them through ``PREPARING -> READY ->
DELIVERED``. It has no Django imports; persistence and I/O live behind the
ports.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone, tzinfo
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Callable, List, Optional, Protocol

from .codes import OrderCodeGenerator
from .errors import (
    CodeSpaceExhausted,
    Conflict,
    DuplicateCode,
    EmptyOrder,
    InvalidQuantity,
    InvalidTransition,
    ProductNotFound,
)
from .permissions import Action, Role, require

logger = logging.getLogger("orders.lifecycle")


# ---- Enums ----
class OrderStatus(str, Enum):
    """Lifecycle states of an order, in the only order they may occur."""

    PREPARING = "PREPARING"
    READY = "READY"
    DELIVERED = "DELIVERED"


class EventKind(str, Enum):
    """Real-time event names broadcast to every connected viewer."""

    CREATED = "orderCreated"
    STATUS_CHANGED = "orderStatusChanged"


LIFECYCLE = (OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.DELIVERED)

TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PREPARING: frozenset({OrderStatus.READY}),
    OrderStatus.READY: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
}

TERMINAL = frozenset(s for s, targets in TRANSITIONS.items() if not targets)


def can_transition(src: OrderStatus, dst: OrderStatus) -> bool:
    """Return True if ``src -> dst`` is an edge of the lifecycle."""
    return dst in TRANSITIONS.get(src, frozenset())


def status_rank(status: OrderStatus) -> int:
    return LIFECYCLE.index(status)


# ---- Money ----
CENT = Decimal("0.01")


def to_cents(amount) -> int:
    """Convert a decimal amount (``12.5``, ``"12.50"``) to integer cents."""
    value = Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)
    return int(value * 100)


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


# ---- Entities / DTOs ----
@dataclass(frozen=True)
class Product:
    """Read-only view of a catalog product.

    Attributes:
        id: Catalog identifier.
        name: Display name.
        price_cents: Current unit price in cents.
        available: Whether the product can be ordered right now.
    """

    id: str
    name: str
    price_cents: int
    available: bool = True


@dataclass(frozen=True)
class OrderLine:
    """A requested line of a cart: which product and how many."""

    product_id: str
    quantity: int


@dataclass(frozen=True)
class OrderItem:
    """A line item of a persisted order.

    ``price_cents`` is a snapshot of the catalog price at creation time; it
    is never re-read, so later catalog changes do not affect the order.
    """

    product_id: str
    name: str
    quantity: int
    price_cents: int

    @property
    def subtotal_cents(self) -> int:
        return self.price_cents * self.quantity


@dataclass
class Order:
    """Container for order data.

    Attributes:
        id: Store-assigned identifier, or None before persistence.
        code: Four-digit public code used for anonymous tracking.
        items: Line items, fixed at creation.
        total_cents: Sum of item subtotals, fixed at creation.
        status: Current ``OrderStatus``.
        created_at: Creation timestamp (UTC).
        customer_id: Owning customer account, None for guest orders.
    """

    id: Optional[str]
    code: str
    items: List[OrderItem]
    total_cents: int
    status: OrderStatus = OrderStatus.PREPARING
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    customer_id: Optional[str] = None


@dataclass(frozen=True)
class SalesAnalytics:
    """Sales figures over every stored order, whatever its status.

    Attributes:
        order_count: Number of orders.
        revenue_cents: Sum of order totals.
        revenue_by_hour: 24 buckets of order totals keyed by the hour of
            ``created_at`` in the requested timezone.
        top_products: Up to ``TOP_PRODUCTS`` ``(name, units)`` pairs, most
            units first, ties by name.
    """

    order_count: int
    revenue_cents: int
    revenue_by_hour: List[int]
    top_products: List[tuple[str, int]]


TOP_PRODUCTS = 5


# ---- Ports (DIP) ----
class CatalogPort(Protocol):
    """Read-only product lookup owned by the catalog service."""

    def get_product(self, product_id: str) -> Optional[Product]:
        """Return the product, or None when the id does not resolve."""
        raise NotImplementedError()


class OrderStorePort(Protocol):
    """Persistent order records; the single source of truth for status.

    ``update_status`` does not check that the transition is legal; only
    ``OrderService`` calls it, after validating the edge.
    """

    def create(self, order: Order) -> Order:
        """Persist a new order. Raises ``DuplicateCode`` on a code clash."""
        raise NotImplementedError()

    def get(self, order_id: str) -> Order:
        raise NotImplementedError()

    def get_by_code(self, code: str) -> Order:
        raise NotImplementedError()

    def list(self, status: Optional[OrderStatus] = None) -> List[Order]:
        raise NotImplementedError()

    def list_by_customer(self, customer_id: str) -> List[Order]:
        raise NotImplementedError()

    def code_exists(self, code: str) -> bool:
        raise NotImplementedError()

    def update_status(
        self,
        order_id: str,
        new_status: OrderStatus,
        expected_status: Optional[OrderStatus] = None,
    ) -> Order:
        """Write a new status, optionally as a compare-and-swap.

        Raises:
            NotFound: If the order does not exist.
            Conflict: If ``expected_status`` is given and does not match.
        """
        raise NotImplementedError()


class NotifierPort(Protocol):
    """Best-effort broadcast of order events to every connected viewer."""

    def publish(self, kind: EventKind, order: Order) -> None:
        raise NotImplementedError()


class LockerPort(Protocol):
    """Pickup locker control. Stubbed; there is no real device protocol."""

    def unlock(self, order_code: str) -> None:
        raise NotImplementedError()


# ---- Domain service ----
class OrderService:
    """Order lifecycle engine.

    Creates orders (validate items, price them from the catalog, assign a
    code, persist, notify) and advances their status along ``TRANSITIONS``.
    The service keeps no state between calls; all shared state is in the
    store.
    """

    def __init__(
        self,
        catalog: CatalogPort,
        store: OrderStorePort,
        notifier: NotifierPort,
        locker: Optional[LockerPort] = None,
        codes: Optional[OrderCodeGenerator] = None,
        persist_retries: int = 1,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        """Initialize the service with required dependencies.

        Args:
            catalog: Product lookup used to price items.
            store: Order persistence.
            notifier: Real-time event publisher.
            locker: Optional locker to unlock when an order becomes READY.
            codes: Code generator; defaults to 4 digits checked against ``store``.
            persist_retries: How many times to regenerate the code when the
                store reports a duplicate at persist time.
            clock: Source of ``created_at`` timestamps.
        """
        self.catalog = catalog
        self.store = store
        self.notifier = notifier
        self.locker = locker
        self.codes = codes or OrderCodeGenerator(store.code_exists)
        self.persist_retries = persist_retries
        self.clock = clock

    # -- creation --
    def _price(self, lines: List[OrderLine]) -> List[OrderItem]:
        items = []
        for line in lines:
            if line.quantity < 1:
                raise InvalidQuantity(line.product_id, line.quantity)
            product = self.catalog.get_product(line.product_id)
            if product is None:
                raise ProductNotFound(line.product_id)
            if not product.available:
                raise ProductNotFound(line.product_id, reason="is not available")
            items.append(
                OrderItem(
                    product_id=product.id,
                    name=product.name,
                    quantity=line.quantity,
                    price_cents=product.price_cents,
                )
            )
        return items

    def create_order(self, lines: List[OrderLine], customer_id: Optional[str] = None) -> Order:
        """Create an order in a single all-or-nothing step.

        Args:
            lines: Requested products and quantities.
            customer_id: Owning customer, or None for a guest order.

        Returns:
            The persisted order with its ``id`` and ``code``.

        Raises:
            EmptyOrder: If ``lines`` is empty.
            InvalidQuantity: If a quantity is below 1.
            ProductNotFound: If a product does not resolve or is unavailable.
            CodeSpaceExhausted: If no free code could be found and persisted.
        """
        if not lines:
            raise EmptyOrder()

        items = self._price(lines)
        total = sum(i.subtotal_cents for i in items)
        created_at = self.clock()

        saved = None
        for attempt in range(self.persist_retries + 1):
            code = self.codes.generate()
            draft = Order(
                id=None,
                code=code,
                items=items,
                total_cents=total,
                status=OrderStatus.PREPARING,
                created_at=created_at,
                customer_id=customer_id,
            )
            try:
                saved = self.store.create(draft)
                break
            except DuplicateCode:
                logger.warning("order code collision", extra={"code": code, "attempt": attempt + 1})
        if saved is None:
            raise CodeSpaceExhausted(self.persist_retries + 1)

        logger.info(
            "order created",
            extra={"order_id": saved.id, "code": saved.code, "total_cents": saved.total_cents},
        )
        self._emit(EventKind.CREATED, saved)
        return saved

    # -- transitions --
    def advance_status(
        self,
        order_id: str,
        requested: OrderStatus,
        actor_role: Role,
        expected_status: Optional[OrderStatus] = None,
    ) -> Order:
        """Move an order one step along the lifecycle.

        Repeating the current status is a no-op success (tolerates double
        clicks), except on a terminal order where every request fails.

        Raises:
            Forbidden: If ``actor_role`` may not advance orders.
            NotFound: If the order does not exist.
            Conflict: If ``expected_status`` is stale, or a concurrent
                writer moved the order elsewhere.
            InvalidTransition: If ``current -> requested`` is not an edge.
        """
        require(actor_role, Action.ADVANCE_STATUS)
        requested = OrderStatus(requested)

        order = self.store.get(order_id)
        current = order.status
        if expected_status is not None and OrderStatus(expected_status) != current:
            raise Conflict(order.id, OrderStatus(expected_status), current)
        if current in TERMINAL:
            raise InvalidTransition(current, requested)
        if requested == current:
            return order
        if not can_transition(current, requested):
            raise InvalidTransition(current, requested)

        try:
            updated = self.store.update_status(order.id, requested, expected_status=current)
        except Conflict:
            latest = self.store.get(order.id)
            if latest.status == requested:
                return latest
            raise Conflict(order.id, current, latest.status)

        logger.info(
            "order status changed",
            extra={"order_id": updated.id, "code": updated.code,
                   "from": current.value, "to": requested.value, "role": actor_role.value},
        )
        self._emit(EventKind.STATUS_CHANGED, updated)
        if requested == OrderStatus.READY and self.locker is not None:
            try:
                self.locker.unlock(updated.code)
            except Exception:
                logger.warning("locker unlock failed", exc_info=True, extra={"code": updated.code})
        return updated

    # -- reads --
    def get_order(self, order_id: str) -> Order:
        return self.store.get(order_id)

    def find_by_code(self, code: str) -> Order:
        return self.store.get_by_code((code or "").strip())

    def list_orders(self, status: Optional[OrderStatus] = None) -> List[Order]:
        return self.store.list(status=status)

    def order_history(self, customer_id: str) -> List[Order]:
        return self.store.list_by_customer(customer_id)

    def sales_analytics(self, tz: tzinfo = timezone.utc) -> SalesAnalytics:
        orders = self.store.list()
        by_hour = [0] * 24
        units: Counter = Counter()
        for o in orders:
            by_hour[o.created_at.astimezone(tz).hour] += o.total_cents
            for item in o.items:
                units[item.name] += item.quantity
        top = sorted(units.items(), key=lambda kv: (-kv[1], kv[0]))[:TOP_PRODUCTS]
        return SalesAnalytics(
            order_count=len(orders),
            revenue_cents=sum(o.total_cents for o in orders),
            revenue_by_hour=by_hour,
            top_products=top,
        )

    def _emit(self, kind: EventKind, order: Order) -> None:
        # Push is an optimization on top of polling; never fail the caller.
        try:
            self.notifier.publish(kind, replace(order))
        except Exception:
            logger.warning("event publish failed", exc_info=True,
                           extra={"event": kind.value, "order_id": order.id})
