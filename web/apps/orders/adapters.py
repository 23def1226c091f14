"""In-process stub adapters for the orders domain ports.

These stubs implement ``CatalogPort``, ``OrderStorePort``, ``NotifierPort``
and ``LockerPort`` without any network or database access. They are
intended for unit tests and local development where deterministic behavior
is useful and the catalog and realtime services are not running.
"""

import logging
import threading
import uuid
from dataclasses import replace
from typing import Callable, Dict, List, Optional

from .domain import (
    CatalogPort,
    EventKind,
    LockerPort,
    NotifierPort,
    Order,
    OrderStatus,
    OrderStorePort,
    Product,
)
from .errors import Conflict, DuplicateCode, NotFound

logger = logging.getLogger("orders.adapters")

DEFAULT_MENU = (
    Product("burger", "Ghost Burger", 1250),
    Product("double-cheeseburger", "Cheeseburger Doble", 1299),
    Product("onion-rings", "Aros de Cebolla", 599),
    Product("fries", "Papas Fritas", 450),
    Product("large-drink", "Bebida Grande", 250),
)


class CatalogStub(CatalogPort):
    """Stub implementation of ``CatalogPort`` backed by a dict.

    Seeded with a small fixed menu; tests can add, reprice or withdraw
    products with ``put``.
    """

    def __init__(self, products=DEFAULT_MENU):
        self._products: Dict[str, Product] = {p.id: p for p in products}

    def put(self, product: Product) -> None:
        self._products[product.id] = product

    def get_product(self, product_id: str) -> Optional[Product]:
        """Return the product for ``product_id`` or None when unknown."""
        return self._products.get(product_id)


def _copy(order: Order) -> Order:
    return replace(order, items=list(order.items))


class InMemoryOrderStore(OrderStorePort):
    """Thread-safe in-memory implementation of ``OrderStorePort``.

    Enforces code uniqueness the way the database's unique index does and
    hands out copies so callers cannot mutate stored records.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._orders: Dict[str, Order] = {}
        self._by_code: Dict[str, str] = {}

    def create(self, order: Order) -> Order:
        with self._lock:
            if order.code in self._by_code:
                raise DuplicateCode(order.code)
            saved = replace(order, id=str(uuid.uuid4()), items=list(order.items))
            self._orders[saved.id] = saved
            self._by_code[saved.code] = saved.id
            return _copy(saved)

    def get(self, order_id: str) -> Order:
        with self._lock:
            order = self._orders.get(str(order_id))
            if order is None:
                raise NotFound(f"Order {order_id} not found.")
            return _copy(order)

    def get_by_code(self, code: str) -> Order:
        with self._lock:
            order_id = self._by_code.get(code)
            if order_id is None:
                raise NotFound(f"Order with code {code} not found.")
            return _copy(self._orders[order_id])

    def _newest_first(self, orders) -> List[Order]:
        return [_copy(o) for o in sorted(orders, key=lambda o: o.created_at, reverse=True)]

    def list(self, status: Optional[OrderStatus] = None) -> List[Order]:
        with self._lock:
            return self._newest_first(
                o for o in self._orders.values() if status is None or o.status == status
            )

    def list_by_customer(self, customer_id: str) -> List[Order]:
        with self._lock:
            return self._newest_first(
                o for o in self._orders.values() if customer_id and o.customer_id == customer_id
            )

    def code_exists(self, code: str) -> bool:
        with self._lock:
            return code in self._by_code

    def update_status(
        self,
        order_id: str,
        new_status: OrderStatus,
        expected_status: Optional[OrderStatus] = None,
    ) -> Order:
        with self._lock:
            order = self._orders.get(str(order_id))
            if order is None:
                raise NotFound(f"Order {order_id} not found.")
            if expected_status is not None and order.status != expected_status:
                raise Conflict(order.id, expected_status, order.status)
            order.status = new_status
            return _copy(order)


Listener = Callable[[EventKind, Order], None]


class InProcessNotifier(NotifierPort):
    """Stub implementation of ``NotifierPort`` with synchronous fan-out.

    Listeners subscribed at publish time receive the event; there is no
    buffer, so late subscribers never see earlier events. A listener that
    raises is logged and skipped.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` and return a function that removes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, kind: EventKind, order: Order) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(kind, _copy(order))
            except Exception:
                logger.warning("listener failed", exc_info=True, extra={"event": kind.value})


class LockerStub(LockerPort):
    """Stub implementation of ``LockerPort`` that only records requests."""

    def __init__(self, device_name: str = "locker-01"):
        self.device_name = device_name
        self.unlocked: List[str] = []

    def unlock(self, order_code: str) -> None:
        logger.info("locker unlock requested", extra={"device": self.device_name, "code": order_code})
        self.unlocked.append(order_code)
