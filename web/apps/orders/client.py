"""HTTP client for the orders API and the viewer-side caches built on it.

``OrdersApiClient`` speaks the public REST API. ``OrderTracker`` (customer
tracking page) and ``OrderBoard`` (cook queue, admin dashboard) keep a
local copy of server state that is refreshed on a fixed poll interval and
opportunistically when a push event arrives. They never apply events as
deltas and never treat local state as authoritative: every refresh
re-reads the store through the API.
"""

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional

import httpx

from .domain import Order, OrderLine, OrderStatus
from .errors import (
    CodeSpaceExhausted,
    Conflict,
    EmptyOrder,
    Forbidden,
    InvalidTransition,
    NotFound,
    OrderError,
    ProductNotFound,
)
from .permissions import Action, Actor, GUEST, Role
from .schemas import OrderReadDTO
from .tracking import EMPTY_SNAPSHOT, TrackingConfig, TrackingSnapshot, reconcile

logger = logging.getLogger("orders.client")

CONNECTION_ERROR_MESSAGE = "Connection problem, retrying shortly."


class ApiError(OrderError):
    """Error response the client has no specific mapping for."""

    code = "API_ERROR"

    def __init__(self, status_code: int, detail: str, message: str | None = None):
        self.status_code = status_code
        self.detail = detail
        super().__init__(message or f"{status_code} {detail}")


class ApiUnavailable(ApiError):
    """The API or a proxy in front of it is overloaded or down; retry later."""

    code = "API_UNAVAILABLE"


# failures a polling view survives by keeping its last good data
TRANSIENT_ERRORS = (httpx.RequestError, ApiUnavailable)


def _raise_for_error(resp: httpx.Response) -> None:
    if resp.status_code < 400:
        return
    try:
        body = resp.json()
    except ValueError:
        body = {}
    detail = body.get("detail", "") if isinstance(body, dict) else ""
    message = body.get("message") if isinstance(body, dict) else None
    if detail == "NOT_FOUND":
        raise NotFound(message or "Order not found.")
    if detail == "PRODUCT_NOT_FOUND":
        exc = ProductNotFound("?")
        exc.message = message or exc.message
        raise exc
    if detail == "EMPTY_ORDER":
        raise EmptyOrder()
    if detail == "INVALID_TRANSITION":
        exc = InvalidTransition(None, None)
        exc.message = message or exc.message
        raise exc
    if detail == "CONFLICT":
        exc = Conflict("?", None, None)
        exc.message = message or exc.message
        raise exc
    if detail == "FORBIDDEN":
        raise Forbidden(None, None)
    if detail == "CODE_SPACE_EXHAUSTED":
        raise CodeSpaceExhausted(0)
    if resp.status_code == 429 or resp.status_code >= 500:
        raise ApiUnavailable(resp.status_code, detail or resp.reason_phrase, message)
    raise ApiError(resp.status_code, detail or resp.reason_phrase, message)


class OrdersApiClient:
    """Thin client for ``/api/orders``.

    Args:
        base_url: API root, e.g. ``http://localhost:8000/api``.
        actor: Identity sent as ``X-Actor-Role`` / ``X-Actor-Id``.
        timeout: Per-request timeout in seconds.
    """

    def __init__(self, base_url: str, actor: Actor = GUEST, timeout: float = 5.0):
        self.base_url = base_url.rstrip("/")
        self.actor = actor
        self.timeout = timeout

    def _headers(self) -> dict:
        headers = {"X-Actor-Role": self.actor.role.value}
        if self.actor.id:
            headers["X-Actor-Id"] = self.actor.id
        return headers

    def _get(self, path: str, params: Optional[dict] = None):
        with httpx.Client(timeout=self.timeout) as client:
            resp = client.get(f"{self.base_url}{path}", params=params, headers=self._headers())
        _raise_for_error(resp)
        return resp.json()

    def list_orders(self, status: Optional[OrderStatus] = None) -> List[Order]:
        params = {"status": status.value} if status else None
        return [OrderReadDTO.model_validate(o).to_domain() for o in self._get("/orders/", params)]

    def history(self) -> List[Order]:
        return [OrderReadDTO.model_validate(o).to_domain() for o in self._get("/orders/history/")]

    def get_by_code(self, code: str) -> Order:
        return OrderReadDTO.model_validate(self._get(f"/orders/code/{code}/")).to_domain()

    def create_order(self, lines: List[OrderLine], customer_id: Optional[str] = None) -> Order:
        payload = {"items": [{"productId": line.product_id, "quantity": line.quantity} for line in lines]}
        if customer_id:
            payload["customerId"] = customer_id
        with httpx.Client(timeout=self.timeout) as client:
            resp = client.post(f"{self.base_url}/orders/", json=payload, headers=self._headers())
        _raise_for_error(resp)
        return OrderReadDTO.model_validate(resp.json()).to_domain()

    def advance_status(
        self, order_id: str, status: OrderStatus, expected_status: Optional[OrderStatus] = None
    ) -> Order:
        payload = {"status": status.value}
        if expected_status is not None:
            payload["expectedStatus"] = expected_status.value
        with httpx.Client(timeout=self.timeout) as client:
            resp = client.patch(
                f"{self.base_url}/orders/{order_id}/status/", json=payload, headers=self._headers()
            )
        _raise_for_error(resp)
        return OrderReadDTO.model_validate(resp.json()).to_domain()


class OrderTracker:
    """Tracks one order by its public code.

    ``refresh`` re-reads the order and reconciles it with the time estimate.
    Transport failures keep the last good order and flag the snapshot as
    stale; they never clear what the viewer already has.
    """

    def __init__(
        self,
        api: OrdersApiClient,
        code: str,
        config: TrackingConfig = TrackingConfig(),
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.api = api
        self.code = code.strip()
        self.config = config
        self.clock = clock
        self._order: Optional[Order] = None
        self._snapshot = EMPTY_SNAPSHOT

    @property
    def order(self) -> Optional[Order]:
        return self._order

    def snapshot(self) -> TrackingSnapshot:
        """Re-evaluate the estimate for the current time without fetching."""
        if self._order is None:
            return self._snapshot
        snap = reconcile(self._order, self.clock(), self.config)
        if self._snapshot.stale:
            return TrackingSnapshot(
                snap.order, snap.status, snap.display_status, snap.progress,
                estimated=snap.estimated, stale=True, error=self._snapshot.error,
            )
        return snap

    def refresh(self) -> TrackingSnapshot:
        """Fetch the order and return a fresh snapshot.

        Raises:
            NotFound: If no order has this code.
        """
        try:
            order = self.api.get_by_code(self.code)
        except TRANSIENT_ERRORS:
            logger.warning("tracking refresh failed", exc_info=True, extra={"code": self.code})
            self._snapshot = TrackingSnapshot(
                order=self._order,
                status=self._order.status if self._order else None,
                display_status=self._order.status if self._order else None,
                progress=self._snapshot.progress,
                stale=True,
                error=CONNECTION_ERROR_MESSAGE,
            )
            return self.snapshot()
        self._order = order
        self._snapshot = reconcile(order, self.clock(), self.config)
        return self._snapshot

    def handle_event(self, event: dict) -> Optional[TrackingSnapshot]:
        """React to a realtime event by refreshing if it concerns this order."""
        data = event.get("data") or {}
        if data.get("code") not in (None, self.code):
            return None
        return self.refresh()

    def follow(self, on_update: Callable[[TrackingSnapshot], None], stop: threading.Event) -> None:
        """Poll until ``stop`` is set or the order is delivered."""
        while not stop.is_set():
            snap = self.refresh()
            on_update(snap)
            if snap.status == OrderStatus.DELIVERED:
                return
            stop.wait(self.config.poll_secs)


class OrderBoard:
    """Read-through cache of the full order collection for staff views."""

    def __init__(self, api: OrdersApiClient):
        if api.actor.role not in (Role.COOK, Role.ADMIN):
            raise Forbidden(api.actor.role, Action.READ_ALL)
        self.api = api
        self._orders: List[Order] = []
        self.last_refresh: Optional[float] = None
        self.error: Optional[str] = None

    @property
    def orders(self) -> List[Order]:
        return list(self._orders)

    def refresh(self) -> List[Order]:
        try:
            self._orders = self.api.list_orders()
        except TRANSIENT_ERRORS:
            logger.warning("board refresh failed", exc_info=True)
            self.error = CONNECTION_ERROR_MESSAGE
            return self.orders
        self.error = None
        self.last_refresh = time.monotonic()
        return self.orders

    def handle_event(self, event: dict) -> List[Order]:
        return self.refresh()

    def active_queue(self) -> List[Order]:
        """Orders not yet delivered, oldest first (kitchen order)."""
        return sorted(
            (o for o in self._orders if o.status != OrderStatus.DELIVERED),
            key=lambda o: o.created_at,
        )

    def advance(self, order: Order, status: OrderStatus) -> Order:
        """Request a transition; the board is refreshed from the server after."""
        updated = self.api.advance_status(order.id, status, expected_status=order.status)
        self.refresh()
        return updated
