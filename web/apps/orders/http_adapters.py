"""HTTP adapter clients with retries, circuit breakers, and context headers.

This module implements the HTTP side of the domain ports using ``httpx``:

- ``HttpCatalogClient`` looks products up in the catalog service.
- ``HttpNotifier`` publishes order events to the realtime service.
- ``HttpLockerClient`` asks the realtime service to broadcast a locker
  ``unlock`` command on the IoT channel.

Cross-cutting behavior:

- Request correlation: propagates ``X-Request-ID`` from the ContextVar set
  by the gateway middleware.
- One circuit breaker per downstream service, with HALF_OPEN probing after
  a timeout.
- Retry with capped exponential backoff on transport errors and 5xx for
  reads. Publishing is single-shot: events are best effort and a late
  duplicate is worse than a missed one, since viewers re-poll anyway.
"""

import logging
import threading
import time
from enum import Enum
from typing import Callable, Optional

import httpx
from django.conf import settings

from gateway.middleware import REQUEST_ID_CTX

from .domain import CatalogPort, EventKind, LockerPort, NotifierPort, Order, Product, to_cents
from .schemas import order_to_json

logger = logging.getLogger("orders.http")


class CircuitOpen(httpx.TransportError):
    """Raised instead of calling a downstream whose breaker is open."""


# ---------------- Circuit Breaker ---------------- #

class BreakerState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class CircuitBreaker:
    """Thread-safe circuit breaker.

    CLOSED -> OPEN after ``fail_threshold`` consecutive failures; OPEN ->
    HALF_OPEN once ``reset_timeout`` seconds have passed; HALF_OPEN lets a
    single probe through and closes on success or re-opens on failure.
    """

    def __init__(self, name: str, fail_threshold: int, reset_timeout: float):
        self.name = name
        self.fail_threshold = fail_threshold
        self.reset_timeout = reset_timeout
        self._lock = threading.RLock()
        self._failures = 0
        self._state = BreakerState.CLOSED
        self._opened_at = 0.0
        self._probing = False

    @property
    def state(self) -> BreakerState:
        with self._lock:
            if (
                self._state == BreakerState.OPEN
                and time.monotonic() - self._opened_at >= self.reset_timeout
            ):
                self._state = BreakerState.HALF_OPEN
                self._probing = False
            return self._state

    def acquire(self) -> BreakerState:
        """Admit a call or raise ``CircuitOpen``."""
        with self._lock:
            st = self.state
            if st == BreakerState.OPEN:
                raise CircuitOpen(f"{self.name}: circuit open")
            if st == BreakerState.HALF_OPEN:
                if self._probing:
                    raise CircuitOpen(f"{self.name}: half-open probe in flight")
                self._probing = True
            return st

    def record_success(self):
        with self._lock:
            self._failures = 0
            self._state = BreakerState.CLOSED
            self._probing = False

    def record_failure(self):
        with self._lock:
            self._failures += 1
            self._probing = False
            if self._state == BreakerState.HALF_OPEN or (
                self._failures >= self.fail_threshold and self._state != BreakerState.OPEN
            ):
                self._state = BreakerState.OPEN
                self._opened_at = time.monotonic()
                logger.warning("circuit opened", extra={"service": self.name, "failures": self._failures})

    def reset(self):
        self.record_success()


def _breaker(name: str) -> CircuitBreaker:
    return CircuitBreaker(
        name,
        getattr(settings, "HTTP_CIRCUIT_FAIL_THRESHOLD", 5),
        getattr(settings, "HTTP_CIRCUIT_RESET_TIMEOUT", 30.0),
    )


# Per-service instances
catalog_breaker = _breaker("catalog")
realtime_breaker = _breaker("realtime")


# ---------------- Helpers ---------------- #

def _request_headers(extra: Optional[dict] = None) -> dict:
    """Base headers for outgoing calls: ``X-Request-ID`` plus ``extra``."""
    headers: dict[str, str] = {}
    rid = REQUEST_ID_CTX.get()
    if rid and rid != "-":
        headers["X-Request-ID"] = rid
    if extra:
        headers.update(extra)
    return headers


def _retry_policy() -> tuple[int, float, float]:
    """Return ``(max_attempts, backoff_base, max_sleep)`` from settings."""
    return (
        max(1, getattr(settings, "HTTP_RETRY_MAX", 3)),
        getattr(settings, "HTTP_RETRY_BACKOFF_BASE", 0.15),
        getattr(settings, "HTTP_RETRY_MAX_SLEEP", 0.5),
    )


def _is_retryable(resp: Optional[httpx.Response], exc: Optional[Exception]) -> bool:
    if exc is not None:
        return True
    return resp is not None and 500 <= resp.status_code < 600


def call_with_resilience(
    breaker: CircuitBreaker,
    send: Callable[[dict], httpx.Response],
    accept: Callable[[httpx.Response], bool],
    attempts: Optional[int] = None,
) -> httpx.Response:
    """Run ``send`` under ``breaker`` with retries.

    Args:
        breaker: Breaker of the target service.
        send: Performs one HTTP call given the outgoing headers.
        accept: Returns True for responses that are a business answer
            (success or an expected 4xx); these close the breaker and are
            returned as is.
        attempts: Overrides the configured maximum number of attempts.

    Returns:
        httpx.Response: The accepted response.

    Raises:
        CircuitOpen: If the breaker refuses the call.
        httpx.RequestError: Transport failure after the last attempt.
        httpx.HTTPStatusError: Non-accepted status after the last attempt.
    """
    max_attempts, backoff, cap = _retry_policy()
    if attempts is not None:
        max_attempts = attempts
    state = breaker.acquire()
    headers = _request_headers({"X-Circuit-State": state.value, "X-Retry-Count": "0"})

    tries = 0
    while True:
        resp, exc = None, None
        try:
            resp = send(headers)
            if accept(resp):
                breaker.record_success()
                return resp
        except httpx.RequestError as e:
            exc = e

        tries += 1
        if tries >= max_attempts or not _is_retryable(resp, exc):
            breaker.record_failure()
            if exc is not None:
                raise exc
            resp.raise_for_status()
            raise httpx.HTTPStatusError(
                f"unexpected status {resp.status_code}", request=resp.request, response=resp
            )

        headers["X-Retry-Count"] = str(tries)
        time.sleep(min(backoff * (2 ** (tries - 1)), cap))


# ---------------- Catalog Adapter ---------------- #

class HttpCatalogClient(CatalogPort):
    """HTTP client for the catalog service.

    ``GET /products/{id}``: 200 maps to a ``Product``; 404 maps to None.
    """

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = (base_url or settings.CATALOG_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECS

    def get_product(self, product_id: str) -> Optional[Product]:
        url = f"{self.base_url}/products/{product_id}"
        with httpx.Client(timeout=self.timeout) as client:
            resp = call_with_resilience(
                catalog_breaker,
                lambda headers: client.get(url, headers=headers),
                lambda r: r.status_code in (200, 404),
            )
        if resp.status_code == 404:
            return None
        data = resp.json()
        return Product(
            id=str(data["id"]),
            name=data["name"],
            price_cents=to_cents(data["price"]),
            available=bool(data.get("available", True)),
        )


# ---------------- Realtime Adapters ---------------- #

class _RealtimePublisher:
    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = (base_url or settings.REALTIME_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECS

    def _publish(self, channel: str, event: str, data: dict) -> int:
        payload = {"channel": channel, "event": event, "data": data}
        with httpx.Client(timeout=self.timeout) as client:
            resp = call_with_resilience(
                realtime_breaker,
                lambda headers: client.post(f"{self.base_url}/publish", json=payload, headers=headers),
                lambda r: r.status_code == 200,
                attempts=1,
            )
        return int(resp.json().get("delivered", 0))


class HttpNotifier(_RealtimePublisher, NotifierPort):
    """Publishes order events on the realtime ``orders`` channel."""

    def publish(self, kind: EventKind, order: Order) -> None:
        delivered = self._publish("orders", kind.value, order_to_json(order))
        logger.info("event published", extra={"event": kind.value, "code": order.code, "delivered": delivered})


class HttpLockerClient(_RealtimePublisher, LockerPort):
    """Broadcasts ``unlock`` on the realtime ``iot`` channel."""

    def __init__(self, device_name: str | None = None, **kwargs):
        super().__init__(**kwargs)
        self.device_name = device_name or getattr(settings, "LOCKER_DEVICE_NAME", "locker-01")

    def unlock(self, order_code: str) -> None:
        self._publish("iot", "unlock", {"deviceName": self.device_name, "orderCode": order_code})
