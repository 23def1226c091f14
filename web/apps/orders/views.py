"""HTTP views for the orders app.

Views are kept small: they validate requests (via Pydantic), wrap the
configured ``OrderService`` in an ``OrderAccess`` for the caller's role,
delegate, and map domain errors to HTTP responses.

The service comes from ``providers.get_order_service()``, which wires the
HTTP adapters (``HttpCatalogClient``, ``HttpNotifier``, ``HttpLockerClient``)
or in-process stubs depending on ``settings.USE_HTTP_ADAPTERS``.

Idempotency: ``POST /orders/`` accepts an ``Idempotency-Key`` header. The
first request claims the key and stores its response; a retry with the same
payload gets the stored response back with ``Idempotent-Replay: true``; the
same key with a different payload is a 409.
"""

import logging

import httpx
from django.utils import timezone
from pydantic import ValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from . import providers
from .domain import OrderStatus
from .errors import (
    CodeSpaceExhausted,
    Conflict,
    EmptyOrder,
    Forbidden,
    InvalidQuantity,
    InvalidTransition,
    NotFound,
    OrderError,
    ProductNotFound,
)
from .idempotency import IdempotencyConflict, claim, release, store_response
from .permissions import GUEST, OrderAccess
from .schemas import CreateOrderDTO, SalesAnalyticsDTO, UpdateStatusDTO, order_to_json

logger = logging.getLogger("orders.api")

ERROR_STATUS = {
    EmptyOrder: status.HTTP_400_BAD_REQUEST,
    InvalidQuantity: status.HTTP_400_BAD_REQUEST,
    InvalidTransition: status.HTTP_400_BAD_REQUEST,
    Forbidden: status.HTTP_403_FORBIDDEN,
    NotFound: status.HTTP_404_NOT_FOUND,
    ProductNotFound: status.HTTP_404_NOT_FOUND,
    Conflict: status.HTTP_409_CONFLICT,
    CodeSpaceExhausted: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def error_body(exc: OrderError) -> tuple[int, dict]:
    """Map a domain error to ``(status_code, body)``.

    Forbidden responses carry only the code; the reason stays in the logs.
    """
    code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, Forbidden):
        logger.info("forbidden", extra={"reason": exc.message})
        return code, {"detail": exc.code}
    return code, {"detail": exc.code, "message": exc.message}


def error_response(exc: OrderError) -> Response:
    code, body = error_body(exc)
    return Response(body, status=code)


def validation_response(exc: ValidationError) -> Response:
    return Response(
        {"detail": "VALIDATION_ERROR", "message": str(exc)},
        status=status.HTTP_400_BAD_REQUEST,
    )


class OrdersAPIView(APIView):
    throttle_classes = [ScopedRateThrottle]

    def access(self, request) -> OrderAccess:
        actor = getattr(request._request, "actor", GUEST)
        return OrderAccess(providers.get_order_service(), actor)


class OrdersCollectionView(OrdersAPIView):
    """List all orders (staff) or create one (guest, customer, admin)."""

    def get_throttles(self):
        self.throttle_scope = "orders_list" if self.request.method == "GET" else "orders_create"
        return super().get_throttles()

    def get(self, request):
        raw = request.query_params.get("status")
        try:
            wanted = OrderStatus(raw.strip().upper()) if raw else None
        except ValueError:
            return Response(
                {"detail": "VALIDATION_ERROR", "message": f"Unknown status: {raw}"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        try:
            orders = self.access(request).all(status=wanted)
        except OrderError as e:
            return error_response(e)
        return Response([order_to_json(o) for o in orders], status=status.HTTP_200_OK)

    def post(self, request):
        """Create a new order.

        Returns:
            Response: One of the following responses.
            - 201 with the order (including its ``code``).
            - 200/4xx replayed body when an idempotency key is retried.
            - 400 for validation errors, ``EMPTY_ORDER`` or ``INVALID_QUANTITY``.
            - 403 when the caller may not create this order.
            - 404 with ``PRODUCT_NOT_FOUND``.
            - 409 with ``IDEMPOTENCY_CONFLICT`` or ``IDEMPOTENCY_IN_PROGRESS``.
            - 503 with ``CODE_SPACE_EXHAUSTED`` or ``UPSTREAM_UNAVAILABLE``.
        """
        try:
            dto = CreateOrderDTO.model_validate(request.data)
        except ValidationError as e:
            return validation_response(e)

        idem_key = request.headers.get("Idempotency-Key")
        held = None
        if idem_key:
            try:
                held = claim(idem_key, request.data)
            except IdempotencyConflict as e:
                return Response({"detail": str(e)}, status=status.HTTP_409_CONFLICT)
            if held.replay:
                if not held.has_response:
                    return Response({"detail": "IDEMPOTENCY_IN_PROGRESS"}, status=status.HTTP_409_CONFLICT)
                resp = Response(held.record.response_body, status=held.record.response_status)
                resp["Idempotent-Replay"] = "true"
                return resp

        try:
            order = self.access(request).create(dto.to_lines(), customer_id=dto.customer_id)
        except OrderError as e:
            code, body = error_body(e)
            order_id = None
        except httpx.HTTPError:
            logger.exception("catalog unavailable")
            return self.upstream_unavailable(held)
        except Exception:
            logger.exception("order creation failed")
            return self.upstream_unavailable(held)
        else:
            code, body, order_id = status.HTTP_201_CREATED, order_to_json(order), order.id

        if held is not None:
            store_response(held, code, body, order_id=order_id)
        return Response(body, status=code)

    def upstream_unavailable(self, held) -> Response:
        # not the request's fault: leave the key free for a retry
        if held is not None:
            release(held)
        return Response({"detail": "UPSTREAM_UNAVAILABLE"}, status=status.HTTP_503_SERVICE_UNAVAILABLE)


class OrderAnalyticsView(OrdersAPIView):
    """Sales figures for the admin dashboard.

    Hourly buckets use the server's current timezone (``TIME_ZONE``).
    """

    throttle_scope = "orders_list"

    def get(self, request):
        try:
            stats = self.access(request).analytics(tz=timezone.get_current_timezone())
        except OrderError as e:
            return error_response(e)
        return Response(SalesAnalyticsDTO.from_domain(stats).to_json(), status=status.HTTP_200_OK)


class OrderByCodeView(OrdersAPIView):
    """Public lookup by the four-digit tracking code."""

    throttle_scope = "orders_detail"

    def get(self, request, code: str):
        try:
            order = self.access(request).by_code(code)
        except OrderError as e:
            return error_response(e)
        return Response(order_to_json(order), status=status.HTTP_200_OK)


class OrderHistoryView(OrdersAPIView):
    """Orders of the calling customer, newest first."""

    throttle_scope = "orders_detail"

    def get(self, request):
        access = self.access(request)
        if not access.actor.id:
            return Response({"detail": "NOT_AUTHENTICATED"}, status=status.HTTP_401_UNAUTHORIZED)
        try:
            orders = access.history()
        except OrderError as e:
            return error_response(e)
        return Response([order_to_json(o) for o in orders], status=status.HTTP_200_OK)


class RetrieveOrderView(OrdersAPIView):
    throttle_scope = "orders_detail"

    def get(self, request, oid):
        try:
            order = self.access(request).get(str(oid))
        except OrderError as e:
            return error_response(e)
        return Response(order_to_json(order), status=status.HTTP_200_OK)


class OrderStatusView(OrdersAPIView):
    """Advance an order's status (cook, admin)."""

    throttle_scope = "orders_status"

    def patch(self, request, oid):
        try:
            dto = UpdateStatusDTO.model_validate(request.data)
        except ValidationError as e:
            return validation_response(e)
        try:
            order = self.access(request).advance(str(oid), dto.status, expected_status=dto.expected_status)
        except OrderError as e:
            return error_response(e)
        return Response(order_to_json(order), status=status.HTTP_200_OK)
