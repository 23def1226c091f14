"""Repository layer for persisting orders.

``OrderRepository`` implements ``OrderStorePort`` on top of the Django ORM
so the domain layer is not coupled to ORM types: every method accepts and
returns domain ``Order`` objects.
"""

import uuid
from typing import List, Optional

from django.db import IntegrityError, transaction

from .domain import Order, OrderItem, OrderStatus, OrderStorePort
from .errors import Conflict, DuplicateCode, NotFound
from .models import OrderItemModel, OrderModel


def _to_domain(obj: OrderModel) -> Order:
    return Order(
        id=str(obj.id),
        code=obj.code,
        items=[
            OrderItem(
                product_id=i.product_id,
                name=i.name,
                quantity=i.quantity,
                price_cents=i.price_cents,
            )
            for i in obj.items.all()
        ],
        total_cents=obj.total_cents,
        status=OrderStatus(obj.status),
        created_at=obj.created_at,
        customer_id=obj.customer_id,
    )


def _parse_id(order_id) -> uuid.UUID:
    try:
        return order_id if isinstance(order_id, uuid.UUID) else uuid.UUID(str(order_id))
    except ValueError:
        raise NotFound(f"Order {order_id} not found.")


class OrderRepository(OrderStorePort):
    """Repository that persists Order domain objects using Django ORM."""

    def _queryset(self):
        return OrderModel.objects.prefetch_related("items")

    def create(self, order: Order) -> Order:
        """Persist a new order and its items in one transaction.

        Raises:
            DuplicateCode: If another order already holds ``order.code``.
        """
        try:
            with transaction.atomic():
                obj = OrderModel.objects.create(
                    code=order.code,
                    customer_id=order.customer_id,
                    status=order.status.value,
                    total_cents=order.total_cents,
                    created_at=order.created_at,
                )
                OrderItemModel.objects.bulk_create(
                    [
                        OrderItemModel(
                            order=obj,
                            position=pos,
                            product_id=item.product_id,
                            name=item.name,
                            quantity=item.quantity,
                            price_cents=item.price_cents,
                        )
                        for pos, item in enumerate(order.items)
                    ]
                )
        except IntegrityError:
            if OrderModel.objects.filter(code=order.code).exists():
                raise DuplicateCode(order.code)
            raise
        return self.get(obj.id)

    def get(self, order_id) -> Order:
        try:
            return _to_domain(self._queryset().get(id=_parse_id(order_id)))
        except OrderModel.DoesNotExist:
            raise NotFound(f"Order {order_id} not found.")

    def get_by_code(self, code: str) -> Order:
        try:
            return _to_domain(self._queryset().get(code=code))
        except OrderModel.DoesNotExist:
            raise NotFound(f"Order with code {code} not found.")

    def list(self, status: Optional[OrderStatus] = None) -> List[Order]:
        qs = self._queryset().order_by("-created_at")
        if status is not None:
            qs = qs.filter(status=OrderStatus(status).value)
        return [_to_domain(o) for o in qs]

    def list_by_customer(self, customer_id: str) -> List[Order]:
        qs = self._queryset().filter(customer_id=customer_id).order_by("-created_at")
        return [_to_domain(o) for o in qs]

    def code_exists(self, code: str) -> bool:
        return OrderModel.objects.filter(code=code).exists()

    def update_status(
        self,
        order_id,
        new_status: OrderStatus,
        expected_status: Optional[OrderStatus] = None,
    ) -> Order:
        """Write ``new_status``; a compare-and-swap when ``expected_status`` is set.

        The conditional ``UPDATE ... WHERE status = expected`` is atomic at the
        database, so two racing writers cannot both succeed.
        """
        pk = _parse_id(order_id)
        qs = OrderModel.objects.filter(id=pk)
        if expected_status is not None:
            qs = qs.filter(status=OrderStatus(expected_status).value)
        if not qs.update(status=OrderStatus(new_status).value):
            current = OrderModel.objects.filter(id=pk).values_list("status", flat=True).first()
            if current is None:
                raise NotFound(f"Order {order_id} not found.")
            raise Conflict(str(pk), expected_status, OrderStatus(current))
        return self.get(pk)
