"""Pydantic schemas for orders.

This module exposes the request/validation schemas used by the orders API
and the read schema shared by the API responses, the realtime events and
the tracking client. Field names on the wire are camelCase.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .domain import Order, OrderItem, OrderLine, OrderStatus, SalesAnalytics, from_cents, to_cents


class _Wire(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class OrderItemIn(_Wire):
    """Input schema for a single cart line.

    Attributes:
        product_id: Catalog product id (``productId`` on the wire).
        quantity: Units requested, at least 1.
    """

    product_id: str = Field(alias="productId", min_length=1, max_length=64)
    quantity: int = Field(ge=1)

    @field_validator("product_id")
    @classmethod
    def strip_product_id(cls, v: str) -> str:
        v2 = v.strip()
        if not v2:
            raise ValueError("productId must not be blank")
        return v2


class CreateOrderDTO(_Wire):
    """Schema for creating an order.

    ``items`` may be empty at this layer; the lifecycle engine rejects it
    with ``EMPTY_ORDER`` so the error code is the same everywhere.
    """

    customer_id: Optional[str] = Field(default=None, alias="customerId", max_length=64)
    items: list[OrderItemIn]

    def to_lines(self) -> list[OrderLine]:
        return [OrderLine(product_id=i.product_id, quantity=i.quantity) for i in self.items]


class UpdateStatusDTO(_Wire):
    """Schema for a status change request.

    Attributes:
        status: Target status.
        expected_status: Optional status the caller believes the order is
            in; when given, the change fails with 409 if it is stale.
    """

    status: OrderStatus
    expected_status: Optional[OrderStatus] = Field(default=None, alias="expectedStatus")

    @field_validator("status", "expected_status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        return v.strip().upper() if isinstance(v, str) else v


class OrderItemOut(_Wire):
    product_id: str = Field(alias="productId")
    name: str
    quantity: int
    price: float


class OrderReadDTO(_Wire):
    """Read schema for an order as exposed over HTTP and realtime events."""

    id: str
    code: str
    customer_id: Optional[str] = Field(default=None, alias="customerId")
    items: list[OrderItemOut]
    total: float
    status: OrderStatus
    created_at: datetime = Field(alias="createdAt")

    @classmethod
    def from_domain(cls, order: Order) -> "OrderReadDTO":
        return cls(
            id=str(order.id),
            code=order.code,
            customer_id=order.customer_id,
            items=[
                OrderItemOut(
                    product_id=i.product_id,
                    name=i.name,
                    quantity=i.quantity,
                    price=float(from_cents(i.price_cents)),
                )
                for i in order.items
            ],
            total=float(from_cents(order.total_cents)),
            status=order.status,
            created_at=order.created_at,
        )

    def to_domain(self) -> Order:
        return Order(
            id=self.id,
            code=self.code,
            items=[
                OrderItem(
                    product_id=i.product_id,
                    name=i.name,
                    quantity=i.quantity,
                    price_cents=to_cents(i.price),
                )
                for i in self.items
            ],
            total_cents=to_cents(self.total),
            status=self.status,
            created_at=self.created_at,
            customer_id=self.customer_id,
        )

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


def order_to_json(order: Order) -> dict:
    return OrderReadDTO.from_domain(order).to_json()


class ProductSalesOut(_Wire):
    name: str
    quantity: int


class SalesAnalyticsDTO(_Wire):
    """Admin dashboard figures; money fields are decimal amounts."""

    order_count: int = Field(alias="orderCount")
    revenue: float
    revenue_by_hour: list[float] = Field(alias="revenueByHour")
    top_products: list[ProductSalesOut] = Field(alias="topProducts")

    @classmethod
    def from_domain(cls, stats: SalesAnalytics) -> "SalesAnalyticsDTO":
        return cls(
            order_count=stats.order_count,
            revenue=float(from_cents(stats.revenue_cents)),
            revenue_by_hour=[float(from_cents(c)) for c in stats.revenue_by_hour],
            top_products=[ProductSalesOut(name=n, quantity=q) for n, q in stats.top_products],
        )

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
