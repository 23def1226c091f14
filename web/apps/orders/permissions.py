"""Role policy and the role-scoped gateway in front of the order service.

Roles form a closed set. External spellings (UI labels, the legacy Spanish
backend enum) are mapped explicitly by ``parse_role``; anything unmapped is
rejected instead of silently becoming a guest.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

from .errors import Forbidden, UnknownRole

if TYPE_CHECKING:
    from datetime import tzinfo

    from .domain import Order, OrderService, OrderStatus, OrderLine, SalesAnalytics


class Role(str, Enum):
    GUEST = "guest"
    CUSTOMER = "customer"
    COOK = "cook"
    ADMIN = "admin"


class Action(str, Enum):
    CREATE = "create"
    READ_OWN = "read_own"
    READ_BY_CODE = "read_by_code"
    READ_ALL = "read_all"
    ADVANCE_STATUS = "advance_status"
    VIEW_ANALYTICS = "view_analytics"


_ROLE_ALIASES = {
    "guest": Role.GUEST,
    "invitado": Role.GUEST,
    "customer": Role.CUSTOMER,
    "client": Role.CUSTOMER,
    "cliente": Role.CUSTOMER,
    "cook": Role.COOK,
    "cocinero": Role.COOK,
    "admin": Role.ADMIN,
    "administrador": Role.ADMIN,
}

POLICY: dict[Role, frozenset[Action]] = {
    Role.GUEST: frozenset({Action.CREATE, Action.READ_BY_CODE}),
    Role.CUSTOMER: frozenset({Action.CREATE, Action.READ_OWN, Action.READ_BY_CODE}),
    Role.COOK: frozenset({Action.READ_BY_CODE, Action.READ_ALL, Action.ADVANCE_STATUS}),
    Role.ADMIN: frozenset(
        {
            Action.CREATE,
            Action.READ_BY_CODE,
            Action.READ_ALL,
            Action.ADVANCE_STATUS,
            Action.VIEW_ANALYTICS,
        }
    ),
}

STAFF_ROLES = frozenset({Role.COOK, Role.ADMIN})


def parse_role(value) -> Role:
    """Map an external role representation onto ``Role``.

    Raises:
        UnknownRole: If the value has no explicit mapping.
    """
    if isinstance(value, Role):
        return value
    if not isinstance(value, str):
        raise UnknownRole(value)
    role = _ROLE_ALIASES.get(value.strip().lower())
    if role is None:
        raise UnknownRole(value)
    return role


def is_allowed(role: Role, action: Action) -> bool:
    return action in POLICY.get(role, frozenset())


def require(role: Role, action: Action) -> None:
    """Raise ``Forbidden`` unless ``role`` may perform ``action``."""
    if not is_allowed(role, action):
        raise Forbidden(role, action)


@dataclass(frozen=True)
class Actor:
    """The authenticated caller as resolved by the gateway middleware."""

    role: Role = Role.GUEST
    id: Optional[str] = None

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


GUEST = Actor()


class OrderAccess:
    """Role-scoped facade over ``OrderService``.

    Each method checks the policy table before delegating, so views never
    call the service directly.
    """

    def __init__(self, service: "OrderService", actor: Actor):
        self.service = service
        self.actor = actor

    def _resolve_customer_id(self, requested: Optional[str]) -> Optional[str]:
        if self.actor.role == Role.GUEST:
            if requested:
                raise Forbidden(self.actor.role, Action.CREATE)
            return None
        if self.actor.role == Role.CUSTOMER:
            if requested and requested != self.actor.id:
                raise Forbidden(self.actor.role, Action.CREATE)
            return self.actor.id
        return requested

    def create(self, lines: list["OrderLine"], customer_id: Optional[str] = None) -> "Order":
        require(self.actor.role, Action.CREATE)
        owner = self._resolve_customer_id(customer_id)
        return self.service.create_order(lines, customer_id=owner)

    def by_code(self, code: str) -> "Order":
        require(self.actor.role, Action.READ_BY_CODE)
        return self.service.find_by_code(code)

    def all(self, status: Optional["OrderStatus"] = None) -> list["Order"]:
        require(self.actor.role, Action.READ_ALL)
        return self.service.list_orders(status=status)

    def history(self) -> list["Order"]:
        require(self.actor.role, Action.READ_OWN)
        return self.service.order_history(self.actor.id)

    def analytics(self, tz: Optional["tzinfo"] = None) -> "SalesAnalytics":
        require(self.actor.role, Action.VIEW_ANALYTICS)
        if tz is None:
            return self.service.sales_analytics()
        return self.service.sales_analytics(tz)

    def get(self, order_id: str) -> "Order":
        if is_allowed(self.actor.role, Action.READ_ALL):
            return self.service.get_order(order_id)
        require(self.actor.role, Action.READ_OWN)
        order = self.service.get_order(order_id)
        if order.customer_id is None or order.customer_id != self.actor.id:
            raise Forbidden(self.actor.role, Action.READ_OWN)
        return order

    def advance(
        self,
        order_id: str,
        status: "OrderStatus",
        expected_status: Optional["OrderStatus"] = None,
    ) -> "Order":
        return self.service.advance_status(
            order_id, status, self.actor.role, expected_status=expected_status
        )
