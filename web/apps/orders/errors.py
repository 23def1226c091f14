"""Domain errors for the orders app.

Every error is a ``ValueError`` whose ``str()`` is a short, stable code
(e.g. ``"EMPTY_ORDER"``) so views and clients can branch on it. A human
readable explanation is kept in ``message``.
"""


class OrderError(ValueError):
    """Base class for all order lifecycle errors.

    Attributes:
        code: Stable machine-readable error code.
        message: Human readable description, safe to show to the caller
            unless the subclass says otherwise.
    """

    code = "ORDER_ERROR"

    def __init__(self, message: str | None = None):
        self.message = message or self.code
        super().__init__(self.code)


class EmptyOrder(OrderError):
    code = "EMPTY_ORDER"

    def __init__(self):
        super().__init__("Add items to the order first.")


class InvalidQuantity(OrderError):
    code = "INVALID_QUANTITY"

    def __init__(self, product_id: str, quantity: int):
        self.product_id = product_id
        self.quantity = quantity
        super().__init__(f"Quantity for product {product_id} must be at least 1 (got {quantity}).")


class ProductNotFound(OrderError):
    code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str, reason: str = "not found"):
        self.product_id = product_id
        super().__init__(f"Product {product_id} {reason}.")


class CodeSpaceExhausted(OrderError):
    """No free order code could be found; safe to retry the whole creation."""

    code = "CODE_SPACE_EXHAUSTED"

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Could not find a free order code after {attempts} attempts.")


class DuplicateCode(OrderError):
    """Raised by stores when the unique constraint on ``code`` rejects a write."""

    code = "DUPLICATE_CODE"

    def __init__(self, order_code: str):
        self.order_code = order_code
        super().__init__(f"Order code {order_code} is already taken.")


class NotFound(OrderError):
    code = "NOT_FOUND"

    def __init__(self, message: str = "Order not found."):
        super().__init__(message)


class InvalidTransition(OrderError):
    code = "INVALID_TRANSITION"

    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot move order from {getattr(current, 'value', current)} "
            f"to {getattr(requested, 'value', requested)}."
        )


class Conflict(OrderError):
    """The stored status moved underneath the caller; re-read and retry."""

    code = "CONFLICT"

    def __init__(self, order_id: str, expected, actual):
        self.order_id = order_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Order {order_id} is {getattr(actual, 'value', actual)}, "
            f"expected {getattr(expected, 'value', expected)}."
        )


class Forbidden(OrderError):
    """Actor lacks permission. The message is never sent to clients."""

    code = "FORBIDDEN"

    def __init__(self, role, action):
        self.role = role
        self.action = action
        super().__init__(
            f"Role {getattr(role, 'value', role)} may not {getattr(action, 'value', action)}."
        )


class UnknownRole(OrderError):
    code = "UNKNOWN_ROLE"

    def __init__(self, value):
        self.value = value
        super().__init__(f"Unknown role: {value!r}.")
