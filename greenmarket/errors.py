"""Exceptions raised by the order workflow and mapped to HTTP responses."""


class MarketError(Exception):
    """Base exception for all marketplace errors."""

    pass


class ValidationError(MarketError):
    """Raised when a request is missing fields or carries malformed values."""

    pass


class NotFoundError(MarketError):
    """Raised when an order, product or notification does not exist."""

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class AuthenticationError(MarketError):
    """Raised when the bearer token is missing, malformed or expired."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class AuthorizationError(MarketError):
    """Raised when the caller does not own the resource or lacks the role."""

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message)


class ProductUnavailable(MarketError):
    """Raised when an ordered product is missing or inactive."""

    def __init__(self, product_id: int, message: str | None = None):
        self.product_id = product_id
        super().__init__(message or f"Product {product_id} is not available")


class InsufficientStock(ProductUnavailable):
    """Raised when a product cannot cover the requested quantity."""

    def __init__(self, product_id: int, name: str | None = None,
                 requested: int | None = None, available: int | None = None):
        self.requested = requested
        self.available = available
        label = f"'{name}' ({product_id})" if name else str(product_id)
        msg = f"Product {label} not available in requested quantity"
        if requested is not None and available is not None:
            msg = f"{msg}: requested {requested}, available {available}"
        super().__init__(product_id, msg)


class InvalidStatusTransition(MarketError):
    """Raised when an order cannot move from its current status to the target."""

    def __init__(self, current: str, target: str, reason: str | None = None):
        self.current = current
        self.target = target
        msg = f"Cannot change order status from '{current}' to '{target}'"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)


class ConflictError(MarketError):
    """Raised when a concurrent writer won the race for a shared row."""

    pass
