from typing import Optional


class DomainError(Exception):
    """Base class for domain/service errors."""


class NotFoundError(DomainError):
    pass


class UnauthorizedError(DomainError):
    pass


class ForbiddenError(DomainError):
    def __init__(self, resource: str, action: str):
        super().__init__(f"Permission denied: {resource}:{action}")
        self.resource = resource
        self.action = action


class ValidationError(DomainError):
    def __init__(self, detail):
        super().__init__("Validation error")
        self.detail = detail


class InsufficientStockError(DomainError):
    def __init__(self, product_id: str, requested: int):
        super().__init__(f"Insufficient stock for product {product_id}")
        self.product_id = product_id
        self.requested = requested


class StoreError(DomainError):
    """The backing store failed; callers may retry."""

    def __init__(self, detail: str):
        super().__init__("Store error")
        self.detail = detail


class OrderPlacementError(DomainError):
    """Order could not be completed. Always safe for the caller to retry."""

    retry = True

    def __init__(self, detail: str, order_id: Optional[str] = None):
        super().__init__("Error creating order")
        self.detail = detail
        self.order_id = order_id
