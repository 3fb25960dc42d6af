"""Domain errors raised by the service layer.

The API routers catch these and translate them into HTTP responses.
"""


class OrderSystemError(Exception):
    """Base class for all service-layer errors."""


class ValidationError(OrderSystemError):
    """Input rejected before any database write (empty item list, bad quantity, ...)."""


class ProductUnavailableError(ValidationError):
    """A product that is not available for sale was added as a new order line."""


class ProductNotFoundError(OrderSystemError):
    """Exception raised when the requested product doesn't exist."""


class CustomerNotFoundError(OrderSystemError):
    """The customer referenced by an order does not exist."""


class EmployeeNotFoundError(OrderSystemError):
    """The employee referenced by an order does not exist."""


class OrderNotFoundError(OrderSystemError):
    """The requested order does not exist."""


class InsufficientStockError(OrderSystemError):
    """Exception raised when there's not enough stock to fulfill an order."""

    def __init__(self, product_name: str, available: int, requested: int):
        self.product_name = product_name
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for product {product_name}. "
            f"Available: {available}, Requested: {requested}"
        )


class OrderItemsWriteFailedError(OrderSystemError):
    """Writing the order lines failed after the order header was written."""


class StockReconciliationFailedError(OrderSystemError):
    """Adjusting product stock failed part way through an order write."""


class ResourceInUseError(OrderSystemError):
    """A record cannot be deleted while orders still reference it."""
