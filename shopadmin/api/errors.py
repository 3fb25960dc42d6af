from fastapi import HTTPException, status

from shopadmin.services.exceptions import (
    CustomerNotFoundError,
    EmployeeNotFoundError,
    InsufficientStockError,
    OrderItemsWriteFailedError,
    OrderNotFoundError,
    OrderSystemError,
    ProductNotFoundError,
    ResourceInUseError,
    StockReconciliationFailedError,
    ValidationError,
)

# Checked in order; subclasses must come before their bases.
ERROR_STATUS = (
    (ProductNotFoundError, status.HTTP_404_NOT_FOUND),
    (CustomerNotFoundError, status.HTTP_404_NOT_FOUND),
    (EmployeeNotFoundError, status.HTTP_404_NOT_FOUND),
    (OrderNotFoundError, status.HTTP_404_NOT_FOUND),
    (InsufficientStockError, status.HTTP_409_CONFLICT),
    (ResourceInUseError, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (OrderItemsWriteFailedError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (StockReconciliationFailedError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def to_http(error: OrderSystemError) -> HTTPException:
    """Translate a service error into the HTTPException the routes raise."""
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
