from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from shopadmin.api.errors import to_http
from shopadmin.database import get_db
from shopadmin.services.exceptions import OrderSystemError
from shopadmin.services.order_service import OrderService
from shopadmin.schemas.order import (
    OrderCreate,
    OrderUpdate,
    OrderResponse,
    OrderListResponse
)
from shopadmin.models.order import OrderStatus
from shopadmin.tasks.order_tasks import process_order

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post(
    "/",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Place a new order",
    description="""
    Place an order for one or more products.

    **Stock handling:**
    Stock for every line is checked and consumed in the same database
    transaction as the order write, using conditional updates so stock can
    never go negative. If any step fails nothing is persisted.

    - 404: customer, employee or product not found
    - 409: insufficient stock (message names the product, available and
      requested quantities)
    - 422: empty item list, quantity below 1, missing customer or employee,
      product not available for sale

    After the order is written a background Celery task processes it.
    """
)
def create_order(
    order_data: OrderCreate,
    db: Session = Depends(get_db)
):
    """
    Place an order.

    - **customer_id**: Buying customer (required)
    - **employee_id**: Employee processing the order (required)
    - **items**: At least one `{product_id, quantity}`; `product_name` and
      `price` default to the current catalog values
    """
    service = OrderService(db)

    try:
        order = service.create_order(order_data)
    except OrderSystemError as e:
        raise to_http(e)

    # Trigger background task to process the order
    process_order.delay(order.id)

    return order


@router.get(
    "/",
    response_model=OrderListResponse,
    summary="List all orders",
    description="Get a paginated list of orders, newest first, with optional status filter."
)
def list_orders(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(10, ge=1, le=100, description="Items per page"),
    status: Optional[OrderStatus] = Query(None, description="Filter by order status"),
    db: Session = Depends(get_db)
):
    """Get paginated list of orders."""
    service = OrderService(db)
    orders, total, total_pages = service.get_orders(page, page_size, status)

    return OrderListResponse(
        items=[OrderResponse.model_validate(o) for o in orders],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages
    )


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order by ID",
    description="Get an order with its items."
)
def get_order(
    order_id: int,
    db: Session = Depends(get_db)
):
    """Get an order by ID."""
    service = OrderService(db)
    order = service.get_order(order_id)

    if not order:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Order with ID {order_id} not found"
        )

    return order


@router.put(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Edit an order",
    description="""
    Edit an order. Only provided fields change.

    When `items` is provided it replaces every existing line. Stock moves by
    the per-product difference: increases are checked and consumed,
    decreases and removed lines return stock. An order cannot be left
    without items.
    """
)
def update_order(
    order_id: int,
    order_data: OrderUpdate,
    db: Session = Depends(get_db)
):
    """Edit an order."""
    service = OrderService(db)

    try:
        return service.update_order(order_id, order_data)
    except OrderSystemError as e:
        raise to_http(e)


@router.delete(
    "/{order_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an order",
    description="Delete an order and its items. Stock is not returned."
)
def delete_order(
    order_id: int,
    db: Session = Depends(get_db)
):
    """Delete an order."""
    service = OrderService(db)

    if not service.delete_order(order_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Order with ID {order_id} not found"
        )

    return None


@router.get(
    "/{order_id}/status",
    summary="Get order status",
    description="Get the current processing status of an order."
)
def get_order_status(
    order_id: int,
    db: Session = Depends(get_db)
):
    """Get order processing status."""
    service = OrderService(db)
    order = service.get_order(order_id)

    if not order:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Order with ID {order_id} not found"
        )

    return {
        "order_id": order.id,
        "status": order.status,
        "created_at": order.created_at,
        "updated_at": order.updated_at
    }
