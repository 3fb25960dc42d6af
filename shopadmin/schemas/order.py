from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from typing import Optional

from shopadmin.models.order import OrderStatus


class OrderItemIn(BaseModel):
    """
    A proposed order line. product_name and price are optional snapshots;
    when omitted they are resolved from the catalog (or, on edit, kept from
    the existing line for the same product).
    """
    product_id: int = Field(..., description="ID of the ordered product")
    quantity: int = Field(default=1, description="Units ordered (at least 1)")
    product_name: Optional[str] = Field(None, max_length=255, description="Product name snapshot")
    price: Optional[float] = Field(None, ge=0, description="Unit price snapshot")


class OrderCreate(BaseModel):
    """Schema for placing a new order."""
    customer_id: Optional[int] = Field(None, description="Buying customer")
    employee_id: Optional[int] = Field(None, description="Employee processing the order")
    items: list[OrderItemIn] = Field(default_factory=list, description="Order lines")


class OrderUpdate(BaseModel):
    """
    Schema for editing an order. Only provided fields are changed; items,
    when provided, replace the whole item set.
    """
    customer_id: Optional[int] = None
    customer_name: Optional[str] = Field(None, min_length=1, max_length=255)
    employee_id: Optional[int] = None
    employee_name: Optional[str] = Field(None, min_length=1, max_length=255)
    total: Optional[float] = Field(None, ge=0)
    items: Optional[list[OrderItemIn]] = None


class OrderItemResponse(BaseModel):
    """Schema for an order line in responses."""
    id: int
    product_id: int
    product_name: str
    quantity: int
    price: float

    model_config = ConfigDict(from_attributes=True)


class OrderResponse(BaseModel):
    """Schema for order response."""
    id: int
    customer_id: int
    customer_name: str
    employee_id: int
    employee_name: str
    total: float
    status: OrderStatus
    items: list[OrderItemResponse]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderListResponse(BaseModel):
    """Schema for paginated order list response."""
    items: list[OrderResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
