from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from typing import Optional


class CustomerBase(BaseModel):
    """Base schema for Customer."""
    name: str = Field(..., min_length=1, max_length=255, description="Customer name")
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=64)
    address: Optional[str] = None


class CustomerCreate(CustomerBase):
    """Schema for creating a customer."""
    pass


class CustomerUpdate(BaseModel):
    """Schema for updating a customer. All fields are optional."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=64)
    address: Optional[str] = None


class CustomerResponse(CustomerBase):
    """Schema for customer response."""
    id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PurchaseCountResponse(BaseModel):
    customer_id: int
    purchase_count: int
