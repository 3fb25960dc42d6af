from pydantic import BaseModel, Field, ConfigDict
from datetime import date, datetime
from typing import Optional


class EmployeeBase(BaseModel):
    """Base schema for Employee."""
    name: str = Field(..., min_length=1, max_length=255, description="Employee name")
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=64)
    position: Optional[str] = Field(None, max_length=128)
    department: Optional[str] = Field(None, max_length=128)
    hire_date: Optional[date] = None


class EmployeeCreate(EmployeeBase):
    """Schema for creating an employee."""
    pass


class EmployeeUpdate(BaseModel):
    """Schema for updating an employee. All fields are optional."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=64)
    position: Optional[str] = Field(None, max_length=128)
    department: Optional[str] = Field(None, max_length=128)
    hire_date: Optional[date] = None


class EmployeeResponse(EmployeeBase):
    """Schema for employee response."""
    id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SalesMetricsResponse(BaseModel):
    """Order count and summed totals for one employee."""
    employee_id: int
    order_count: int
    total_amount: float
