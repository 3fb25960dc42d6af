from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from typing import Optional

from shopadmin.models.product import ProductCategory, ProductStatus


class ProductAttributes(BaseModel):
    """Category-specific attributes. Only the ones matching the category are kept."""
    color: Optional[str] = Field(None, max_length=64, description="iPhone color")
    storage: Optional[str] = Field(None, max_length=32, description="iPhone storage, e.g. 128GB")
    wattage: Optional[int] = Field(None, gt=0, description="Charger wattage")
    is_fast_charging: Optional[bool] = Field(None, description="Charger supports fast charging")
    cable_type: Optional[str] = Field(None, max_length=64, description="Cable connector type")
    length: Optional[str] = Field(None, max_length=32, description="Cable length, e.g. 1m")


class ProductBase(ProductAttributes):
    """Base schema for Product with common attributes."""
    name: str = Field(..., min_length=1, max_length=255, description="Product name")
    description: Optional[str] = Field(None, description="Product description")
    price: float = Field(..., ge=0, description="Unit price (must be non-negative)")
    stock: int = Field(..., ge=0, description="Available stock (must be non-negative)")
    status: ProductStatus = Field(default=ProductStatus.AVAILABLE, description="Sale status")
    category: ProductCategory = Field(..., description="Catalog category")


class ProductCreate(ProductBase):
    """Schema for creating a new product."""
    pass


class ProductUpdate(ProductAttributes):
    """Schema for updating an existing product. All fields are optional."""
    name: Optional[str] = Field(None, min_length=1, max_length=255, description="Product name")
    description: Optional[str] = Field(None, description="Product description")
    price: Optional[float] = Field(None, ge=0, description="Unit price")
    stock: Optional[int] = Field(None, ge=0, description="Available stock")
    status: Optional[ProductStatus] = Field(None, description="Sale status")
    category: Optional[ProductCategory] = Field(None, description="Catalog category")


class ProductResponse(ProductBase):
    """Schema for product response including all fields."""
    id: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProductListResponse(BaseModel):
    """Schema for paginated product list response."""
    items: list[ProductResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
