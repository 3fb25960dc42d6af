from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, Enum, Integer, Numeric, String, Text
)
from sqlalchemy.sql import func
import enum

from shopadmin.database import Base


class ProductStatus(str, enum.Enum):
    """Enum for product sale status."""
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


class ProductCategory(str, enum.Enum):
    """Fixed set of catalog categories."""
    IPHONE = "iPhone"
    CHARGER = "Charger"
    CABLE = "Cable"
    AIRPOD = "AirPod"


# Category-specific columns; anything not listed for a category stays NULL.
CATEGORY_ATTRIBUTES = {
    ProductCategory.IPHONE: ("color", "storage"),
    ProductCategory.CHARGER: ("wattage", "is_fast_charging"),
    ProductCategory.CABLE: ("cable_type", "length"),
    ProductCategory.AIRPOD: (),
}


class Product(Base):
    """
    Product model representing items available for sale.

    Attributes:
        id: Unique identifier for the product
        name: Product name
        description: Free-form description
        price: Unit price (must be non-negative)
        stock: Available quantity (must be non-negative)
        status: Whether the product may be added to new orders
        category: Catalog category, decides which detail columns apply
        created_at: Timestamp when product was created
        updated_at: Timestamp when product was last updated
    """
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    status = Column(Enum(ProductStatus), nullable=False, default=ProductStatus.AVAILABLE)
    category = Column(Enum(ProductCategory), nullable=False, index=True)

    # iPhone
    color = Column(String(64), nullable=True)
    storage = Column(String(32), nullable=True)
    # Charger
    wattage = Column(Integer, nullable=True)
    is_fast_charging = Column(Boolean, nullable=True)
    # Cable
    cable_type = Column(String(64), nullable=True)
    length = Column(String(32), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Database-level constraints to ensure data integrity
    __table_args__ = (
        CheckConstraint('price >= 0', name='check_price_non_negative'),
        CheckConstraint('stock >= 0', name='check_stock_non_negative'),
    )

    @property
    def is_selectable(self) -> bool:
        """True when the product may be added as a new order line."""
        return self.status == ProductStatus.AVAILABLE and self.stock > 0

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', stock={self.stock})>"
