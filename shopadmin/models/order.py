from sqlalchemy import (
    CheckConstraint, Column, DateTime, Enum, ForeignKey, Integer, Numeric, String
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

from shopadmin.database import Base


class OrderStatus(str, enum.Enum):
    """Enum for order status."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Order(Base):
    """
    Order header. Customer and employee names are snapshots taken when the
    order is written and do not follow later renames.

    Attributes:
        id: Unique identifier for the order
        customer_id: Reference to the buying customer
        customer_name: Customer name at time of write
        employee_id: Reference to the employee who processed the order
        employee_name: Employee name at time of write
        total: Sum of price * quantity over the items
        status: Current processing status
        created_at: Timestamp when order was created
        updated_at: Timestamp when order was last updated
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    customer_name = Column(String(255), nullable=False, default="")
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    employee_name = Column(String(255), nullable=False, default="")
    total = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(Enum(OrderStatus), default=OrderStatus.PENDING, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    items = relationship(
        "OrderItem",
        back_populates="order",
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint('total >= 0', name='check_total_non_negative'),
    )

    def __repr__(self):
        return f"<Order(id={self.id}, customer_id={self.customer_id}, total={self.total})>"


class OrderItem(Base):
    """
    One product line of an order. product_name and price are snapshots.
    """
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    product_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    price = Column(Numeric(10, 2), nullable=False)

    order = relationship("Order", back_populates="items")

    __table_args__ = (
        CheckConstraint('quantity >= 1', name='check_quantity_positive'),
        CheckConstraint('price >= 0', name='check_item_price_non_negative'),
    )

    def __repr__(self):
        return f"<OrderItem(order_id={self.order_id}, product_id={self.product_id}, quantity={self.quantity})>"
