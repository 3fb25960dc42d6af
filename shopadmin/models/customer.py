from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from shopadmin.database import Base


class Customer(Base):
    """Customer directory entry."""
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(64), nullable=True)
    address = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Customer(id={self.id}, name='{self.name}')>"
