from sqlalchemy import Column, Date, DateTime, Integer, String
from sqlalchemy.sql import func

from shopadmin.database import Base


class Employee(Base):
    """Employee directory entry. Orders record the employee who processed them."""
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(64), nullable=True)
    position = Column(String(128), nullable=True)
    department = Column(String(128), nullable=True)
    hire_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Employee(id={self.id}, name='{self.name}')>"
