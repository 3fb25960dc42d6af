from decimal import Decimal
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import Optional, List
import logging

from shopadmin.models.employee import Employee
from shopadmin.models.order import Order
from shopadmin.schemas.employee import EmployeeCreate, EmployeeUpdate
from shopadmin.services.exceptions import EmployeeNotFoundError, ResourceInUseError

logger = logging.getLogger(__name__)


class EmployeeService:
    """Service class for the employee directory and per-employee sales figures."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, employee_data: EmployeeCreate) -> Employee:
        employee = Employee(**employee_data.model_dump())
        self.db.add(employee)
        self.db.commit()
        self.db.refresh(employee)
        logger.info(f"Employee #{employee.id} created")
        return employee

    def get_by_id(self, employee_id: int) -> Optional[Employee]:
        """Get an employee by ID."""
        return self.db.query(Employee).filter(Employee.id == employee_id).first()

    def get_all(self) -> List[Employee]:
        """All employees ordered by name."""
        return self.db.query(Employee).order_by(Employee.name, Employee.id).all()

    def update(self, employee_id: int, employee_data: EmployeeUpdate) -> Optional[Employee]:
        employee = self.get_by_id(employee_id)
        if not employee:
            return None

        for field, value in employee_data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(employee, field, value)

        self.db.commit()
        self.db.refresh(employee)
        return employee

    def delete(self, employee_id: int) -> bool:
        """
        Delete an employee.

        Raises:
            ResourceInUseError: If orders are still associated with the employee
        """
        employee = self.get_by_id(employee_id)
        if not employee:
            return False

        count = self.db.query(Order).filter(Order.employee_id == employee_id).count()
        if count:
            raise ResourceInUseError(
                f"Cannot delete employee: {count} orders are associated with this employee. "
                "Please reassign or delete the orders first."
            )

        self.db.delete(employee)
        self.db.commit()
        return True

    def sales_metrics(self, employee_id: int) -> tuple[int, Decimal]:
        """
        Order count and summed order totals for an employee.

        Returns:
            Tuple of (order count, total amount)
        """
        if not self.get_by_id(employee_id):
            raise EmployeeNotFoundError(f"Employee with ID {employee_id} not found")

        count, amount = (
            self.db.query(func.count(Order.id), func.coalesce(func.sum(Order.total), 0))
            .filter(Order.employee_id == employee_id)
            .one()
        )
        return count, Decimal(str(amount))
