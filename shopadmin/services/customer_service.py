from sqlalchemy.orm import Session
from typing import Optional, List
import logging

from shopadmin.models.customer import Customer
from shopadmin.models.order import Order
from shopadmin.schemas.customer import CustomerCreate, CustomerUpdate
from shopadmin.services.exceptions import CustomerNotFoundError, ResourceInUseError

logger = logging.getLogger(__name__)


class CustomerService:
    """Service class for the customer directory."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, customer_data: CustomerCreate) -> Customer:
        customer = Customer(**customer_data.model_dump())
        self.db.add(customer)
        self.db.commit()
        self.db.refresh(customer)
        logger.info(f"Customer #{customer.id} created")
        return customer

    def get_by_id(self, customer_id: int) -> Optional[Customer]:
        """Get a customer by ID."""
        return self.db.query(Customer).filter(Customer.id == customer_id).first()

    def get_all(self) -> List[Customer]:
        """All customers ordered by name."""
        return self.db.query(Customer).order_by(Customer.name, Customer.id).all()

    def update(self, customer_id: int, customer_data: CustomerUpdate) -> Optional[Customer]:
        """
        Update a customer. Only non-None fields are changed. Orders keep the
        customer name they were written with.
        """
        customer = self.get_by_id(customer_id)
        if not customer:
            return None

        for field, value in customer_data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(customer, field, value)

        self.db.commit()
        self.db.refresh(customer)
        return customer

    def delete(self, customer_id: int) -> bool:
        """
        Delete a customer.

        Raises:
            ResourceInUseError: If orders still reference the customer
        """
        customer = self.get_by_id(customer_id)
        if not customer:
            return False

        count = self.db.query(Order).filter(Order.customer_id == customer_id).count()
        if count:
            raise ResourceInUseError(
                f"Cannot delete customer: {count} orders are associated with this customer"
            )

        self.db.delete(customer)
        self.db.commit()
        return True

    def purchase_count(self, customer_id: int) -> int:
        """Number of orders placed by a customer."""
        if not self.get_by_id(customer_id):
            raise CustomerNotFoundError(f"Customer with ID {customer_id} not found")

        return self.db.query(Order).filter(Order.customer_id == customer_id).count()
