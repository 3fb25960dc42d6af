from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from shopadmin.api.errors import to_http
from shopadmin.database import get_db
from shopadmin.services.customer_service import CustomerService
from shopadmin.services.exceptions import CustomerNotFoundError, ResourceInUseError
from shopadmin.schemas.customer import (
    CustomerCreate,
    CustomerUpdate,
    CustomerResponse,
    PurchaseCountResponse
)

router = APIRouter(prefix="/customers", tags=["Customers"])


def _not_found(customer_id: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Customer with ID {customer_id} not found"
    )


@router.post(
    "/",
    response_model=CustomerResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new customer"
)
def create_customer(customer_data: CustomerCreate, db: Session = Depends(get_db)):
    return CustomerService(db).create(customer_data)


@router.get(
    "/",
    response_model=list[CustomerResponse],
    summary="List all customers",
    description="All customers ordered by name."
)
def list_customers(db: Session = Depends(get_db)):
    return CustomerService(db).get_all()


@router.get("/{customer_id}", response_model=CustomerResponse, summary="Get customer by ID")
def get_customer(customer_id: int, db: Session = Depends(get_db)):
    customer = CustomerService(db).get_by_id(customer_id)
    if not customer:
        raise _not_found(customer_id)
    return customer


@router.put(
    "/{customer_id}",
    response_model=CustomerResponse,
    summary="Update a customer",
    description="Only provided fields are updated. Existing orders keep the old name."
)
def update_customer(customer_id: int, customer_data: CustomerUpdate, db: Session = Depends(get_db)):
    customer = CustomerService(db).update(customer_id, customer_data)
    if not customer:
        raise _not_found(customer_id)
    return customer


@router.delete(
    "/{customer_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a customer",
    description="Rejected with 409 while orders reference the customer."
)
def delete_customer(customer_id: int, db: Session = Depends(get_db)):
    try:
        deleted = CustomerService(db).delete(customer_id)
    except ResourceInUseError as e:
        raise to_http(e)

    if not deleted:
        raise _not_found(customer_id)
    return None


@router.get(
    "/{customer_id}/purchase-count",
    response_model=PurchaseCountResponse,
    summary="Customer purchase count"
)
def get_purchase_count(customer_id: int, db: Session = Depends(get_db)):
    """Number of orders placed by the customer."""
    try:
        count = CustomerService(db).purchase_count(customer_id)
    except CustomerNotFoundError as e:
        raise to_http(e)

    return PurchaseCountResponse(customer_id=customer_id, purchase_count=count)
