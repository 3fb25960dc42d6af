from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from shopadmin.api.errors import to_http
from shopadmin.database import get_db
from shopadmin.services.employee_service import EmployeeService
from shopadmin.services.exceptions import EmployeeNotFoundError, ResourceInUseError
from shopadmin.schemas.employee import (
    EmployeeCreate,
    EmployeeUpdate,
    EmployeeResponse,
    SalesMetricsResponse
)

router = APIRouter(prefix="/employees", tags=["Employees"])


def _not_found(employee_id: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Employee with ID {employee_id} not found"
    )


@router.post(
    "/",
    response_model=EmployeeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new employee"
)
def create_employee(employee_data: EmployeeCreate, db: Session = Depends(get_db)):
    return EmployeeService(db).create(employee_data)


@router.get(
    "/",
    response_model=list[EmployeeResponse],
    summary="List all employees",
    description="All employees ordered by name."
)
def list_employees(db: Session = Depends(get_db)):
    return EmployeeService(db).get_all()


@router.get("/{employee_id}", response_model=EmployeeResponse, summary="Get employee by ID")
def get_employee(employee_id: int, db: Session = Depends(get_db)):
    employee = EmployeeService(db).get_by_id(employee_id)
    if not employee:
        raise _not_found(employee_id)
    return employee


@router.put("/{employee_id}", response_model=EmployeeResponse, summary="Update an employee")
def update_employee(employee_id: int, employee_data: EmployeeUpdate, db: Session = Depends(get_db)):
    employee = EmployeeService(db).update(employee_id, employee_data)
    if not employee:
        raise _not_found(employee_id)
    return employee


@router.delete(
    "/{employee_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an employee",
    description="Rejected with 409 while orders are associated with the employee."
)
def delete_employee(employee_id: int, db: Session = Depends(get_db)):
    try:
        deleted = EmployeeService(db).delete(employee_id)
    except ResourceInUseError as e:
        raise to_http(e)

    if not deleted:
        raise _not_found(employee_id)
    return None


@router.get(
    "/{employee_id}/sales-metrics",
    response_model=SalesMetricsResponse,
    summary="Employee sales metrics",
    description="Number of orders processed by the employee and their summed totals."
)
def get_sales_metrics(employee_id: int, db: Session = Depends(get_db)):
    try:
        count, amount = EmployeeService(db).sales_metrics(employee_id)
    except EmployeeNotFoundError as e:
        raise to_http(e)

    return SalesMetricsResponse(
        employee_id=employee_id,
        order_count=count,
        total_amount=float(amount)
    )
