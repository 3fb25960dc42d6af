from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from shopadmin.api.errors import to_http
from shopadmin.database import get_db
from shopadmin.models.product import ProductCategory
from shopadmin.services.exceptions import ResourceInUseError
from shopadmin.services.product_service import ProductService
from shopadmin.schemas.product import (
    ProductCreate,
    ProductUpdate,
    ProductResponse,
    ProductListResponse
)

router = APIRouter(prefix="/products", tags=["Products"])


@router.post(
    "/",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new product",
    description="Create a new product with its category attributes and initial stock."
)
def create_product(
    product_data: ProductCreate,
    db: Session = Depends(get_db)
):
    """
    Create a new product.

    - **name**: Product name (required)
    - **price**: Unit price, must be non-negative (required)
    - **stock**: Initial stock quantity, must be non-negative (required)
    - **category**: iPhone, Charger, Cable or AirPod (required)
    - **color / storage / wattage / is_fast_charging / cable_type / length**:
      kept only when they belong to the category
    """
    service = ProductService(db)
    return service.create(product_data)


@router.get(
    "/",
    response_model=ProductListResponse,
    summary="List all products",
    description="Get a paginated list of products with optional search and filters."
)
def list_products(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(10, ge=1, le=100, description="Items per page"),
    search: Optional[str] = Query(None, description="Search by product name"),
    category: Optional[ProductCategory] = Query(None, description="Filter by category"),
    available_only: bool = Query(False, description="Only products that can be added to a new order"),
    db: Session = Depends(get_db)
):
    """Get paginated list of products."""
    service = ProductService(db)
    products, total, total_pages = service.get_all(
        page, page_size, search, category, available_only
    )

    return ProductListResponse(
        items=[ProductResponse.model_validate(p) for p in products],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages
    )


@router.get(
    "/{product_id}",
    response_model=ProductResponse,
    summary="Get product by ID",
    description="Get detailed information about a specific product."
)
def get_product(
    product_id: int,
    db: Session = Depends(get_db)
):
    """Get a product by ID. The Redis cache entry is refreshed on every read."""
    service = ProductService(db)
    product = service.get_by_id(product_id)

    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Product with ID {product_id} not found"
        )

    return product


@router.get(
    "/{product_id}/cached",
    summary="Get product from cache",
    description="Get product details from Redis cache (or database if not cached)."
)
def get_product_cached(
    product_id: int,
    db: Session = Depends(get_db)
):
    """
    Get product from cache.

    Cached stock may lag behind the database for display purposes; order
    placement always reads stock from the database.
    """
    service = ProductService(db)
    product_data = service.get_by_id_cached(product_id)

    if not product_data:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Product with ID {product_id} not found"
        )

    return product_data


@router.put(
    "/{product_id}",
    response_model=ProductResponse,
    summary="Update a product",
    description="Update product details. Only provided fields will be updated."
)
def update_product(
    product_id: int,
    product_data: ProductUpdate,
    db: Session = Depends(get_db)
):
    """
    Update a product.

    Existing order lines keep the name and price they were written with.
    """
    service = ProductService(db)
    product = service.update(product_id, product_data)

    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Product with ID {product_id} not found"
        )

    return product


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a product",
    description="Delete a product that no order line references."
)
def delete_product(
    product_id: int,
    db: Session = Depends(get_db)
):
    """Delete a product."""
    service = ProductService(db)

    try:
        deleted = service.delete(product_id)
    except ResourceInUseError as e:
        raise to_http(e)

    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Product with ID {product_id} not found"
        )

    return None
