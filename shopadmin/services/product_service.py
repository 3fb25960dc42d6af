from sqlalchemy.orm import Session
from typing import Optional, List
import math
import logging

from shopadmin.models.order import OrderItem
from shopadmin.models.product import (
    CATEGORY_ATTRIBUTES, Product, ProductCategory, ProductStatus
)
from shopadmin.schemas.product import ProductCreate, ProductUpdate, ProductResponse
from shopadmin.services.exceptions import ResourceInUseError
from shopadmin.utils.cache import cache_service, PRODUCT_PREFIX

logger = logging.getLogger(__name__)

_ALL_ATTRIBUTES = {name for names in CATEGORY_ATTRIBUTES.values() for name in names}


class ProductService:
    """
    Service class for Product catalog operations.

    This service handles:
    - Creating new products with their category attributes
    - Reading products (with caching)
    - Filtering the catalog by name, category and availability
    - Updating and deleting products
    - Cache invalidation
    """

    def __init__(self, db: Session):
        self.db = db

    def create(self, product_data: ProductCreate) -> Product:
        """
        Create a new product.

        Attributes that do not belong to the product's category are dropped.

        Args:
            product_data: Product creation data

        Returns:
            Created product instance
        """
        product = Product(**product_data.model_dump())
        self._apply_category(product)
        self.db.add(product)
        self.db.commit()
        self.db.refresh(product)
        logger.info(f"Product #{product.id} '{product.name}' created")
        return product

    def get_by_id(self, product_id: int) -> Optional[Product]:
        """
        Get a product by ID from the database and refresh its cache entry.

        Args:
            product_id: Product ID to look up

        Returns:
            Product instance or None if not found
        """
        product = self.db.query(Product).filter(Product.id == product_id).first()

        if product:
            self._cache_product(product)

        return product

    def get_by_id_cached(self, product_id: int) -> Optional[dict]:
        """
        Get product details from cache or database.
        Returns a dictionary (suitable for API response).
        """
        cached = cache_service.get(PRODUCT_PREFIX, str(product_id))
        if cached:
            return cached

        product = self.db.query(Product).filter(Product.id == product_id).first()

        if product:
            return self._cache_product(product)

        return None

    def get_all(
        self,
        page: int = 1,
        page_size: int = 10,
        search: str = None,
        category: ProductCategory = None,
        available_only: bool = False,
    ) -> tuple[List[Product], int, int]:
        """
        Get paginated list of products ordered by name.

        Args:
            page: Page number (1-indexed)
            page_size: Number of items per page
            search: Optional search term for product name
            category: Optional category filter
            available_only: Only products that can be added to a new order

        Returns:
            Tuple of (products list, total count, total pages)
        """
        query = self.db.query(Product)

        if search:
            query = query.filter(Product.name.ilike(f"%{search}%"))
        if category:
            query = query.filter(Product.category == category)
        if available_only:
            query = query.filter(
                Product.status == ProductStatus.AVAILABLE,
                Product.stock > 0,
            )

        total = query.count()
        total_pages = math.ceil(total / page_size) if total > 0 else 1

        offset = (page - 1) * page_size
        products = query.order_by(Product.name, Product.id).offset(offset).limit(page_size).all()

        return products, total, total_pages

    def update(self, product_id: int, product_data: ProductUpdate) -> Optional[Product]:
        """
        Update an existing product.

        Args:
            product_id: ID of product to update
            product_data: Update data (only non-None fields are updated)

        Returns:
            Updated product or None if not found
        """
        product = self.db.query(Product).filter(Product.id == product_id).first()

        if not product:
            return None

        update_data = product_data.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            if value is not None:
                setattr(product, field, value)
        self._apply_category(product)

        self.db.commit()
        self.db.refresh(product)

        cache_service.invalidate_products([product_id])

        return product

    def delete(self, product_id: int) -> bool:
        """
        Delete a product.

        Args:
            product_id: ID of product to delete

        Returns:
            True if deleted, False if not found

        Raises:
            ResourceInUseError: If order lines still reference the product
        """
        product = self.db.query(Product).filter(Product.id == product_id).first()

        if not product:
            return False

        references = (
            self.db.query(OrderItem).filter(OrderItem.product_id == product_id).count()
        )
        if references:
            raise ResourceInUseError(
                f"Cannot delete product: {references} order items reference this product"
            )

        self.db.delete(product)
        self.db.commit()

        cache_service.invalidate_products([product_id])

        return True

    @staticmethod
    def _apply_category(product: Product) -> None:
        """Clear detail columns that do not belong to the product's category."""
        keep = set(CATEGORY_ATTRIBUTES[ProductCategory(product.category)])
        for name in _ALL_ATTRIBUTES - keep:
            setattr(product, name, None)

    def _cache_product(self, product: Product) -> dict:
        """Cache a product instance and return the cached form."""
        product_dict = ProductResponse.model_validate(product).model_dump(mode="json")
        cache_service.set(PRODUCT_PREFIX, str(product.id), product_dict)
        return product_dict
