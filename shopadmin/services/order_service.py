from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.attributes import set_committed_value
from typing import Dict, Iterable, List, Optional, Tuple
import math
import logging

from shopadmin.models.customer import Customer
from shopadmin.models.employee import Employee
from shopadmin.models.order import Order, OrderItem, OrderStatus
from shopadmin.models.product import Product, ProductStatus
from shopadmin.schemas.order import OrderCreate, OrderItemIn, OrderUpdate
from shopadmin.services.exceptions import (
    CustomerNotFoundError,
    EmployeeNotFoundError,
    InsufficientStockError,
    OrderItemsWriteFailedError,
    OrderNotFoundError,
    OrderSystemError,
    ProductNotFoundError,
    ProductUnavailableError,
    StockReconciliationFailedError,
    ValidationError,
)
from shopadmin.utils.cache import cache_service

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
UNKNOWN_CUSTOMER = "Unknown Customer"
UNKNOWN_EMPLOYEE = "Unknown Employee"
UNKNOWN_PRODUCT = "Unknown Product"


def to_money(value) -> Decimal:
    """Round a price or total to cents."""
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def order_total(items: Iterable[OrderItem]) -> Decimal:
    """Sum of price * quantity over the given lines."""
    return to_money(sum((Decimal(str(i.price)) * i.quantity for i in items), Decimal("0")))


def quantities_by_product(items) -> Dict[int, int]:
    """Total quantity per product id in first-appearance order; repeated lines are summed."""
    totals: Dict[int, int] = {}
    for item in items:
        totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
    return totals


class OrderService:
    """
    Service class for placing, editing and reading orders.

    STOCK HANDLING STRATEGY:
    ========================
    Every create or edit runs as one database transaction made of four steps:

    1. Stock validation: the referenced product rows are read with
       SELECT FOR UPDATE and checked against the *net new* demand only
       (the full quantity on create, the increase on edit).
    2. Header write, flushed so the order gets its id.
    3. Line write (on edit the old lines are deleted first).
    4. Stock reconciliation with conditional updates:

           UPDATE products SET stock = stock - :quantity
           WHERE id = :product_id AND stock >= :quantity

       A zero row count means a concurrent order consumed the stock after
       validation, which is reported as insufficient stock.

    If step 3 or 4 fails the transaction is rolled back and, for a new
    order, the header is checked for and deleted if it survived. The
    original error is raised afterwards either way.
    """

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Order Writer
    # ------------------------------------------------------------------

    def create_order(self, order_data: OrderCreate) -> Order:
        """
        Place a new order and consume stock for every line.

        Args:
            order_data: Customer, employee and order lines

        Returns:
            The persisted order with its items

        Raises:
            ValidationError: Empty item list, quantity below 1, missing
                customer or employee, unavailable product
            CustomerNotFoundError / EmployeeNotFoundError: Unknown references
            ProductNotFoundError: A line references a missing product
            InsufficientStockError: A line asks for more than is in stock
            OrderItemsWriteFailedError: Lines could not be written
            StockReconciliationFailedError: Stock could not be adjusted
        """
        self._check_lines(order_data.items)
        if order_data.customer_id is None:
            raise ValidationError("Please select a customer for this order")
        if order_data.employee_id is None:
            raise ValidationError("Please select an employee who processed this order")

        try:
            customer = self._require_customer(order_data.customer_id)
            employee = self._require_employee(order_data.employee_id)

            demand = quantities_by_product(order_data.items)
            products = self.validate_stock(demand, new_product_ids=demand.keys())
            items = self._build_items(order_data.items, products)
        except OrderSystemError:
            self.db.rollback()
            raise

        try:
            order = Order(
                customer_id=customer.id,
                customer_name=customer.name,
                employee_id=employee.id,
                employee_name=employee.name,
                total=order_total(items),
                status=OrderStatus.PENDING,
            )
            self.db.add(order)
            self.db.flush()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error creating order header: {e}")
            raise

        order_id = order.id

        try:
            self._write_items(order, items)
        except SQLAlchemyError as e:
            logger.error(f"Error writing items for order #{order_id}: {e}")
            self._compensate(order_id)
            raise OrderItemsWriteFailedError(
                f"Failed to create items for order #{order_id}"
            ) from e

        try:
            self.reconcile(demand)
            self.db.commit()
        except (InsufficientStockError, ProductNotFoundError, StockReconciliationFailedError):
            self._compensate(order_id)
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error committing order #{order_id}: {e}")
            self._compensate(order_id)
            raise StockReconciliationFailedError(
                f"Failed to update stock for order #{order_id}"
            ) from e

        self._after_write(demand.keys())
        logger.info(
            f"Order #{order_id} created for customer #{customer.id} "
            f"with {len(items)} items, total {order.total}"
        )

        return self.get_order(order_id)

    def update_order(self, order_id: int, order_data: OrderUpdate) -> Order:
        """
        Edit an order. Only the fields present in order_data change; a
        supplied item list replaces all existing lines and stock is moved by
        the per-product difference between the old and new lines.

        Raises:
            OrderNotFoundError: If the order doesn't exist
            ValidationError: Empty replacement list, quantity below 1,
                total that does not match the lines, unavailable product
            plus the stock and write errors of create_order
        """
        order = (
            self.db.query(Order)
            .options(selectinload(Order.items))
            .filter(Order.id == order_id)
            .first()
        )
        if not order:
            raise OrderNotFoundError(f"Order with ID {order_id} not found")

        lines = order_data.items
        deltas: Dict[int, int] = {}
        items: Optional[List[OrderItem]] = None
        total = to_money(order.total)

        try:
            if lines is not None:
                self._check_lines(lines)

            header = self._header_changes(order_data)

            if lines is not None:
                old = quantities_by_product(order.items)
                new = quantities_by_product(lines)
                # New lines first, in line order, then products dropped from the order.
                deltas = {
                    product_id: new.get(product_id, 0) - old.get(product_id, 0)
                    for product_id in [*new, *(pid for pid in old if pid not in new)]
                }
                increases = {pid: delta for pid, delta in deltas.items() if delta > 0}
                products = self.validate_stock(increases, new_product_ids=new.keys() - old.keys())
                previous = {item.product_id: item for item in order.items}
                items = self._build_items(lines, products, previous)
                total = order_total(items)

            if order_data.total is not None and to_money(order_data.total) != total:
                raise ValidationError(
                    f"Order total {to_money(order_data.total)} does not match the "
                    f"sum of its items ({total})"
                )
        except OrderSystemError:
            self.db.rollback()
            raise

        try:
            self.reconcile(deltas)
        except (InsufficientStockError, ProductNotFoundError, StockReconciliationFailedError):
            self.db.rollback()
            raise

        if items is not None:
            try:
                self._replace_items(order, items)
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Error replacing items for order #{order_id}: {e}")
                raise OrderItemsWriteFailedError(
                    f"Failed to update items for order #{order_id}"
                ) from e

        try:
            for field, value in header.items():
                setattr(order, field, value)
            order.total = total
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error updating order #{order_id}: {e}")
            raise

        changed = [pid for pid, delta in deltas.items() if delta != 0]
        self._after_write(changed)
        logger.info(f"Order #{order_id} updated, {len(changed)} products restocked or consumed")

        return self.get_order(order_id)

    def delete_order(self, order_id: int) -> bool:
        """
        Delete an order: its lines first, then the header. Stock is not
        returned.

        Returns:
            True if deleted, False if not found
        """
        order = self.db.query(Order).filter(Order.id == order_id).first()

        if not order:
            return False

        try:
            self.db.query(OrderItem).filter(OrderItem.order_id == order_id).delete(
                synchronize_session=False
            )
            self.db.delete(order)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error deleting order #{order_id}: {e}")
            raise

        cache_service.invalidate_revenue()
        logger.info(f"Order #{order_id} deleted")

        return True

    def update_status(self, order_id: int, status: OrderStatus) -> Optional[Order]:
        """Update order status."""
        order = self.db.query(Order).filter(Order.id == order_id).first()

        if not order:
            return None

        order.status = status
        self.db.commit()
        self.db.refresh(order)

        return order

    # ------------------------------------------------------------------
    # Stock Validator
    # ------------------------------------------------------------------

    def validate_stock(
        self,
        demand: Dict[int, int],
        new_product_ids: Iterable[int] = (),
    ) -> Dict[int, Product]:
        """
        Check that every product can cover its requested quantity.

        Args:
            demand: Quantity still to be consumed per product id, in line
                order
            new_product_ids: Products being added as new lines; these must
                also be available for sale

        Returns:
            The locked product rows by id

        Raises:
            ProductNotFoundError: If a product doesn't exist
            ProductUnavailableError: If a new line's product is not for sale
            InsufficientStockError: If stock is below the requested quantity
        """
        new_product_ids = set(new_product_ids)

        # Lock rows in id order so concurrent orders cannot deadlock.
        locked: Dict[int, Optional[Product]] = {
            product_id: (
                self.db.query(Product)
                .filter(Product.id == product_id)
                .with_for_update()
                .first()
            )
            for product_id in sorted(demand)
        }

        # Report the first failing line in the order the caller gave.
        products: Dict[int, Product] = {}
        for product_id, quantity in demand.items():
            product = locked[product_id]

            if not product:
                raise ProductNotFoundError(f"Product with ID {product_id} not found")

            if product_id in new_product_ids and product.status != ProductStatus.AVAILABLE:
                raise ProductUnavailableError(f"Product {product.name} is not available for sale")

            if quantity > product.stock:
                raise InsufficientStockError(product.name, product.stock, quantity)

            products[product_id] = product

        return products

    # ------------------------------------------------------------------
    # Stock Reconciler
    # ------------------------------------------------------------------

    def reconcile(self, deltas: Dict[int, int]) -> None:
        """Apply every non-zero delta, in product id order."""
        for product_id in sorted(deltas):
            self.adjust_stock(product_id, deltas[product_id])

    def adjust_stock(self, product_id: int, delta: int) -> None:
        """
        Apply a signed stock change. A positive delta consumes stock, a
        negative one returns it.

        Raises:
            InsufficientStockError: If a decrement would make stock negative
            ProductNotFoundError: If the product to decrement doesn't exist
            StockReconciliationFailedError: On database errors, or when stock
                is returned to a product that no longer exists
        """
        if delta == 0:
            return

        try:
            if delta > 0:
                result = self.db.execute(
                    text("""
                        UPDATE products
                        SET stock = stock - :quantity,
                            updated_at = CURRENT_TIMESTAMP
                        WHERE id = :product_id
                        AND stock >= :quantity
                    """),
                    {"product_id": product_id, "quantity": delta}
                )
            else:
                result = self.db.execute(
                    text("""
                        UPDATE products
                        SET stock = stock + :quantity,
                            updated_at = CURRENT_TIMESTAMP
                        WHERE id = :product_id
                    """),
                    {"product_id": product_id, "quantity": -delta}
                )
        except SQLAlchemyError as e:
            logger.error(f"Error adjusting stock for product #{product_id}: {e}")
            raise StockReconciliationFailedError(
                f"Failed to update stock for product {product_id}"
            ) from e

        if result.rowcount:
            return

        row = self.db.query(Product.name, Product.stock).filter(Product.id == product_id).first()
        if delta > 0:
            if row is None:
                raise ProductNotFoundError(f"Product with ID {product_id} not found")
            raise InsufficientStockError(row.name, row.stock, delta)

        raise StockReconciliationFailedError(
            f"Failed to return stock to product {product_id}: product no longer exists"
        )

    # ------------------------------------------------------------------
    # Order Reader
    # ------------------------------------------------------------------

    def get_order(self, order_id: int) -> Optional[Order]:
        """Get an order with its items, or None if it doesn't exist."""
        order = (
            self.db.query(Order)
            .options(selectinload(Order.items))
            .filter(Order.id == order_id)
            .first()
        )

        if order:
            self._fill_display_names(order)

        return order

    def _orders_query(self, status: OrderStatus = None):
        query = self.db.query(Order)
        if status:
            query = query.filter(Order.status == status)
        return query

    def list_orders(
        self,
        status: OrderStatus = None,
        offset: int = 0,
        limit: Optional[int] = None
    ) -> List[Order]:
        """Orders newest first (id descending as tiebreak), optionally one slice."""
        query = (
            self._orders_query(status)
            .options(selectinload(Order.items))
            .order_by(Order.created_at.desc(), Order.id.desc())
            .offset(offset)
        )
        if limit is not None:
            query = query.limit(limit)

        orders = query.all()
        for order in orders:
            self._fill_display_names(order)
        return orders

    def get_orders(
        self,
        page: int = 1,
        page_size: int = 10,
        status: OrderStatus = None
    ) -> Tuple[List[Order], int, int]:
        """
        Get paginated list of orders, newest first.

        Args:
            page: Page number
            page_size: Items per page
            status: Filter by order status

        Returns:
            Tuple of (orders list, total count, total pages)
        """
        total = self._orders_query(status).count()
        total_pages = math.ceil(total / page_size) if total > 0 else 1

        offset = (page - 1) * page_size
        orders = self.list_orders(status, offset=offset, limit=page_size)

        return orders, total, total_pages

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _check_lines(lines: List[OrderItemIn]) -> None:
        if not lines:
            raise ValidationError("An order must contain at least one item")
        for line in lines:
            if line.quantity < 1:
                raise ValidationError(
                    f"Quantity for product {line.product_id} must be at least 1"
                )

    def _require_customer(self, customer_id: int) -> Customer:
        customer = self.db.query(Customer).filter(Customer.id == customer_id).first()
        if not customer:
            raise CustomerNotFoundError(f"Customer with ID {customer_id} not found")
        return customer

    def _require_employee(self, employee_id: int) -> Employee:
        employee = self.db.query(Employee).filter(Employee.id == employee_id).first()
        if not employee:
            raise EmployeeNotFoundError(f"Employee with ID {employee_id} not found")
        return employee

    def _header_changes(self, order_data: OrderUpdate) -> dict:
        """
        Header columns to set on edit. A new customer or employee id takes a
        fresh name snapshot unless the caller supplied the name.
        """
        header = {}
        if order_data.customer_id is not None:
            customer = self._require_customer(order_data.customer_id)
            header["customer_id"] = customer.id
            header["customer_name"] = customer.name
        if order_data.customer_name is not None:
            header["customer_name"] = order_data.customer_name

        if order_data.employee_id is not None:
            employee = self._require_employee(order_data.employee_id)
            header["employee_id"] = employee.id
            header["employee_name"] = employee.name
        if order_data.employee_name is not None:
            header["employee_name"] = order_data.employee_name

        return header

    @staticmethod
    def _build_items(
        lines: List[OrderItemIn],
        products: Dict[int, Product],
        previous: Optional[Dict[int, OrderItem]] = None,
    ) -> List[OrderItem]:
        """
        Turn proposed lines into OrderItem rows. Name and price come from the
        caller when given, otherwise from the existing line for the same
        product, otherwise from the catalog.
        """
        previous = previous or {}
        items = []
        for line in lines:
            existing = previous.get(line.product_id)
            if existing is not None:
                name, price = existing.product_name, existing.price
            else:
                product = products[line.product_id]
                name, price = product.name, product.price

            items.append(OrderItem(
                product_id=line.product_id,
                product_name=line.product_name or name,
                quantity=line.quantity,
                price=to_money(line.price if line.price is not None else price),
            ))
        return items

    def _write_items(self, order: Order, items: List[OrderItem]) -> None:
        order.items.extend(items)
        self.db.flush()

    def _replace_items(self, order: Order, items: List[OrderItem]) -> None:
        order.items.clear()
        self.db.flush()
        self._write_items(order, items)

    def _compensate(self, order_id: int) -> None:
        """
        Undo a partially written new order: roll back, then make sure the
        header is really gone. Failures here are logged, never raised, so the
        caller's original error surfaces.
        """
        logger.warning(f"Rolling back partially written order #{order_id}")
        try:
            self.db.rollback()
            leftover = self.db.query(Order).filter(Order.id == order_id).first()
            if leftover is not None:
                self.db.query(OrderItem).filter(OrderItem.order_id == order_id).delete(
                    synchronize_session=False
                )
                self.db.delete(leftover)
                self.db.commit()
                logger.warning(f"Deleted leftover header of order #{order_id}")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Compensating delete of order #{order_id} failed: {e}")

    @staticmethod
    def _after_write(product_ids: Iterable[int]) -> None:
        """Drop cache entries made stale by an order write."""
        cache_service.invalidate_products(product_ids)
        cache_service.invalidate_revenue()

    def _fill_display_names(self, order: Order) -> None:
        """
        Fill empty name snapshots for display without marking the order dirty.
        """
        if not order.customer_name:
            customer = self.db.query(Customer).filter(Customer.id == order.customer_id).first()
            set_committed_value(order, "customer_name", customer.name if customer else UNKNOWN_CUSTOMER)

        if not order.employee_name:
            employee = self.db.query(Employee).filter(Employee.id == order.employee_id).first()
            set_committed_value(order, "employee_name", employee.name if employee else UNKNOWN_EMPLOYEE)

        for item in order.items:
            if not item.product_name:
                set_committed_value(item, "product_name", UNKNOWN_PRODUCT)
