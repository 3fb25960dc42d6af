"""Tests for OrderService: stock validation, writing, reconciliation and reading."""
from datetime import datetime
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from shopadmin.models.order import Order, OrderItem
from shopadmin.models.product import Product
from shopadmin.schemas.order import OrderCreate, OrderItemIn, OrderUpdate
from shopadmin.services.exceptions import (
    CustomerNotFoundError,
    EmployeeNotFoundError,
    InsufficientStockError,
    OrderItemsWriteFailedError,
    OrderNotFoundError,
    ProductNotFoundError,
    ProductUnavailableError,
    StockReconciliationFailedError,
    ValidationError,
)
from shopadmin.services.order_service import (
    OrderService,
    UNKNOWN_CUSTOMER,
    quantities_by_product,
)


def new_order(seed, *lines):
    return OrderCreate(
        customer_id=seed["customer"].id,
        employee_id=seed["employee"].id,
        items=[OrderItemIn(product_id=seed[key].id, quantity=qty) for key, qty in lines],
    )


def stock(db, product):
    db.expire_all()
    return db.query(Product.stock).filter(Product.id == product.id).scalar()


def test_quantities_by_product_sums_repeated_lines():
    lines = [OrderItemIn(product_id=1, quantity=2), OrderItemIn(product_id=2, quantity=1),
             OrderItemIn(product_id=1, quantity=3)]

    assert quantities_by_product(lines) == {1: 5, 2: 1}


def test_create_order_writes_header_items_and_stock(db_session, seed):
    service = OrderService(db_session)

    order = service.create_order(new_order(seed, ("p", 3), ("r", 4)))

    assert order.total == Decimal("170.00")
    assert order.customer_name == "Carol Customer"
    assert order.employee_name == "Eve Employee"
    assert [(i.product_name, i.quantity, i.price) for i in order.items] == [
        ("Product P", 3, Decimal("50.00")),
        ("Product R", 4, Decimal("5.00")),
    ]
    assert stock(db_session, seed["p"]) == 7
    assert stock(db_session, seed["r"]) == 96


def test_create_order_uses_caller_snapshots(db_session, seed):
    service = OrderService(db_session)
    data = OrderCreate(
        customer_id=seed["customer"].id,
        employee_id=seed["employee"].id,
        items=[OrderItemIn(product_id=seed["p"].id, quantity=2, product_name="P (promo)", price=45.5)],
    )

    order = service.create_order(data)

    assert order.items[0].product_name == "P (promo)"
    assert order.items[0].price == Decimal("45.50")
    assert order.total == Decimal("91.00")


def test_insufficient_stock_carries_details(db_session, seed):
    service = OrderService(db_session)

    with pytest.raises(InsufficientStockError) as exc_info:
        service.create_order(new_order(seed, ("q", 5)))

    assert exc_info.value.product_name == "Product Q"
    assert exc_info.value.available == 2
    assert exc_info.value.requested == 5
    assert db_session.query(Order).count() == 0
    assert stock(db_session, seed["q"]) == 2


def test_unavailable_product_rejected_as_new_line(db_session, seed):
    service = OrderService(db_session)

    with pytest.raises(ProductUnavailableError):
        service.create_order(new_order(seed, ("off", 1)))

    assert isinstance(ProductUnavailableError("x"), ValidationError)


def test_failed_item_write_removes_header(db_session, seed):
    """A failure after the header was written leaves no order behind."""
    service = OrderService(db_session)

    with patch.object(OrderService, "_write_items", side_effect=SQLAlchemyError("disk full")):
        with pytest.raises(OrderItemsWriteFailedError):
            service.create_order(new_order(seed, ("p", 3)))

    assert db_session.query(Order).count() == 0
    assert db_session.query(OrderItem).count() == 0
    assert stock(db_session, seed["p"]) == 10


def test_failed_reconciliation_removes_order_and_stock_changes(db_session, seed):
    service = OrderService(db_session)
    original = OrderService.adjust_stock

    def fail_on_r(self, product_id, delta):
        if product_id == seed["r"].id:
            raise StockReconciliationFailedError("stock service down")
        return original(self, product_id, delta)

    with patch.object(OrderService, "adjust_stock", fail_on_r):
        with pytest.raises(StockReconciliationFailedError):
            service.create_order(new_order(seed, ("p", 3), ("r", 1)))

    assert db_session.query(Order).count() == 0
    # Product P was decremented before R failed; the rollback restores it.
    assert stock(db_session, seed["p"]) == 10


def test_compensation_deletes_surviving_header(db_session, seed):
    """If a header was already committed, the compensating delete removes it."""
    service = OrderService(db_session)
    order = Order(
        customer_id=seed["customer"].id, customer_name="x",
        employee_id=seed["employee"].id, employee_name="y", total=0,
    )
    db_session.add(order)
    db_session.commit()
    order_id = order.id

    service._compensate(order_id)

    assert service.get_order(order_id) is None


def test_adjust_stock_refuses_to_go_negative(db_session, seed):
    """The conditional decrement catches stock consumed after validation."""
    service = OrderService(db_session)

    with pytest.raises(InsufficientStockError) as exc_info:
        service.adjust_stock(seed["q"].id, 3)

    assert exc_info.value.available == 2
    assert exc_info.value.requested == 3
    db_session.rollback()
    assert stock(db_session, seed["q"]) == 2


def test_adjust_stock_both_directions(db_session, seed):
    service = OrderService(db_session)

    service.adjust_stock(seed["p"].id, 4)
    service.adjust_stock(seed["q"].id, -3)
    service.adjust_stock(seed["r"].id, 0)
    db_session.commit()

    assert stock(db_session, seed["p"]) == 6
    assert stock(db_session, seed["q"]) == 5
    assert stock(db_session, seed["r"]) == 100


def test_adjust_stock_missing_product(db_session, seed):
    service = OrderService(db_session)

    with pytest.raises(ProductNotFoundError):
        service.adjust_stock(9999, 1)
    with pytest.raises(StockReconciliationFailedError):
        service.adjust_stock(9999, -1)


def test_validate_stock_only_checks_given_demand(db_session, seed):
    service = OrderService(db_session)

    products = service.validate_stock({seed["p"].id: 10, seed["q"].id: 2})

    assert set(products) == {seed["p"].id, seed["q"].id}
    with pytest.raises(ProductNotFoundError):
        service.validate_stock({9999: 1})


def test_edit_delta_symmetry(db_session, seed):
    """Each product's stock moves by -(new - old)."""
    service = OrderService(db_session)
    order = service.create_order(new_order(seed, ("p", 3), ("q", 2)))
    before = {key: stock(db_session, seed[key]) for key in ("p", "q", "r")}

    service.update_order(order.id, OrderUpdate(items=[
        OrderItemIn(product_id=seed["p"].id, quantity=5),
        OrderItemIn(product_id=seed["r"].id, quantity=7),
    ]))

    assert stock(db_session, seed["p"]) == before["p"] - 2
    assert stock(db_session, seed["q"]) == before["q"] + 2
    assert stock(db_session, seed["r"]) == before["r"] - 7


def test_edit_failure_rolls_back_earlier_stock_changes(db_session, seed):
    service = OrderService(db_session)
    order = service.create_order(new_order(seed, ("p", 1), ("r", 1)))
    original = OrderService.adjust_stock

    def fail_on_r(self, product_id, delta):
        if product_id == seed["r"].id:
            raise StockReconciliationFailedError("stock service down")
        return original(self, product_id, delta)

    with patch.object(OrderService, "adjust_stock", fail_on_r):
        with pytest.raises(StockReconciliationFailedError):
            service.update_order(order.id, OrderUpdate(items=[
                OrderItemIn(product_id=seed["p"].id, quantity=4),
                OrderItemIn(product_id=seed["r"].id, quantity=4),
            ]))

    assert stock(db_session, seed["p"]) == 9
    assert stock(db_session, seed["r"]) == 99
    reread = service.get_order(order.id)
    assert [i.quantity for i in reread.items] == [1, 1]


def test_edit_item_write_failure(db_session, seed):
    service = OrderService(db_session)
    order = service.create_order(new_order(seed, ("p", 1)))

    with patch.object(OrderService, "_replace_items", side_effect=SQLAlchemyError("lost connection")):
        with pytest.raises(OrderItemsWriteFailedError):
            service.update_order(order.id, OrderUpdate(items=[OrderItemIn(product_id=seed["p"].id, quantity=2)]))

    assert stock(db_session, seed["p"]) == 9
    assert service.get_order(order.id) is not None


def test_edit_to_no_items_rejected(db_session, seed):
    service = OrderService(db_session)
    order = service.create_order(new_order(seed, ("p", 3)))

    with pytest.raises(ValidationError):
        service.update_order(order.id, OrderUpdate(items=[]))

    assert stock(db_session, seed["p"]) == 7


def test_edit_missing_order(db_session, seed):
    with pytest.raises(OrderNotFoundError):
        OrderService(db_session).update_order(9999, OrderUpdate(customer_name="x"))


def test_reader_falls_back_to_placeholders(db_session, seed):
    order = Order(customer_id=9999, customer_name="", employee_id=seed["employee"].id, employee_name="", total=0)
    db_session.add(order)
    db_session.commit()

    reread = OrderService(db_session).get_order(order.id)

    assert reread.customer_name == UNKNOWN_CUSTOMER
    assert reread.employee_name == "Eve Employee"
    assert not db_session.dirty


def test_list_orders_newest_first(db_session, seed):
    for day in (3, 1, 2):
        db_session.add(Order(
            customer_id=seed["customer"].id, customer_name="c",
            employee_id=seed["employee"].id, employee_name="e",
            total=day, created_at=datetime(2025, 3, day, 12, 0),
        ))
    db_session.commit()

    orders = OrderService(db_session).list_orders()

    assert [o.total for o in orders] == [Decimal("3.00"), Decimal("2.00"), Decimal("1.00")]


def test_delete_order_removes_items(db_session, seed):
    service = OrderService(db_session)
    order = service.create_order(new_order(seed, ("p", 2)))

    assert service.delete_order(order.id) is True
    assert db_session.query(OrderItem).count() == 0
    assert service.get_order(order.id) is None
    assert service.delete_order(order.id) is False


def test_validation_reports_lines_in_given_order(db_session, seed):
    """Rows are locked by id, but the first failing line as given is the one reported."""
    service = OrderService(db_session)
    assert seed["q"].id < seed["r"].id

    with pytest.raises(InsufficientStockError) as exc_info:
        service.create_order(new_order(seed, ("r", 500), ("q", 5)))
    assert exc_info.value.product_name == "Product R"

    missing_first = OrderCreate(
        customer_id=seed["customer"].id,
        employee_id=seed["employee"].id,
        items=[OrderItemIn(product_id=9999, quantity=1), OrderItemIn(product_id=seed["q"].id, quantity=5)],
    )
    with pytest.raises(ProductNotFoundError):
        service.create_order(missing_first)

    assert db_session.query(Order).count() == 0
    assert stock(db_session, seed["q"]) == 2
    assert stock(db_session, seed["r"]) == 100


def test_edit_adding_unavailable_product_leaves_order_unchanged(db_session, seed):
    service = OrderService(db_session)
    order = service.create_order(new_order(seed, ("p", 1)))

    with pytest.raises(ProductUnavailableError):
        service.update_order(order.id, OrderUpdate(items=[
            OrderItemIn(product_id=seed["p"].id, quantity=1),
            OrderItemIn(product_id=seed["off"].id, quantity=1),
        ]))

    assert stock(db_session, seed["p"]) == 9
    assert stock(db_session, seed["off"]) == 8
    assert [i.product_id for i in service.get_order(order.id).items] == [seed["p"].id]


@pytest.mark.parametrize("field, error", [
    ("customer_id", CustomerNotFoundError),
    ("employee_id", EmployeeNotFoundError),
])
def test_edit_unknown_party_leaves_order_unchanged(db_session, seed, field, error):
    service = OrderService(db_session)
    order = service.create_order(new_order(seed, ("p", 1)))

    with pytest.raises(error):
        service.update_order(order.id, OrderUpdate(
            items=[OrderItemIn(product_id=seed["p"].id, quantity=3)], **{field: 9999}
        ))

    assert stock(db_session, seed["p"]) == 9
    reread = service.get_order(order.id)
    assert reread.customer_id == seed["customer"].id
    assert reread.employee_id == seed["employee"].id
    assert [i.quantity for i in reread.items] == [1]


def test_list_orders_slice(db_session, seed):
    for day in (1, 2, 3):
        db_session.add(Order(
            customer_id=seed["customer"].id, customer_name="c",
            employee_id=seed["employee"].id, employee_name="e",
            total=day, created_at=datetime(2025, 3, day, 12, 0),
        ))
    db_session.commit()
    service = OrderService(db_session)

    assert [o.total for o in service.list_orders(offset=1, limit=1)] == [Decimal("2.00")]
    orders, total, total_pages = service.get_orders(page=2, page_size=2)
    assert [o.total for o in orders] == [Decimal("1.00")]
    assert (total, total_pages) == (3, 2)
