import logging

from sqlalchemy.exc import SQLAlchemyError

from shopadmin.config import get_settings
from shopadmin.tasks.celery_app import celery_app
from shopadmin.database import SessionLocal
from shopadmin.models.order import OrderItem, OrderStatus
from shopadmin.models.product import Product
from shopadmin.services.order_service import OrderService
from shopadmin.utils.cache import cache_service

logger = logging.getLogger(__name__)

settings = get_settings()


@celery_app.task(bind=True, name="process_order")
def process_order(self, order_id: int) -> dict:
    """
    Move a freshly placed order through processing.

    pending -> processing -> completed, or failed (and retried) when the
    database is unavailable. Afterwards the products on the order are
    checked for low stock.

    Args:
        order_id: ID of the order to process

    Returns:
        Dictionary with processing result
    """
    logger.info(f"Starting to process Order #{order_id}")

    db = SessionLocal()

    try:
        service = OrderService(db)
        order = service.update_status(order_id, OrderStatus.PROCESSING)

        if not order:
            logger.error(f"Order #{order_id} not found")
            return {"status": "failed", "error": "Order not found"}

        product_ids = [item.product_id for item in order.items]

        service.update_status(order_id, OrderStatus.COMPLETED)
        cache_service.invalidate_revenue()

        logger.info(f"Order #{order_id} Processed.")

        check_low_stock.delay(product_ids)

        return {
            "status": "success",
            "order_id": order_id,
            "message": f"Order #{order_id} Processed."
        }

    except SQLAlchemyError as e:
        logger.error(f"Error processing Order #{order_id}: {e}")
        db.rollback()

        try:
            OrderService(db).update_status(order_id, OrderStatus.FAILED)
        except SQLAlchemyError:
            db.rollback()
            logger.error(f"Could not mark Order #{order_id} as failed")

        raise self.retry(exc=e, countdown=60, max_retries=3)

    finally:
        db.close()


@celery_app.task(name="check_low_stock")
def check_low_stock(product_ids: list = None) -> list:
    """
    Log products whose stock is at or below LOW_STOCK_THRESHOLD.

    Args:
        product_ids: Products to check; all products that appear on any
            order when omitted

    Returns:
        List of {"id", "name", "stock"} for the low-stock products
    """
    db = SessionLocal()

    try:
        query = db.query(Product).filter(Product.stock <= settings.LOW_STOCK_THRESHOLD)
        if product_ids:
            query = query.filter(Product.id.in_(product_ids))
        else:
            query = query.filter(Product.id.in_(db.query(OrderItem.product_id)))

        low = [
            {"id": p.id, "name": p.name, "stock": p.stock}
            for p in query.order_by(Product.stock, Product.id).all()
        ]

        for product in low:
            logger.warning(
                f"Low stock: product #{product['id']} '{product['name']}' "
                f"has {product['stock']} units left"
            )

        return low

    finally:
        db.close()
