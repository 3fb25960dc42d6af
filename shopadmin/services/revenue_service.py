from datetime import datetime, timedelta, timezone
from decimal import Decimal
from sqlalchemy.orm import Session
from typing import Optional
import logging

from shopadmin.models.order import Order
from shopadmin.utils.cache import cache_service, REVENUE_PREFIX

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _label(start: datetime, end: datetime) -> str:
    """Card caption, e.g. "March 9, 2025" or "Mar 3 - Mar 9, 2025"."""
    if start.date() == end.date():
        return f"{end:%B} {end.day}, {end.year}"
    return f"{start:%b} {start.day} - {end:%b} {end.day}, {end.year}"


class RevenueService:
    """
    Revenue cards for the dashboard.

    Orders are bucketed relative to a reference time: today, this week
    (starting Monday), this month, and everything older. The buckets nest:
    an order from today also counts toward the week and the month, an order
    from earlier this week also counts toward the month.
    """

    def __init__(self, db: Session):
        self.db = db

    def summary(self, as_of: Optional[datetime] = None, use_cache: bool = True) -> dict:
        """
        Build the revenue summary.

        Args:
            as_of: Reference time, defaults to now (UTC)
            use_cache: Read from and write to the Redis cache

        Returns:
            Dictionary matching the RevenueSummary schema
        """
        as_of = _as_utc(as_of or datetime.now(timezone.utc))
        cache_key = f"summary:{as_of.date().isoformat()}"

        if use_cache:
            cached = cache_service.get(REVENUE_PREFIX, cache_key)
            if cached:
                return cached

        start_of_day = as_of.replace(hour=0, minute=0, second=0, microsecond=0)
        end_of_day = start_of_day + timedelta(days=1)
        start_of_week = start_of_day - timedelta(days=start_of_day.weekday())
        start_of_month = start_of_day.replace(day=1)
        older_before = min(start_of_week, start_of_month)

        buckets = {
            name: {"revenue": Decimal("0"), "order_count": 0}
            for name in ("today", "this_week", "this_month", "older")
        }

        for created_at, total in self.db.query(Order.created_at, Order.total).all():
            if created_at is None:
                continue
            created_at = _as_utc(created_at)
            total = Decimal(str(total))

            if created_at >= end_of_day:
                continue

            hits = []
            if created_at >= start_of_day:
                hits.append("today")
            if created_at >= start_of_week:
                hits.append("this_week")
            if created_at >= start_of_month:
                hits.append("this_month")
            if created_at < older_before:
                hits.append("older")

            for name in hits:
                buckets[name]["revenue"] += total
                buckets[name]["order_count"] += 1

        labels = {
            "today": _label(start_of_day, start_of_day),
            "this_week": _label(start_of_week, start_of_day),
            "this_month": _label(start_of_month, start_of_day),
            "older": f"Before {older_before:%b} {older_before.day}, {older_before.year}",
        }

        result = {"as_of": as_of.isoformat()}
        for name, bucket in buckets.items():
            result[name] = {
                "revenue": float(bucket["revenue"]),
                "order_count": bucket["order_count"],
                "date_range": labels[name],
            }

        if use_cache:
            cache_service.set(REVENUE_PREFIX, cache_key, result)

        logger.debug(f"Revenue summary computed as of {as_of.isoformat()}")
        return result
