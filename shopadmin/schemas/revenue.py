from pydantic import BaseModel
from datetime import datetime


class RevenueBucket(BaseModel):
    """Revenue and order count for one time frame."""
    revenue: float
    order_count: int
    date_range: str


class RevenueSummary(BaseModel):
    """Dashboard revenue cards."""
    as_of: datetime
    today: RevenueBucket
    this_week: RevenueBucket
    this_month: RevenueBucket
    older: RevenueBucket
