from datetime import datetime
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from shopadmin.database import get_db
from shopadmin.schemas.revenue import RevenueSummary
from shopadmin.services.revenue_service import RevenueService

router = APIRouter(prefix="/revenue", tags=["Revenue"])


@router.get(
    "/summary",
    response_model=RevenueSummary,
    summary="Revenue summary",
    description="""
    Revenue and order counts for today, this week, this month and older.

    Results are cached in Redis per day and dropped whenever an order is
    created, edited, deleted or processed.
    """
)
def revenue_summary(
    as_of: Optional[datetime] = Query(None, description="Reference time (defaults to now, UTC)"),
    db: Session = Depends(get_db)
):
    """Dashboard revenue cards."""
    service = RevenueService(db)
    # Explicit reference times are ad-hoc queries; only "now" is cached.
    return service.summary(as_of, use_cache=as_of is None)
