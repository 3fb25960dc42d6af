from fastapi import APIRouter
from redis import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from shopadmin.utils.cache import redis_client
from shopadmin.database import engine

router = APIRouter(prefix="/health", tags=["Health"])


@router.get(
    "/",
    summary="Health check",
    description="Basic health check endpoint."
)
def health_check():
    """Simple health check."""
    return {"status": "healthy"}


@router.get(
    "/ready",
    summary="Readiness check",
    description="Check if the database and Redis are reachable."
)
def readiness_check():
    """
    Readiness check for all dependencies.

    Only the database is required for orders to be placed; Redis backs the
    cache and the Celery broker.
    """
    checks = {
        "database": False,
        "redis": False
    }

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            checks["database"] = True
    except SQLAlchemyError as e:
        checks["database_error"] = str(e)

    try:
        redis_client.ping()
        checks["redis"] = True
    except RedisError as e:
        checks["redis_error"] = str(e)

    all_healthy = all([checks["database"], checks["redis"]])

    return {
        "status": "ready" if all_healthy else "not_ready",
        "checks": checks
    }


@router.get(
    "/cache/stats",
    summary="Cache statistics",
    description="Get Redis cache statistics."
)
def cache_stats():
    """Get cache statistics."""
    try:
        info = redis_client.info()
        return {
            "connected_clients": info.get("connected_clients"),
            "used_memory": info.get("used_memory_human"),
            "total_keys": redis_client.dbsize(),
            "uptime_seconds": info.get("uptime_in_seconds")
        }
    except RedisError as e:
        return {"error": str(e)}
