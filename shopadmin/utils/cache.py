import json
import redis
from typing import Optional, Any

from shopadmin.config import get_settings

settings = get_settings()

# Create Redis client
redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)

PRODUCT_PREFIX = "product"
REVENUE_PREFIX = "revenue"


class CacheService:
    """
    Redis cache for product details and the revenue summary.

    Every Redis failure degrades to a cache miss; callers always fall back to
    the database. Stock decisions never read from here.
    """

    def __init__(self, client: redis.Redis = None, ttl: int = None, enabled: bool = None):
        self.client = client or redis_client
        self.ttl = ttl or settings.CACHE_TTL
        self.enabled = settings.CACHE_ENABLED if enabled is None else enabled

    def _make_key(self, prefix: str, key: str) -> str:
        """Create a namespaced cache key."""
        return f"{prefix}:{key}"

    def get(self, prefix: str, key: str) -> Optional[Any]:
        """
        Get a value from cache.

        Args:
            prefix: Cache key prefix (e.g., 'product')
            key: Unique identifier

        Returns:
            Cached value or None if not found
        """
        if not self.enabled:
            return None
        cache_key = self._make_key(prefix, key)
        try:
            value = self.client.get(cache_key)
            if value:
                return json.loads(value)
            return None
        except (redis.RedisError, json.JSONDecodeError):
            return None

    def set(self, prefix: str, key: str, value: Any, ttl: int = None) -> bool:
        """
        Set a value in cache with TTL.

        Args:
            prefix: Cache key prefix
            key: Unique identifier
            value: Value to cache (will be JSON serialized)
            ttl: Time to live in seconds (optional, uses default if not provided)

        Returns:
            True if successful, False otherwise
        """
        if not self.enabled:
            return False
        cache_key = self._make_key(prefix, key)
        ttl = ttl or self.ttl
        try:
            serialized = json.dumps(value, default=str)
            self.client.setex(cache_key, ttl, serialized)
            return True
        except (redis.RedisError, TypeError):
            return False

    def delete(self, prefix: str, key: str) -> bool:
        """Delete a single key. Returns False if Redis is unreachable."""
        if not self.enabled:
            return False
        cache_key = self._make_key(prefix, key)
        try:
            self.client.delete(cache_key)
            return True
        except redis.RedisError:
            return False

    def delete_pattern(self, pattern: str) -> int:
        """
        Delete all keys matching a pattern.

        Args:
            pattern: Redis key pattern (e.g., 'revenue:*')

        Returns:
            Number of keys deleted
        """
        if not self.enabled:
            return 0
        try:
            keys = list(self.client.scan_iter(match=pattern))
            if keys:
                return self.client.delete(*keys)
            return 0
        except redis.RedisError:
            return 0

    def invalidate_products(self, product_ids) -> None:
        """Drop cached details for every product whose stock or data changed."""
        for product_id in set(product_ids):
            self.delete(PRODUCT_PREFIX, str(product_id))

    def invalidate_revenue(self) -> int:
        """Drop every cached revenue summary."""
        return self.delete_pattern(f"{REVENUE_PREFIX}:*")


# Singleton cache service instance
cache_service = CacheService()
