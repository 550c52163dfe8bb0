"""Redis cache for category reads.

The cache is a disposable replica of the tree store. Every failure here is
logged and swallowed; a miss or an unavailable Redis always falls through to
the store.
"""
import json
import redis
from typing import Any, Dict, Optional
from uuid import UUID
from catalog.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TTL_SECONDS = 3600


class CategoryCache:
    """Category cache keyed by id, slug and listing"""

    LISTING_KEY = "categories:all"

    def __init__(self, redis_client: Optional[redis.Redis] = None, ttl_seconds: int = DEFAULT_TTL_SECONDS):
        """
        Initialize the category cache.

        Args:
            redis_client: Connected Redis client, or None to run without a cache
            ttl_seconds: Expiry applied to every entry (default: one hour)
        """
        self.redis_client = redis_client
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_url(cls, redis_url: str, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> "CategoryCache":
        """
        Connect to Redis and build a cache.

        A connection failure yields a disabled cache rather than an error.
        """
        conn_params = {
            "decode_responses": True,
            "socket_connect_timeout": 5,
            "socket_timeout": 5,
            "retry_on_timeout": True,
            "health_check_interval": 30,
        }

        # Add SSL parameters for rediss:// URLs
        if redis_url.startswith("rediss://"):
            conn_params["ssl_cert_reqs"] = "none"

        try:
            client = redis.from_url(redis_url, **conn_params)
            # Test connection
            client.ping()
            logger.info(f"Connected to Redis cache at {redis_url}")
        except redis.RedisError as e:
            logger.error(f"Failed to connect to Redis cache: {e}")
            client = None
        return cls(client, ttl_seconds)

    @property
    def enabled(self) -> bool:
        return self.redis_client is not None

    @staticmethod
    def id_key(category_id: UUID) -> str:
        return f"category:{category_id}"

    @staticmethod
    def slug_key(slug: str) -> str:
        return f"category:slug:{slug}"

    @classmethod
    def listing_key(cls, suffix: Optional[str] = None) -> str:
        if not suffix:
            return cls.LISTING_KEY
        return f"{cls.LISTING_KEY}:{suffix}"

    def get(self, key: str) -> Optional[Any]:
        """
        Read a cached value.

        Returns:
            Decoded JSON value, or None on a miss or any cache failure
        """
        if not self.redis_client:
            return None

        try:
            raw = self.redis_client.get(key)
        except redis.RedisError as e:
            logger.error(f"Failed to read cache key {key}: {e}")
            return None

        if not raw:
            logger.debug(f"Cache miss for key: {key}")
            return None

        try:
            return json.loads(raw)
        except ValueError as e:
            logger.warning(f"Discarding undecodable cache entry {key}: {e}")
            self.delete(key)
            return None

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        """
        Store a value with an expiry.

        Returns:
            True if cached successfully, False otherwise
        """
        if not self.redis_client:
            return False

        try:
            json_data = json.dumps(value, separators=(",", ":"), default=str)
            ttl = int(ttl_seconds or self.ttl_seconds)
            self.redis_client.setex(key, ttl, json_data)
            logger.debug(f"Cached key: {key} (TTL: {ttl}s)")
            return True
        except (redis.RedisError, TypeError, ValueError) as e:
            logger.error(f"Failed to cache key {key}: {e}")
            return False

    def delete(self, *keys: str) -> bool:
        """Delete cache keys, returning False if the cache could not be reached"""
        keys = [key for key in keys if key]
        if not self.redis_client or not keys:
            return False

        try:
            self.redis_client.delete(*keys)
            logger.debug(f"Invalidated cache keys: {keys}")
            return True
        except redis.RedisError as e:
            logger.error(f"Failed to invalidate cache keys {keys}: {e}")
            return False

    def invalidate(self, category_id: UUID, slug: Optional[str] = None) -> bool:
        """Invalidate the by-id and by-slug entries of one category"""
        keys = [self.id_key(category_id)]
        if slug:
            keys.append(self.slug_key(slug))
        return self.delete(*keys)

    def invalidate_slug(self, slug: str) -> bool:
        return self.delete(self.slug_key(slug))

    def invalidate_many(self, categories: Dict[UUID, str]) -> bool:
        """Invalidate by-id and by-slug entries for a mapping of id -> slug"""
        keys = []
        for category_id, slug in categories.items():
            keys.append(self.id_key(category_id))
            if slug:
                keys.append(self.slug_key(slug))
        if not keys:
            return True
        return self.delete(*keys)

    def invalidate_listing(self) -> bool:
        """Invalidate the full listing and every filtered listing variant"""
        if not self.redis_client:
            return False

        try:
            keys = [self.LISTING_KEY]
            keys.extend(self.redis_client.scan_iter(match=f"{self.LISTING_KEY}:*"))
        except redis.RedisError as e:
            logger.error(f"Failed to scan listing cache keys: {e}")
            keys = [self.LISTING_KEY]
        return self.delete(*keys)

    def close(self):
        """Close Redis connection"""
        if self.redis_client:
            try:
                self.redis_client.close()
                logger.info("Closed Redis cache connection")
            except redis.RedisError as e:
                logger.warning(f"Error closing Redis cache connection: {e}")
            self.redis_client = None
