"""
Redis caching utilities with explicit TTLs.

A Cache is built once at startup, stored on ``app.state`` and handed to
request handlers through the ``get_cache`` dependency. When Redis is not
configured or unreachable the cache fails open: reads miss and writes are
skipped.
"""
import json
import logging
import os
from typing import Any, Optional

import redis
from fastapi import Request

logger = logging.getLogger(__name__)


def create_redis_client() -> Optional[redis.Redis]:
    """
    Create a Redis client from REDIS_URL or the individual REDIS_* settings.
    Returns None when Redis is not configured.
    """
    redis_url = os.getenv("REDIS_URL")
    redis_host = os.getenv("REDIS_HOST")

    if not redis_url and not redis_host:
        logger.info("Redis not configured; doctor profile cache disabled")
        return None

    try:
        if redis_url:
            client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30,
            )
        else:
            client = redis.Redis(
                host=redis_host,
                port=int(os.getenv("REDIS_PORT", "6379")),
                password=os.getenv("REDIS_PASSWORD"),
                db=int(os.getenv("REDIS_DB", "0")),
                ssl=os.getenv("REDIS_SSL", "false").lower() == "true",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
        client.ping()
        logger.info("Redis connected successfully")
        return client
    except redis.RedisError as e:
        logger.warning(f"⚠️ Redis cache unavailable, continuing without cache: {e}")
        return None


class Cache:
    """Redis cache wrapper with JSON serialization"""

    def __init__(self, client: Optional[redis.Redis] = None, prefix: str = "telecare"):
        self.client = client
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    def get(self, key: str) -> Optional[Any]:
        if self.client is None:
            return None

        try:
            value = self.client.get(self._key(key))
            if value:
                logger.debug(f"✅ Cache HIT: {key}")
                return json.loads(value)
            logger.debug(f"❌ Cache MISS: {key}")
            return None
        except redis.RedisError as e:
            logger.error(f"❌ Cache get error for {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl: int) -> bool:
        """Set value with a TTL in seconds"""
        if self.client is None:
            return False

        try:
            self.client.setex(self._key(key), ttl, json.dumps(value, default=str))
            logger.debug(f"✅ Cache SET: {key} (TTL: {ttl}s)")
            return True
        except redis.RedisError as e:
            logger.error(f"❌ Cache set error for {key}: {e}")
            return False

    def delete(self, key: str) -> bool:
        if self.client is None:
            return False

        try:
            self.client.delete(self._key(key))
            logger.debug(f"✅ Cache DELETE: {key}")
            return True
        except redis.RedisError as e:
            logger.error(f"❌ Cache delete error for {key}: {e}")
            return False


def doctor_profile_key(doctor_id: int) -> str:
    return f"doctor_profile:{doctor_id}"


VERIFIED_DOCTORS_KEY = "verified_doctors"


def get_cache(request: Request) -> Cache:
    """FastAPI dependency returning the cache created in the app lifespan"""
    cache = getattr(request.app.state, "cache", None)
    if cache is None:
        return Cache(client=None)
    return cache
