"""
Hybrid in-memory + Redis rate limiting utilities
Counters live in memory and are synced to Redis periodically when REDIS_URL is set
"""

import logging
import time
from threading import Lock
from typing import Optional

import redis
from fastapi import Depends, HTTPException, Request

from .auth import get_current_user
from .config import RATE_LIMIT_ENABLED, REDIS_URL
from .models import User

logger = logging.getLogger(__name__)

# Redis connection
redis_client: Optional[redis.Redis] = None

# Format: {key: {'count': int, 'reset_time': int, 'last_redis_sync': int}}
memory_cache: dict[str, dict] = {}
cache_lock = Lock()

# Configuration
MEMORY_CACHE_SYNC_INTERVAL = 10  # Sync to Redis every 10 seconds
MEMORY_CACHE_CLEANUP_INTERVAL = 60  # Clean up expired entries every 60 seconds
last_cleanup_time = 0


def get_redis_client() -> Optional[redis.Redis]:
    """Get or create the Redis client; None when REDIS_URL is not configured"""
    global redis_client

    if redis_client is None and REDIS_URL:
        logger.info("🔄 Initializing Redis connection for rate limiting...")
        try:
            redis_client = redis.from_url(
                REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=15,
                socket_timeout=30,
                retry_on_timeout=True,
                health_check_interval=30,
                max_connections=20,
            )
            redis_client.ping()
            logger.info("✅ Redis connected successfully via URL")
        except redis.RedisError as e:
            logger.error(f"❌ Failed to connect to Redis via URL: {str(e)}")
            logger.warning("⚠️ Rate limiting continues with in-memory counters only")
            redis_client = None

    return redis_client


def cleanup_expired_cache():
    """Remove expired entries from memory cache"""
    global last_cleanup_time
    current_time = int(time.time())

    if current_time - last_cleanup_time < MEMORY_CACHE_CLEANUP_INTERVAL:
        return

    with cache_lock:
        expired_keys = [k for k, v in memory_cache.items() if current_time >= v.get("reset_time", 0)]
        for k in expired_keys:
            del memory_cache[k]

        if expired_keys:
            logger.debug(f"🧹 Cleaned up {len(expired_keys)} expired rate limit entries")

    last_cleanup_time = current_time


def _load_entry(key: str, window_seconds: int, client: Optional[redis.Redis], current_time: int) -> dict:
    if client is not None:
        try:
            redis_count = client.get(key)
            redis_ttl = client.ttl(key)
            if redis_count and redis_ttl > 0:
                return {
                    "count": int(redis_count),
                    "reset_time": current_time + redis_ttl,
                    "last_redis_sync": current_time,
                }
        except redis.RedisError as e:
            logger.warning(f"⚠️ Failed to load from Redis, using memory only: {e}")

    return {"count": 0, "reset_time": current_time + window_seconds, "last_redis_sync": current_time}


def check_rate_limit(
    key: str, limit: int, window_seconds: int, client: Optional[redis.Redis] = None
) -> tuple[bool, int, int]:
    """Check if rate limit is exceeded

    Args:
        key: Counter key for this rate limit
        limit: Maximum number of requests allowed
        window_seconds: Time window in seconds
        client: Redis client, or None for memory-only counting

    Returns:
        Tuple of (is_allowed, current_count, ttl_seconds)
    """
    current_time = int(time.time())

    cleanup_expired_cache()

    with cache_lock:
        if key not in memory_cache:
            memory_cache[key] = _load_entry(key, window_seconds, client, current_time)

        cache_entry = memory_cache[key]

        # Check if window has expired
        if current_time >= cache_entry["reset_time"]:
            cache_entry["count"] = 0
            cache_entry["reset_time"] = current_time + window_seconds
            cache_entry["last_redis_sync"] = 0

        is_allowed = cache_entry["count"] < limit
        if is_allowed:
            cache_entry["count"] += 1

        # Sync to Redis periodically (not on every request!)
        time_since_sync = current_time - cache_entry.get("last_redis_sync", 0)
        if client is not None and time_since_sync >= MEMORY_CACHE_SYNC_INTERVAL:
            try:
                client.set(key, cache_entry["count"], ex=window_seconds)
                cache_entry["last_redis_sync"] = current_time
                logger.debug(f"📡 Synced {key} to Redis: {cache_entry['count']}/{limit}")
            except redis.RedisError as e:
                logger.warning(f"⚠️ Failed to sync to Redis: {e}")

        ttl = cache_entry["reset_time"] - current_time
        return is_allowed, cache_entry["count"], max(0, ttl)


def create_user_rate_limiter(limit: int, window_seconds: int, key_prefix: str = "rate_limit"):
    """
    Create a per-user rate limiter dependency

    Example usage:
        comment_rate_limit = create_user_rate_limiter(limit=30, window_seconds=60, key_prefix="comments")

        @router.post("/{post_id}/comments")
        async def submit_comment(..., _: None = Depends(comment_rate_limit)):
            ...
    """

    async def rate_limiter(request: Request, user: User = Depends(get_current_user)):
        if not RATE_LIMIT_ENABLED:
            return

        key = f"{key_prefix}:{user.id}"
        is_allowed, current_count, ttl = check_rate_limit(key, limit, window_seconds, get_redis_client())

        if not is_allowed:
            logger.warning(f"🚫 Rate limit EXCEEDED for {key} - {current_count}/{limit} requests used")
            raise HTTPException(
                status_code=429,
                detail=f"Rate limit exceeded. Maximum {limit} requests per {window_seconds} seconds.",
                headers={"Retry-After": str(ttl)},
            )

        request.state.rate_limit_remaining = limit - current_count
        request.state.rate_limit_limit = limit
        request.state.rate_limit_reset = int(time.time()) + ttl

    return rate_limiter
