"""
Fixed-window rate limiting for unauthenticated and abuse-prone endpoints
Counts are kept in Redis (SET NX EX, then INCR) so every worker shares them; a
process-local window is used while Redis is unreachable.
"""

import logging
import time
from threading import Lock
from typing import Optional

import redis
from fastapi import HTTPException, Request

from . import config

logger = logging.getLogger(__name__)

redis_client: Optional[redis.Redis] = None
REDIS_RETRY_INTERVAL = 60
_next_redis_retry = 0.0

# key -> (count, window_end)
_local_windows: dict[str, tuple[int, int]] = {}
_local_lock = Lock()


def get_redis_client() -> Optional[redis.Redis]:
    """Shared Redis client, or None while Redis is down (retried every minute)"""
    global redis_client, _next_redis_retry

    if redis_client is not None:
        return redis_client
    if time.time() < _next_redis_retry:
        return None

    try:
        client = redis.from_url(
            config.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
        client.ping()
    except redis.RedisError as e:
        logger.warning(f"⚠️ Redis unavailable, rate limits are per-process only: {e}")
        _next_redis_retry = time.time() + REDIS_RETRY_INTERVAL
        return None

    redis_client = client
    logger.info("✅ Redis connected for rate limiting")
    return redis_client


def _hit_redis(client: redis.Redis, key: str, window_seconds: int) -> tuple[int, int]:
    pipe = client.pipeline()
    pipe.set(key, 0, ex=window_seconds, nx=True)
    pipe.incr(key)
    pipe.ttl(key)
    _, count, ttl = pipe.execute()
    return int(count), int(ttl) if ttl and ttl > 0 else window_seconds


def _hit_local(key: str, window_seconds: int) -> tuple[int, int]:
    now = int(time.time())
    with _local_lock:
        count, window_end = _local_windows.get(key, (0, 0))
        if now >= window_end:
            count, window_end = 0, now + window_seconds
            # Drop finished windows while holding the lock
            for stale in [k for k, (_, end) in _local_windows.items() if end <= now]:
                del _local_windows[stale]
        count += 1
        _local_windows[key] = (count, window_end)
    return count, window_end - now


def hit(key: str, window_seconds: int) -> tuple[int, int]:
    """
    Count one request against key.

    Returns:
        Tuple of (count_in_window, seconds_until_reset)
    """
    global redis_client

    client = get_redis_client()
    if client is not None:
        try:
            return _hit_redis(client, key, window_seconds)
        except redis.RedisError as e:
            logger.warning(f"⚠️ Redis rate limit check failed, falling back to memory: {e}")
            redis_client = None
    return _hit_local(key, window_seconds)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def create_rate_limiter(limit: int, window_seconds: int, key_prefix: str = "rate_limit"):
    """
    Per-IP limiter usable as a route dependency

        rate_limit_search = create_rate_limiter(limit=30, window_seconds=60, key_prefix="workspace_search")

        @router.get("/search")
        async def search(_: None = Depends(rate_limit_search)):
            ...
    """

    async def rate_limiter(request: Request):
        if not config.RATE_LIMIT_ENABLED:
            return

        key = f"rl:{key_prefix}:{client_ip(request)}"
        count, retry_after = hit(key, window_seconds)
        if count <= limit:
            return

        logger.warning(f"🚫 Rate limit hit for {key}: {count}/{limit}")
        raise HTTPException(
            status_code=429,
            detail={
                "message": f"Too many requests. Limit is {limit} per {window_seconds} seconds.",
                "retry_after": retry_after,
            },
            headers={"Retry-After": str(retry_after)},
        )

    return rate_limiter
