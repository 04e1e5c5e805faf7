import json
import logging
from time import time
from typing import Dict, Optional, Tuple

import redis
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from utils.errors import RATE_LIMITED
from utils.logging_utils import log_security_event
from utils.responses import error_response

logger = logging.getLogger(__name__)

EXEMPT_PATHS = ("/health",)


def connect_redis(redis_url: Optional[str]):
    """Return a connected Redis client, or None to use in-memory buckets."""
    if not redis_url:
        logger.info("REDIS_URL not set. Using in-memory rate limiting.")
        return None
    try:
        client = redis.from_url(redis_url, decode_responses=True)
        client.ping()
    except redis.RedisError as e:
        logger.warning(f"Redis connection failed: {e}. Falling back to in-memory rate limiting.")
        return None
    logger.info("Redis connected successfully for rate limiting")
    return client


class RateLimiterMiddleware(BaseHTTPMiddleware):
    """
    Distributed rate limiter using Redis (with fallback to in-memory).
    Uses Token Bucket Algorithm: ``capacity`` requests per ``window_seconds`` per IP.

    The client IP is the socket peer. Behind a reverse proxy, uvicorn rewrites
    it from X-Forwarded-For only for peers listed in FORWARDED_ALLOW_IPS.
    """

    def __init__(self, app, capacity: int = 100, window_seconds: float = 900.0, redis_url: Optional[str] = None):
        super().__init__(app)
        self.capacity = capacity
        self.refill_time_window = window_seconds
        # Fallback: in-memory storage (ip -> (tokens, last_refill_ts))
        self._buckets: Dict[str, Tuple[float, float]] = {}
        self._last_prune = time()
        self._redis = connect_redis(redis_url)

    def _get_client_ip(self, request: Request) -> str:
        client = request.client
        return client.host if client else "unknown"

    def _get_redis_key(self, ip: str) -> str:
        return f"rate_limit:{ip}"

    def _refill(self, tokens: float, last_refill: float, now: float) -> float:
        elapsed = max(0.0, now - last_refill)
        refill = (elapsed / self.refill_time_window) * self.capacity
        return min(self.capacity, tokens + refill)

    def _prune_buckets(self, now: float) -> None:
        """Drop buckets idle for a whole window; they would be full again anyway."""
        if now - self._last_prune < self.refill_time_window:
            return
        stale = [ip for ip, (_, last_refill) in self._buckets.items() if now - last_refill >= self.refill_time_window]
        for ip in stale:
            del self._buckets[ip]
        self._last_prune = now

    async def _check_rate_limit_redis(self, ip: str) -> Optional[bool]:
        """
        Check rate limit using Redis.
        Returns True if allowed, False if limited, None if Redis failed.
        """
        try:
            key = self._get_redis_key(ip)
            now = time()

            bucket_data = self._redis.get(key)
            if bucket_data:
                # Stored as {"tokens": float, "last_refill": float}
                data = json.loads(bucket_data)
                tokens = float(data.get("tokens", 0))
                last_refill = float(data.get("last_refill", now))
            else:
                tokens = float(self.capacity)
                last_refill = now

            tokens = self._refill(tokens, last_refill, now)
            if tokens < 1.0:
                return False

            bucket_data = json.dumps({"tokens": tokens - 1.0, "last_refill": now})
            self._redis.setex(key, int(self.refill_time_window) + 10, bucket_data)
            return True
        except redis.RedisError as e:
            logger.warning(f"Redis rate limit check failed: {e}. Falling back to in-memory.")
            return None
        except (ValueError, AttributeError) as e:
            logger.warning(f"Corrupt rate limit bucket for {ip}: {e}. Falling back to in-memory.")
            return None

    async def _check_rate_limit_memory(self, ip: str) -> bool:
        now = time()
        self._prune_buckets(now)
        tokens, last_refill = self._buckets.get(ip, (float(self.capacity), now))
        tokens = self._refill(tokens, last_refill, now)

        if tokens < 1.0:
            return False

        self._buckets[ip] = (tokens - 1.0, now)
        return True

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        ip = self._get_client_ip(request)

        allowed = None
        if self._redis is not None:
            allowed = await self._check_rate_limit_redis(ip)
        if allowed is None:
            allowed = await self._check_rate_limit_memory(ip)

        if not allowed:
            log_security_event("rate_limited", "low", ip=ip, path=request.url.path)
            return error_response(RATE_LIMITED, status=429, message="Too many requests. Try again shortly.")

        return await call_next(request)
