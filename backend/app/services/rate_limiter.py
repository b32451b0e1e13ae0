"""
Rate limiting for the public, token-gated endpoints.

Fixed-window counters per (rule, client IP), kept in Redis outside
development and in process memory otherwise.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple

import redis
from fastapi import HTTPException, Request, status

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RateLimitRule:
    requests: int
    window_seconds: int


DEFAULT_RULES: Dict[str, RateLimitRule] = {
    # Form loads and link checks; reloads are legitimate
    "link_validation": RateLimitRule(requests=30, window_seconds=60),
    # GPS retries after a denied or timed out fix
    "location_report": RateLimitRule(requests=30, window_seconds=60),
    "form_submission": RateLimitRule(requests=5, window_seconds=60),
}


class CounterStore(ABC):
    @abstractmethod
    def hit(self, key: str, window_seconds: int) -> Tuple[int, int]:
        """Count one request. Returns (count in window, seconds until the window resets)."""
        pass


class InMemoryCounterStore(CounterStore):
    def __init__(self):
        self._windows: Dict[str, Tuple[int, datetime]] = {}

    def _cleanup_expired(self, now: datetime) -> None:
        expired = [key for key, (_, resets_at) in self._windows.items() if resets_at <= now]
        for key in expired:
            del self._windows[key]

    def hit(self, key: str, window_seconds: int) -> Tuple[int, int]:
        now = datetime.utcnow()
        self._cleanup_expired(now)
        count, resets_at = self._windows.get(key, (0, now))
        if resets_at <= now:
            count, resets_at = 0, now + timedelta(seconds=window_seconds)
        count += 1
        self._windows[key] = (count, resets_at)
        return count, max(int((resets_at - now).total_seconds()), 0)


class RedisCounterStore(CounterStore):
    def __init__(self, client: "redis.Redis", prefix: str = "towdesk:ratelimit:"):
        self._redis = client
        self._prefix = prefix

    def hit(self, key: str, window_seconds: int) -> Tuple[int, int]:
        redis_key = f"{self._prefix}{key}"
        pipe = self._redis.pipeline()
        pipe.incr(redis_key)
        pipe.expire(redis_key, window_seconds, nx=True)
        pipe.ttl(redis_key)
        count, _, ttl = pipe.execute()
        return int(count), max(int(ttl), 0)


class RateLimiter:
    def __init__(self, store: CounterStore, rules: Optional[Dict[str, RateLimitRule]] = None):
        self.store = store
        self.rules = dict(DEFAULT_RULES if rules is None else rules)

    def check(self, rule_name: str, client: str) -> None:
        """Count a request and raise 429 once the rule's budget is spent."""
        rule = self.rules.get(rule_name)
        if rule is None:
            return

        count, reset_seconds = self.store.hit(f"{rule_name}:{client}", rule.window_seconds)
        if count > rule.requests:
            logger.warning(f"Rate limit '{rule_name}' exceeded by {client}")
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=f"Too many requests. Try again in {reset_seconds} seconds.",
                headers={
                    "X-RateLimit-Limit": str(rule.requests),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(reset_seconds),
                    "Retry-After": str(reset_seconds),
                },
            )


_rate_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """Get the rate limiter instance (creates if needed)."""
    global _rate_limiter
    if _rate_limiter is not None:
        return _rate_limiter

    store: CounterStore = InMemoryCounterStore()
    if settings.REDIS_URL and settings.APP_ENV != "development":
        client = redis.from_url(settings.REDIS_URL, decode_responses=True)
        try:
            client.ping()
            store = RedisCounterStore(client)
            logger.info("Using Redis rate limit store")
        except redis.RedisError as e:
            logger.warning(f"Redis unavailable for rate limiting, counting in memory: {e}")

    _rate_limiter = RateLimiter(store)
    return _rate_limiter


def client_address(request: Request) -> str:
    """Client IP, honouring the first hop of X-Forwarded-For."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def rate_limited(rule_name: str):
    """Dependency factory enforcing a named rule on the caller."""
    async def limiter(request: Request) -> None:
        get_rate_limiter().check(rule_name, client_address(request))
    return limiter
