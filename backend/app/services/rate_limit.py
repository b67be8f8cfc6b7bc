"""
Fixed-window rate limiting for sensitive auth operations.

Counters are keyed by an identifier string (``login:<ip>``,
``password-change:<user_id>``...) and reset completely once the window that
started with the first request has elapsed.

Two stores are provided:
- InMemoryRateLimitStore: per-process dict, suitable for a single instance
- RedisRateLimitStore: shared counters for horizontally scaled deployments
"""
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol

import redis
import structlog
from starlette.requests import Request

from app.core.config import Settings

logger = structlog.get_logger()

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
PURGE_INTERVAL_MS = 5 * MINUTE_MS


@dataclass(frozen=True)
class RateLimitConfig:
    limit: int
    window_ms: int


@dataclass(frozen=True)
class RateLimitEntry:
    count: int
    window_start: int


@dataclass(frozen=True)
class RateLimitResult:
    success: bool
    remaining: int
    reset_in_ms: int
    error: Optional[str] = None


RATE_LIMIT_CONFIGS: Dict[str, RateLimitConfig] = {
    "login": RateLimitConfig(limit=5, window_ms=15 * MINUTE_MS),
    "password_reset": RateLimitConfig(limit=3, window_ms=HOUR_MS),
    "password_change": RateLimitConfig(limit=5, window_ms=HOUR_MS),
    "user_creation": RateLimitConfig(limit=10, window_ms=HOUR_MS),
}


def now_ms() -> int:
    return int(time.time() * 1000)


class RateLimitStore(Protocol):
    """Backing store for fixed-window counters."""

    def increment(self, key: str, window_ms: int, now: int) -> RateLimitEntry:
        """Count one request for ``key`` and return the resulting entry.

        Starts a new window (count 1) when the key is unknown or
        ``now > window_start + window_ms``.
        """
        ...

    def clear(self) -> None: ...


class InMemoryRateLimitStore:
    """Process-local store. Entries are lost on restart."""

    def __init__(self, purge_interval_ms: int = PURGE_INTERVAL_MS) -> None:
        self._entries: Dict[str, RateLimitEntry] = {}
        self._window_ms: Dict[str, int] = {}
        self._lock = threading.Lock()
        self._purge_interval_ms = purge_interval_ms
        self._last_purge: Optional[int] = None

    def increment(self, key: str, window_ms: int, now: int) -> RateLimitEntry:
        with self._lock:
            self._maybe_purge(now)
            entry = self._entries.get(key)
            if entry is None or now > entry.window_start + window_ms:
                entry = RateLimitEntry(count=1, window_start=now)
            else:
                entry = RateLimitEntry(count=entry.count + 1, window_start=entry.window_start)
            self._entries[key] = entry
            self._window_ms[key] = window_ms
            return entry

    def get(self, key: str) -> Optional[RateLimitEntry]:
        with self._lock:
            return self._entries.get(key)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._window_ms.clear()
            self._last_purge = None

    def __len__(self) -> int:
        return len(self._entries)

    def _maybe_purge(self, now: int) -> None:
        if self._last_purge is None:
            self._last_purge = now
            return
        if now - self._last_purge < self._purge_interval_ms:
            return
        expired = [
            key
            for key, entry in self._entries.items()
            if now > entry.window_start + self._window_ms.get(key, 0)
        ]
        for key in expired:
            del self._entries[key]
            self._window_ms.pop(key, None)
        self._last_purge = now
        if expired:
            logger.info("rate_limit.purged", count=len(expired))


# KEYS[1] = counter key, KEYS[2] = window start key
# ARGV[1] = window in ms, ARGV[2] = now in ms
_INCREMENT_SCRIPT = """
local count = redis.call('INCR', KEYS[1])
if count == 1 then
    redis.call('PEXPIRE', KEYS[1], ARGV[1])
    redis.call('SET', KEYS[2], ARGV[2], 'PX', ARGV[1])
end
local started = redis.call('GET', KEYS[2])
if not started then
    started = ARGV[2]
end
return {count, started}
"""


class RedisRateLimitStore:
    """Shared store; the window ends when Redis expires the counter key."""

    def __init__(self, client: redis.Redis, prefix: str = "ratelimit") -> None:
        self._client = client
        self._prefix = prefix
        self._increment = client.register_script(_INCREMENT_SCRIPT)

    def increment(self, key: str, window_ms: int, now: int) -> RateLimitEntry:
        count_key = f"{self._prefix}:{key}:count"
        start_key = f"{self._prefix}:{key}:start"
        count, started = self._increment(keys=[count_key, start_key], args=[window_ms, now])
        return RateLimitEntry(count=int(count), window_start=int(started))

    def clear(self) -> None:
        for key in self._client.scan_iter(match=f"{self._prefix}:*"):
            self._client.delete(key)


class RateLimiter:
    """Evaluates fixed-window limits against a pluggable store."""

    def __init__(
        self,
        store: Optional[RateLimitStore] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store if store is not None else InMemoryRateLimitStore()
        self._clock = clock

    def check(self, identifier: str, config: RateLimitConfig) -> RateLimitResult:
        now = self._clock()
        entry = self.store.increment(identifier, config.window_ms, now)
        reset_in_ms = max(entry.window_start + config.window_ms - now, 0)

        if entry.count > config.limit:
            minutes = math.ceil(reset_in_ms / MINUTE_MS)
            logger.warning("rate_limit.exceeded", identifier=identifier, limit=config.limit)
            return RateLimitResult(
                success=False,
                remaining=0,
                reset_in_ms=reset_in_ms,
                error=f"Too many requests. Please try again in {minutes} minutes.",
            )

        return RateLimitResult(
            success=True,
            remaining=config.limit - entry.count,
            reset_in_ms=reset_in_ms,
        )

    def check_login(self, ip: str) -> RateLimitResult:
        return self.check(f"login:{ip}", RATE_LIMIT_CONFIGS["login"])

    def check_password_reset(self, identifier: str) -> RateLimitResult:
        return self.check(f"password-reset:{identifier}", RATE_LIMIT_CONFIGS["password_reset"])

    def check_password_change(self, user_id: str) -> RateLimitResult:
        return self.check(f"password-change:{user_id}", RATE_LIMIT_CONFIGS["password_change"])

    def check_user_creation(self, admin_id: str) -> RateLimitResult:
        return self.check(f"user-creation:{admin_id}", RATE_LIMIT_CONFIGS["user_creation"])

    def reset(self) -> None:
        self.store.clear()


def build_rate_limiter(settings: Settings) -> RateLimiter:
    """Create the limiter selected by ``RATE_LIMIT_BACKEND`` (memory or redis)."""
    backend = settings.rate_limit_backend.lower()
    if backend == "redis":
        client = redis.from_url(settings.redis_url, decode_responses=True)
        logger.info("rate_limit.backend", backend="redis", url=settings.redis_url)
        return RateLimiter(RedisRateLimitStore(client, prefix=settings.rate_limit_key_prefix))
    if backend != "memory":
        raise ValueError(f"Unknown rate limit backend: {settings.rate_limit_backend}")
    return RateLimiter(InMemoryRateLimitStore())


_IP_HEADERS = ("x-forwarded-for", "x-real-ip", "x-vercel-forwarded-for", "cf-connecting-ip")


def get_client_ip(request: Request) -> str:
    """Best-effort client address behind common proxies."""
    for header in _IP_HEADERS:
        value = request.headers.get(header)
        if value:
            # Forwarded chains list the original client first.
            return value.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"
