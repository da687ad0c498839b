"""
Per-client-IP rate limiting.

Each client IP gets its own token bucket: it holds up to `burst` tokens and
refills at `rate` tokens per second. A request spends one token; a request
that finds the bucket empty is rejected with 429.

The bucket table is the only shared mutable state in the request path. One
lock guards every lookup, insert and eviction. Buckets of clients not seen
for `idle_seconds` are evicted by a background sweep so that the table
cannot grow without bound.

Lifecycle:
    limiter = RateLimiter(rate=2, burst=5)
    limiter.start()        # inside a running event loop (app startup)
    ...
    await limiter.stop()   # app shutdown

RateLimitMiddleware must be the outermost middleware: a rejected request
never reaches CORS handling, error recovery or principal resolution.
"""

import asyncio
import contextlib
import logging
import threading
import time
from collections.abc import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from impart.exceptions import RateLimitExceededError, error_response
from impart.middleware import server_error_response

logger = logging.getLogger(__name__)


class TokenBucket:
    """A single client's bucket. Not thread-safe on its own."""

    __slots__ = ("rate", "burst", "tokens", "updated_at", "last_seen")

    def __init__(self, rate: float, burst: int, now: float):
        self.rate = rate
        self.burst = burst
        self.tokens = float(burst)
        self.updated_at = now
        self.last_seen = now

    def allow(self, now: float) -> bool:
        elapsed = max(0.0, now - self.updated_at)
        self.tokens = min(float(self.burst), self.tokens + elapsed * self.rate)
        self.updated_at = now
        self.last_seen = now

        if self.tokens >= 1.0:
            self.tokens -= 1.0
            return True
        return False


class RateLimiter:
    """Token-bucket limiter keyed by client IP."""

    def __init__(
        self,
        rate: float,
        burst: int,
        enabled: bool = True,
        idle_seconds: float = 180.0,
        sweep_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.rate = rate
        self.burst = burst
        self.enabled = enabled
        self.idle_seconds = idle_seconds
        self.sweep_seconds = sweep_seconds
        self._clock = clock
        self._buckets: dict[str, TokenBucket] = {}
        self._lock = threading.Lock()
        self._sweeper: asyncio.Task | None = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)

    def allow(self, client_ip: str) -> bool:
        """Spend one token from the client's bucket, creating it if needed."""
        now = self._clock()
        with self._lock:
            bucket = self._buckets.get(client_ip)
            if bucket is None:
                bucket = TokenBucket(self.rate, self.burst, now)
                self._buckets[client_ip] = bucket
            return bucket.allow(now)

    def sweep(self) -> int:
        """Evict clients idle for longer than idle_seconds. Returns the count."""
        now = self._clock()
        with self._lock:
            stale = [
                ip for ip, bucket in self._buckets.items()
                if now - bucket.last_seen > self.idle_seconds
            ]
            for ip in stale:
                del self._buckets[ip]
        if stale:
            logger.debug("evicted %d idle rate-limit client(s)", len(stale))
        return len(stale)

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_seconds)
            self.sweep()

    def start(self) -> None:
        """Start the background sweep. Must be called from a running loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(self._sweep_forever())

    async def stop(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._sweeper
        self._sweeper = None


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests from clients that have exhausted their bucket."""

    def __init__(self, app, limiter: RateLimiter):
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next) -> Response:
        if not self.limiter.enabled:
            return await call_next(request)

        if request.client is None:
            logger.error(
                "cannot determine client address method=%s uri=%s",
                request.method,
                request.url.path,
            )
            return server_error_response()

        if not self.limiter.allow(request.client.host):
            logger.info("rate limit exceeded for %s", request.client.host)
            return error_response(RateLimitExceededError())

        return await call_next(request)
