"""
Rate Limiting

Two limiters live here:

- ``limiter``: slowapi limiter for the management and utility endpoints
  (metadata fetch, subscribe, export), configured with "count/period" strings.
- ``FixedWindowRateLimiter``: in-process fixed-window counter guarding the
  scan path (``/r/{code}`` and ``/api/track-scan``). It is constructed
  explicitly and handed to endpoints through a dependency so it can be
  replaced by a shared store without touching call sites.

Known properties of the fixed-window limiter:
- Bursts straddling a window boundary can admit up to 2 * max_requests.
- The read-modify-write on a counter is not locked, so parallel requests
  for the same key can under-count slightly. The limit only ever loosens.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, NamedTuple, Optional

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

logger = logging.getLogger(__name__)

# Uses IP address for rate limiting
limiter = Limiter(key_func=get_remote_address)

# Format: "count/period" (e.g., "10/minute" means 10 requests per minute)
RATE_LIMITS = {
    "fetch_metadata": "20/minute",
    "subscribe": "10/minute",
    "export": "10/minute",
}

DEFAULT_WINDOW_SECONDS = 60.0
DEFAULT_MAX_REQUESTS = 30


class RateLimitResult(NamedTuple):
    allowed: bool
    remaining: int


@dataclass
class RateLimitEntry:
    count: int
    reset_at: float


class FixedWindowRateLimiter:
    """
    Fixed-window request counter keyed by an arbitrary string (e.g. ``scan:<ip>``).

    Entries are created on the first request for a key, replaced once the
    clock passes ``reset_at``, and removed by ``sweep()``.
    """

    def __init__(
        self,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._clock = clock
        self._entries: Dict[str, RateLimitEntry] = {}
        self._sweeper: Optional[asyncio.Task] = None

    def check(self, key: str) -> RateLimitResult:
        """
        Count one request against ``key``.

        Returns:
            RateLimitResult(allowed, remaining). Never raises.
        """
        now = self._clock()
        entry = self._entries.get(key)

        if entry is None or now > entry.reset_at:
            self._entries[key] = RateLimitEntry(count=1, reset_at=now + self.window_seconds)
            return RateLimitResult(True, self.max_requests - 1)

        if entry.count >= self.max_requests:
            return RateLimitResult(False, 0)

        entry.count += 1
        return RateLimitResult(True, self.max_requests - entry.count)

    def sweep(self) -> int:
        """Drop expired entries. Returns how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now > entry.reset_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.window_seconds)
            removed = self.sweep()
            if removed:
                logger.debug(f"Rate limiter sweep removed {removed} expired entries")

    def start_sweeper(self) -> None:
        """Start the periodic sweep task on the running event loop."""
        if self._sweeper is not None and not self._sweeper.done():
            return
        self._sweeper = asyncio.create_task(self._sweep_forever())

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None


def get_scan_limiter(request: Request) -> FixedWindowRateLimiter:
    """Dependency returning the application's scan limiter."""
    return request.app.state.scan_limiter
