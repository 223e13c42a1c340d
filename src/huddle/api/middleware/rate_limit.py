"""
Rate limiting -- caps requests per client on the chat endpoints.

Each chat turn can fan out to several model calls, so this bounds cost per
client. In-memory sliding window per client IP, one window per app
instance; for multiple replicas put a shared limiter in front.

Configuration via environment:
  HUDDLE_RATE_LIMIT_PER_MINUTE=30  (default: 30 requests per minute per IP, 0 disables)
"""

import logging
import os
import time
from collections import defaultdict

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)

DEFAULT_RATE_LIMIT = 30
WINDOW_SECONDS = 60.0


def get_rate_limit() -> int:
    try:
        return int(os.environ.get("HUDDLE_RATE_LIMIT_PER_MINUTE", DEFAULT_RATE_LIMIT))
    except ValueError:
        return DEFAULT_RATE_LIMIT


class RateLimiter:
    """Sliding-window counter keyed by client id."""

    def __init__(self, limit: int, window_seconds: float = WINDOW_SECONDS):
        self.limit = limit
        self.window_seconds = window_seconds
        self._log: dict[str, list[float]] = defaultdict(list)

    def hit(self, client_id: str) -> bool:
        """Record a request. Returns False if the client is over the limit."""
        if self.limit <= 0:
            return True
        cutoff = time.time() - self.window_seconds
        recent = [ts for ts in self._log[client_id] if ts > cutoff]
        if len(recent) >= self.limit:
            self._log[client_id] = recent
            return False
        recent.append(time.time())
        self._log[client_id] = recent
        return True


async def check_rate_limit(request: Request) -> None:
    """
    FastAPI dependency. Raises HTTP 429 when the client exceeded the limit.

    Uses the app's RateLimiter (app.state.rate_limiter); no limiter, no limit.
    """
    limiter: RateLimiter | None = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        return
    client_ip = request.client.host if request.client else "unknown"
    if not limiter.hit(client_ip):
        logger.warning(f"[RateLimit] Client {client_ip} exceeded {limiter.limit}/min")
        raise HTTPException(
            status_code=429,
            detail=f"Rate limit exceeded ({limiter.limit} requests per minute)",
            headers={"Retry-After": str(int(limiter.window_seconds))},
        )
