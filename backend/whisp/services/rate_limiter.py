"""
Fixed-window rate limiter keyed by caller identity.

Counters live in process memory and are owned by the app lifespan, so
separate API instances each keep their own budget.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

from whisp.config import RateLimit, RateLimitsConfig
from whisp.exceptions import RateLimitExceeded
from whisp.utils import Clock, now_ms, seconds_to_ms

logger = logging.getLogger(__name__)


@dataclass
class _Window:
    count: int
    started_at: int


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_in_seconds: int


class RateLimiter:
    """Per-key request counters over fixed windows."""

    def __init__(self, config: Optional[RateLimitsConfig] = None, clock: Clock = now_ms):
        self.config = config or RateLimitsConfig()
        self.clock = clock
        self._windows: dict[str, _Window] = {}
        self._last_sweep = clock()

    def check(self, key: str, limit: RateLimit) -> RateLimitResult:
        """Count one request against ``key`` and report whether it is allowed."""
        now = self.clock()
        window_ms = seconds_to_ms(limit.window_seconds)
        self._maybe_sweep(now, window_ms)

        window = self._windows.get(key)
        if window is None or now - window.started_at >= window_ms:
            self._windows[key] = _Window(count=1, started_at=now)
            return RateLimitResult(
                allowed=True,
                remaining=limit.max_requests - 1,
                reset_in_seconds=limit.window_seconds,
            )

        reset_in = math.ceil((window.started_at + window_ms - now) / 1000)
        if window.count >= limit.max_requests:
            return RateLimitResult(allowed=False, remaining=0, reset_in_seconds=reset_in)

        window.count += 1
        return RateLimitResult(
            allowed=True,
            remaining=limit.max_requests - window.count,
            reset_in_seconds=reset_in,
        )

    def enforce(self, operation: str, identity: str) -> RateLimitResult:
        """Check the named operation's budget, raising RateLimitExceeded when spent."""
        limit: RateLimit = getattr(self.config, operation)
        result = self.check(f"{operation}:{identity}", limit)
        if not result.allowed:
            logger.warning(f"Rate limit hit for {operation}:{identity}")
            raise RateLimitExceeded(result.reset_in_seconds)
        return result

    def sweep(self, max_age_ms: int) -> int:
        """Drop windows that started more than ``max_age_ms`` ago."""
        cutoff = self.clock() - max_age_ms
        stale = [key for key, window in self._windows.items() if window.started_at < cutoff]
        for key in stale:
            del self._windows[key]
        return len(stale)

    def reset(self) -> None:
        self._windows.clear()

    def __len__(self) -> int:
        return len(self._windows)

    def _maybe_sweep(self, now: int, window_ms: int) -> None:
        if now - self._last_sweep < seconds_to_ms(self.config.cleanup_interval_seconds):
            return
        self._last_sweep = now
        removed = self.sweep(2 * window_ms)
        if removed:
            logger.debug(f"Swept {removed} stale rate limit windows")
