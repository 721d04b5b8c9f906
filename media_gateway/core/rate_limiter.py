"""Fixed-window rate limiting.

Each limiter owns a points budget per window and a separate counter per key.
Limiters are constructed explicitly and injected where they are used, so
tests can substitute their own instances.
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import structlog

from media_gateway.core.metrics import MetricsCollector

logger = structlog.get_logger(__name__)


class RateLimitExceededError(Exception):
    """Raised when a key has consumed all points in the current window."""

    def __init__(self, name: str, retry_after: float):
        self.name = name
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded for {name}")


@dataclass
class Window:
    """Consumption counter for one key.

    Attributes:
        started_at: Monotonic timestamp when the window opened
        consumed: Points consumed in this window
    """

    started_at: float
    consumed: int = 0


class FixedWindowRateLimiter:
    """Allow ``points`` consumptions per key within each ``duration`` seconds.

    Example:
        limiter = FixedWindowRateLimiter("subtitle", points=5, duration=1)
        limiter.consume(f"subtitle_{client_ip}")
    """

    def __init__(
        self,
        name: str,
        points: int,
        duration: float,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        if points < 1:
            raise ValueError("points must be at least 1")
        if duration <= 0:
            raise ValueError("duration must be positive")

        self.name = name
        self.points = points
        self.duration = duration
        self._clock = clock or time.monotonic
        self._windows: Dict[str, Window] = {}
        self._last_sweep = self._clock()

    def _sweep(self, now: float) -> None:
        """Drop expired windows, at most once per duration."""
        if now - self._last_sweep < self.duration:
            return
        self._last_sweep = now
        expired = [
            key for key, window in self._windows.items() if now - window.started_at >= self.duration
        ]
        for key in expired:
            del self._windows[key]

    def _window_for(self, key: str, now: float) -> Window:
        window = self._windows.get(key)
        if window is None or now - window.started_at >= self.duration:
            window = Window(started_at=now)
            self._windows[key] = window
        return window

    def consume(self, key: str, points: int = 1) -> int:
        """Consume points for a key.

        Args:
            key: Counter key (a constant for global limits, client address otherwise)
            points: Points to consume

        Returns:
            Points remaining in the current window

        Raises:
            RateLimitExceededError: If the window budget would be exceeded
        """
        now = self._clock()
        self._sweep(now)
        window = self._window_for(key, now)

        if window.consumed + points > self.points:
            retry_after = max(0.0, self.duration - (now - window.started_at))
            logger.info(
                "rate_limit_exceeded",
                limiter=self.name,
                key=key,
                retry_after=round(retry_after, 3),
            )
            MetricsCollector.record_rate_limit_exceeded(self.name)
            raise RateLimitExceededError(self.name, retry_after)

        window.consumed += points
        return self.points - window.consumed

    def reset(self, key: Optional[str] = None) -> None:
        """Reset one key, or every key when none is given."""
        if key is None:
            self._windows.clear()
        else:
            self._windows.pop(key, None)
