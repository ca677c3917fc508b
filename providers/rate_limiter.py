"""
Provider Rate Limiter - token bucket with sliding minute/hour windows.

One limiter per provider instance. Tokens refill continuously at
requests_per_second up to burst_limit; a caller without a token is
suspended until one is available, unless the wait would exceed
max_wait_seconds. Minute and hour limits are checked before any wait
so a request that would break them is refused instead of being sent
and throttled by the provider.
"""

import asyncio
import logging
from collections import deque
from typing import Any, Optional

from core.clock import ClockProtocol, SystemClock
from providers.exceptions import ProviderUnavailableError, RateLimitExceededError
from providers.models import RateLimitConfig


logger = logging.getLogger(__name__)

# Smallest sleep while waiting for a token; keeps float rounding from spinning
MIN_SLEEP_SECONDS = 0.001

MINUTE = 60.0
HOUR = 3600.0


class TokenBucketRateLimiter:
    """
    Paces requests to one provider.

    Usage:
        limiter = TokenBucketRateLimiter(RateLimitConfig(requests_per_second=5, burst_limit=10))
        await limiter.acquire()
        response = await client.execute(operation)
    """

    def __init__(
        self,
        config: RateLimitConfig,
        clock: Optional[ClockProtocol] = None,
        max_wait_seconds: float = 30.0,
        name: str = "provider",
    ) -> None:
        self._config = config
        self._clock = clock or SystemClock()
        self._max_wait_seconds = max_wait_seconds
        self._name = name

        self._tokens = float(config.burst_limit)
        self._last_refill = self._clock.monotonic()
        self._minute_window: deque[float] = deque()
        self._hour_window: deque[float] = deque()
        self._lock = asyncio.Lock()
        self._closed = False

    # ---------------------------------------------------------
    # Properties
    # ---------------------------------------------------------

    @property
    def config(self) -> RateLimitConfig:
        return self._config

    @property
    def closed(self) -> bool:
        return self._closed

    # ---------------------------------------------------------
    # Acquire
    # ---------------------------------------------------------

    async def acquire(self) -> None:
        """
        Take one token, waiting for it if necessary.

        Raises:
            RateLimitExceededError: a sliding window is full, or the token
                wait would exceed max_wait_seconds
            ProviderUnavailableError: the limiter was closed

        max_wait_seconds bounds the whole call, including time spent
        queued behind other callers.
        """
        deadline = self._clock.monotonic() + self._max_wait_seconds
        async with self._lock:
            if self._closed:
                raise ProviderUnavailableError(
                    "Rate limiter is closed", provider_name=self._name
                )

            now = self._clock.monotonic()
            self._prune_windows(now)
            self._check_windows(now)
            self._refill(now)

            if self._tokens < 1:
                wait = (1 - self._tokens) / self._config.requests_per_second
                if now + wait > deadline:
                    queued = now - (deadline - self._max_wait_seconds)
                    raise RateLimitExceededError(
                        f"Token wait {wait:.2f}s after {queued:.2f}s queued "
                        f"exceeds max wait {self._max_wait_seconds:.2f}s",
                        provider_name=self._name,
                        retry_after_seconds=wait,
                        limit_type="second",
                    )

                logger.debug(f"[{self._name}] waiting {wait:.3f}s for rate limit token")
                while self._tokens < 1:
                    await self._clock.sleep(max(wait, MIN_SLEEP_SECONDS))
                    self._refill(self._clock.monotonic())
                    wait = (1 - self._tokens) / self._config.requests_per_second

            self._tokens -= 1
            issued_at = self._clock.monotonic()
            if self._config.requests_per_minute is not None:
                self._minute_window.append(issued_at)
            if self._config.requests_per_hour is not None:
                self._hour_window.append(issued_at)

    # ---------------------------------------------------------
    # Reconfiguration and lifecycle
    # ---------------------------------------------------------

    def reconfigure(self, config: RateLimitConfig) -> None:
        """Replace the config. Current tokens are capped to the new burst."""
        logger.info(
            f"[{self._name}] rate limit reconfigured: "
            f"{self._config.to_dict()} -> {config.to_dict()}"
        )
        self._refill(self._clock.monotonic())
        self._config = config
        self._tokens = min(self._tokens, float(config.burst_limit))
        if config.requests_per_minute is None:
            self._minute_window.clear()
        if config.requests_per_hour is None:
            self._hour_window.clear()

    def close(self) -> None:
        self._closed = True
        self._minute_window.clear()
        self._hour_window.clear()

    def stats(self) -> dict[str, Any]:
        now = self._clock.monotonic()
        self._prune_windows(now)
        elapsed = max(0.0, now - self._last_refill)
        tokens = min(
            float(self._config.burst_limit),
            self._tokens + elapsed * self._config.requests_per_second,
        )
        return {
            "name": self._name,
            "tokens_available": tokens,
            "requests_last_minute": len(self._minute_window),
            "requests_last_hour": len(self._hour_window),
            "config": self._config.to_dict(),
            "closed": self._closed,
        }

    # ---------------------------------------------------------
    # Internal
    # ---------------------------------------------------------

    def _refill(self, now: float) -> None:
        elapsed = now - self._last_refill
        if elapsed > 0:
            self._tokens = min(
                float(self._config.burst_limit),
                self._tokens + elapsed * self._config.requests_per_second,
            )
        self._last_refill = now

    def _prune_windows(self, now: float) -> None:
        while self._minute_window and self._minute_window[0] <= now - MINUTE:
            self._minute_window.popleft()
        while self._hour_window and self._hour_window[0] <= now - HOUR:
            self._hour_window.popleft()

    def _check_windows(self, now: float) -> None:
        per_minute = self._config.requests_per_minute
        if per_minute is not None and len(self._minute_window) >= per_minute:
            raise RateLimitExceededError(
                f"Per-minute limit of {per_minute} reached",
                provider_name=self._name,
                retry_after_seconds=self._minute_window[0] + MINUTE - now,
                limit_type="minute",
            )

        per_hour = self._config.requests_per_hour
        if per_hour is not None and len(self._hour_window) >= per_hour:
            raise RateLimitExceededError(
                f"Per-hour limit of {per_hour} reached",
                provider_name=self._name,
                retry_after_seconds=self._hour_window[0] + HOUR - now,
                limit_type="hour",
            )
