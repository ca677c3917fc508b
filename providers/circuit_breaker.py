"""
Circuit breaker preventing repeated calls to a failing provider.

States:
- CLOSED: normal operation, requests pass through.
- OPEN: provider is failing, requests are refused until the cool-down ends.
- HALF_OPEN: cool-down elapsed, exactly one probe request is admitted.

Transitions:
- CLOSED -> OPEN: after `failure_threshold` consecutive failures.
- OPEN -> HALF_OPEN: once the current cool-down has elapsed.
- HALF_OPEN -> CLOSED: the probe succeeds; counters and cool-down reset.
- HALF_OPEN -> OPEN: the probe fails; cool-down grows by
  `backoff_multiplier`, capped at `max_cooldown_seconds`.

Every transition method is synchronous, so under asyncio each one runs
to completion without interleaving. The breaker is the only writer of
its ProviderHealth.
"""

import logging
from dataclasses import replace
from typing import Optional

from core.clock import ClockProtocol, SystemClock
from providers.models import CircuitState, ProviderHealth


logger = logging.getLogger(__name__)


class CircuitBreaker:
    """Per-provider failure tracker."""

    def __init__(
        self,
        provider_name: str,
        failure_threshold: int = 5,
        base_cooldown_seconds: float = 30.0,
        max_cooldown_seconds: float = 600.0,
        backoff_multiplier: float = 2.0,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        if base_cooldown_seconds <= 0 or max_cooldown_seconds < base_cooldown_seconds:
            raise ValueError("cool-downs must satisfy 0 < base <= max")

        self.provider_name = provider_name
        self.failure_threshold = failure_threshold
        self.base_cooldown_seconds = base_cooldown_seconds
        self.max_cooldown_seconds = max_cooldown_seconds
        self.backoff_multiplier = backoff_multiplier
        self._clock = clock or SystemClock()

        self._health = ProviderHealth(
            provider_name=provider_name,
            cooldown_seconds=base_cooldown_seconds,
        )
        self._probe_in_flight = False

    # ---------------------------------------------------------
    # State
    # ---------------------------------------------------------

    @property
    def state(self) -> CircuitState:
        self._refresh()
        return self._health.circuit_state

    def _refresh(self) -> None:
        health = self._health
        if health.circuit_state == CircuitState.OPEN and health.opened_at is not None:
            if self._clock.monotonic() - health.opened_at >= health.cooldown_seconds:
                health.circuit_state = CircuitState.HALF_OPEN
                self._probe_in_flight = False
                logger.info(f"[{self.provider_name}] circuit HALF_OPEN, allowing one probe")

    @property
    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    def cooldown_remaining(self) -> float:
        if self.state != CircuitState.OPEN or self._health.opened_at is None:
            return 0.0
        elapsed = self._clock.monotonic() - self._health.opened_at
        return max(0.0, self._health.cooldown_seconds - elapsed)

    def health(self) -> ProviderHealth:
        """Snapshot of the current health. Mutating it has no effect."""
        self._refresh()
        return replace(self._health)

    # ---------------------------------------------------------
    # Transitions
    # ---------------------------------------------------------

    def allow_request(self) -> bool:
        """Whether a request may be sent now. Claims the probe slot when half-open."""
        state = self.state
        if state == CircuitState.CLOSED:
            return True
        if state == CircuitState.HALF_OPEN and not self._probe_in_flight:
            self._probe_in_flight = True
            return True
        return False

    def release_probe(self) -> None:
        """Give back a probe slot claimed by a request that was never sent."""
        self._probe_in_flight = False

    def record_success(self) -> None:
        health = self._health
        was = health.circuit_state
        health.consecutive_failures = 0
        health.circuit_state = CircuitState.CLOSED
        health.opened_at = None
        health.cooldown_seconds = self.base_cooldown_seconds
        health.last_success_at = self._clock.monotonic()
        health.total_successes += 1
        health.last_error = None
        self._probe_in_flight = False
        if was != CircuitState.CLOSED:
            logger.info(f"[{self.provider_name}] circuit CLOSED after successful probe")

    def record_failure(self, error: str) -> None:
        health = self._health
        state = self.state
        now = self._clock.monotonic()

        health.consecutive_failures += 1
        health.total_failures += 1
        health.last_failure_at = now
        health.last_error = error[:500]

        if state == CircuitState.HALF_OPEN:
            health.cooldown_seconds = min(
                health.cooldown_seconds * self.backoff_multiplier,
                self.max_cooldown_seconds,
            )
            self._open(now)
            logger.warning(
                f"[{self.provider_name}] probe failed, circuit re-OPENED "
                f"for {health.cooldown_seconds:.1f}s: {error[:200]}"
            )
        elif state == CircuitState.CLOSED and health.consecutive_failures >= self.failure_threshold:
            self._open(now)
            logger.warning(
                f"[{self.provider_name}] circuit OPEN after "
                f"{health.consecutive_failures} failures: {error[:200]}"
            )

        self._probe_in_flight = False

    def reset(self) -> None:
        """Force the circuit closed and forget failure history."""
        self._health = ProviderHealth(
            provider_name=self.provider_name,
            cooldown_seconds=self.base_cooldown_seconds,
            total_successes=self._health.total_successes,
            total_failures=self._health.total_failures,
        )
        self._probe_in_flight = False

    def _open(self, now: float) -> None:
        self._health.circuit_state = CircuitState.OPEN
        self._health.opened_at = now
