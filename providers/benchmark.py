"""
Rate Limit Benchmark - discover how fast a provider can be called.

Sustained test: for each candidate rate (ascending), send a fixed number
of probe requests spaced 1/rate apart. The highest rate where every
request succeeds is the maximum safe sustained rate. Testing stops at
the first failing rate.

Burst test (optional): send increasingly large bursts with no delay,
resting between bursts, until one is throttled.

The result carries a recommendation with a safety margin applied. It
is a report only: nothing here touches a live rate limiter.
"""

import logging
import math
from typing import Optional, Sequence

from core.clock import ClockProtocol, SystemClock
from providers.base import BaseApiClient
from providers.exceptions import ProviderError
from providers.models import (
    BenchmarkResult,
    BenchmarkSample,
    BurstSample,
    RateLimitConfig,
)


logger = logging.getLogger(__name__)

MIN_RATE = 0.25
DEFAULT_BURST_SIZES = (2, 5, 10, 20, 30)


def generate_rates(max_rate: float, min_rate: float = MIN_RATE) -> list[float]:
    """Double from min_rate up to max_rate; max_rate is always the last entry."""
    if max_rate <= 0:
        raise ValueError("max_rate must be positive")
    rates = []
    rate = min(min_rate, max_rate)
    while rate < max_rate:
        rates.append(rate)
        rate *= 2
    rates.append(float(max_rate))
    return rates


class RateLimitBenchmark:
    """Benchmarks one API client."""

    def __init__(
        self,
        client: BaseApiClient,
        clock: Optional[ClockProtocol] = None,
        requests_per_test: int = 10,
        cooldown_between_tests_seconds: float = 2.0,
        burst_sizes: Sequence[int] = DEFAULT_BURST_SIZES,
        burst_cooldown_seconds: float = 60.0,
        safety_margin: float = 0.8,
    ) -> None:
        if not 0 < safety_margin <= 1:
            raise ValueError("safety_margin must be in (0, 1]")
        if requests_per_test < 1:
            raise ValueError("requests_per_test must be at least 1")
        self._client = client
        self._clock = clock or SystemClock()
        self._requests_per_test = requests_per_test
        self._cooldown = cooldown_between_tests_seconds
        self._burst_sizes = sorted(burst_sizes)
        self._burst_cooldown = burst_cooldown_seconds
        self._safety_margin = safety_margin

    async def run(
        self,
        max_rate: float = 5.0,
        test_burst: bool = True,
        custom_rates: Optional[Sequence[float]] = None,
    ) -> BenchmarkResult:
        rates = sorted(custom_rates) if custom_rates else generate_rates(max_rate)
        name = self._client.name
        logger.info(f"[{name}] benchmarking rates {rates}")

        samples: list[BenchmarkSample] = []
        max_safe_rate = 0.0
        for index, rate in enumerate(rates):
            if index > 0:
                await self._clock.sleep(self._cooldown)
            sample = await self._test_rate(rate)
            samples.append(sample)
            logger.info(
                f"[{name}] {rate} req/s: {sample.successful_requests}/{sample.total_requests} ok, "
                f"avg {sample.avg_response_ms:.0f}ms"
            )
            if not sample.success:
                break
            max_safe_rate = rate

        bursts: list[BurstSample] = []
        max_safe_burst: Optional[int] = None
        if test_burst:
            bursts = await self._test_bursts()
            passed = [b.burst_size for b in bursts if b.success]
            max_safe_burst = max(passed) if passed else None

        return BenchmarkResult(
            provider_name=name,
            test_results=tuple(samples),
            max_safe_rate=max_safe_rate,
            burst_limits=tuple(bursts),
            max_safe_burst=max_safe_burst,
            recommended=self._recommend(max_safe_rate, max_safe_burst),
            safety_margin=self._safety_margin,
        )

    # ---------------------------------------------------------
    # Tests
    # ---------------------------------------------------------

    async def _test_rate(self, rate: float) -> BenchmarkSample:
        interval = 1.0 / rate
        successes = 0
        latencies: list[float] = []

        for i in range(self._requests_per_test):
            if i > 0:
                await self._clock.sleep(interval)
            ok, latency_ms = await self._probe_once()
            latencies.append(latency_ms)
            if ok:
                successes += 1

        return BenchmarkSample(
            rate=rate,
            success=successes == self._requests_per_test,
            successful_requests=successes,
            total_requests=self._requests_per_test,
            avg_response_ms=sum(latencies) / len(latencies),
        )

    async def _test_bursts(self) -> list[BurstSample]:
        results: list[BurstSample] = []
        for index, size in enumerate(self._burst_sizes):
            if index > 0:
                await self._clock.sleep(self._burst_cooldown)
            outcomes = [await self._probe_once() for _ in range(size)]
            success = all(ok for ok, _ in outcomes)
            results.append(BurstSample(burst_size=size, success=success))
            logger.info(f"[{self._client.name}] burst of {size}: {'ok' if success else 'throttled'}")
            if not success:
                break
        return results

    async def _probe_once(self) -> tuple[bool, float]:
        started = self._clock.monotonic()
        try:
            await self._client.probe()
            ok = True
        except ProviderError as e:
            logger.debug(f"[{self._client.name}] benchmark probe failed: {e}")
            ok = False
        return ok, (self._clock.monotonic() - started) * 1000

    def _recommend(
        self,
        max_safe_rate: float,
        max_safe_burst: Optional[int],
    ) -> Optional[RateLimitConfig]:
        if max_safe_rate <= 0:
            logger.warning(f"[{self._client.name}] no tested rate succeeded; no recommendation")
            return None

        margin = self._safety_margin
        burst_basis = max_safe_burst if max_safe_burst is not None else math.ceil(max_safe_rate)
        return RateLimitConfig(
            requests_per_second=round(max_safe_rate * margin, 4),
            burst_limit=max(1, math.floor(burst_basis * margin)),
            requests_per_minute=max(1, math.floor(max_safe_rate * 60 * margin)),
            requests_per_hour=max(1, math.floor(max_safe_rate * 3600 * margin)),
        )
