"""
Rate Limit Benchmark Tests.

The stub provider throttles any request arriving sooner than its
minimum interval after the previous one.
"""

import pytest

from providers.benchmark import RateLimitBenchmark, generate_rates
from providers.catalog import ProviderCatalog
from providers.exceptions import RateLimitExceededError, UnknownProviderError
from providers.manager import ProviderManager


class ThrottlingProbe:
    """Raises when probed faster than max_rate requests per second."""

    def __init__(self, clock, max_rate: float):
        self._clock = clock
        self._min_interval = 1.0 / max_rate
        self._last = None
        self.calls = 0

    def __call__(self):
        self.calls += 1
        now = self._clock.monotonic()
        too_fast = self._last is not None and now - self._last < self._min_interval - 1e-9
        self._last = now
        if too_fast:
            raise RateLimitExceededError("HTTP 429", provider_name="stub")


class TestGenerateRates:

    def test_doubles_up_to_max(self):
        assert generate_rates(5) == [0.25, 0.5, 1.0, 2.0, 4.0, 5.0]

    def test_max_below_minimum(self):
        assert generate_rates(0.1) == [0.1]

    def test_rejects_non_positive(self):
        with pytest.raises(ValueError):
            generate_rates(0)


class TestBenchmark:

    @pytest.mark.asyncio
    async def test_stops_at_first_failing_rate(self, clock, make_stub_client):
        probe = ThrottlingProbe(clock, max_rate=5)
        client = make_stub_client("stub", probe_outcome=probe)
        benchmark = RateLimitBenchmark(client, clock=clock)

        result = await benchmark.run(custom_rates=[1, 2, 5, 10], test_burst=False)

        assert [s.rate for s in result.test_results] == [1, 2, 5, 10]
        assert [s.success for s in result.test_results] == [True, True, True, False]
        assert result.max_safe_rate == 5
        assert result.recommended is not None
        assert result.recommended.requests_per_second <= 4.0
        assert result.recommended.burst_limit == 4
        assert result.recommended.requests_per_minute == 240
        assert result.recommended.requests_per_hour == 14400
        assert result.burst_limits == ()

    @pytest.mark.asyncio
    async def test_rates_after_failure_are_not_tested(self, clock, make_stub_client):
        probe = ThrottlingProbe(clock, max_rate=1.5)
        client = make_stub_client("stub", probe_outcome=probe)
        benchmark = RateLimitBenchmark(client, clock=clock, requests_per_test=5)

        result = await benchmark.run(custom_rates=[1, 2, 5, 10], test_burst=False)

        assert [s.rate for s in result.test_results] == [1, 2]
        assert result.max_safe_rate == 1

    @pytest.mark.asyncio
    async def test_probes_are_paced_by_rate(self, clock, make_stub_client):
        client = make_stub_client("stub")
        benchmark = RateLimitBenchmark(
            client, clock=clock, requests_per_test=4, cooldown_between_tests_seconds=2.0,
        )

        await benchmark.run(custom_rates=[2], test_burst=False)

        assert clock.sleep_calls == [0.5, 0.5, 0.5]

    @pytest.mark.asyncio
    async def test_burst_throttled_immediately(self, clock, make_stub_client):
        probe = ThrottlingProbe(clock, max_rate=5)
        client = make_stub_client("stub", probe_outcome=probe)
        benchmark = RateLimitBenchmark(client, clock=clock, burst_sizes=(2, 5))

        result = await benchmark.run(custom_rates=[1, 5], test_burst=True)

        assert result.burst_limits[0].burst_size == 2
        assert not result.burst_limits[0].success
        assert len(result.burst_limits) == 1
        assert result.max_safe_burst is None
        # burst falls back to the sustained rate with margin
        assert result.recommended.burst_limit == 4

    @pytest.mark.asyncio
    async def test_burst_sizes_until_throttled(self, clock, make_stub_client):
        class BurstCap:
            """Allows bursts up to 5 requests within the same instant."""
            def __init__(self):
                self.instant = None
                self.count = 0

            def __call__(self):
                now = clock.monotonic()
                if now != self.instant:
                    self.instant = now
                    self.count = 0
                self.count += 1
                if self.count > 5:
                    raise RateLimitExceededError("burst")

        client = make_stub_client("stub", probe_outcome=BurstCap())
        benchmark = RateLimitBenchmark(client, clock=clock, burst_sizes=(2, 5, 10, 20))

        result = await benchmark.run(custom_rates=[1], test_burst=True)

        assert [(b.burst_size, b.success) for b in result.burst_limits] == [(2, True), (5, True), (10, False)]
        assert result.max_safe_burst == 5
        assert result.recommended.burst_limit == 4

    @pytest.mark.asyncio
    async def test_no_rate_succeeds(self, clock, make_stub_client):
        def always_throttled():
            raise RateLimitExceededError("HTTP 429")

        client = make_stub_client("stub", probe_outcome=always_throttled)
        benchmark = RateLimitBenchmark(client, clock=clock)

        result = await benchmark.run(custom_rates=[1, 2], test_burst=False)

        assert result.max_safe_rate == 0
        assert result.recommended is None

    def test_invalid_safety_margin(self, clock, make_stub_client):
        with pytest.raises(ValueError):
            RateLimitBenchmark(make_stub_client(), clock=clock, safety_margin=1.5)


class TestManagerBenchmark:

    @pytest.mark.asyncio
    async def test_report_only(self, clock, make_stub_client):
        manager = ProviderManager(ProviderCatalog(), clock=clock)
        manager.register_client("ethereum", make_stub_client("stub"))
        before = manager.get_limiter("ethereum", "stub").config

        result = await manager.benchmark_rate_limit(
            "ethereum", custom_rates=[1, 2], test_burst=False, requests_per_test=2,
        )

        assert result.provider_name == "stub"
        assert result.max_safe_rate == 2
        assert manager.get_limiter("ethereum", "stub").config == before
        await manager.destroy()

    @pytest.mark.asyncio
    async def test_unknown_source(self, clock):
        manager = ProviderManager(ProviderCatalog(), clock=clock)

        with pytest.raises(UnknownProviderError):
            await manager.benchmark_rate_limit("ethereum")
