"""
Provider Manager - ranked failover across API clients.

Features:
- Builds clients from the catalog and provider config
- One rate limiter and one circuit breaker per client
- Sequential failover: first success wins, providers are never raced
- Rate limit benchmarking (report only)
- Single explicit teardown releasing every HTTP session

Usage:
    manager = ProviderManager(get_default_catalog(), ExplorerConfig.from_file(path))
    try:
        manager.auto_register_from_config("ethereum")
        result = await manager.execute_with_failover("ethereum", operation)
    finally:
        await manager.destroy()
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from core.clock import ClockProtocol, SystemClock
from providers.base import BaseApiClient
from providers.benchmark import RateLimitBenchmark
from providers.catalog import ProviderCatalog
from providers.circuit_breaker import CircuitBreaker
from providers.config import ExplorerConfig, ProviderManagerConfig
from providers.exceptions import (
    AllProvidersExhaustedError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    RateLimitExceededError,
    UnknownProviderError,
)
from providers.models import (
    BenchmarkResult,
    CircuitState,
    FailoverResult,
    ProviderFailure,
    ProviderHealth,
    ProviderOperation,
)
from providers.rate_limiter import TokenBucketRateLimiter


logger = logging.getLogger(__name__)


@dataclass
class ManagedProvider:
    """A registered client with the limiter and breaker it owns."""
    client: BaseApiClient
    limiter: TokenBucketRateLimiter
    breaker: CircuitBreaker
    priority: int
    order: int

    @property
    def name(self) -> str:
        return self.client.name


class ProviderManager:
    """
    Owns every API client of the process and executes operations with failover.

    Health state is only ever changed here, through each provider's
    circuit breaker.
    """

    def __init__(
        self,
        catalog: ProviderCatalog,
        config: Optional[ExplorerConfig] = None,
        clock: Optional[ClockProtocol] = None,
        manager_config: Optional[ProviderManagerConfig] = None,
    ) -> None:
        self._catalog = catalog
        self._config = config or ExplorerConfig()
        self._clock = clock or SystemClock()
        self._manager_config = manager_config or ProviderManagerConfig()
        self._providers: dict[str, list[ManagedProvider]] = {}
        self._registered_sources: set[str] = set()
        self._destroyed = False

    @property
    def catalog(self) -> ProviderCatalog:
        return self._catalog

    @property
    def clock(self) -> ClockProtocol:
        return self._clock

    # ─────────────────────────────────────────────────────────────
    # Registration
    # ─────────────────────────────────────────────────────────────

    def auto_register_from_config(
        self,
        source: str,
        network: str = "mainnet",
        preferred_provider: Optional[str] = None,
    ) -> list[BaseApiClient]:
        """
        Build clients for every eligible provider of a source.

        Args:
            source: Blockchain name
            network: Network to target
            preferred_provider: Provider moved to the front of the ranking

        Returns:
            Clients in failover order

        Raises:
            UnknownProviderError: preferred provider not registered for source
        """
        self._ensure_alive()

        if source not in self._registered_sources:
            source_config = self._config.for_source(source)
            all_descriptors = [
                self._catalog.get(source, name)
                for name in self._known_names(source)
            ]
            credentials = self._config.credentials_for(all_descriptors)
            candidates = self._catalog.providers_for(source, network, credentials=credentials)

            for descriptor in candidates:
                if not source_config.is_enabled(descriptor.name):
                    logger.info(f"[{descriptor.name}] disabled by config for {source}")
                    continue
                if self._find(source, descriptor.name) is not None:
                    continue

                settings = source_config.settings_for(descriptor.name)
                client_class = self._catalog.client_class(source, descriptor.name)
                client = client_class(
                    descriptor,
                    api_key=credentials.get(descriptor.name),
                    rate_limit=self._config.rate_limit_for(descriptor),
                    timeout_seconds=settings.timeout_seconds,
                )
                priority = settings.priority if settings.priority is not None else descriptor.priority
                self.register_client(source, client, priority=priority)

            self._registered_sources.add(source)

        if preferred_provider:
            self._promote(source, preferred_provider)

        clients = self.get_providers(source)
        logger.info(f"Providers for {source}: {[c.name for c in clients]}")
        return clients

    def register_client(
        self,
        source: str,
        client: BaseApiClient,
        priority: Optional[int] = None,
    ) -> None:
        """Register an already constructed client."""
        self._ensure_alive()
        if self._find(source, client.name) is not None:
            raise ValueError(f"Provider {client.name} already registered for {source}")

        managed = self._providers.setdefault(source, [])
        if priority is None:
            priority = client.descriptor.priority
        mc = self._manager_config
        managed.append(ManagedProvider(
            client=client,
            limiter=TokenBucketRateLimiter(
                client.rate_limit,
                clock=self._clock,
                max_wait_seconds=mc.max_wait_seconds,
                name=client.name,
            ),
            breaker=CircuitBreaker(
                client.name,
                failure_threshold=mc.failure_threshold,
                base_cooldown_seconds=mc.base_cooldown_seconds,
                max_cooldown_seconds=mc.max_cooldown_seconds,
                backoff_multiplier=mc.backoff_multiplier,
                clock=self._clock,
            ),
            priority=priority,
            order=len(managed),
        ))
        managed.sort(key=lambda p: (p.priority, p.order))
        logger.info(f"Registered provider {client.name} for {source} (priority={priority})")

    # ─────────────────────────────────────────────────────────────
    # Lookup
    # ─────────────────────────────────────────────────────────────

    def get_providers(self, source: str) -> list[BaseApiClient]:
        return [p.client for p in self._providers.get(source, [])]

    def get_client(self, source: str, name: str) -> BaseApiClient:
        return self._require(source, name).client

    def get_limiter(self, source: str, name: str) -> TokenBucketRateLimiter:
        return self._require(source, name).limiter

    def get_provider_health(self, source: str) -> dict[str, ProviderHealth]:
        return {p.name: p.breaker.health() for p in self._providers.get(source, [])}

    def reset_circuit(self, source: str, name: str) -> None:
        self._require(source, name).breaker.reset()
        logger.info(f"[{name}] circuit manually reset")

    # ─────────────────────────────────────────────────────────────
    # Failover
    # ─────────────────────────────────────────────────────────────

    async def execute_with_failover(
        self,
        source: str,
        operation: ProviderOperation,
    ) -> FailoverResult:
        """
        Run an operation against the first provider that succeeds.

        Providers are tried one at a time in ascending priority. Open
        circuits are skipped without an attempt.

        Raises:
            AllProvidersExhaustedError: no provider succeeded
            ValueError: the operation itself is malformed
        """
        self._ensure_alive()
        operation.validate()

        failures: list[ProviderFailure] = []
        attempts = 0

        for provider in list(self._providers.get(source, [])):
            name = provider.name

            if not provider.client.supports(operation.type):
                failures.append(ProviderFailure(name, f"does not support {operation.type.value}", "UnsupportedOperationError"))
                continue

            # A half-open circuit hands this request its single probe slot
            is_probe = provider.breaker.state == CircuitState.HALF_OPEN
            if not provider.breaker.allow_request():
                reason = f"circuit open, retry in {provider.breaker.cooldown_remaining():.1f}s"
                failures.append(ProviderFailure(name, reason, ProviderUnavailableError.__name__))
                logger.debug(f"[{name}] skipped: {reason}")
                continue

            try:
                await provider.limiter.acquire()
            except (RateLimitExceededError, ProviderUnavailableError) as e:
                # Local refusal, nothing was sent to the provider
                if is_probe:
                    provider.breaker.release_probe()
                failures.append(ProviderFailure(name, e.message, type(e).__name__))
                logger.warning(f"[{name}] rate limiter refused {operation.describe()}: {e.message}")
                continue
            except asyncio.CancelledError:
                if is_probe:
                    provider.breaker.release_probe()
                raise

            attempts += 1
            try:
                data = await self._call(provider, operation)
            except asyncio.CancelledError:
                # No outcome to record, so the probe slot goes back unused
                if is_probe:
                    provider.breaker.release_probe()
                raise
            except Exception as e:
                provider.breaker.record_failure(str(e))
                failures.append(ProviderFailure(name, _reason(e), type(e).__name__))
                logger.warning(f"[{name}] {operation.describe()} failed, trying next provider: {e}")
                continue

            provider.breaker.record_success()
            if failures:
                logger.info(f"[{name}] succeeded for {source} after {len(failures)} fallback(s)")
            return FailoverResult(
                data=data,
                provider_name=name,
                attempts_tried=attempts,
                failures=tuple(failures),
            )

        if not self._providers.get(source):
            message = f"No providers registered for {source}"
        else:
            message = f"All providers failed for {source}"
        logger.error(f"{message}: {operation.describe()}")
        raise AllProvidersExhaustedError(
            message,
            source=source,
            operation=operation.type.value,
            failures=failures,
        )

    async def _call(self, provider: ManagedProvider, operation: ProviderOperation):
        timeout = self._manager_config.request_timeout_seconds or provider.client.descriptor.timeout_seconds
        try:
            return await asyncio.wait_for(provider.client.execute(operation), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise ProviderTimeoutError(
                f"{operation.describe()} exceeded {timeout}s",
                provider_name=provider.name,
                timeout_seconds=timeout,
                original_error=e,
            ) from e

    # ─────────────────────────────────────────────────────────────
    # Benchmark
    # ─────────────────────────────────────────────────────────────

    async def benchmark_rate_limit(
        self,
        source: str,
        provider_name: Optional[str] = None,
        max_rate: float = 5.0,
        test_burst: bool = True,
        custom_rates: Optional[Sequence[float]] = None,
        **benchmark_options,
    ) -> BenchmarkResult:
        """
        Benchmark one provider (the named one, else the top ranked).

        The live rate limiter is left untouched; apply the recommendation
        with get_limiter(...).reconfigure() if desired.
        """
        self._ensure_alive()
        providers = self._providers.get(source, [])
        if provider_name:
            provider = self._require(source, provider_name)
        elif providers:
            provider = providers[0]
        else:
            raise UnknownProviderError(f"No providers registered for {source}", source=source)

        benchmark = RateLimitBenchmark(provider.client, clock=self._clock, **benchmark_options)
        result = await benchmark.run(max_rate=max_rate, test_burst=test_burst, custom_rates=custom_rates)
        logger.info(
            f"[{provider.name}] max safe rate {result.max_safe_rate} req/s, "
            f"recommended {result.recommended.to_dict() if result.recommended else None}"
        )
        return result

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    async def destroy(self) -> None:
        """Close every client session and limiter. Safe to call twice."""
        if self._destroyed:
            return
        self._destroyed = True

        for source, providers in self._providers.items():
            for provider in providers:
                provider.limiter.close()
                try:
                    await provider.client.close()
                except Exception as e:
                    logger.error(f"[{provider.name}] error closing client for {source}: {e}")

        self._providers.clear()
        self._registered_sources.clear()
        logger.debug("Provider manager destroyed")

    async def __aenter__(self) -> "ProviderManager":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.destroy()

    # ─────────────────────────────────────────────────────────────
    # Internal
    # ─────────────────────────────────────────────────────────────

    def _ensure_alive(self) -> None:
        if self._destroyed:
            raise RuntimeError("ProviderManager has been destroyed")

    def _known_names(self, source: str) -> list[str]:
        return [d.name for d in self._catalog.all_providers() if d.source == source]

    def _find(self, source: str, name: str) -> Optional[ManagedProvider]:
        for provider in self._providers.get(source, []):
            if provider.name == name:
                return provider
        return None

    def _require(self, source: str, name: str) -> ManagedProvider:
        provider = self._find(source, name)
        if provider is None:
            raise UnknownProviderError(
                f"Provider {name} not registered for {source}",
                provider_name=name,
                source=source,
                available=[p.name for p in self._providers.get(source, [])],
            )
        return provider

    def _promote(self, source: str, name: str) -> None:
        provider = self._require(source, name)
        providers = self._providers[source]
        provider.priority = min(p.priority for p in providers) - 1
        providers.sort(key=lambda p: (p.priority, p.order))


def _reason(error: Exception) -> str:
    message = getattr(error, "message", None)
    return message or str(error) or type(error).__name__
