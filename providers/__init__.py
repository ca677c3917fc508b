"""
Providers Package - resilient access to external blockchain data providers.

Features:
- Static provider catalog, populated by an explicit registration function
- Token bucket rate limiting with minute/hour sliding windows
- Per-provider circuit breakers
- Ranked, sequential failover (first success wins)
- Rate limit benchmarking

Quick Start:
    from providers import ProviderManager, ProviderOperation, OperationType, get_default_catalog

    manager = ProviderManager(get_default_catalog())
    try:
        manager.auto_register_from_config("ethereum")
        result = await manager.execute_with_failover(
            "ethereum",
            ProviderOperation(OperationType.GET_RAW_ADDRESS_TRANSACTIONS, address="0x..."),
        )
        print(result.provider_name, len(result.data))
    finally:
        await manager.destroy()
"""

from providers.base import BaseApiClient
from providers.benchmark import RateLimitBenchmark
from providers.catalog import ProviderCatalog, get_default_catalog
from providers.circuit_breaker import CircuitBreaker
from providers.config import ExplorerConfig, ProviderManagerConfig, ProviderSettings, SourceConfig
from providers.exceptions import (
    AllProvidersExhaustedError,
    CatalogFrozenError,
    ConfigurationError,
    DuplicateProviderError,
    NetworkError,
    ProviderError,
    ProviderHTTPError,
    ProviderResponseError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    RateLimitExceededError,
    UnknownProviderError,
    UnsupportedOperationError,
)
from providers.manager import ProviderManager
from providers.models import (
    BenchmarkResult,
    BenchmarkSample,
    BurstSample,
    CircuitState,
    FailoverResult,
    OperationType,
    ProviderDescriptor,
    ProviderFailure,
    ProviderHealth,
    ProviderOperation,
    RateLimitConfig,
    SourceType,
)
from providers.rate_limiter import TokenBucketRateLimiter
from providers.registration import register_default_providers

__all__ = [
    # Core
    "BaseApiClient",
    "ProviderCatalog",
    "ProviderManager",
    "TokenBucketRateLimiter",
    "CircuitBreaker",
    "RateLimitBenchmark",
    "get_default_catalog",
    "register_default_providers",
    # Config
    "ExplorerConfig",
    "SourceConfig",
    "ProviderSettings",
    "ProviderManagerConfig",
    # Models
    "SourceType",
    "OperationType",
    "CircuitState",
    "RateLimitConfig",
    "ProviderDescriptor",
    "ProviderOperation",
    "ProviderHealth",
    "ProviderFailure",
    "FailoverResult",
    "BenchmarkSample",
    "BurstSample",
    "BenchmarkResult",
    # Exceptions
    "ProviderError",
    "RateLimitExceededError",
    "NetworkError",
    "ProviderTimeoutError",
    "ProviderHTTPError",
    "ProviderResponseError",
    "ProviderUnavailableError",
    "UnsupportedOperationError",
    "AllProvidersExhaustedError",
    "UnknownProviderError",
    "DuplicateProviderError",
    "ConfigurationError",
    "CatalogFrozenError",
]
