"""
Provider Data Models - descriptors, operations, rate limits and health.

These types are shared by the catalog, the API clients and the
provider manager. Descriptors and operations are immutable; health is
mutated only inside the circuit breaker that owns it.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class SourceType(str, Enum):
    """Kind of data source a provider serves."""
    EXCHANGE = "exchange"
    BLOCKCHAIN = "blockchain"


class OperationType(str, Enum):
    """
    Closed set of raw operations an API client can execute.

    Adding an operation means extending this enum and teaching the
    clients that support it; clients advertise support through their
    descriptor's capabilities.
    """
    GET_RAW_ADDRESS_TRANSACTIONS = "get_raw_address_transactions"
    GET_RAW_ADDRESS_BALANCE = "get_raw_address_balance"
    GET_RAW_TOKEN_BALANCES = "get_raw_token_balances"


class CircuitState(str, Enum):
    """Circuit breaker state of a provider."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


# ============================================================
# RATE LIMIT CONFIG
# ============================================================

@dataclass(frozen=True)
class RateLimitConfig:
    """
    Request pacing for one provider.

    requests_per_second drives the token bucket refill, burst_limit caps
    the bucket. Minute and hour limits are optional sliding windows.
    """
    requests_per_second: float
    burst_limit: int = 1
    requests_per_minute: Optional[int] = None
    requests_per_hour: Optional[int] = None

    def __post_init__(self) -> None:
        if self.requests_per_second <= 0:
            raise ValueError("requests_per_second must be positive")
        if self.burst_limit < 1:
            raise ValueError("burst_limit must be at least 1")
        if self.requests_per_minute is not None and self.requests_per_minute < 1:
            raise ValueError("requests_per_minute must be at least 1")
        if self.requests_per_hour is not None and self.requests_per_hour < 1:
            raise ValueError("requests_per_hour must be at least 1")

    def merged(self, override: Optional[dict[str, Any]]) -> "RateLimitConfig":
        """Return a copy with the given override keys applied."""
        if not override:
            return self
        allowed = {
            "requests_per_second",
            "burst_limit",
            "requests_per_minute",
            "requests_per_hour",
        }
        unknown = set(override) - allowed
        if unknown:
            raise ValueError(f"Unknown rate limit keys: {sorted(unknown)}")
        return replace(self, **override)

    def to_dict(self) -> dict[str, Any]:
        return {
            "requests_per_second": self.requests_per_second,
            "burst_limit": self.burst_limit,
            "requests_per_minute": self.requests_per_minute,
            "requests_per_hour": self.requests_per_hour,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RateLimitConfig":
        return cls(
            requests_per_second=float(data["requests_per_second"]),
            burst_limit=int(data.get("burst_limit", 1)),
            requests_per_minute=data.get("requests_per_minute"),
            requests_per_hour=data.get("requests_per_hour"),
        )


# ============================================================
# DESCRIPTORS AND OPERATIONS
# ============================================================

@dataclass(frozen=True)
class ProviderDescriptor:
    """
    Static metadata for one provider of one source.

    Registered once in the catalog and never modified afterwards.
    """
    source: str
    name: str
    display_name: str
    capabilities: frozenset[OperationType]
    default_rate_limit: RateLimitConfig
    base_url: str
    priority: int = 100
    requires_api_key: bool = False
    api_key_env: Optional[str] = None
    networks: tuple[str, ...] = ("mainnet",)
    timeout_seconds: float = 10.0
    retries: int = 3
    source_type: SourceType = SourceType.BLOCKCHAIN

    @property
    def key(self) -> tuple[str, str]:
        return (self.source, self.name)

    @property
    def env_var(self) -> str:
        """Environment variable holding this provider's API key."""
        return self.api_key_env or f"{self.name.upper().replace('-', '_')}_API_KEY"

    def supports(self, operation_type: OperationType) -> bool:
        return operation_type in self.capabilities

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "name": self.name,
            "display_name": self.display_name,
            "capabilities": sorted(c.value for c in self.capabilities),
            "default_rate_limit": self.default_rate_limit.to_dict(),
            "base_url": self.base_url,
            "priority": self.priority,
            "requires_api_key": self.requires_api_key,
            "networks": list(self.networks),
            "timeout_seconds": self.timeout_seconds,
            "retries": self.retries,
            "source_type": self.source_type.value,
        }


@dataclass(frozen=True)
class ProviderOperation:
    """A typed request for one raw operation."""
    type: OperationType
    address: str
    since: Optional[datetime] = None
    until: Optional[datetime] = None
    contract_addresses: tuple[str, ...] = ()

    def validate(self) -> None:
        """Raise ValueError if the request cannot be executed."""
        if not self.address or not self.address.strip():
            raise ValueError("address is required")
        if self.since and self.until and self.since > self.until:
            raise ValueError("since must not be after until")
        if self.type == OperationType.GET_RAW_TOKEN_BALANCES and not self.contract_addresses:
            raise ValueError("contract_addresses required for token balances")

    def describe(self) -> str:
        return f"{self.type.value}({self.address})"


# ============================================================
# HEALTH AND RESULTS
# ============================================================

@dataclass
class ProviderHealth:
    """Health of one provider instance, owned by its circuit breaker."""
    provider_name: str
    circuit_state: CircuitState = CircuitState.CLOSED
    consecutive_failures: int = 0
    opened_at: Optional[float] = None
    last_success_at: Optional[float] = None
    last_failure_at: Optional[float] = None
    cooldown_seconds: float = 0.0
    total_successes: int = 0
    total_failures: int = 0
    last_error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider_name": self.provider_name,
            "circuit_state": self.circuit_state.value,
            "consecutive_failures": self.consecutive_failures,
            "opened_at": self.opened_at,
            "last_success_at": self.last_success_at,
            "last_failure_at": self.last_failure_at,
            "cooldown_seconds": self.cooldown_seconds,
            "total_successes": self.total_successes,
            "total_failures": self.total_failures,
            "last_error": self.last_error,
        }


@dataclass(frozen=True)
class ProviderFailure:
    """Why one provider did not produce a result."""
    provider_name: str
    reason: str
    error_type: str

    def __str__(self) -> str:
        return f"{self.provider_name}: {self.error_type}: {self.reason}"


@dataclass(frozen=True)
class FailoverResult:
    """Successful outcome of execute_with_failover."""
    data: Any
    provider_name: str
    attempts_tried: int
    failures: tuple[ProviderFailure, ...] = ()


@dataclass(frozen=True)
class BenchmarkSample:
    """Outcome of the sustained test at one rate."""
    rate: float
    success: bool
    successful_requests: int
    total_requests: int
    avg_response_ms: float


@dataclass(frozen=True)
class BurstSample:
    """Outcome of one no-delay burst."""
    burst_size: int
    success: bool


@dataclass(frozen=True)
class BenchmarkResult:
    """Report produced by a rate limit benchmark. Never applied automatically."""
    provider_name: str
    test_results: tuple[BenchmarkSample, ...]
    max_safe_rate: float
    burst_limits: tuple[BurstSample, ...] = ()
    max_safe_burst: Optional[int] = None
    recommended: Optional[RateLimitConfig] = None
    safety_margin: float = 0.8

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider_name": self.provider_name,
            "test_results": [
                {
                    "rate": s.rate,
                    "success": s.success,
                    "successful_requests": s.successful_requests,
                    "total_requests": s.total_requests,
                    "avg_response_ms": s.avg_response_ms,
                }
                for s in self.test_results
            ],
            "burst_limits": [
                {"burst_size": b.burst_size, "success": b.success}
                for b in self.burst_limits
            ],
            "max_safe_rate": self.max_safe_rate,
            "max_safe_burst": self.max_safe_burst,
            "recommended": self.recommended.to_dict() if self.recommended else None,
            "safety_margin": self.safety_margin,
        }


__all__ = [
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
]
