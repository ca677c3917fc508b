"""
Provider Exceptions - error taxonomy of the provider layer.

Retryable errors (rate limit, network, timeout, HTTP) drive failover
inside the provider manager and never leave execute_with_failover on
their own. Configuration-class errors (unknown provider, exhausted
providers) propagate to the caller.

Hierarchy:
    ProviderError
    ├── RateLimitExceededError
    ├── NetworkError
    │   └── ProviderTimeoutError
    ├── ProviderHTTPError
    ├── ProviderResponseError
    ├── ProviderUnavailableError
    ├── UnsupportedOperationError
    ├── AllProvidersExhaustedError
    ├── UnknownProviderError
    ├── DuplicateProviderError
    └── ConfigurationError
        └── CatalogFrozenError
"""

from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from providers.models import ProviderFailure


class ProviderError(Exception):
    """Base exception for all provider layer errors."""

    retryable: bool = False

    def __init__(
        self,
        message: str,
        provider_name: Optional[str] = None,
        source: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.provider_name = provider_name
        self.source = source
        self.original_error = original_error
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "provider_name": self.provider_name,
            "source": self.source,
            "retryable": self.retryable,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]
        if self.provider_name:
            parts.append(f"[provider={self.provider_name}]")
        if self.source:
            parts.append(f"[source={self.source}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


class RateLimitExceededError(ProviderError):
    """Request refused by the local limiter or throttled by the provider."""

    retryable = True

    def __init__(
        self,
        message: str,
        provider_name: Optional[str] = None,
        source: Optional[str] = None,
        retry_after_seconds: Optional[float] = None,
        limit_type: str = "second",  # second, minute, hour, provider
        original_error: Optional[BaseException] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, provider_name, source, original_error, context)
        self.retry_after_seconds = retry_after_seconds
        self.limit_type = limit_type

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "retry_after_seconds": self.retry_after_seconds,
            "limit_type": self.limit_type,
        })
        return data


class NetworkError(ProviderError):
    """Connection level failure talking to a provider."""

    retryable = True

    def __init__(
        self,
        message: str,
        provider_name: Optional[str] = None,
        source: Optional[str] = None,
        request_url: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, provider_name, source, original_error, context)
        self.request_url = request_url

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["request_url"] = self.request_url
        return data


class ProviderTimeoutError(NetworkError):
    """The provider did not answer within the call timeout."""

    def __init__(
        self,
        message: str,
        provider_name: Optional[str] = None,
        source: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        request_url: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            message, provider_name, source, request_url, original_error,
            context={"timeout_seconds": timeout_seconds},
        )
        self.timeout_seconds = timeout_seconds


class ProviderHTTPError(ProviderError):
    """Non-success HTTP status other than 429."""

    retryable = True

    def __init__(
        self,
        message: str,
        provider_name: Optional[str] = None,
        source: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, provider_name, source, original_error)
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    @property
    def is_server_error(self) -> bool:
        return self.status_code is not None and self.status_code >= 500

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "status_code": self.status_code,
            "response_body": self.response_body,
            "request_url": self.request_url,
        })
        return data


class ProviderResponseError(ProviderError):
    """Provider answered 2xx but the body is unusable or reports an error."""

    retryable = True


class ProviderUnavailableError(ProviderError):
    """Circuit is open; the provider is skipped without an attempt."""

    def __init__(
        self,
        message: str,
        provider_name: Optional[str] = None,
        source: Optional[str] = None,
        retry_after_seconds: Optional[float] = None,
    ) -> None:
        super().__init__(message, provider_name, source)
        self.retry_after_seconds = retry_after_seconds


class UnsupportedOperationError(ProviderError):
    """Client asked to execute an operation outside its capabilities."""


class AllProvidersExhaustedError(ProviderError):
    """Every candidate provider failed or none was eligible."""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        operation: Optional[str] = None,
        failures: Sequence[ProviderFailure] = (),
    ) -> None:
        super().__init__(message, None, source, context={"operation": operation})
        self.operation = operation
        self.failures = list(failures)

    @property
    def attempted_providers(self) -> list[str]:
        return [f.provider_name for f in self.failures]

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["failures"] = [
            {"provider_name": f.provider_name, "reason": f.reason, "error_type": f.error_type}
            for f in self.failures
        ]
        return data

    def __str__(self) -> str:
        base = super().__str__()
        if not self.failures:
            return base
        details = "; ".join(str(f) for f in self.failures)
        return f"{base} [{details}]"


class UnknownProviderError(ProviderError):
    """Lookup of a provider, processor or importer that was never registered."""

    def __init__(
        self,
        message: str,
        provider_name: Optional[str] = None,
        source: Optional[str] = None,
        available: Optional[Sequence[str]] = None,
    ) -> None:
        super().__init__(message, provider_name, source)
        self.available = list(available or [])

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["available"] = self.available
        return data


class DuplicateProviderError(ProviderError):
    """A (source, name) pair was registered twice."""


class ConfigurationError(ProviderError):
    """Invalid provider configuration."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        provider_name: Optional[str] = None,
        source: Optional[str] = None,
    ) -> None:
        super().__init__(message, provider_name, source, context={"config_key": config_key})
        self.config_key = config_key


class CatalogFrozenError(ConfigurationError):
    """Registration attempted after the catalog was sealed."""


__all__ = [
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
