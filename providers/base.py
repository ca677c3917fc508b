"""
Base API Client - abstract interface for all provider API clients.

All clients MUST:
- Only do network I/O, pagination and provider error translation
- Never validate or transform payloads (processors do that)
- Bound every pagination loop by MAX_PAGES
- Advertise supported operations through their descriptor's capabilities
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional

import aiohttp

from providers.exceptions import (
    NetworkError,
    ProviderError,
    ProviderHTTPError,
    ProviderResponseError,
    ProviderTimeoutError,
    RateLimitExceededError,
    UnsupportedOperationError,
)
from providers.models import (
    OperationType,
    ProviderDescriptor,
    ProviderOperation,
    RateLimitConfig,
)


logger = logging.getLogger(__name__)

OperationHandler = Callable[[ProviderOperation], Awaitable[Any]]


def mask_address(address: str) -> str:
    """Shorten an address for log output."""
    if not address or len(address) <= 12:
        return address
    return f"{address[:6]}...{address[-4:]}"


class BaseApiClient(ABC):
    """
    Abstract base class for provider API clients.

    Each client must:
    1. Implement _operation_handlers() - map operation types to coroutines
    2. Implement extract_external_id() - identify one raw item
    3. Set HEALTH_CHECK_PATH and, if needed, _is_healthy_response()

    Sessions:
    - A shared aiohttp session may be injected; it is never closed here
    - Otherwise one is created lazily and closed by close()
    """

    # Hard upper bound on pages fetched by any pagination loop
    MAX_PAGES = 100

    # Whether address history requests honour since/until
    SUPPORTS_TIME_RANGE = False

    HEALTH_CHECK_PATH: str = "/"

    def __init__(
        self,
        descriptor: ProviderDescriptor,
        api_key: Optional[str] = None,
        rate_limit: Optional[RateLimitConfig] = None,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._descriptor = descriptor
        self._api_key = api_key
        self._rate_limit = rate_limit or descriptor.default_rate_limit
        self._base_url = (base_url or descriptor.base_url).rstrip("/")
        self._timeout = timeout_seconds or descriptor.timeout_seconds
        self._session = session
        self._owns_session = session is None

    # ─────────────────────────────────────────────────────────────
    # Properties
    # ─────────────────────────────────────────────────────────────

    @property
    def name(self) -> str:
        return self._descriptor.name

    @property
    def source(self) -> str:
        return self._descriptor.source

    @property
    def descriptor(self) -> ProviderDescriptor:
        return self._descriptor

    @property
    def rate_limit(self) -> RateLimitConfig:
        return self._rate_limit

    @property
    def base_url(self) -> str:
        return self._base_url

    def supports(self, operation_type: OperationType) -> bool:
        return self._descriptor.supports(operation_type) and (
            operation_type in self._operation_handlers()
        )

    # ─────────────────────────────────────────────────────────────
    # Operations
    # ─────────────────────────────────────────────────────────────

    async def execute(self, operation: ProviderOperation) -> Any:
        """
        Execute one raw operation.

        Returns:
            The raw provider payload, untouched apart from pagination
            and grouping into records.

        Raises:
            UnsupportedOperationError: operation outside capabilities
            ProviderError: any translated provider failure
        """
        if not self.supports(operation.type):
            raise UnsupportedOperationError(
                f"Operation {operation.type.value} not supported",
                provider_name=self.name,
                source=self.source,
            )
        handler = self._operation_handlers()[operation.type]
        return await handler(operation)

    @abstractmethod
    def _operation_handlers(self) -> dict[OperationType, OperationHandler]:
        """Map each supported operation type to its coroutine."""
        pass

    @abstractmethod
    def extract_external_id(self, item: dict[str, Any]) -> str:
        """Provider-level identifier of one raw item."""
        pass

    # ─────────────────────────────────────────────────────────────
    # Health
    # ─────────────────────────────────────────────────────────────

    async def probe(self) -> None:
        """
        Issue the cheap health request.

        Raises:
            ProviderError: request failed or response looked wrong
        """
        response = await self._make_request(self.HEALTH_CHECK_PATH, self._health_check_params())
        if not self._is_healthy_response(response):
            raise ProviderResponseError(
                "Unexpected health check response",
                provider_name=self.name,
                source=self.source,
            )

    async def health_check(self) -> bool:
        try:
            await self.probe()
            return True
        except ProviderError as e:
            logger.warning(f"[{self.name}] health check failed: {e}")
            return False

    def _health_check_params(self) -> Optional[dict[str, Any]]:
        return None

    def _is_healthy_response(self, response: Any) -> bool:
        return response is not None

    # ─────────────────────────────────────────────────────────────
    # HTTP
    # ─────────────────────────────────────────────────────────────

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers=self._get_default_headers(),
            )
            self._owns_session = True
        return self._session

    def _get_default_headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "User-Agent": "tx-ingestion/1.0",
        }

    def _build_url(self, path: str) -> str:
        if not path:
            return self._base_url
        if path.startswith("http://") or path.startswith("https://"):
            return path
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self._base_url}{path}"

    async def _make_request(
        self,
        path: str,
        params: Optional[dict[str, Any]] = None,
        method: str = "GET",
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        """
        Make an HTTP request and decode the JSON body.

        Raises:
            RateLimitExceededError: HTTP 429
            ProviderHTTPError: any other status >= 400
            ProviderTimeoutError: request timed out
            NetworkError: connection failure
            ProviderResponseError: body is not JSON
        """
        session = await self._get_session()
        url = self._build_url(path)

        try:
            async with session.request(method, url, params=params, headers=headers) as response:
                if response.status == 429:
                    raise RateLimitExceededError(
                        "Provider throttled the request (HTTP 429)",
                        provider_name=self.name,
                        source=self.source,
                        retry_after_seconds=_parse_retry_after(response.headers.get("Retry-After")),
                        limit_type="provider",
                    )

                if response.status >= 400:
                    body = await response.text()
                    raise ProviderHTTPError(
                        f"HTTP {response.status}",
                        provider_name=self.name,
                        source=self.source,
                        status_code=response.status,
                        response_body=body[:500],
                        request_url=url,
                    )

                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    raise ProviderResponseError(
                        f"Invalid JSON from {url}",
                        provider_name=self.name,
                        source=self.source,
                        original_error=e,
                    ) from e

        except asyncio.TimeoutError as e:
            raise ProviderTimeoutError(
                f"Request timed out after {self._timeout}s",
                provider_name=self.name,
                source=self.source,
                timeout_seconds=self._timeout,
                request_url=url,
                original_error=e,
            ) from e
        except aiohttp.ClientError as e:
            raise NetworkError(
                f"Connection error: {e}",
                provider_name=self.name,
                source=self.source,
                request_url=url,
                original_error=e,
            ) from e

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._session and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "BaseApiClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(source={self.source}, name={self.name})>"


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        # HTTP-date form; callers treat None as unknown
        return None
