"""
Shared fixtures: simulated clock, stub API clients, fake HTTP sessions
and an in-memory database.
"""

import asyncio
from typing import Any, Optional

import pytest

from core.clock import MockClock
from providers.base import BaseApiClient
from providers.catalog import ProviderCatalog
from providers.manager import ProviderManager
from providers.models import OperationType, ProviderDescriptor, RateLimitConfig
from storage.database import create_database_engine, create_session_factory, initialize_database


ALL_OPERATIONS = frozenset(OperationType)

FAST_RATE_LIMIT = RateLimitConfig(requests_per_second=1000, burst_limit=1000)


# ============================================================
# STUB CLIENT
# ============================================================

class StubApiClient(BaseApiClient):
    """
    API client that replays scripted outcomes instead of doing HTTP.

    Each outcome is returned, or raised if it is an exception. Once the
    script runs out, default_result is returned.
    """

    def __init__(
        self,
        descriptor: ProviderDescriptor,
        outcomes: Optional[list[Any]] = None,
        default_result: Any = None,
        delay_seconds: float = 0.0,
        probe_outcome=None,
    ) -> None:
        super().__init__(descriptor)
        self.outcomes = list(outcomes or [])
        self.default_result = [] if default_result is None else default_result
        self.delay_seconds = delay_seconds
        self.probe_outcome = probe_outcome
        self.calls = 0
        self.closed = False

    def _operation_handlers(self):
        return {op: self._handle for op in self.descriptor.capabilities}

    async def _handle(self, operation):
        self.calls += 1
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        outcome = self.outcomes.pop(0) if self.outcomes else self.default_result
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def extract_external_id(self, item: dict[str, Any]) -> str:
        return str(item["hash"]).lower()

    async def probe(self) -> None:
        if self.probe_outcome is not None:
            self.probe_outcome()

    async def close(self) -> None:
        self.closed = True


# ============================================================
# FAKE HTTP
# ============================================================

class FakeResponse:
    """Just enough of aiohttp.ClientResponse for BaseApiClient._make_request."""

    def __init__(self, status: int = 200, json_data: Any = None, text: str = "", headers=None):
        self.status = status
        self._json = json_data
        self._text = text
        self.headers = headers or {}

    async def json(self, content_type=None):
        if isinstance(self._json, Exception):
            raise self._json
        return self._json

    async def text(self):
        return self._text

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Replays FakeResponses in order and records each request."""

    def __init__(self, responses: list[FakeResponse]):
        self.responses = list(responses)
        self.requests: list[dict[str, Any]] = []
        self.closed = False

    def request(self, method, url, params=None, headers=None):
        self.requests.append({"method": method, "url": url, "params": params})
        return self.responses.pop(0)

    async def close(self):
        self.closed = True


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def clock():
    """Simulated clock starting at 2024-01-01 UTC."""
    return MockClock()


@pytest.fixture
def make_descriptor():
    """Build a ProviderDescriptor with test defaults."""
    def _make(
        name: str = "stub",
        source: str = "ethereum",
        priority: int = 1,
        capabilities=ALL_OPERATIONS,
        rate_limit: RateLimitConfig = FAST_RATE_LIMIT,
        requires_api_key: bool = False,
        **kwargs,
    ) -> ProviderDescriptor:
        return ProviderDescriptor(
            source=source,
            name=name,
            display_name=name.title(),
            capabilities=frozenset(capabilities),
            default_rate_limit=rate_limit,
            base_url=f"https://{name}.example/api",
            priority=priority,
            requires_api_key=requires_api_key,
            **kwargs,
        )
    return _make


@pytest.fixture
def make_stub_client(make_descriptor):
    """Build a StubApiClient; descriptor kwargs are forwarded."""
    def _make(name: str = "stub", outcomes=None, default_result=None, delay_seconds=0.0,
              probe_outcome=None, **descriptor_kwargs) -> StubApiClient:
        return StubApiClient(
            make_descriptor(name=name, **descriptor_kwargs),
            outcomes=outcomes,
            default_result=default_result,
            delay_seconds=delay_seconds,
            probe_outcome=probe_outcome,
        )
    return _make


@pytest.fixture
def fake_session():
    """Build a FakeSession from FakeResponse arguments."""
    def _make(*responses: FakeResponse) -> FakeSession:
        return FakeSession(list(responses))
    return _make


@pytest.fixture
def response():
    """Shortcut to FakeResponse."""
    return FakeResponse


@pytest.fixture
def session_factory():
    """Session factory over a fresh in-memory SQLite database."""
    engine = create_database_engine("sqlite://")
    initialize_database(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def make_manager(clock):
    """
    ProviderManager over a catalog listing the given stub clients.

    The clients are registered up front, so auto-registration finds them
    already in place and never builds new ones.
    """
    def _make(*clients: StubApiClient) -> ProviderManager:
        catalog = ProviderCatalog()
        for client in clients:
            catalog.register(client.descriptor, StubApiClient)
        manager = ProviderManager(catalog, clock=clock)
        for client in clients:
            manager.register_client(client.source, client)
        return manager
    return _make
