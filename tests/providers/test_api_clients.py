"""
API Client Tests.

HTTP is replayed through a fake aiohttp session injected into each client.
"""

from unittest.mock import AsyncMock

import pytest

from providers.clients.blockscout import BlockscoutApiClient
from providers.clients.etherscan import EtherscanApiClient
from providers.clients.theta_explorer import ThetaExplorerApiClient
from providers.exceptions import (
    ProviderHTTPError,
    ProviderResponseError,
    RateLimitExceededError,
    UnsupportedOperationError,
)
from providers.models import OperationType, ProviderOperation


ADDRESS = "0xAbC0000000000000000000000000000000000001"


def txs_operation(address: str = ADDRESS) -> ProviderOperation:
    return ProviderOperation(type=OperationType.GET_RAW_ADDRESS_TRANSACTIONS, address=address)


def ok(result):
    return {"status": "1", "message": "OK", "result": result}


def empty():
    return {"status": "0", "message": "No transactions found", "result": []}


# =============================================================================
# ETHERSCAN-COMPATIBLE CLIENTS
# =============================================================================

class TestEtherscanClient:

    @pytest.fixture
    def build(self, make_descriptor, fake_session):
        def _build(*responses, cls=EtherscanApiClient, api_key="KEY"):
            session = fake_session(*responses)
            descriptor = make_descriptor(name="etherscan", source="ethereum")
            return cls(descriptor, api_key=api_key, session=session), session
        return _build

    @pytest.mark.asyncio
    async def test_groups_entries_by_hash_in_block_order(self, build, response):
        normal = [
            {"hash": "0xBBB", "blockNumber": "20", "value": "1"},
            {"hash": "0xAAA", "blockNumber": "10", "value": "2"},
        ]
        internal = [{"hash": "0xbbb", "blockNumber": "20", "value": "3"}]
        client, _ = build(response(json_data=ok(normal)), response(json_data=ok(internal)))

        bundles = await client.execute(txs_operation())

        assert [b["hash"] for b in bundles] == ["0xaaa", "0xbbb"]
        assert bundles[1]["normal"] == [normal[0]]
        assert bundles[1]["internal"] == internal
        assert bundles[0]["internal"] == []

    @pytest.mark.asyncio
    async def test_no_transactions_is_empty(self, build, response):
        client, _ = build(response(json_data=empty()), response(json_data=empty()))

        assert await client.execute(txs_operation()) == []

    @pytest.mark.asyncio
    async def test_in_body_rate_limit(self, build, response):
        client, _ = build(response(json_data={
            "status": "0", "message": "NOTOK", "result": "Max rate limit reached",
        }))

        with pytest.raises(RateLimitExceededError) as exc_info:
            await client.execute(txs_operation())

        assert exc_info.value.provider_name == "etherscan"

    @pytest.mark.asyncio
    async def test_other_api_error(self, build, response):
        client, _ = build(response(json_data={
            "status": "0", "message": "NOTOK", "result": "Invalid API Key",
        }))

        with pytest.raises(ProviderResponseError):
            await client.execute(txs_operation())

    @pytest.mark.asyncio
    async def test_paginates_until_short_page(self, build, response):
        page1 = [{"hash": "0x1", "blockNumber": "1"}, {"hash": "0x2", "blockNumber": "2"}]
        page2 = [{"hash": "0x3", "blockNumber": "3"}]
        client, session = build(
            response(json_data=ok(page1)),
            response(json_data=ok(page2)),
            response(json_data=empty()),
        )
        client.PAGE_SIZE = 2

        bundles = await client.execute(txs_operation())

        assert [b["hash"] for b in bundles] == ["0x1", "0x2", "0x3"]
        assert [r["params"]["page"] for r in session.requests] == [1, 2, 1]
        assert session.requests[0]["params"]["action"] == "txlist"
        assert session.requests[2]["params"]["action"] == "txlistinternal"

    @pytest.mark.asyncio
    async def test_pagination_capped(self, build, response):
        full = [{"hash": "0x1", "blockNumber": "1"}]
        client, session = build(
            response(json_data=ok(full)),
            response(json_data=ok(full)),
            response(json_data=empty()),
        )
        client.PAGE_SIZE = 1
        client.MAX_PAGES = 2

        await client.execute(txs_operation())

        txlist_pages = [r for r in session.requests if r["params"]["action"] == "txlist"]
        assert len(txlist_pages) == 2

    @pytest.mark.asyncio
    async def test_base_params(self, build, response):
        client, session = build(response(json_data=ok("123")))

        await client.execute(ProviderOperation(type=OperationType.GET_RAW_ADDRESS_BALANCE, address=ADDRESS))

        params = session.requests[0]["params"]
        assert params["chainid"] == 1
        assert params["apikey"] == "KEY"
        assert params["module"] == "account"
        assert params["action"] == "balance"

    @pytest.mark.asyncio
    async def test_blockscout_sends_no_key(self, build, response):
        client, session = build(response(json_data=ok("123")), cls=BlockscoutApiClient, api_key=None)

        await client.execute(ProviderOperation(type=OperationType.GET_RAW_ADDRESS_BALANCE, address=ADDRESS))

        params = session.requests[0]["params"]
        assert "apikey" not in params
        assert "chainid" not in params

    @pytest.mark.asyncio
    async def test_health_check(self, build, response):
        client, _ = build(response(json_data=ok("120000000")))
        assert await client.health_check() is True

        client, _ = build(response(status=503, text="down"))
        assert await client.health_check() is False

    @pytest.mark.asyncio
    async def test_token_balances_one_request_per_contract(self, build):
        client, _ = build()
        client._make_request = AsyncMock(side_effect=[ok("10"), ok("20")])
        operation = ProviderOperation(
            type=OperationType.GET_RAW_TOKEN_BALANCES,
            address=ADDRESS,
            contract_addresses=("0xtoken1", "0xtoken2"),
        )

        balances = await client.execute(operation)

        assert balances == {"0xtoken1": ok("10"), "0xtoken2": ok("20")}
        actions = [call.args[1]["action"] for call in client._make_request.await_args_list]
        assert actions == ["tokenbalance", "tokenbalance"]
        assert client._make_request.await_args_list[1].args[1]["contractaddress"] == "0xtoken2"

    def test_extract_external_id(self, build):
        client, _ = build()
        assert client.extract_external_id({"hash": "0xABC"}) == "0xabc"

    @pytest.mark.asyncio
    async def test_injected_session_not_closed(self, build):
        client, session = build()
        await client.close()
        assert session.closed is False


# =============================================================================
# THETA EXPLORER
# =============================================================================

class TestThetaExplorerClient:

    @pytest.fixture
    def build(self, make_descriptor, fake_session):
        def _build(*responses):
            session = fake_session(*responses)
            descriptor = make_descriptor(
                name="theta-explorer",
                source="theta",
                capabilities={OperationType.GET_RAW_ADDRESS_TRANSACTIONS, OperationType.GET_RAW_ADDRESS_BALANCE},
            )
            return ThetaExplorerApiClient(descriptor, session=session), session
        return _build

    @pytest.mark.asyncio
    async def test_fetches_all_pages(self, build, response):
        client, session = build(
            response(json_data={"body": [{"hash": "0x1"}], "currentPageNumber": 1, "totalPageNumber": 2}),
            response(json_data={"body": [{"hash": "0x2"}], "currentPageNumber": 2, "totalPageNumber": 2}),
        )

        transactions = await client.execute(txs_operation())

        assert [t["hash"] for t in transactions] == ["0x1", "0x2"]
        assert session.requests[0]["url"].endswith(f"/accounttx/{ADDRESS.lower()}")
        assert [r["params"]["pageNumber"] for r in session.requests] == [1, 2]

    @pytest.mark.asyncio
    async def test_not_found_is_empty(self, build, response):
        client, _ = build(response(status=404, text="not found"))

        assert await client.execute(txs_operation()) == []

    @pytest.mark.asyncio
    async def test_http_429_carries_retry_after(self, build, response):
        client, _ = build(response(status=429, headers={"Retry-After": "7"}))

        with pytest.raises(RateLimitExceededError) as exc_info:
            await client.execute(txs_operation())

        assert exc_info.value.retry_after_seconds == 7

    @pytest.mark.asyncio
    async def test_server_error(self, build, response):
        client, _ = build(response(status=500, text="boom"))

        with pytest.raises(ProviderHTTPError) as exc_info:
            await client.execute(txs_operation())

        assert exc_info.value.status_code == 500
        assert exc_info.value.response_body == "boom"

    @pytest.mark.asyncio
    async def test_invalid_json(self, build, response):
        client, _ = build(response(json_data=ValueError("not json")))

        with pytest.raises(ProviderResponseError):
            await client.execute(txs_operation())

    @pytest.mark.asyncio
    async def test_unsupported_operation(self, build):
        client, _ = build()
        operation = ProviderOperation(
            type=OperationType.GET_RAW_TOKEN_BALANCES,
            address=ADDRESS,
            contract_addresses=("0xtoken",),
        )

        with pytest.raises(UnsupportedOperationError):
            await client.execute(operation)

    @pytest.mark.asyncio
    async def test_health_check(self, build, response):
        client, session = build(response(json_data={"total_supply": "1000000000"}))

        assert await client.health_check() is True
        assert session.requests[0]["url"].endswith("/supply/theta")
