"""
Etherscan API Client - account history from Etherscan V2.

Also the base for Etherscan-compatible explorers (Blockscout), which
accept the same module/action query interface and answer with the same
{"status", "message", "result"} envelope.

Free tier limits:
- 5 calls/second
- 100,000 calls/day (API key required on V2)

Pagination:
- page/offset query params, PAGE_SIZE items per page
- the last page is the first one shorter than PAGE_SIZE
- block based only; since/until are not mapped, overlap between
  windows is absorbed by raw-data deduplication
"""

import logging
from typing import Any, Optional

from providers.base import BaseApiClient, OperationHandler, mask_address
from providers.exceptions import ProviderResponseError, RateLimitExceededError
from providers.models import OperationType, ProviderOperation


logger = logging.getLogger(__name__)

# Messages Etherscan returns with status "0" that still mean "empty result"
EMPTY_RESULT_MESSAGES = ("No transactions found", "No records found")


class EtherscanCompatibleClient(BaseApiClient):
    """
    Shared logic for explorers speaking the Etherscan account API.

    get_raw_address_transactions returns one bundle per transaction hash:
        {"hash": ..., "normal": [txlist entries], "internal": [txlistinternal entries]}
    Entries are passed through unchanged; bundles follow block order.
    """

    PAGE_SIZE = 1000

    HEALTH_CHECK_PATH = ""

    def _operation_handlers(self) -> dict[OperationType, OperationHandler]:
        return {
            OperationType.GET_RAW_ADDRESS_TRANSACTIONS: self._get_raw_address_transactions,
            OperationType.GET_RAW_ADDRESS_BALANCE: self._get_raw_address_balance,
            OperationType.GET_RAW_TOKEN_BALANCES: self._get_raw_token_balances,
        }

    def extract_external_id(self, item: dict[str, Any]) -> str:
        return str(item["hash"]).lower()

    def _base_params(self) -> dict[str, Any]:
        """Params added to every request."""
        return {}

    # ─────────────────────────────────────────────────────────────
    # Operations
    # ─────────────────────────────────────────────────────────────

    async def _get_raw_address_transactions(self, operation: ProviderOperation) -> list[dict[str, Any]]:
        normal = await self._fetch_account_pages("txlist", operation.address)
        internal = await self._fetch_account_pages("txlistinternal", operation.address)
        bundles = _group_by_hash(normal, internal)
        logger.debug(
            f"[{self.name}] {mask_address(operation.address)}: "
            f"{len(normal)} normal, {len(internal)} internal, {len(bundles)} bundles"
        )
        return bundles

    async def _get_raw_address_balance(self, operation: ProviderOperation) -> dict[str, Any]:
        return await self._account_request({
            "action": "balance",
            "address": operation.address,
            "tag": "latest",
        })

    async def _get_raw_token_balances(self, operation: ProviderOperation) -> dict[str, Any]:
        balances: dict[str, Any] = {}
        for contract in operation.contract_addresses:
            balances[contract] = await self._account_request({
                "action": "tokenbalance",
                "contractaddress": contract,
                "address": operation.address,
                "tag": "latest",
            })
        return balances

    # ─────────────────────────────────────────────────────────────
    # Requests
    # ─────────────────────────────────────────────────────────────

    async def _fetch_account_pages(self, action: str, address: str) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        for page in range(1, self.MAX_PAGES + 1):
            response = await self._account_request({
                "action": action,
                "address": address,
                "startblock": 0,
                "endblock": 99999999,
                "page": page,
                "offset": self.PAGE_SIZE,
                "sort": "asc",
            })
            result = response.get("result") or []
            if not isinstance(result, list):
                raise ProviderResponseError(
                    f"Expected a list for {action}, got {type(result).__name__}",
                    provider_name=self.name,
                    source=self.source,
                )
            items.extend(result)
            if len(result) < self.PAGE_SIZE:
                break
        else:
            logger.warning(
                f"[{self.name}] {action} for {mask_address(address)} "
                f"stopped at the {self.MAX_PAGES} page limit"
            )
        return items

    async def _account_request(self, params: dict[str, Any]) -> dict[str, Any]:
        query = {"module": "account", **self._base_params(), **params}
        response = await self._make_request("", query)
        return self._unwrap(response)

    def _unwrap(self, response: Any) -> dict[str, Any]:
        """Translate Etherscan's in-body errors."""
        if not isinstance(response, dict):
            raise ProviderResponseError(
                f"Unexpected response type {type(response).__name__}",
                provider_name=self.name,
                source=self.source,
            )

        status = str(response.get("status", "1"))
        message = str(response.get("message", ""))
        result = response.get("result")

        if status == "0":
            detail = f"{message} {result if isinstance(result, str) else ''}".lower()
            if "rate limit" in detail:
                raise RateLimitExceededError(
                    f"{self.name} rate limit exceeded",
                    provider_name=self.name,
                    source=self.source,
                    retry_after_seconds=1,
                    limit_type="provider",
                )
            if message in EMPTY_RESULT_MESSAGES:
                return {**response, "result": []}
            raise ProviderResponseError(
                f"{self.name} API error: {message} {result}",
                provider_name=self.name,
                source=self.source,
                context={"response": str(response)[:500]},
            )
        return response

    def _health_check_params(self) -> Optional[dict[str, Any]]:
        return {"module": "stats", "action": "ethsupply", **self._base_params()}

    def _is_healthy_response(self, response: Any) -> bool:
        return isinstance(response, dict) and str(response.get("status")) == "1"


class EtherscanApiClient(EtherscanCompatibleClient):
    """
    Etherscan V2 (unified multichain endpoint).

    The chain is selected with the chainid query param.
    """

    CHAIN_IDS = {
        "ethereum": 1,
        "polygon": 137,
        "arbitrum": 42161,
        "optimism": 10,
        "base": 8453,
    }

    def _base_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {"chainid": self.CHAIN_IDS.get(self.source, 1)}
        if self._api_key:
            params["apikey"] = self._api_key
        return params


def _group_by_hash(
    normal: list[dict[str, Any]],
    internal: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Group entries sharing a transaction hash, in block order."""
    bundles: dict[str, dict[str, Any]] = {}
    for kind, entries in (("normal", normal), ("internal", internal)):
        for entry in entries:
            tx_hash = str(entry.get("hash", "")).lower()
            bundle = bundles.setdefault(tx_hash, {"hash": tx_hash, "normal": [], "internal": []})
            bundle[kind].append(entry)
    return sorted(bundles.values(), key=_first_block)


def _first_block(bundle: dict[str, Any]) -> int:
    entries = bundle["normal"] or bundle["internal"]
    try:
        return int(entries[0].get("blockNumber", 0))
    except (TypeError, ValueError):
        return 0
