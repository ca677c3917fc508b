"""
Theta Explorer API Client - account history from the public Theta explorer.

Endpoints:
- /accounttx/{address}?limitNumber=100&pageNumber=N  transaction pages
- /account/{address}                                  balances
- /supply/theta                                       health check

No API key. The explorer answers 404 for accounts without history,
which is an empty result rather than an error.
"""

import logging
from typing import Any

from providers.base import BaseApiClient, OperationHandler, mask_address
from providers.exceptions import ProviderHTTPError, ProviderResponseError
from providers.models import OperationType, ProviderOperation


logger = logging.getLogger(__name__)


class ThetaExplorerApiClient(BaseApiClient):
    """Theta / TFUEL account transactions."""

    PAGE_SIZE = 100

    HEALTH_CHECK_PATH = "/supply/theta"

    def _operation_handlers(self) -> dict[OperationType, OperationHandler]:
        return {
            OperationType.GET_RAW_ADDRESS_TRANSACTIONS: self._get_raw_address_transactions,
            OperationType.GET_RAW_ADDRESS_BALANCE: self._get_raw_address_balance,
        }

    def extract_external_id(self, item: dict[str, Any]) -> str:
        return str(item["hash"]).lower()

    async def _get_raw_address_transactions(self, operation: ProviderOperation) -> list[dict[str, Any]]:
        address = operation.address.lower()
        transactions: list[dict[str, Any]] = []

        page = 1
        while True:
            if page > self.MAX_PAGES:
                logger.warning(
                    f"[{self.name}] {mask_address(address)} stopped at the "
                    f"{self.MAX_PAGES} page limit with {len(transactions)} transactions"
                )
                break

            try:
                response = await self._make_request(
                    f"/accounttx/{address}",
                    {"limitNumber": self.PAGE_SIZE, "pageNumber": page},
                )
            except ProviderHTTPError as e:
                if e.is_not_found:
                    logger.debug(f"[{self.name}] no history for {mask_address(address)}")
                    break
                raise

            if not isinstance(response, dict):
                raise ProviderResponseError(
                    "Unexpected accounttx response",
                    provider_name=self.name,
                    source=self.source,
                )

            body = response.get("body") or []
            transactions.extend(body)

            current_page = int(response.get("currentPageNumber") or page)
            total_pages = int(response.get("totalPageNumber") or 0)
            if not body or current_page >= total_pages:
                break
            page += 1

        logger.debug(f"[{self.name}] fetched {len(transactions)} transactions for {mask_address(address)}")
        return transactions

    async def _get_raw_address_balance(self, operation: ProviderOperation) -> Any:
        try:
            return await self._make_request(f"/account/{operation.address.lower()}")
        except ProviderHTTPError as e:
            if e.is_not_found:
                return {"body": None}
            raise

    def _is_healthy_response(self, response: Any) -> bool:
        return isinstance(response, dict) and "total_supply" in response
