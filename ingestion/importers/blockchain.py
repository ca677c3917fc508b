"""
Blockchain importer - address history through the provider manager.

Every window is fetched with ranked failover. The provider that
answered is recorded on each item, together with the item's external
id as the provider's client extracts it.

Windows are only used when every provider for the source honours
since/until. Otherwise the range is fetched once, since each window
would return the full history again.
"""

from typing import AsyncIterator, List, Optional

from core.clock import ClockProtocol
from ingestion.exceptions import InvalidImportParamsError
from ingestion.importers.base import BaseImporter, time_windows
from ingestion.types import ImportParams, SourcedRawData
from providers.manager import ProviderManager
from providers.models import OperationType, ProviderOperation, SourceType


class BlockchainImporter(BaseImporter):
    """Raw address transactions for one blockchain."""

    source_type = SourceType.BLOCKCHAIN

    def __init__(
        self,
        provider_manager: ProviderManager,
        source_name: str,
        clock: Optional[ClockProtocol] = None,
        network: str = "mainnet",
        window_days: Optional[int] = None,
    ) -> None:
        super().__init__(source_name, clock or provider_manager.clock)
        self._manager = provider_manager
        self._network = network
        self._window_days = window_days

    def validate_params(self, params: ImportParams) -> None:
        super().validate_params(params)
        if not params.address or not params.address.strip():
            raise InvalidImportParamsError(
                f"An address is required to import {self._source_name}",
                source_name=self._source_name,
            )

    async def import_batches(self, params: ImportParams) -> AsyncIterator[List[SourcedRawData]]:
        self.validate_params(params)
        self._manager.auto_register_from_config(
            self._source_name,
            network=self._network,
            preferred_provider=params.provider_name,
        )

        until = params.until or self._clock.now()
        for since, window_end in time_windows(params.since, until, self._effective_window_days()):
            operation = ProviderOperation(
                type=OperationType.GET_RAW_ADDRESS_TRANSACTIONS,
                address=params.address,
                since=since,
                until=window_end,
            )
            result = await self._manager.execute_with_failover(self._source_name, operation)
            client = self._manager.get_client(self._source_name, result.provider_name)
            fetched_at = self._clock.now()

            batch = [
                SourcedRawData(
                    payload=item,
                    provider_name=result.provider_name,
                    fetched_at=fetched_at,
                    source_type=self.source_type,
                    external_id=client.extract_external_id(item),
                )
                for item in result.data or []
            ]
            self._logger.info(
                f"[{self._source_name}] {len(batch)} items from {result.provider_name} "
                f"(attempts={result.attempts_tried})"
            )
            yield batch

    def _effective_window_days(self) -> Optional[int]:
        if self._window_days is None:
            return None
        clients = self._manager.get_providers(self._source_name)
        if all(client.SUPPORTS_TIME_RANGE for client in clients):
            return self._window_days
        self._logger.info(
            f"[{self._source_name}] window_days={self._window_days} ignored, "
            f"not every provider filters by time"
        )
        return None
