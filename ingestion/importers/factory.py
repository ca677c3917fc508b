"""
Importer Factory.

Table-based dispatch from (source type, source name) to an importer.
Blockchain importers exist for every source in the provider catalog;
exchange importers are registered explicitly.
"""

import logging
from typing import Callable, Dict, List, Optional

from core.clock import ClockProtocol
from ingestion.importers.base import BaseImporter
from ingestion.importers.blockchain import BlockchainImporter
from ingestion.importers.kraken_csv import KrakenCsvImporter
from ingestion.types import ImportParams
from providers.exceptions import DuplicateProviderError, UnknownProviderError
from providers.manager import ProviderManager
from providers.models import SourceType


logger = logging.getLogger(__name__)


ExchangeImporterBuilder = Callable[[str, ClockProtocol], BaseImporter]


class ImporterFactory:
    """Creates importers for blockchains and exchanges."""

    def __init__(
        self,
        provider_manager: ProviderManager,
        clock: Optional[ClockProtocol] = None,
        window_days: Optional[int] = None,
        network: str = "mainnet",
    ) -> None:
        self._manager = provider_manager
        self._clock = clock or provider_manager.clock
        self._window_days = window_days
        self._network = network
        self._exchange_builders: Dict[str, ExchangeImporterBuilder] = {}
        register_default_importers(self)

    def register_exchange(self, source_name: str, builder: ExchangeImporterBuilder) -> None:
        if source_name in self._exchange_builders:
            raise DuplicateProviderError(
                f"Importer already registered for exchange '{source_name}'",
                source=source_name,
            )
        self._exchange_builders[source_name] = builder

    def supported_sources(self, source_type: SourceType) -> List[str]:
        if source_type == SourceType.BLOCKCHAIN:
            return self._manager.catalog.sources()
        return sorted(self._exchange_builders)

    def create(
        self,
        source_type: SourceType,
        source_name: str,
        params: Optional[ImportParams] = None,
    ) -> BaseImporter:
        """
        Importer for a source, with params validated when given.

        Raises:
            UnknownProviderError: source not supported
            InvalidImportParamsError: params rejected by the importer
        """
        if source_name not in self.supported_sources(source_type):
            raise UnknownProviderError(
                f"No {source_type.value} importer for '{source_name}'",
                source=source_name,
                available=self.supported_sources(source_type),
            )

        if source_type == SourceType.BLOCKCHAIN:
            importer: BaseImporter = BlockchainImporter(
                self._manager,
                source_name,
                clock=self._clock,
                network=self._network,
                window_days=self._window_days,
            )
        else:
            importer = self._exchange_builders[source_name](source_name, self._clock)

        if params is not None:
            importer.validate_params(params)
        logger.debug(f"[importers] created {importer!r}")
        return importer


def register_default_importers(factory: ImporterFactory) -> None:
    factory.register_exchange("kraken", lambda name, clock: KrakenCsvImporter(name, clock))
