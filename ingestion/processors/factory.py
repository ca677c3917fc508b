"""
Processor Factory.

============================================================
PURPOSE
============================================================
Table-based dispatch from a raw record's provider name to the
processor that understands its payload.

============================================================
USAGE
============================================================
```python
factory = ProcessorFactory.with_defaults()

transactions = factory.dispatch("etherscan", payload, context)
```

============================================================
"""

import logging
from typing import Any, Dict, List, Type

from ingestion.exceptions import ValidationError
from ingestion.processors.base import BaseProcessor
from ingestion.processors.blockscout import BlockscoutProcessor
from ingestion.processors.etherscan import EtherscanProcessor
from ingestion.processors.kraken import KrakenLedgerProcessor
from ingestion.processors.theta import ThetaExplorerProcessor
from ingestion.types import ProcessingContext, UniversalTransaction
from providers.exceptions import (
    CatalogFrozenError,
    DuplicateProviderError,
    UnknownProviderError,
)


logger = logging.getLogger(__name__)


class ProcessorFactory:
    """Registry of processor classes keyed by provider name."""

    def __init__(self) -> None:
        self._registry: Dict[str, Type[BaseProcessor]] = {}
        self._instances: Dict[str, BaseProcessor] = {}
        self._frozen = False

    @classmethod
    def with_defaults(cls) -> "ProcessorFactory":
        factory = cls()
        register_default_processors(factory)
        factory.freeze()
        return factory

    def register(self, provider_name: str, processor_class: Type[BaseProcessor]) -> None:
        if self._frozen:
            raise CatalogFrozenError(
                f"Cannot register processor '{provider_name}': factory is frozen",
                provider_name=provider_name,
            )
        if provider_name in self._registry:
            raise DuplicateProviderError(
                f"Processor already registered for '{provider_name}'",
                provider_name=provider_name,
            )
        self._registry[provider_name] = processor_class
        logger.debug(f"[processors] registered {processor_class.__name__} for {provider_name}")

    def freeze(self) -> None:
        self._frozen = True

    def supported_providers(self) -> List[str]:
        return sorted(self._registry)

    def create(self, provider_name: str) -> BaseProcessor:
        """
        Processor for a provider. Instances are stateless and cached.

        Raises:
            UnknownProviderError: no processor registered
        """
        processor = self._instances.get(provider_name)
        if processor is not None:
            return processor

        processor_class = self._registry.get(provider_name)
        if processor_class is None:
            raise UnknownProviderError(
                f"No processor registered for provider '{provider_name}'",
                provider_name=provider_name,
                available=self.supported_providers(),
            )
        processor = processor_class()
        self._instances[provider_name] = processor
        return processor

    def dispatch(
        self,
        provider_name: str,
        payload: Any,
        context: ProcessingContext,
    ) -> List[UniversalTransaction]:
        """
        Validate then transform one raw payload.

        Raises:
            UnknownProviderError: no processor registered
            ValidationError: payload failed the processor's schema
        """
        processor = self.create(provider_name)
        result = processor.validate(payload)
        if not result.valid:
            raise ValidationError(provider_name, result, context.source_name)
        return processor.transform(payload, context)


def register_default_processors(factory: ProcessorFactory) -> None:
    """Register every processor shipped with the package."""
    for processor_class in (
        EtherscanProcessor,
        BlockscoutProcessor,
        ThetaExplorerProcessor,
        KrakenLedgerProcessor,
    ):
        factory.register(processor_class.provider_name, processor_class)
