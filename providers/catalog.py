"""
Provider Catalog - static registry of provider descriptors.

Maps (source, provider name) to the provider's descriptor and the API
client class that implements it. The catalog is filled once at process
start by an explicit registration function and frozen afterwards;
lookups never mutate it.
"""

import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Mapping, Optional

from providers.exceptions import (
    CatalogFrozenError,
    DuplicateProviderError,
    UnknownProviderError,
)
from providers.models import ProviderDescriptor

if TYPE_CHECKING:
    from providers.base import BaseApiClient


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogEntry:
    """A registered provider: its metadata and the client class to build."""
    descriptor: ProviderDescriptor
    client_class: type["BaseApiClient"]
    order: int


class ProviderCatalog:
    """
    Registry of every provider the process knows about.

    Usage:
        catalog = ProviderCatalog()
        register_default_providers(catalog)
        catalog.freeze()

        for descriptor in catalog.providers_for("ethereum"):
            ...
    """

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str], CatalogEntry] = {}
        self._frozen = False

    # ---------------------------------------------------------
    # Registration
    # ---------------------------------------------------------

    def register(
        self,
        descriptor: ProviderDescriptor,
        client_class: type["BaseApiClient"],
    ) -> None:
        """
        Register a provider.

        Raises:
            DuplicateProviderError: (source, name) already registered
            CatalogFrozenError: catalog was frozen
        """
        if self._frozen:
            raise CatalogFrozenError(
                "Provider catalog is frozen; register providers at startup",
                provider_name=descriptor.name,
                source=descriptor.source,
            )
        if descriptor.key in self._entries:
            raise DuplicateProviderError(
                f"Provider already registered: {descriptor.source}/{descriptor.name}",
                provider_name=descriptor.name,
                source=descriptor.source,
            )

        self._entries[descriptor.key] = CatalogEntry(
            descriptor=descriptor,
            client_class=client_class,
            order=len(self._entries),
        )
        logger.debug(
            f"Registered provider {descriptor.source}/{descriptor.name} "
            f"(priority={descriptor.priority})"
        )

    def freeze(self) -> None:
        """Seal the catalog. Later register() calls fail."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    # ---------------------------------------------------------
    # Lookup
    # ---------------------------------------------------------

    def providers_for(
        self,
        source: str,
        network: str = "mainnet",
        credentials: Optional[Mapping[str, Optional[str]]] = None,
    ) -> list[ProviderDescriptor]:
        """
        Ranked descriptors usable for a source.

        Args:
            source: Blockchain or exchange name
            network: Network the caller targets
            credentials: Provider name to API key. When omitted, keys are
                looked up in the environment.

        Returns:
            Descriptors by ascending priority, ties in registration order,
            without those that need a key nobody supplied.
        """
        entries = [
            entry for entry in self._entries.values()
            if entry.descriptor.source == source
            and network in entry.descriptor.networks
        ]
        entries.sort(key=lambda e: (e.descriptor.priority, e.order))

        result = []
        for entry in entries:
            descriptor = entry.descriptor
            if descriptor.requires_api_key and not self._has_key(descriptor, credentials):
                logger.debug(f"[{descriptor.name}] skipped: no API key available")
                continue
            result.append(descriptor)
        return result

    def get(self, source: str, name: str) -> ProviderDescriptor:
        return self._entry(source, name).descriptor

    def client_class(self, source: str, name: str) -> type["BaseApiClient"]:
        return self._entry(source, name).client_class

    def has(self, source: str, name: str) -> bool:
        return (source, name) in self._entries

    def sources(self) -> list[str]:
        """All sources with at least one provider, sorted."""
        return sorted({source for source, _ in self._entries})

    def all_providers(self) -> list[ProviderDescriptor]:
        entries = sorted(
            self._entries.values(),
            key=lambda e: (e.descriptor.source, e.descriptor.priority, e.order),
        )
        return [e.descriptor for e in entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    # ---------------------------------------------------------
    # Internal
    # ---------------------------------------------------------

    def _entry(self, source: str, name: str) -> CatalogEntry:
        try:
            return self._entries[(source, name)]
        except KeyError:
            available = [n for s, n in self._entries if s == source]
            raise UnknownProviderError(
                f"No provider '{name}' registered for {source}",
                provider_name=name,
                source=source,
                available=available,
            ) from None

    @staticmethod
    def _has_key(
        descriptor: ProviderDescriptor,
        credentials: Optional[Mapping[str, Optional[str]]],
    ) -> bool:
        if credentials is not None:
            return bool(credentials.get(descriptor.name))
        return bool(os.getenv(descriptor.env_var))


# ============================================================
# DEFAULT CATALOG
# ============================================================

_default_catalog: Optional[ProviderCatalog] = None


def get_default_catalog() -> ProviderCatalog:
    """Get the process-wide catalog, populating and freezing it on first use."""
    global _default_catalog
    if _default_catalog is None:
        from providers.registration import register_default_providers

        catalog = ProviderCatalog()
        register_default_providers(catalog)
        catalog.freeze()
        _default_catalog = catalog
    return _default_catalog
