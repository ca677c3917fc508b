"""
Importers - provenance-tagged raw data from blockchains and exchanges.
"""

from ingestion.importers.base import BaseImporter, time_windows
from ingestion.importers.blockchain import BlockchainImporter
from ingestion.importers.factory import ImporterFactory, register_default_importers
from ingestion.importers.kraken_csv import KrakenCsvImporter

__all__ = [
    "BaseImporter",
    "BlockchainImporter",
    "KrakenCsvImporter",
    "ImporterFactory",
    "register_default_importers",
    "time_windows",
]
