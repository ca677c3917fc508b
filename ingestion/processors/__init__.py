"""
Processors - raw provider payloads to universal transactions.
"""

from ingestion.processors.base import BaseProcessor, format_validation_errors
from ingestion.processors.blockscout import BlockscoutProcessor
from ingestion.processors.etherscan import EtherscanProcessor
from ingestion.processors.factory import ProcessorFactory, register_default_processors
from ingestion.processors.kraken import KrakenLedgerProcessor
from ingestion.processors.theta import ThetaExplorerProcessor

__all__ = [
    "BaseProcessor",
    "format_validation_errors",
    "EtherscanProcessor",
    "BlockscoutProcessor",
    "ThetaExplorerProcessor",
    "KrakenLedgerProcessor",
    "ProcessorFactory",
    "register_default_processors",
]
