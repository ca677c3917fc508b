"""
Ingestion Package - raw transaction history to universal transactions.

Features:
- Importers per source (blockchains via the provider manager, exchange CSVs)
- Provenance-tagged raw data, idempotent on its natural key
- Processor dispatch by provider name with pydantic payload validation
- Resumable import and process stages
"""

from ingestion.config import IngestionServiceConfig
from ingestion.exceptions import (
    DuplicateExternalIdError,
    IngestionError,
    InvalidImportParamsError,
    ProcessorContractError,
    SessionNotFoundError,
    ValidationError,
)
from ingestion.importers import BlockchainImporter, ImporterFactory, KrakenCsvImporter
from ingestion.processors import BaseProcessor, ProcessorFactory, register_default_processors
from ingestion.service import TransactionIngestionService
from ingestion.types import (
    ClearResult,
    ImportParams,
    ImportResult,
    ImportSession,
    Money,
    ProcessFilters,
    ProcessingContext,
    ProcessResult,
    SessionStatus,
    SourcedRawData,
    TransactionStatus,
    TransactionType,
    UniversalTransaction,
    ValidationResult,
)

__all__ = [
    # Service
    "TransactionIngestionService",
    "IngestionServiceConfig",
    # Dispatch
    "ImporterFactory",
    "BlockchainImporter",
    "KrakenCsvImporter",
    "ProcessorFactory",
    "BaseProcessor",
    "register_default_processors",
    # Types
    "ImportParams",
    "ImportSession",
    "ImportResult",
    "ProcessFilters",
    "ProcessingContext",
    "ProcessResult",
    "ClearResult",
    "SessionStatus",
    "SourcedRawData",
    "Money",
    "TransactionType",
    "TransactionStatus",
    "UniversalTransaction",
    "ValidationResult",
    # Errors
    "IngestionError",
    "ValidationError",
    "ProcessorContractError",
    "DuplicateExternalIdError",
    "SessionNotFoundError",
    "InvalidImportParamsError",
]
