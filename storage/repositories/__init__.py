"""
Repositories for the ingestion tables.
"""

from storage.repositories.base import BaseRepository
from storage.repositories.exceptions import (
    DatabaseConnectionError,
    DuplicateRecordError,
    QueryError,
    RecordNotFoundError,
    RepositoryException,
)
from storage.repositories.import_sessions import ImportSessionRepository
from storage.repositories.raw_data import RawDataRepository
from storage.repositories.transactions import TransactionRepository

__all__ = [
    "BaseRepository",
    "ImportSessionRepository",
    "RawDataRepository",
    "TransactionRepository",
    "RepositoryException",
    "RecordNotFoundError",
    "DuplicateRecordError",
    "DatabaseConnectionError",
    "QueryError",
]
