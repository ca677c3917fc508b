"""
ORM models.
"""

from storage.models.base import Base, JSONType
from storage.models.ingestion import (
    PROCESSING_DONE,
    PROCESSING_FAILED,
    PROCESSING_PENDING,
    ImportSessionRecord,
    RawDataRecord,
    TransactionRecord,
)

__all__ = [
    "Base",
    "JSONType",
    "ImportSessionRecord",
    "RawDataRecord",
    "TransactionRecord",
    "PROCESSING_PENDING",
    "PROCESSING_DONE",
    "PROCESSING_FAILED",
]
