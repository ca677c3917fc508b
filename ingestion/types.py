"""
Ingestion - Type Definitions.

============================================================
PURPOSE
============================================================
Shared types for the ingestion pipeline.

- Import parameters and sessions
- Provenance-tagged raw data
- The universal transaction model
- Stage results

============================================================
DESIGN PRINCIPLES
============================================================
- Immutable data structures where possible
- Decimal for every amount
- No business logic
- Serializable for persistence and logging

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from core.clock import to_utc
from providers.models import SourceType


# =============================================================
# ENUMS
# =============================================================

class SessionStatus(str, Enum):
    """Lifecycle of an import session."""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class TransactionType(str, Enum):
    """Kind of a universal transaction."""
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TRANSFER = "transfer"
    TRADE = "trade"
    FEE = "fee"
    STAKING = "staking"
    OTHER = "other"


class TransactionStatus(str, Enum):
    """Settlement status of a universal transaction."""
    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"


# =============================================================
# IMPORT TYPES
# =============================================================

@dataclass(frozen=True)
class ImportParams:
    """What to import. Blockchains need an address, exchanges csv directories."""
    address: Optional[str] = None
    since: Optional[datetime] = None
    until: Optional[datetime] = None
    csv_directories: tuple[str, ...] = ()
    provider_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "since": self.since.isoformat() if self.since else None,
            "until": self.until.isoformat() if self.until else None,
            "csv_directories": list(self.csv_directories),
            "provider_name": self.provider_name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImportParams":
        since = data.get("since")
        until = data.get("until")
        return cls(
            address=data.get("address"),
            since=to_utc(datetime.fromisoformat(since)) if since else None,
            until=to_utc(datetime.fromisoformat(until)) if until else None,
            csv_directories=tuple(data.get("csv_directories") or ()),
            provider_name=data.get("provider_name"),
        )


@dataclass(frozen=True)
class SourcedRawData:
    """
    One raw item as fetched, with provenance.

    The only carrier of provenance into the raw-data store and into
    processor dispatch.
    """
    payload: Any
    provider_name: str
    fetched_at: datetime
    source_type: SourceType
    external_id: str


@dataclass(frozen=True)
class ImportSession:
    """A single import invocation."""
    id: int
    source_name: str
    source_type: SourceType
    params: ImportParams
    started_at: datetime
    status: SessionStatus
    completed_at: Optional[datetime] = None
    imported_count: int = 0
    skipped_count: int = 0
    error_message: Optional[str] = None


# =============================================================
# UNIVERSAL TRANSACTION
# =============================================================

@dataclass(frozen=True)
class Money:
    """Currency and exact decimal magnitude."""
    currency: str
    amount: Decimal

    def is_zero(self) -> bool:
        return self.amount == 0

    def to_dict(self) -> Dict[str, str]:
        return {"currency": self.currency, "amount": str(self.amount)}


@dataclass(frozen=True)
class UniversalTransaction:
    """Provider-agnostic transaction produced by a processor."""
    id: str
    source: str
    type: TransactionType
    amount: Money
    timestamp: datetime
    status: TransactionStatus = TransactionStatus.SUCCESS
    fee: Optional[Money] = None
    from_address: Optional[str] = None
    to_address: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "type": self.type.value,
            "amount": self.amount.to_dict(),
            "fee": self.fee.to_dict() if self.fee else None,
            "from_address": self.from_address,
            "to_address": self.to_address,
            "timestamp": self.timestamp.isoformat(),
            "status": self.status.value,
            "metadata": self.metadata,
        }


# =============================================================
# PROCESSING TYPES
# =============================================================

@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one raw payload. Never persisted."""
    valid: bool
    errors: tuple[str, ...] = ()

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def failed(cls, errors: List[str]) -> "ValidationResult":
        return cls(valid=False, errors=tuple(errors))


@dataclass(frozen=True)
class ProcessingContext:
    """What a processor needs besides the payload."""
    source_name: str
    wallet_addresses: frozenset[str] = frozenset()
    import_session_id: Optional[int] = None


@dataclass(frozen=True)
class ProcessFilters:
    """Process stage selection. created_after is inclusive, Unix seconds."""
    import_session_id: Optional[int] = None
    created_after: Optional[int] = None


# =============================================================
# STAGE RESULTS
# =============================================================

@dataclass(frozen=True)
class ImportResult:
    """Result of the import stage."""
    import_session_id: int
    imported: int
    skipped_duplicate: int


@dataclass
class ProcessResult:
    """Result of the process stage. errors is bounded; failed is not."""
    processed: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)
    transactions_saved: int = 0


@dataclass(frozen=True)
class ClearResult:
    """Rows removed by clear_source."""
    transactions: int
    raw_records: int
    sessions: int
