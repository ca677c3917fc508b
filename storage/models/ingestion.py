"""
Ingestion ORM Models.

============================================================
PURPOSE
============================================================
Persistent form of the ingestion pipeline:

- import_sessions: one row per import invocation
- raw_data: unmodified provider payloads with provenance
- transactions: normalized universal transactions

============================================================
RAW DATA NATURAL KEY
============================================================
(source_type, source_name, provider_name, external_id) is unique.
Re-importing an overlapping window inserts nothing new.

============================================================
PROCESSING STATUS
============================================================
pending   - imported, not yet processed
processed - transactions written
failed    - validation or transform failed; error kept in
            processing_error, not retried automatically

============================================================
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storage.models.base import Base, JSONType


PROCESSING_PENDING = "pending"
PROCESSING_DONE = "processed"
PROCESSING_FAILED = "failed"


class ImportSessionRecord(Base):
    """One import invocation and its outcome."""

    __tablename__ = "import_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    source_name: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
        comment="Blockchain or exchange name"
    )

    source_type: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        comment="exchange | blockchain"
    )

    params: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        default=dict,
        comment="Import parameters (address, since, until, csv_directories, provider_name)"
    )

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default="running",
        comment="running | completed | failed"
    )

    started_at: Mapped[datetime] = mapped_column(nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    imported_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    skipped_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    raw_records: Mapped[list["RawDataRecord"]] = relationship(back_populates="import_session")

    def __repr__(self) -> str:
        return (
            f"<ImportSessionRecord(id={self.id}, source={self.source_name}, "
            f"status={self.status})>"
        )


class RawDataRecord(Base):
    """Unmodified provider payload with provenance."""

    __tablename__ = "raw_data"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    import_session_id: Mapped[int] = mapped_column(
        ForeignKey("import_sessions.id"),
        nullable=False,
        index=True,
    )

    # =========================================================
    # PROVENANCE AND NATURAL KEY
    # =========================================================

    source_type: Mapped[str] = mapped_column(String(16), nullable=False)
    source_name: Mapped[str] = mapped_column(String(64), nullable=False)

    provider_name: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Provider that produced the payload; selects the processor"
    )

    external_id: Mapped[str] = mapped_column(
        String(256),
        nullable=False,
        comment="Provider-level identifier of the item (tx hash, ledger id)"
    )

    # =========================================================
    # PAYLOAD
    # =========================================================

    payload: Mapped[Any] = mapped_column(
        JSONType,
        nullable=False,
        comment="Raw provider payload, stored as received"
    )

    fetched_at: Mapped[datetime] = mapped_column(nullable=False)

    created_at: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,
        comment="Insert time, Unix seconds; process stage cursor"
    )

    # =========================================================
    # PROCESSING
    # =========================================================

    processing_status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=PROCESSING_PENDING,
    )

    processing_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    import_session: Mapped[ImportSessionRecord] = relationship(back_populates="raw_records")

    __table_args__ = (
        UniqueConstraint(
            "source_type", "source_name", "provider_name", "external_id",
            name="uq_raw_data_natural_key",
        ),
        Index("ix_raw_data_pending", "source_name", "processing_status"),
    )

    @property
    def natural_key(self) -> tuple[str, str, str, str]:
        return (self.source_type, self.source_name, self.provider_name, self.external_id)

    def __repr__(self) -> str:
        return (
            f"<RawDataRecord(id={self.id}, provider={self.provider_name}, "
            f"external_id={self.external_id}, status={self.processing_status})>"
        )


class TransactionRecord(Base):
    """A normalized universal transaction."""

    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(
        String(320),
        primary_key=True,
        comment="Deterministic id: provider, external id and position"
    )

    source_name: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    source_type: Mapped[str] = mapped_column(String(16), nullable=False)
    provider_name: Mapped[str] = mapped_column(String(64), nullable=False)

    raw_data_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("raw_data.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    import_session_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    type: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)

    # Decimal amounts kept as strings so no backend rounds them
    amount: Mapped[str] = mapped_column(String(80), nullable=False)
    currency: Mapped[str] = mapped_column(String(32), nullable=False)
    fee_amount: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    fee_currency: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    from_address: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    to_address: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    timestamp: Mapped[datetime] = mapped_column(nullable=False, index=True)

    # "metadata" is reserved on declarative classes
    tx_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSONType,
        nullable=False,
        default=dict,
    )

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return (
            f"<TransactionRecord(id={self.id}, type={self.type}, "
            f"amount={self.amount} {self.currency})>"
        )
