"""
Transaction Repository.

Stores universal transactions. Ids are deterministic, so saving the
same transaction twice is a no-op.
"""

from typing import Iterable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ingestion.types import UniversalTransaction
from storage.models import TransactionRecord
from storage.repositories.base import BaseRepository


class TransactionRepository(BaseRepository[TransactionRecord]):
    """Repository for normalized transactions."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, TransactionRecord, "TransactionRepository")

    def save_many(
        self,
        transactions: Iterable[UniversalTransaction],
        source_type: str,
        provider_name: str,
        raw_data_id: Optional[int] = None,
        import_session_id: Optional[int] = None,
    ) -> int:
        """
        Insert transactions whose id is not stored yet.

        Returns:
            Number of rows inserted
        """
        inserted = 0
        for tx in transactions:
            if self._get_by_id(tx.id) is not None:
                continue
            self._add(
                TransactionRecord(
                    id=tx.id,
                    source_name=tx.source,
                    source_type=source_type,
                    provider_name=provider_name,
                    raw_data_id=raw_data_id,
                    import_session_id=import_session_id,
                    type=tx.type.value,
                    status=tx.status.value,
                    amount=str(tx.amount.amount),
                    currency=tx.amount.currency,
                    fee_amount=str(tx.fee.amount) if tx.fee else None,
                    fee_currency=tx.fee.currency if tx.fee else None,
                    from_address=tx.from_address,
                    to_address=tx.to_address,
                    timestamp=tx.timestamp,
                    tx_metadata=tx.metadata,
                ),
                tx.id,
            )
            inserted += 1
        return inserted

    def get(self, transaction_id: str) -> Optional[TransactionRecord]:
        return self._get_by_id(transaction_id)

    def list_by_source(self, source_name: str) -> List[TransactionRecord]:
        stmt = (
            select(TransactionRecord)
            .where(TransactionRecord.source_name == source_name)
            .order_by(TransactionRecord.timestamp, TransactionRecord.id)
        )
        return self._execute_query(stmt)

    def count_by_source(self, source_name: str) -> int:
        return self._count(TransactionRecord.source_name == source_name)

    def delete_by_source(self, source_name: str) -> int:
        stmt = delete(TransactionRecord).where(TransactionRecord.source_name == source_name)
        return self._execute_write(stmt, "delete_by_source")
