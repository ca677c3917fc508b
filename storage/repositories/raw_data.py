"""
Raw Data Repository.

============================================================
DATA LIFECYCLE
============================================================
- Payload and provenance are written once and never changed
- Only processing_status / processing_error / processed_at move
- Insert is idempotent on the natural key
  (source_type, source_name, provider_name, external_id)

============================================================
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, delete, select, update
from sqlalchemy.orm import Session

from ingestion.exceptions import DuplicateExternalIdError
from ingestion.types import SourcedRawData
from providers.models import SourceType
from storage.models import (
    PROCESSING_DONE,
    PROCESSING_FAILED,
    PROCESSING_PENDING,
    RawDataRecord,
)
from storage.repositories.base import BaseRepository


class RawDataRepository(BaseRepository[RawDataRecord]):
    """Repository for provenance-tagged raw payloads."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, RawDataRecord, "RawDataRepository")

    # =========================================================
    # CREATE OPERATIONS
    # =========================================================

    def insert(
        self,
        import_session_id: int,
        source_name: str,
        item: SourcedRawData,
        created_at: int,
    ) -> RawDataRecord:
        """
        Store one raw item.

        Raises:
            DuplicateExternalIdError: natural key already present
        """
        key = (item.source_type.value, source_name, item.provider_name, item.external_id)
        if self.exists(*key):
            raise DuplicateExternalIdError(key)

        entity = RawDataRecord(
            import_session_id=import_session_id,
            source_type=item.source_type.value,
            source_name=source_name,
            provider_name=item.provider_name,
            external_id=item.external_id,
            payload=item.payload,
            fetched_at=item.fetched_at,
            created_at=created_at,
            processing_status=PROCESSING_PENDING,
        )
        return self._add(entity, key)

    # =========================================================
    # READ OPERATIONS
    # =========================================================

    def exists(
        self,
        source_type: str,
        source_name: str,
        provider_name: str,
        external_id: str,
    ) -> bool:
        stmt = select(RawDataRecord.id).where(
            and_(
                RawDataRecord.source_type == source_type,
                RawDataRecord.source_name == source_name,
                RawDataRecord.provider_name == provider_name,
                RawDataRecord.external_id == external_id,
            )
        )
        return self._execute_scalar(stmt) is not None

    def get(self, record_id: int) -> Optional[RawDataRecord]:
        return self._get_by_id(record_id)

    def list_pending(
        self,
        source_name: str,
        source_type: SourceType,
        import_session_id: Optional[int] = None,
        created_after: Optional[int] = None,
    ) -> List[RawDataRecord]:
        """
        Raw records not yet processed, oldest first.

        Args:
            import_session_id: exact session match
            created_after: inclusive lower bound on created_at (Unix seconds)
        """
        criteria = [
            RawDataRecord.source_name == source_name,
            RawDataRecord.source_type == source_type.value,
            RawDataRecord.processing_status == PROCESSING_PENDING,
        ]
        if import_session_id is not None:
            criteria.append(RawDataRecord.import_session_id == import_session_id)
        if created_after is not None:
            criteria.append(RawDataRecord.created_at >= created_after)

        stmt = select(RawDataRecord).where(and_(*criteria)).order_by(RawDataRecord.id)
        return self._execute_query(stmt)

    def count_by_session(self, import_session_id: int) -> int:
        return self._count(RawDataRecord.import_session_id == import_session_id)

    def count_by_source(self, source_name: str, status: Optional[str] = None) -> int:
        criteria = [RawDataRecord.source_name == source_name]
        if status is not None:
            criteria.append(RawDataRecord.processing_status == status)
        return self._count(*criteria)

    # =========================================================
    # PROCESSING STATUS
    # =========================================================

    def mark_processed(self, entity: RawDataRecord, processed_at: datetime) -> None:
        entity.processing_status = PROCESSING_DONE
        entity.processing_error = None
        entity.processed_at = processed_at
        self._session.flush()

    def mark_failed(self, entity: RawDataRecord, error: str, processed_at: datetime) -> None:
        entity.processing_status = PROCESSING_FAILED
        entity.processing_error = error[:2000]
        entity.processed_at = processed_at
        self._session.flush()

    def reset_processing(self, source_name: str) -> int:
        """Return every record of a source to pending so it is processed again."""
        stmt = (
            update(RawDataRecord)
            .where(RawDataRecord.source_name == source_name)
            .values(
                processing_status=PROCESSING_PENDING,
                processing_error=None,
                processed_at=None,
            )
        )
        return self._execute_write(stmt, "reset_processing")

    # =========================================================
    # DELETE OPERATIONS
    # =========================================================

    def delete_by_source(self, source_name: str) -> int:
        stmt = delete(RawDataRecord).where(RawDataRecord.source_name == source_name)
        return self._execute_write(stmt, "delete_by_source")
