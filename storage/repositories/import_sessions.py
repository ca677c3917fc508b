"""
Import Session Repository.

Sessions are created once per import invocation and only change
through status transitions: running -> completed | failed.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ingestion.types import ImportParams, ImportSession, SessionStatus
from providers.models import SourceType
from storage.models import ImportSessionRecord
from storage.repositories.base import BaseRepository


class ImportSessionRepository(BaseRepository[ImportSessionRecord]):
    """Repository for import sessions."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, ImportSessionRecord, "ImportSessionRepository")

    # =========================================================
    # CREATE OPERATIONS
    # =========================================================

    def create(
        self,
        source_name: str,
        source_type: SourceType,
        params: ImportParams,
        started_at: datetime,
    ) -> ImportSessionRecord:
        entity = ImportSessionRecord(
            source_name=source_name,
            source_type=source_type.value,
            params=params.to_dict(),
            status=SessionStatus.RUNNING.value,
            started_at=started_at,
        )
        return self._add(entity)

    # =========================================================
    # READ OPERATIONS
    # =========================================================

    def get(self, session_id: int) -> Optional[ImportSessionRecord]:
        return self._get_by_id(session_id)

    def list_by_source(self, source_name: str) -> List[ImportSessionRecord]:
        stmt = (
            select(ImportSessionRecord)
            .where(ImportSessionRecord.source_name == source_name)
            .order_by(ImportSessionRecord.id)
        )
        return self._execute_query(stmt)

    # =========================================================
    # STATUS TRANSITIONS
    # =========================================================

    def mark_completed(
        self,
        session_id: int,
        imported: int,
        skipped: int,
        completed_at: datetime,
    ) -> ImportSessionRecord:
        entity = self._get_by_id_or_raise(session_id)
        entity.status = SessionStatus.COMPLETED.value
        entity.imported_count = imported
        entity.skipped_count = skipped
        entity.completed_at = completed_at
        self._session.flush()
        return entity

    def mark_failed(
        self,
        session_id: int,
        error_message: str,
        completed_at: datetime,
        imported: int = 0,
        skipped: int = 0,
    ) -> ImportSessionRecord:
        entity = self._get_by_id_or_raise(session_id)
        entity.status = SessionStatus.FAILED.value
        entity.error_message = error_message[:2000]
        entity.imported_count = imported
        entity.skipped_count = skipped
        entity.completed_at = completed_at
        self._session.flush()
        return entity

    # =========================================================
    # DELETE OPERATIONS
    # =========================================================

    def delete_by_source(self, source_name: str) -> int:
        stmt = delete(ImportSessionRecord).where(ImportSessionRecord.source_name == source_name)
        return self._execute_write(stmt, "delete_by_source")

    # =========================================================
    # MAPPING
    # =========================================================

    @staticmethod
    def to_domain(entity: ImportSessionRecord) -> ImportSession:
        return ImportSession(
            id=entity.id,
            source_name=entity.source_name,
            source_type=SourceType(entity.source_type),
            params=ImportParams.from_dict(entity.params or {}),
            started_at=entity.started_at,
            status=SessionStatus(entity.status),
            completed_at=entity.completed_at,
            imported_count=entity.imported_count,
            skipped_count=entity.skipped_count,
            error_message=entity.error_message,
        )
