"""
Transaction Ingestion Service.

============================================================
PURPOSE
============================================================
Runs the two pipeline stages for one source:

1. import   - importer -> provenance-tagged raw data -> raw_data table
2. process  - pending raw data -> processor dispatch -> transactions table

Both stages are resumable: import skips items whose natural key is
already stored, process only reads records still pending.

============================================================
ERROR MODEL
============================================================
- Unknown source / provider, invalid params, missing session: raised
- Importer failure: session marked failed, then re-raised
- Invalid payload or transform failure: record marked failed,
  counted in the ProcessResult, processing continues

============================================================
USAGE
============================================================
```python
service = TransactionIngestionService(session_factory, importers, processors)

imported = await service.import_from_source("ethereum", SourceType.BLOCKCHAIN, params)
processed = await service.process_raw_data_to_transactions(
    "ethereum",
    SourceType.BLOCKCHAIN,
    ProcessFilters(import_session_id=imported.import_session_id),
)
```

============================================================
"""

import logging
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from core.clock import ClockProtocol, SystemClock
from ingestion.config import IngestionServiceConfig
from ingestion.exceptions import (
    DuplicateExternalIdError,
    SessionNotFoundError,
    ValidationError,
)
from ingestion.importers.factory import ImporterFactory
from ingestion.processors.factory import ProcessorFactory
from ingestion.types import (
    ClearResult,
    ImportParams,
    ImportResult,
    ProcessFilters,
    ProcessingContext,
    ProcessResult,
    SourcedRawData,
)
from providers.models import SourceType
from storage.models import RawDataRecord
from storage.repositories.import_sessions import ImportSessionRepository
from storage.repositories.raw_data import RawDataRepository
from storage.repositories.transactions import TransactionRepository


class TransactionIngestionService:
    """Import and process transaction history per source."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        importer_factory: ImporterFactory,
        processor_factory: ProcessorFactory,
        config: Optional[IngestionServiceConfig] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        """
        Args:
            session_factory: Factory to create database sessions
            importer_factory: Resolves importers per source
            processor_factory: Resolves processors per provider
            config: Service configuration
            clock: Time source for timestamps
        """
        self._session_factory = session_factory
        self._importers = importer_factory
        self._processors = processor_factory
        self._config = config or IngestionServiceConfig()
        self._clock = clock or SystemClock()
        self._logger = logging.getLogger("ingestion_service")

    # =========================================================
    # IMPORT STAGE
    # =========================================================

    async def import_from_source(
        self,
        source_name: str,
        source_type: SourceType,
        params: ImportParams,
    ) -> ImportResult:
        """
        Fetch raw data for a source and store what is not stored yet.

        Raises:
            UnknownProviderError: no importer for the source
            InvalidImportParamsError: params rejected before anything is written
        """
        importer = self._importers.create(source_type, source_name, params)

        with self._session_factory() as session:
            record = ImportSessionRepository(session).create(
                source_name, source_type, params, self._clock.now()
            )
            session.commit()
            session_id = record.id

        self._logger.info(f"[{source_name}] import session {session_id} started")

        imported = 0
        skipped = 0
        try:
            async for batch in importer.import_batches(params):
                batch_imported, batch_skipped = self._store_batch(session_id, source_name, batch)
                imported += batch_imported
                skipped += batch_skipped
        except Exception as e:
            self._logger.error(f"[{source_name}] import session {session_id} failed: {e}")
            with self._session_factory() as session:
                ImportSessionRepository(session).mark_failed(
                    session_id,
                    str(e) or type(e).__name__,
                    self._clock.now(),
                    imported=imported,
                    skipped=skipped,
                )
                session.commit()
            raise

        with self._session_factory() as session:
            ImportSessionRepository(session).mark_completed(
                session_id, imported, skipped, self._clock.now()
            )
            session.commit()

        self._logger.info(
            f"[{source_name}] import session {session_id} completed: "
            f"{imported} imported, {skipped} already present"
        )
        return ImportResult(
            import_session_id=session_id,
            imported=imported,
            skipped_duplicate=skipped,
        )

    def _store_batch(
        self,
        session_id: int,
        source_name: str,
        batch: List[SourcedRawData],
    ) -> Tuple[int, int]:
        imported = 0
        skipped = 0
        with self._session_factory() as session:
            raw = RawDataRepository(session)
            for item in batch:
                try:
                    raw.insert(session_id, source_name, item, self._clock.epoch_seconds())
                    imported += 1
                except DuplicateExternalIdError:
                    skipped += 1
            session.commit()
        return imported, skipped

    # =========================================================
    # PROCESS STAGE
    # =========================================================

    async def process_raw_data_to_transactions(
        self,
        source_name: str,
        source_type: SourceType,
        filters: Optional[ProcessFilters] = None,
    ) -> ProcessResult:
        """
        Turn pending raw records into transactions.

        Raises:
            SessionNotFoundError: filters name a session that does not exist
            UnknownProviderError: a pending record has no processor; nothing written
        """
        filters = filters or ProcessFilters()
        result = ProcessResult()

        with self._session_factory() as session:
            sessions = ImportSessionRepository(session)
            raw = RawDataRepository(session)
            transactions = TransactionRepository(session)

            if filters.import_session_id is not None and sessions.get(filters.import_session_id) is None:
                raise SessionNotFoundError(filters.import_session_id)

            pending = raw.list_pending(
                source_name,
                source_type,
                import_session_id=filters.import_session_id,
                created_after=filters.created_after,
            )
            if not pending:
                self._logger.info(f"[{source_name}] nothing to process")
                return result

            # Resolve every processor up front: an unknown provider must fail before any write
            for provider_name in sorted({record.provider_name for record in pending}):
                self._processors.create(provider_name)

            contexts: Dict[Optional[int], ProcessingContext] = {}
            for record in pending:
                context = self._context_for(record, sessions, contexts)
                try:
                    produced = self._processors.dispatch(record.provider_name, record.payload, context)
                except ValidationError as e:
                    self._record_failure(session, raw, record, "; ".join(e.errors), result)
                    continue
                except Exception as e:
                    self._record_failure(session, raw, record, f"{type(e).__name__}: {e}", result)
                    continue

                saved = transactions.save_many(
                    produced,
                    source_type=record.source_type,
                    provider_name=record.provider_name,
                    raw_data_id=record.id,
                    import_session_id=record.import_session_id,
                )
                raw.mark_processed(record, self._clock.now())
                session.commit()
                result.processed += 1
                result.transactions_saved += saved

        self._logger.info(
            f"[{source_name}] processed {result.processed} raw records "
            f"({result.failed} failed, {result.transactions_saved} transactions saved)"
        )
        return result

    def _context_for(
        self,
        record: RawDataRecord,
        sessions: ImportSessionRepository,
        cache: Dict[Optional[int], ProcessingContext],
    ) -> ProcessingContext:
        session_id = record.import_session_id
        context = cache.get(session_id)
        if context is None:
            wallets: frozenset[str] = frozenset()
            entity = sessions.get(session_id) if session_id is not None else None
            address = (entity.params or {}).get("address") if entity is not None else None
            if address:
                wallets = frozenset({address.lower()})
            context = ProcessingContext(
                source_name=record.source_name,
                wallet_addresses=wallets,
                import_session_id=session_id,
            )
            cache[session_id] = context
        return context

    def _record_failure(
        self,
        session: Session,
        raw: RawDataRepository,
        record: RawDataRecord,
        message: str,
        result: ProcessResult,
    ) -> None:
        error = f"raw record {record.id} ({record.provider_name}/{record.external_id}): {message}"
        self._logger.warning(f"[{record.source_name}] {error}")
        raw.mark_failed(record, message, self._clock.now())
        session.commit()
        result.failed += 1
        if len(result.errors) < self._config.max_error_messages:
            result.errors.append(error)

    # =========================================================
    # COMBINED / MAINTENANCE
    # =========================================================

    async def import_and_process(
        self,
        source_name: str,
        source_type: SourceType,
        params: ImportParams,
    ) -> Tuple[ImportResult, ProcessResult]:
        """Import, then process the records of that import session."""
        imported = await self.import_from_source(source_name, source_type, params)
        processed = await self.process_raw_data_to_transactions(
            source_name,
            source_type,
            ProcessFilters(import_session_id=imported.import_session_id),
        )
        return imported, processed

    def clear_source(self, source_name: str, include_raw: bool = False) -> ClearResult:
        """
        Delete a source's transactions.

        With include_raw, raw records and import sessions go too; without
        it, raw records return to pending so they can be processed again.
        """
        with self._session_factory() as session:
            transactions = TransactionRepository(session).delete_by_source(source_name)
            raw = RawDataRepository(session)
            raw_records = 0
            sessions = 0
            if include_raw:
                raw_records = raw.delete_by_source(source_name)
                sessions = ImportSessionRepository(session).delete_by_source(source_name)
            else:
                raw.reset_processing(source_name)
            session.commit()

        self._logger.info(
            f"[{source_name}] cleared {transactions} transactions, "
            f"{raw_records} raw records, {sessions} sessions"
        )
        return ClearResult(transactions=transactions, raw_records=raw_records, sessions=sessions)
