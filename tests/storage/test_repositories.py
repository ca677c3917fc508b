"""
Repository Tests.

Run against an in-memory SQLite database created from the ORM models.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from ingestion.exceptions import DuplicateExternalIdError
from ingestion.types import (
    ImportParams,
    Money,
    SessionStatus,
    SourcedRawData,
    TransactionType,
    UniversalTransaction,
)
from providers.models import SourceType
from storage.database import create_database_engine, transaction_scope
from storage.models import PROCESSING_DONE, PROCESSING_FAILED, PROCESSING_PENDING, RawDataRecord
from storage.repositories import (
    DuplicateRecordError,
    ImportSessionRepository,
    RawDataRepository,
    RecordNotFoundError,
    TransactionRepository,
)


NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def raw_item(external_id: str, provider_name: str = "etherscan") -> SourcedRawData:
    return SourcedRawData(
        payload={"hash": external_id},
        provider_name=provider_name,
        fetched_at=NOW,
        source_type=SourceType.BLOCKCHAIN,
        external_id=external_id,
    )


def transaction(tx_id: str, amount: str = "1.5") -> UniversalTransaction:
    return UniversalTransaction(
        id=tx_id,
        source="ethereum",
        type=TransactionType.DEPOSIT,
        amount=Money("ETH", Decimal(amount)),
        timestamp=NOW,
        fee=Money("ETH", Decimal("0.000021")),
        metadata={"hash": tx_id},
    )


@pytest.fixture
def session(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def import_session_id(session):
    record = ImportSessionRepository(session).create(
        "ethereum", SourceType.BLOCKCHAIN, ImportParams(address="0xaa"), NOW,
    )
    session.commit()
    return record.id


# =============================================================================
# IMPORT SESSIONS
# =============================================================================

class TestImportSessionRepository:

    def test_create_running(self, session, import_session_id):
        repo = ImportSessionRepository(session)

        domain = repo.to_domain(repo.get(import_session_id))

        assert domain.status == SessionStatus.RUNNING
        assert domain.source_type == SourceType.BLOCKCHAIN
        assert domain.params == ImportParams(address="0xaa")

    def test_complete(self, session, import_session_id):
        repo = ImportSessionRepository(session)

        repo.mark_completed(import_session_id, imported=5, skipped=2, completed_at=NOW)

        entity = repo.get(import_session_id)
        assert entity.status == "completed"
        assert (entity.imported_count, entity.skipped_count) == (5, 2)

    def test_fail(self, session, import_session_id):
        repo = ImportSessionRepository(session)

        repo.mark_failed(import_session_id, "boom", NOW, imported=1)

        entity = repo.get(import_session_id)
        assert entity.status == "failed"
        assert entity.error_message == "boom"
        assert entity.imported_count == 1

    def test_missing_session(self, session):
        with pytest.raises(RecordNotFoundError):
            ImportSessionRepository(session).mark_completed(42, 0, 0, NOW)


# =============================================================================
# RAW DATA
# =============================================================================

class TestRawDataRepository:

    def test_insert_and_duplicate(self, session, import_session_id):
        repo = RawDataRepository(session)
        repo.insert(import_session_id, "ethereum", raw_item("0x1"), created_at=100)

        with pytest.raises(DuplicateExternalIdError) as exc_info:
            repo.insert(import_session_id, "ethereum", raw_item("0x1"), created_at=101)

        assert exc_info.value.natural_key == ("blockchain", "ethereum", "etherscan", "0x1")
        assert repo.count_by_source("ethereum") == 1

    def test_racing_duplicate_rejected_by_database(self, session, import_session_id):
        """A row the pre-check missed still hits the unique constraint."""
        repo = RawDataRepository(session)
        repo.insert(import_session_id, "ethereum", raw_item("0x1"), created_at=100)
        clone = RawDataRecord(
            import_session_id=import_session_id,
            source_type="blockchain",
            source_name="ethereum",
            provider_name="etherscan",
            external_id="0x1",
            payload={},
            fetched_at=NOW,
            created_at=100,
            processing_status=PROCESSING_PENDING,
        )

        with pytest.raises(DuplicateRecordError):
            repo._add(clone, clone.natural_key)

    def test_same_external_id_from_other_provider(self, session, import_session_id):
        repo = RawDataRepository(session)
        repo.insert(import_session_id, "ethereum", raw_item("0x1"), created_at=100)
        repo.insert(import_session_id, "ethereum", raw_item("0x1", provider_name="blockscout"), created_at=100)

        assert repo.count_by_session(import_session_id) == 2

    def test_list_pending_filters(self, session, import_session_id):
        repo = RawDataRepository(session)
        first = repo.insert(import_session_id, "ethereum", raw_item("0x1"), created_at=100)
        second = repo.insert(import_session_id, "ethereum", raw_item("0x2"), created_at=200)
        third = repo.insert(import_session_id, "ethereum", raw_item("0x3"), created_at=300)
        repo.mark_processed(third, NOW)

        pending = repo.list_pending("ethereum", SourceType.BLOCKCHAIN)
        assert [r.id for r in pending] == [first.id, second.id]

        later = repo.list_pending("ethereum", SourceType.BLOCKCHAIN, created_after=200)
        assert [r.id for r in later] == [second.id]

        assert repo.list_pending("ethereum", SourceType.EXCHANGE) == []
        assert repo.list_pending("ethereum", SourceType.BLOCKCHAIN, import_session_id=import_session_id + 1) == []

    def test_status_transitions(self, session, import_session_id):
        repo = RawDataRepository(session)
        ok = repo.insert(import_session_id, "ethereum", raw_item("0x1"), created_at=100)
        bad = repo.insert(import_session_id, "ethereum", raw_item("0x2"), created_at=100)

        repo.mark_processed(ok, NOW)
        repo.mark_failed(bad, "hash: Field required", NOW)

        assert repo.count_by_source("ethereum", PROCESSING_DONE) == 1
        assert repo.count_by_source("ethereum", PROCESSING_FAILED) == 1
        assert bad.processing_error == "hash: Field required"

        assert repo.reset_processing("ethereum") == 2
        session.expire_all()
        assert repo.count_by_source("ethereum", PROCESSING_PENDING) == 2
        assert repo.get(bad.id).processing_error is None

    def test_delete_by_source(self, session, import_session_id):
        repo = RawDataRepository(session)
        repo.insert(import_session_id, "ethereum", raw_item("0x1"), created_at=100)

        assert repo.delete_by_source("ethereum") == 1
        assert repo.delete_by_source("ethereum") == 0


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TestTransactionRepository:

    def test_save_many_is_idempotent(self, session):
        repo = TransactionRepository(session)

        assert repo.save_many([transaction("a"), transaction("b")], "blockchain", "etherscan") == 2
        assert repo.save_many([transaction("b"), transaction("c")], "blockchain", "etherscan") == 1
        assert repo.count_by_source("ethereum") == 3

    def test_amounts_stored_exactly(self, session):
        repo = TransactionRepository(session)
        repo.save_many([transaction("a", amount="0.123456789012345678")], "blockchain", "etherscan")
        session.commit()

        stored = repo.get("a")

        assert Decimal(stored.amount) == Decimal("0.123456789012345678")
        assert stored.fee_amount == "0.000021"
        assert stored.fee_currency == "ETH"
        assert stored.tx_metadata == {"hash": "a"}

    def test_delete_by_source(self, session):
        repo = TransactionRepository(session)
        repo.save_many([transaction("a")], "blockchain", "etherscan")

        assert repo.delete_by_source("ethereum") == 1
        assert repo.list_by_source("ethereum") == []


# =============================================================================
# DATABASE
# =============================================================================

class TestTransactionScope:

    def test_rolls_back_on_error(self, session_factory):
        with pytest.raises(RuntimeError):
            with transaction_scope(session_factory) as session:
                ImportSessionRepository(session).create(
                    "ethereum", SourceType.BLOCKCHAIN, ImportParams(address="0xaa"), NOW,
                )
                raise RuntimeError("abort")

        with session_factory() as session:
            assert ImportSessionRepository(session).list_by_source("ethereum") == []

    def test_commits_on_success(self, session_factory):
        with transaction_scope(session_factory) as session:
            ImportSessionRepository(session).create(
                "ethereum", SourceType.BLOCKCHAIN, ImportParams(address="0xaa"), NOW,
            )

        with session_factory() as session:
            assert len(ImportSessionRepository(session).list_by_source("ethereum")) == 1


def test_in_memory_engine():
    engine = create_database_engine("sqlite://")
    try:
        assert engine.url.drivername == "sqlite"
    finally:
        engine.dispose()
