"""
Base Repository Class.

============================================================
PURPOSE
============================================================
Shared plumbing for the ingestion repositories:
- the injected Session and the model each repository manages
- translation of SQLAlchemy errors into repository exceptions
- small query helpers (get, count, list, bulk write)

Repositories flush but never commit. The ingestion service owns
transaction boundaries.

============================================================
"""

import logging
from abc import ABC
from contextlib import contextmanager
from typing import Any, Generic, Iterator, List, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from storage.models.base import Base
from storage.repositories.exceptions import (
    DatabaseConnectionError,
    DuplicateRecordError,
    QueryError,
    RecordNotFoundError,
)


T = TypeVar("T", bound=Base)


class BaseRepository(ABC, Generic[T]):
    """
    Abstract base class for repositories.

    Subclasses pass their model and a name used in logs and errors:

        class RawDataRepository(BaseRepository[RawDataRecord]):
            def __init__(self, session: Session):
                super().__init__(session, RawDataRecord, "RawDataRepository")
    """

    def __init__(self, session: Session, model_class: Type[T], repository_name: str) -> None:
        self._session = session
        self._model_class = model_class
        self._repository_name = repository_name
        self._logger = logging.getLogger(f"repository.{repository_name}")

    # =========================================================
    # ERROR TRANSLATION
    # =========================================================

    @contextmanager
    def _translate_errors(self, operation: str, key: Any = None) -> Iterator[None]:
        """
        Re-raise SQLAlchemy errors as repository exceptions.

        Raises:
            DuplicateRecordError: unique constraint hit (key is reported)
            DatabaseConnectionError: connection or locking failure
            QueryError: anything else
        """
        try:
            yield
        except IntegrityError as e:
            if "unique" in str(e).lower() or "duplicate" in str(e).lower():
                self._logger.debug(f"[{self._repository_name}] duplicate key on {operation}: {key}")
                raise DuplicateRecordError(self._repository_name, key) from e
            self._logger.error(f"[{self._repository_name}] integrity error on {operation}: {e}")
            raise QueryError(str(e), self._repository_name, operation) from e
        except OperationalError as e:
            self._logger.error(f"[{self._repository_name}] database unavailable on {operation}: {e}")
            raise DatabaseConnectionError(str(e), self._repository_name, operation) from e
        except SQLAlchemyError as e:
            self._logger.error(f"[{self._repository_name}] {operation} failed: {e}", exc_info=True)
            raise QueryError(str(e), self._repository_name, operation) from e

    # =========================================================
    # HELPERS
    # =========================================================

    def _add(self, entity: T, key: Any = None) -> T:
        """Add and flush, so constraint violations surface here."""
        with self._translate_errors("insert", key):
            self._session.add(entity)
            self._session.flush()
        return entity

    def _get_by_id(self, record_id: Any) -> Optional[T]:
        with self._translate_errors("get", record_id):
            return self._session.get(self._model_class, record_id)

    def _get_by_id_or_raise(self, record_id: Any) -> T:
        entity = self._get_by_id(record_id)
        if entity is None:
            raise RecordNotFoundError(self._repository_name, record_id)
        return entity

    def _count(self, *criteria: Any) -> int:
        stmt = select(func.count()).select_from(self._model_class)
        if criteria:
            stmt = stmt.where(*criteria)
        with self._translate_errors("count"):
            return self._session.execute(stmt).scalar() or 0

    def _execute_query(self, stmt: Any) -> List[T]:
        with self._translate_errors("query"):
            return list(self._session.execute(stmt).scalars().all())

    def _execute_scalar(self, stmt: Any) -> Optional[Any]:
        with self._translate_errors("query"):
            return self._session.execute(stmt).scalar_one_or_none()

    def _execute_write(self, stmt: Any, operation: str) -> int:
        """Run a bulk update/delete and return the affected row count."""
        with self._translate_errors(operation):
            return self._session.execute(stmt).rowcount or 0
