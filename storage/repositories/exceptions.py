"""
Repository Layer Exceptions.

SQLAlchemy errors never leave a repository as-is: they are translated
into one of the classes below, tagged with the repository and the
operation that failed.

DuplicateRecordError only surfaces when the database catches a natural
key collision the repository did not see first (two writers racing on
the same raw item). Everything else is a real storage failure.
"""

from typing import Any, Optional


class RepositoryException(Exception):
    """Base exception for all repository operations."""

    def __init__(
        self,
        message: str,
        repository_name: str,
        operation: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(f"[{repository_name}] {operation}: {message}")
        self.message = message
        self.repository_name = repository_name
        self.operation = operation
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "repository_name": self.repository_name,
            "operation": self.operation,
            "message": self.message,
            "details": self.details,
        }


class RecordNotFoundError(RepositoryException):
    """Status transition on a row that does not exist."""

    def __init__(self, repository_name: str, record_id: Any) -> None:
        super().__init__(
            f"no row with id={record_id}",
            repository_name,
            "get",
            {"id": str(record_id)},
        )
        self.record_id = record_id


class DuplicateRecordError(RepositoryException):
    """Unique constraint violated on flush."""

    def __init__(self, repository_name: str, key: Any) -> None:
        super().__init__(f"duplicate key {key}", repository_name, "insert", {"key": str(key)})
        self.key = key


class DatabaseConnectionError(RepositoryException):
    """Database unreachable, locked or connection dropped."""


class QueryError(RepositoryException):
    """Any other failure while executing a statement."""
