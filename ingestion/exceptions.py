"""
Ingestion Exceptions.

Per-record problems (ValidationError, ProcessorContractError raised from
a transform) are caught by the process stage and reported as data.
SessionNotFoundError and InvalidImportParamsError are hard failures of
the invoking stage. DuplicateExternalIdError marks an already-imported
raw item and is counted as a skip.
"""

from typing import Any, Optional

from ingestion.types import ValidationResult


class IngestionError(Exception):
    """Base exception for the ingestion pipeline."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.source_name = source_name
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "source_name": self.source_name,
            "context": self.context,
        }

    def __str__(self) -> str:
        if self.source_name:
            return f"{self.message} [source={self.source_name}]"
        return self.message


class ValidationError(IngestionError):
    """A raw payload failed its processor's schema."""

    def __init__(
        self,
        provider_name: str,
        result: ValidationResult,
        source_name: Optional[str] = None,
    ) -> None:
        summary = "; ".join(result.errors) or "invalid payload"
        super().__init__(f"{provider_name} payload invalid: {summary}", source_name)
        self.provider_name = provider_name
        self.result = result

    @property
    def errors(self) -> tuple[str, ...]:
        return self.result.errors


class ProcessorContractError(IngestionError):
    """transform() called with a payload that does not validate."""


class DuplicateExternalIdError(IngestionError):
    """Raw item with this natural key is already stored."""

    def __init__(self, natural_key: tuple[str, str, str, str]) -> None:
        super().__init__(f"Raw item already imported: {natural_key}", natural_key[1])
        self.natural_key = natural_key


class SessionNotFoundError(IngestionError):
    """Process filter names an import session that does not exist."""

    def __init__(self, session_id: int) -> None:
        super().__init__(f"Import session {session_id} not found")
        self.session_id = session_id


class InvalidImportParamsError(IngestionError):
    """Import parameters unusable for the chosen importer."""
