"""
Ingestion - Base Processor.

============================================================
PURPOSE
============================================================
One processor per provider payload shape. A processor turns one raw
payload into zero or more universal transactions in two steps:

1. validate(payload) -> ValidationResult
2. transform(payload, context) -> list[UniversalTransaction]

transform() is only legal on a payload that validates; calling it on
anything else raises ProcessorContractError.

============================================================
DESIGN PRINCIPLES
============================================================
- Payload schema is a pydantic model per provider
- Validation errors are "<field path>: <message>", in schema order
- No I/O, no persistence
- Deterministic transaction ids

============================================================
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, ClassVar, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ingestion.exceptions import ProcessorContractError
from ingestion.types import (
    Money,
    ProcessingContext,
    UniversalTransaction,
    ValidationResult,
)


M = TypeVar("M", bound=BaseModel)


def format_validation_errors(error: PydanticValidationError) -> List[str]:
    """Flatten pydantic errors into "<field path>: <message>" strings."""
    messages = []
    for item in error.errors():
        path = ".".join(str(part) for part in item.get("loc", ())) or "payload"
        messages.append(f"{path}: {item.get('msg', 'invalid value')}")
    return messages


def non_zero(currency: str, amount: Decimal) -> Optional[Money]:
    return Money(currency, amount) if amount else None


class BaseProcessor(ABC, Generic[M]):
    """
    Abstract base class for payload processors.

    Subclasses set provider_name and schema and implement _transform().
    """

    provider_name: ClassVar[str] = ""
    schema: ClassVar[Type[BaseModel]]

    def validate(self, payload: Any) -> ValidationResult:
        try:
            self.schema.model_validate(payload)
        except PydanticValidationError as e:
            return ValidationResult.failed(format_validation_errors(e))
        return ValidationResult.ok()

    def transform(self, payload: Any, context: ProcessingContext) -> List[UniversalTransaction]:
        """
        Normalize one valid payload.

        Raises:
            ProcessorContractError: payload does not validate
        """
        try:
            model = self.schema.model_validate(payload)
        except PydanticValidationError as e:
            raise ProcessorContractError(
                f"{self.provider_name}: transform called with invalid payload: "
                + "; ".join(format_validation_errors(e)),
                source_name=context.source_name,
            ) from e
        return self._transform(model, context)

    @abstractmethod
    def _transform(self, model: M, context: ProcessingContext) -> List[UniversalTransaction]:
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(provider={self.provider_name})"
