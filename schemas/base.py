"""
Base schema and parse helpers shared by every entity schema.
"""

import uuid
from typing import Any, Dict, TypeVar

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError as PydanticValidationError

from core.exceptions import ValidationError
from core.results import Result, make_error_result, make_success_result

T = TypeVar("T")


class StorageModel(BaseModel):
    """
    Immutable entity schema with a JSON-compatible storage form.

    ``from_storage(x.to_storage()) == x`` holds for every subclass.
    """

    model_config = ConfigDict(frozen=True)

    def to_storage(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_storage(cls, data: Dict[str, Any]):
        return cls.model_validate(data)


def describe_validation_error(exc: PydanticValidationError) -> str:
    """Flatten pydantic errors into one readable line."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)


def parse_with_adapter(adapter: TypeAdapter, data: Any, description: str) -> Result[Any]:
    """
    Validate ``data`` with ``adapter``. Invalid input becomes an error result,
    never an exception.
    """
    try:
        value = adapter.validate_python(data)
    except PydanticValidationError as e:
        return make_error_result(ValidationError(
            f"Invalid {description}: {describe_validation_error(e)}",
            context={"field_name": description, "field_value": repr(data)[:200]}
        ))
    return make_success_result(value)


def make_uuid() -> str:
    return str(uuid.uuid4())
