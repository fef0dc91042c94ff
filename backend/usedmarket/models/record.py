"""
Base class for persisted marketplace records.

WHAT: Flat key/value serialize/deserialize shared by every record type
WHY: Save files store one flat attribute set per record
HOW: pydantic model_dump -> flatten, unflatten -> model_validate
"""

from typing import Any, ClassVar, Dict, Type, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from ..utils.exceptions import CorruptRecordError
from ..utils.flatten import flatten, unflatten

R = TypeVar("R", bound="FlatRecord")


class FlatRecord(BaseModel):
    """Mutable record owned by exactly one queue."""

    model_config = ConfigDict(validate_assignment=False, extra="ignore")

    RECORD_TYPE: ClassVar[str] = "record"

    def serialize(self) -> Dict[str, Any]:
        """Flat mapping of dotted keys to scalars. Timestamps are simulated hours."""
        return flatten(self.model_dump(mode="json"))

    @classmethod
    def deserialize(cls: Type[R], flat: Dict[str, Any]) -> R:
        """
        Rebuild a record from its flat mapping.

        Missing optional fields take their defaults and unknown keys are
        ignored, so older and newer saves both load.

        Raises:
            CorruptRecordError: If required fields are missing or malformed
        """
        if not isinstance(flat, dict):
            raise CorruptRecordError(cls.RECORD_TYPE, f"expected mapping, got {type(flat).__name__}")
        record_id = flat.get("id")
        try:
            return cls.model_validate(unflatten(flat))
        except (PydanticValidationError, ValueError, TypeError) as e:
            raise CorruptRecordError(cls.RECORD_TYPE, str(e).splitlines()[0], record_id) from e
