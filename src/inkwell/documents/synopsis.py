"""Synopsis field catalog and schema validation for field updates."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping

from jsonschema import Draft7Validator, ValidationError

from .model import Synopsis


class UnknownSynopsisFieldError(KeyError):
    """Raised when an update names a field outside the catalog."""

    def __init__(self, field_key: str) -> None:
        super().__init__(field_key)
        self.field_key = field_key

    def __str__(self) -> str:
        return f"Unknown synopsis field '{self.field_key}'."


@dataclass(slots=True, frozen=True)
class SynopsisFieldDefinition:
    key: str
    label: str
    placeholder: str


class SynopsisFieldCatalog:
    """Ordered catalog of editable synopsis fields."""

    FIELDS: tuple[SynopsisFieldDefinition, ...] = (
        SynopsisFieldDefinition("premise", "Premise", "What is the core premise?"),
        SynopsisFieldDefinition("protagonist", "Protagonist", "Who is the main character?"),
        SynopsisFieldDefinition(
            "antagonist", "Antagonist (optional)", "Who or what opposes the protagonist?"
        ),
        SynopsisFieldDefinition("central_conflict", "Central Conflict", "What stands in the way?"),
        SynopsisFieldDefinition("stakes", "Stakes", "What happens if they fail?"),
        SynopsisFieldDefinition("arc", "Arc", "How does the protagonist change?"),
        SynopsisFieldDefinition("setting", "Setting", "Where and when does the story unfold?"),
        SynopsisFieldDefinition("ending", "Ending (optional)", "How does it resolve?"),
    )

    @classmethod
    def keys(cls) -> tuple[str, ...]:
        return tuple(definition.key for definition in cls.FIELDS)

    @classmethod
    def get(cls, field_key: str) -> SynopsisFieldDefinition | None:
        for definition in cls.FIELDS:
            if definition.key == field_key:
                return definition
        return None

    @classmethod
    def get_value(cls, synopsis: Synopsis, field_key: str) -> str:
        if field_key not in cls.keys():
            raise UnknownSynopsisFieldError(field_key)
        return getattr(synopsis, field_key) or ""

    @classmethod
    def set_value(cls, synopsis: Synopsis, field_key: str, value: str) -> None:
        validate_field_update({"field_key": field_key, "value": value})
        setattr(synopsis, field_key, value)


FIELD_UPDATE_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "field_key": {"type": "string", "enum": list(SynopsisFieldCatalog.keys())},
        "value": {"type": "string"},
    },
    "required": ["field_key", "value"],
    "additionalProperties": False,
}

_FIELD_UPDATE_VALIDATOR = Draft7Validator(FIELD_UPDATE_SCHEMA)


def validate_field_update(payload: Mapping[str, Any]) -> None:
    """Validate a ``{field_key, value}`` payload against the catalog schema."""

    try:
        _FIELD_UPDATE_VALIDATOR.validate(dict(payload))
    except ValidationError as error:
        if list(error.path) == ["field_key"] and error.validator == "enum":
            raise UnknownSynopsisFieldError(str(payload.get("field_key"))) from error
        raise ValueError(f"Invalid synopsis field update: {error.message}") from error


__all__ = [
    "FIELD_UPDATE_SCHEMA",
    "SynopsisFieldCatalog",
    "SynopsisFieldDefinition",
    "UnknownSynopsisFieldError",
    "validate_field_update",
]
