"""Declarative input schemas and their validator.

A schema is a static description (field name -> type constraint), not a
runtime-generated model. The same description is used to validate
incoming arguments and to publish a JSON Schema in `tools/list`.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class FieldType(str, Enum):
    """Supported argument types."""

    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"

    def accepts(self, value: Any) -> bool:
        # bool is a subclass of int; keep the two apart
        match self:
            case FieldType.STRING:
                return isinstance(value, str)
            case FieldType.INTEGER:
                return isinstance(value, int) and not isinstance(value, bool)
            case FieldType.NUMBER:
                return isinstance(value, int | float) and not isinstance(value, bool)
            case FieldType.BOOLEAN:
                return isinstance(value, bool)
        return False


@dataclass(frozen=True)
class FieldSpec:
    """Constraint for a single named argument."""

    name: str
    type: FieldType = FieldType.STRING
    description: str | None = None
    required: bool = True

    def to_json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": self.type.value}
        if self.description:
            schema["description"] = self.description
        return schema


@dataclass
class ValidationResult:
    """Outcome of validating arguments against a schema.

    Attributes:
        values: Accepted arguments (declared fields only)
        errors: One human-readable message per violation
    """

    values: dict[str, Any] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class InputSchema:
    """Ordered set of field constraints for a capability's arguments."""

    fields: tuple[FieldSpec, ...] = ()

    def __post_init__(self) -> None:
        names = [spec.name for spec in self.fields]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate field names in schema: {names}")

    @classmethod
    def strings(cls, *names: str) -> InputSchema:
        """Schema of required string fields, in the given order."""
        return cls(tuple(FieldSpec(name) for name in names))

    @property
    def is_empty(self) -> bool:
        return not self.fields

    def validate(self, arguments: Mapping[str, Any] | None) -> ValidationResult:
        """Check arguments against the declared fields.

        Undeclared keys are dropped from the accepted values.

        Args:
            arguments: Incoming arguments, None meaning no arguments

        Returns:
            ValidationResult with accepted values and any errors
        """
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, Mapping):
            return ValidationResult(errors=["arguments must be an object"])

        result = ValidationResult()
        for spec in self.fields:
            if spec.name not in arguments or arguments[spec.name] is None:
                if spec.required:
                    result.errors.append(f"{spec.name}: required")
                continue
            value = arguments[spec.name]
            if not spec.type.accepts(value):
                result.errors.append(
                    f"{spec.name}: expected {spec.type.value}, got {type(value).__name__}"
                )
                continue
            result.values[spec.name] = value
        return result

    def to_json_schema(self) -> dict[str, Any]:
        """JSON Schema object published in capability listings."""
        schema: dict[str, Any] = {
            "type": "object",
            "properties": {spec.name: spec.to_json_schema() for spec in self.fields},
        }
        required = [spec.name for spec in self.fields if spec.required]
        if required:
            schema["required"] = required
        return schema
