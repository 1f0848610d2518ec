"""
Record Validators

Collect-all validation of decoded records. Structural problems (choice
conflicts, cardinality) already stop decoding; these checks cover the
primitive lexical rules and report preserved unknown content as warnings.
"""

from dataclasses import dataclass, field
from typing import Any

from fhir_datatypes.codec.choice import ChoiceValue
from fhir_datatypes.exceptions import FHIRModelError
from fhir_datatypes.model.record import Record
from fhir_datatypes.schema.registry import SchemaRegistry, get_registry
from fhir_datatypes.serialization.json_codec import DecodeOptions, document_type, from_dict


@dataclass
class ValidationError:
    """A single validation error."""

    path: str
    message: str
    severity: str = "error"  # error, warning, information
    code: str = "invalid"


@dataclass
class ValidationResult:
    """Result of record validation."""

    is_valid: bool
    errors: list[ValidationError] = field(default_factory=list)
    warnings: list[ValidationError] = field(default_factory=list)
    record: Record | None = None

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.is_valid,
            "errors": [
                {"path": e.path, "message": e.message, "code": e.code}
                for e in self.errors
            ],
            "warnings": [
                {"path": w.path, "message": w.message, "code": w.code}
                for w in self.warnings
            ],
        }


def validate_record(record: Record) -> ValidationResult:
    """Validate primitive values throughout a record tree."""
    errors: list[ValidationError] = []
    warnings: list[ValidationError] = []

    _validate(record, record.definition.path, errors, warnings)

    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
        record=record,
    )


def validate_document(
    type_name: str,
    data: dict[str, Any],
    options: DecodeOptions | None = None,
    registry: SchemaRegistry | None = None,
) -> ValidationResult:
    """Decode a generic tree and validate it, never raising for document errors.

    A matching ``resourceType`` key is accepted and dropped.
    """
    try:
        type_name, data = document_type(type_name, data)
        record = from_dict(type_name, data, options, registry or get_registry())
    except FHIRModelError as e:
        return ValidationResult(
            is_valid=False,
            errors=[
                ValidationError(
                    path=e.path or type_name,
                    message=e.message,
                    code=e.error_type,
                )
            ],
        )

    return validate_record(record)


def _validate(
    record: Record,
    location: str,
    errors: list[ValidationError],
    warnings: list[ValidationError],
) -> None:
    registry = record.schema

    for key in record.unknown_elements:
        warnings.append(
            ValidationError(
                path=f"{location}.{key}",
                message=f"Unknown element '{key}' was preserved",
                severity="warning",
                code="unknown-element",
            )
        )

    for element, value in record.populated():
        if isinstance(value, ChoiceValue):
            item_location = f"{location}.{value.key(element.name)}"
            if value.opaque:
                warnings.append(
                    ValidationError(
                        path=item_location,
                        message=f"Unrecognized variant '{value.type_name}' was preserved",
                        severity="warning",
                        code="unknown-variant",
                    )
                )
                continue
            _validate_value(registry, value.type_name, value.value, item_location, errors, warnings)
            _validate_companion(value.element, f"{location}._{value.key(element.name)}", errors, warnings)
            continue

        if isinstance(value, list):
            for index, item in enumerate(value):
                _validate_value(
                    registry,
                    element.type_name,
                    item,
                    f"{location}.{element.name}[{index}]",
                    errors,
                    warnings,
                )
        else:
            _validate_value(
                registry, element.type_name, value, f"{location}.{element.name}", errors, warnings
            )

    for key, companion in record.companions.items():
        _validate_companion(companion, f"{location}._{key}", errors, warnings)


def _validate_companion(
    companion: Any,
    location: str,
    errors: list[ValidationError],
    warnings: list[ValidationError],
) -> None:
    """Check the id/extension element attached to a primitive value."""
    if isinstance(companion, list):
        for index, item in enumerate(companion):
            if isinstance(item, Record):
                _validate(item, f"{location}[{index}]", errors, warnings)
    elif isinstance(companion, Record):
        _validate(companion, location, errors, warnings)


def _validate_value(
    registry: SchemaRegistry,
    type_name: str,
    value: Any,
    location: str,
    errors: list[ValidationError],
    warnings: list[ValidationError],
) -> None:
    if value is None:
        return

    if isinstance(value, Record):
        _validate(value, location, errors, warnings)
        return

    if not registry.is_primitive(type_name):
        errors.append(
            ValidationError(
                path=location,
                message=f"{type_name} must be an object",
                code="structure",
            )
        )
        return

    problem = registry.primitive(type_name).check(value)
    if problem:
        errors.append(ValidationError(path=location, message=problem, code="value"))
