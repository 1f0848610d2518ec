"""
Model Errors

Error taxonomy raised while building, decoding or encoding FHIR records.
Every error carries the element path it was raised for (for example
``Dosage.asNeeded[x]``) so a caller can report it against the document.
"""

from typing import Any


class FHIRModelError(Exception):
    """Base class for all record and codec errors."""

    error_type = "model-error"

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.message = message
        self.path = path

    def __str__(self) -> str:
        if self.path:
            return f"{self.path}: {self.message}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary."""
        return {
            "error": self.error_type,
            "path": self.path,
            "message": self.message,
        }


class ChoiceConflict(FHIRModelError):
    """More than one variant of a choice element is populated."""

    error_type = "choice-conflict"

    def __init__(self, path: str, keys: list[str]):
        super().__init__(
            f"only one of {', '.join(keys)} may be present", path
        )
        self.keys = keys


class RequiredFieldMissing(FHIRModelError):
    """An element with minimum cardinality >= 1 has no value."""

    error_type = "required"

    def __init__(self, path: str):
        super().__init__("required element is missing", path)


class UnknownVariant(FHIRModelError):
    """A choice suffix that is not in the element's allowed type list."""

    error_type = "unknown-variant"

    def __init__(self, path: str, suffix: str, allowed: list[str]):
        super().__init__(
            f"type '{suffix}' is not allowed (expected one of: {', '.join(allowed)})",
            path,
        )
        self.suffix = suffix
        self.allowed = allowed


class CardinalityError(FHIRModelError):
    """A singular element received more than one entry."""

    error_type = "cardinality"

    def __init__(self, path: str, count: int, maximum: int):
        super().__init__(
            f"at most {maximum} value(s) allowed, got {count}", path
        )
        self.count = count
        self.maximum = maximum


class UnknownElement(FHIRModelError):
    """A key that is not declared on the type (strict decoding only)."""

    error_type = "unknown-element"

    def __init__(self, path: str, key: str):
        super().__init__(f"unknown element '{key}'", path)
        self.key = key


class UnknownTypeError(FHIRModelError):
    """A type name that the schema registry does not define."""

    error_type = "unknown-type"

    def __init__(self, type_name: str):
        super().__init__(f"unknown type '{type_name}'", type_name)
        self.type_name = type_name


class SchemaError(FHIRModelError):
    """Malformed schema data or StructureDefinition input."""

    error_type = "schema"
