"""
FHIR Primitive Types

Lexical rules for the R4 primitive types (string, dateTime, decimal, ...).
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any
import re

from fhir_datatypes.exceptions import SchemaError


JSON_TYPES = ("string", "boolean", "integer", "number")


@dataclass(frozen=True)
class PrimitiveType:
    """A FHIR primitive type and its JSON representation."""

    name: str
    json_type: str = "string"
    regex: str | None = None

    @property
    def pattern(self) -> re.Pattern[str] | None:
        if self.regex is None:
            return None
        return _compile(self.regex)

    def to_lexical(self, value: Any) -> str:
        """Render a Python value the way it appears in FHIR XML."""
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    def from_lexical(self, text: str) -> Any:
        """Parse an XML attribute value into its JSON-equivalent Python value."""
        if self.json_type == "boolean":
            if text not in ("true", "false"):
                return text
            return text == "true"
        if self.json_type == "integer":
            try:
                return int(text)
            except ValueError:
                return text
        if self.json_type == "number":
            try:
                return Decimal(text)
            except ArithmeticError:
                return text
        return text

    def check(self, value: Any) -> str | None:
        """Return a problem description, or None when the value is acceptable."""
        if not _matches_json_type(self.json_type, value):
            return f"expected JSON {self.json_type} for {self.name}, got {type(value).__name__}"

        pattern = self.pattern
        if pattern is not None and not pattern.fullmatch(self.to_lexical(value)):
            return f"'{value}' is not a valid {self.name}"

        return None


_patterns: dict[str, re.Pattern[str]] = {}


def _compile(regex: str) -> re.Pattern[str]:
    if regex not in _patterns:
        _patterns[regex] = re.compile(regex)
    return _patterns[regex]


def _matches_json_type(json_type: str, value: Any) -> bool:
    if json_type == "boolean":
        return isinstance(value, bool)
    if isinstance(value, bool):
        return False
    if json_type == "integer":
        return isinstance(value, int)
    if json_type == "number":
        return isinstance(value, (int, float, Decimal))
    return isinstance(value, str)


def parse_primitives(data: dict[str, Any]) -> dict[str, PrimitiveType]:
    """Build primitive definitions from the ``primitives`` section of a schema file."""
    primitives: dict[str, PrimitiveType] = {}
    for name, spec in (data or {}).items():
        spec = spec or {}
        json_type = spec.get("json", "string")
        if json_type not in JSON_TYPES:
            raise SchemaError(f"Unsupported JSON type for primitive {name}: {json_type}")
        primitives[name] = PrimitiveType(
            name=name,
            json_type=json_type,
            regex=spec.get("regex"),
        )
    return primitives
