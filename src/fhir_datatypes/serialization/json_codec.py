"""
JSON Codec

Convert between generic JSON trees (dicts, lists, scalars) and records,
following the FHIR JSON conventions: choice elements under suffixed keys,
repeated elements as arrays, primitive companions under ``_name`` keys.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any
import json
import logging

from fhir_datatypes.codec.choice import ChoiceValue, companion_key, decode_choice
from fhir_datatypes.exceptions import CardinalityError, FHIRModelError, UnknownElement
from fhir_datatypes.model.record import Record
from fhir_datatypes.model.types import record_class
from fhir_datatypes.schema.registry import (
    ElementDefinition,
    SchemaRegistry,
    get_registry,
)

logger = logging.getLogger(__name__)


@dataclass
class DecodeOptions:
    """Decoding strictness."""

    strict_variants: bool = True  # reject choice suffixes outside the allowed types
    strict_elements: bool = True  # reject keys the type does not declare


def from_dict(
    type_name: str,
    data: dict[str, Any],
    options: DecodeOptions | None = None,
    registry: SchemaRegistry | None = None,
) -> Record:
    """Decode a generic JSON tree into a record of ``type_name``."""
    decoder = _Decoder(registry or get_registry(), options or DecodeOptions())
    return decoder.record(type_name, data, type_name)


def from_json(
    type_name: str,
    text: str,
    options: DecodeOptions | None = None,
    registry: SchemaRegistry | None = None,
) -> Record:
    """Decode a JSON document into a record of ``type_name``.

    A top-level ``resourceType`` must match ``type_name`` and is dropped.
    """
    try:
        data = json.loads(text, parse_float=Decimal)
    except json.JSONDecodeError as e:
        raise FHIRModelError(f"invalid JSON: {e}", type_name) from e
    if isinstance(data, dict):
        type_name, data = document_type(type_name, data)
    return from_dict(type_name, data, options, registry)


def document_type(
    type_name: str | None,
    tree: dict[str, Any],
    default: str | None = None,
) -> tuple[str, dict[str, Any]]:
    """Resolve the type of a top-level document and drop its ``resourceType`` key.

    The explicit ``type_name`` wins, then the document's ``resourceType``,
    then ``default``. A ``resourceType`` that disagrees with an explicit
    type is an error.
    """
    declared = tree.get("resourceType")
    name = type_name or declared or default
    if not name:
        raise FHIRModelError("no type given and document has no resourceType")
    if declared is not None and declared != name:
        raise FHIRModelError(f"resourceType '{declared}' does not match {name}", name)
    return name, {key: value for key, value in tree.items() if key != "resourceType"}


def to_dict(record: Record) -> dict[str, Any]:
    """Encode a record as a generic JSON tree."""
    out: dict[str, Any] = {}

    for element in record.definition.elements:
        value = record.get(element.name)

        if isinstance(value, ChoiceValue):
            key = value.key(element.name)
            if value.value is not None:
                out[key] = _encode(value.value)
            if value.element is not None:
                out[companion_key(key)] = _encode(value.element)
            continue

        if value is not None:
            out[element.name] = _encode(value)

        companion = record.companions.get(element.name)
        if companion is not None:
            out[companion_key(element.name)] = _encode(companion)

    for key, raw in record.unknown_elements.items():
        out[key] = raw

    return out


def to_json(record: Record, indent: int | None = 2) -> str:
    """Encode a record as a JSON document.

    Decimals are written as number literals with their exact digits
    (``1.50`` stays ``1.50``), which ``json.dumps`` cannot do for them.
    """
    return _dumps(to_dict(record), indent, 0)


def _encode(value: Any) -> Any:
    if isinstance(value, Record):
        return to_dict(value)
    if isinstance(value, list):
        return [_encode(item) for item in value]
    return value


def _dumps(value: Any, indent: int | None, level: int) -> str:
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise ValueError(f"{value} is not a valid FHIR decimal")
        return str(value)
    if isinstance(value, dict) and value:
        items = [f"{json.dumps(str(key))}: {_dumps(item, indent, level + 1)}" for key, item in value.items()]
        return _join("{", items, "}", indent, level)
    if isinstance(value, list) and value:
        return _join("[", [_dumps(item, indent, level + 1) for item in value], "]", indent, level)
    return json.dumps(value)


def _join(opening: str, items: list[str], closing: str, indent: int | None, level: int) -> str:
    if indent is None:
        return opening + ", ".join(items) + closing
    inner = "\n" + " " * (indent * (level + 1))
    return opening + inner + ("," + inner).join(items) + "\n" + " " * (indent * level) + closing


class _Decoder:
    """Recursive tree walker bound to one registry and option set."""

    def __init__(self, registry: SchemaRegistry, options: DecodeOptions):
        self.registry = registry
        self.options = options

    def record(self, type_name: str, data: Any, path: str) -> Record:
        if not isinstance(data, dict):
            raise FHIRModelError(
                f"expected an object for {type_name}, got {type(data).__name__}", path
            )

        type_def = self.registry.lookup(type_name)
        reserved = type_def.element_names()

        values: dict[str, Any] = {}
        companions: dict[str, Any] = {}
        consumed: set[str] = set()

        for element in type_def.elements:
            if element.choice:
                choice = decode_choice(
                    element.name,
                    element.types,
                    data,
                    min=element.min,
                    path=element.path,
                    strict=self.options.strict_variants,
                    reserved=reserved,
                )
                if choice is not None:
                    key = choice.key(element.name)
                    consumed.update((key, companion_key(key)))
                    values[element.name] = self.choice(element, choice)
                continue

            consumed.update((element.name, companion_key(element.name)))
            raw = data.get(element.name)
            companion = data.get(companion_key(element.name))

            if raw is not None:
                values[element.name] = self.element(element, raw)
            if companion is not None:
                companions[element.name] = self.companion(element, companion)

        unknown: dict[str, Any] = {}
        for key, raw in data.items():
            if key in consumed:
                continue
            if self.options.strict_elements:
                raise UnknownElement(f"{type_def.path}.{key}", key)
            logger.warning("Keeping unknown element %s.%s", type_def.path, key)
            unknown[key] = raw

        cls = record_class(type_name, self.registry)
        return cls.build(type_name, self.registry, values, companions, unknown)

    def element(self, element: ElementDefinition, raw: Any) -> Any:
        if element.is_repeated:
            items = raw if isinstance(raw, list) else [raw]
            return [self.value(element.type_name, item, element.path) for item in items]

        if isinstance(raw, list):
            if len(raw) > 1:
                raise CardinalityError(element.path, len(raw), element.max or 1)
            if not raw:
                return None
            raw = raw[0]

        return self.value(element.type_name, raw, element.path)

    def choice(self, element: ElementDefinition, choice: ChoiceValue) -> ChoiceValue:
        if choice.opaque:
            return choice

        value = choice.value
        if value is not None:
            value = self.value(choice.type_name, value, element.path)

        companion = choice.element
        if companion is not None:
            companion = self.value("Element", companion, element.path)

        return ChoiceValue(choice.type_name, value, companion)

    def companion(self, element: ElementDefinition, raw: Any) -> Any:
        if isinstance(raw, list):
            return [self.value("Element", item, element.path) for item in raw]
        return self.value("Element", raw, element.path)

    def value(self, type_name: str, raw: Any, path: str) -> Any:
        if raw is None:
            return None

        if self.registry.is_complex(type_name):
            return self.record(type_name, raw, path)

        if isinstance(raw, (dict, list)):
            raise FHIRModelError(
                f"expected a {type_name} primitive, got {type(raw).__name__}", path
            )
        return raw
