"""
Schema Registry

Per-type element metadata (name, cardinality, allowed types, bindings) loaded
from a schema YAML file. Records, codecs and validators are all driven from
the registry; nothing else hard-codes a type's element list.
"""

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any
import logging

import yaml

from fhir_datatypes.codec.choice import choice_key, variant_keys
from fhir_datatypes.exceptions import SchemaError, UnknownTypeError
from fhir_datatypes.schema.primitives import PrimitiveType, parse_primitives

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA_PATH = Path(__file__).parent / "data" / "r4_datatypes.yaml"

UNBOUNDED = None


@dataclass(frozen=True)
class Binding:
    """Terminology binding recorded as metadata (never enforced)."""

    strength: str
    value_set: str | None = None
    codes: dict[str, tuple[str, ...]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"strength": self.strength}
        if self.value_set:
            data["valueSet"] = self.value_set
        if self.codes:
            data["codes"] = {system: list(codes) for system, codes in self.codes.items()}
        return data


@dataclass(frozen=True)
class ElementDefinition:
    """One element of a typed record."""

    name: str
    path: str
    types: tuple[str, ...]
    min: int = 0
    max: int | None = 1  # None is unbounded ("*")
    choice: bool = False
    binding: Binding | None = None

    @property
    def is_repeated(self) -> bool:
        return self.max is UNBOUNDED or self.max > 1

    @property
    def is_required(self) -> bool:
        return self.min >= 1

    @property
    def type_name(self) -> str:
        """The single declared type of a non-choice element."""
        return self.types[0]

    @property
    def max_display(self) -> str:
        return "*" if self.max is UNBOUNDED else str(self.max)

    @property
    def cardinality(self) -> str:
        return f"{self.min}..{self.max_display}"

    def wire_keys(self) -> list[str]:
        """Keys this element may appear under in a generic tree."""
        if self.choice:
            return variant_keys(self.name, self.types)
        return [self.name]

    def to_metadata(self) -> dict[str, Any]:
        """Field metadata in the shape consumed by codec callers."""
        return {
            "fieldName": self.name,
            "path": self.path,
            "isChoice": self.choice,
            "allowedTypes": list(self.types),
            "min": self.min,
            "max": self.max_display,
        }


@dataclass
class TypeDefinition:
    """A named record type and its ordered elements."""

    name: str
    path: str
    elements: list[ElementDefinition] = field(default_factory=list)
    description: str | None = None

    def __post_init__(self) -> None:
        self._by_name = {element.name: element for element in self.elements}
        self._by_key: dict[str, tuple[ElementDefinition, str | None]] = {}
        for element in self.elements:
            if element.choice:
                for type_name in element.types:
                    self._by_key[choice_key(element.name, type_name)] = (element, type_name)
            else:
                self._by_key[element.name] = (element, None)

    @property
    def is_backbone(self) -> bool:
        return "." in self.name

    @property
    def choice_elements(self) -> list[ElementDefinition]:
        return [element for element in self.elements if element.choice]

    def element(self, name: str) -> ElementDefinition | None:
        """Look up an element by its logical name."""
        return self._by_name.get(name)

    def resolve_key(self, key: str) -> tuple[ElementDefinition, str | None] | None:
        """Map a wire key to (element, variant type) for choice keys, (element, None) otherwise."""
        return self._by_key.get(key)

    def element_names(self) -> list[str]:
        return [element.name for element in self.elements]


class SchemaRegistry:
    """Static lookup of type definitions and primitives."""

    def __init__(
        self,
        types: dict[str, TypeDefinition],
        primitives: dict[str, PrimitiveType],
        fhir_version: str = "4.0.1",
    ):
        self.types = types
        self.primitives = primitives
        self.fhir_version = fhir_version

    @classmethod
    def from_dict(cls, data: dict[str, Any], check: bool = True) -> "SchemaRegistry":
        """Create registry from a parsed schema document."""
        if not isinstance(data, dict) or "types" not in data:
            raise SchemaError("Schema document must contain a 'types' mapping")

        primitives = parse_primitives(data.get("primitives", {}))
        types: dict[str, TypeDefinition] = {}

        for type_name, spec in data["types"].items():
            types[type_name] = _parse_type(type_name, spec or {})

        registry = cls(
            types=types,
            primitives=primitives,
            fhir_version=str(data.get("fhirVersion", "4.0.1")),
        )
        if check:
            registry.check()
        return registry

    @classmethod
    def from_yaml(cls, schema_path: str | Path) -> "SchemaRegistry":
        """Load registry from a schema YAML file."""
        path = Path(schema_path)

        if not path.exists():
            raise FileNotFoundError(f"Schema file not found: {path}")

        with open(path) as f:
            data = yaml.safe_load(f)

        registry = cls.from_dict(data)
        logger.debug(
            "Loaded %d types and %d primitives from %s",
            len(registry.types),
            len(registry.primitives),
            path,
        )
        return registry

    def check(self) -> None:
        """Verify that every referenced type is defined."""
        for type_def in self.types.values():
            for element in type_def.elements:
                for type_name in element.types:
                    if not self.has_type(type_name) and not self.is_primitive(type_name):
                        raise SchemaError(
                            f"Element references undefined type '{type_name}'",
                            element.path,
                        )

    def lookup(self, type_name: str) -> TypeDefinition:
        """Get the definition of a complex or backbone type."""
        try:
            return self.types[type_name]
        except KeyError:
            raise UnknownTypeError(type_name) from None

    def lookup_field_metadata(self, type_name: str) -> list[dict[str, Any]]:
        """Ordered field metadata for a type."""
        return [element.to_metadata() for element in self.lookup(type_name).elements]

    def has_type(self, type_name: str) -> bool:
        return type_name in self.types

    def is_primitive(self, type_name: str) -> bool:
        return type_name in self.primitives

    def is_complex(self, type_name: str) -> bool:
        return type_name in self.types

    def primitive(self, type_name: str) -> PrimitiveType:
        try:
            return self.primitives[type_name]
        except KeyError:
            raise UnknownTypeError(type_name) from None

    def type_names(self, include_backbone: bool = True) -> list[str]:
        names = sorted(self.types)
        if include_backbone:
            return names
        return [name for name in names if "." not in name]

    def backbone_types(self, parent: str) -> list[str]:
        """Names of the inner types declared directly under ``parent``."""
        prefix = f"{parent}."
        return [
            name
            for name in sorted(self.types)
            if name.startswith(prefix) and "." not in name[len(prefix):]
        ]

    def to_dict(self) -> dict[str, Any]:
        """Convert registry back to its schema document form."""
        return {
            "fhirVersion": self.fhir_version,
            "primitives": {
                name: _primitive_to_dict(primitive)
                for name, primitive in self.primitives.items()
            },
            "types": {
                name: _type_to_dict(type_def)
                for name, type_def in self.types.items()
            },
        }


def _parse_max(value: Any, path: str) -> int | None:
    if value == "*":
        return UNBOUNDED
    try:
        return int(value)
    except (TypeError, ValueError):
        raise SchemaError(f"Invalid max cardinality: {value!r}", path) from None


def _parse_binding(data: dict[str, Any] | None) -> Binding | None:
    if not data:
        return None
    codes = {
        system: tuple(str(code) for code in values)
        for system, values in (data.get("codes") or {}).items()
    }
    return Binding(
        strength=data.get("strength", "example"),
        value_set=data.get("valueSet"),
        codes=codes,
    )


def _parse_element(type_name: str, spec: dict[str, Any]) -> ElementDefinition:
    name = spec.get("name")
    if not name:
        raise SchemaError("Element is missing a name", type_name)

    path = spec.get("path") or f"{type_name}.{name}"
    types = tuple(spec.get("types") or ())
    if not types:
        raise SchemaError("Element declares no types", path)

    choice = bool(spec.get("choice", False))
    if choice and not path.endswith("[x]"):
        path = f"{path}[x]"

    return ElementDefinition(
        name=name,
        path=path,
        types=types,
        min=int(spec.get("min", 0)),
        max=_parse_max(spec.get("max", 1), path),
        choice=choice,
        binding=_parse_binding(spec.get("binding")),
    )


def _parse_type(type_name: str, spec: dict[str, Any]) -> TypeDefinition:
    elements = [_parse_element(type_name, e) for e in spec.get("elements", [])]
    return TypeDefinition(
        name=type_name,
        path=spec.get("path", type_name),
        elements=elements,
        description=spec.get("description"),
    )


def _primitive_to_dict(primitive: PrimitiveType) -> dict[str, Any]:
    data: dict[str, Any] = {"json": primitive.json_type}
    if primitive.regex is not None:
        data["regex"] = primitive.regex
    return data


def _type_to_dict(type_def: TypeDefinition) -> dict[str, Any]:
    elements = []
    for element in type_def.elements:
        entry: dict[str, Any] = {
            "name": element.name,
            "path": element.path,
        }
        if element.choice:
            entry["choice"] = True
        entry["types"] = list(element.types)
        entry["min"] = element.min
        entry["max"] = element.max_display if element.max is UNBOUNDED else element.max
        if element.binding is not None:
            entry["binding"] = element.binding.to_dict()
        elements.append(entry)

    data: dict[str, Any] = {"path": type_def.path, "elements": elements}
    if type_def.description:
        data["description"] = type_def.description
    return data


@lru_cache(maxsize=None)
def _load_registry(schema_path: str) -> SchemaRegistry:
    return SchemaRegistry.from_yaml(schema_path)


def get_registry(schema_path: str | Path | None = None) -> SchemaRegistry:
    """Get the (cached) registry for a schema file, defaulting to bundled R4."""
    path = Path(schema_path) if schema_path else DEFAULT_SCHEMA_PATH
    return _load_registry(str(path.resolve()))


def lookup_field_metadata(type_name: str) -> list[dict[str, Any]]:
    """Field metadata for a type from the bundled R4 registry."""
    return get_registry().lookup_field_metadata(type_name)
