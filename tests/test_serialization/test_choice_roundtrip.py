"""
Round-trip tests for every choice variant in the bundled registry.

Copyright (c) 2024 Cleansheet LLC
License: CC BY 4.0
"""

from decimal import Decimal
from typing import Any

import pytest

from fhir_datatypes.codec.choice import choice_key, type_suffix, variant_keys
from fhir_datatypes.schema.registry import SchemaRegistry, get_registry
from fhir_datatypes.serialization.json_codec import from_dict, from_json, to_json
from fhir_datatypes.serialization.xml_codec import from_xml, to_xml


PRIMITIVE_SAMPLES: dict[str, Any] = {
    "base64Binary": "aGVsbG8=",
    "boolean": True,
    "canonical": "http://example.org/fhir/StructureDefinition/sample",
    "code": "active",
    "date": "2024-01-15",
    "dateTime": "2024-01-15T10:30:00Z",
    "decimal": Decimal("1.50"),
    "id": "sample-1",
    "instant": "2024-01-15T10:30:00.000Z",
    "integer": -7,
    "markdown": "**take** with food",
    "oid": "urn:oid:1.2.840.10065",
    "positiveInt": 3,
    "string": "sample text",
    "time": "10:30:00",
    "unsignedInt": 0,
    "uri": "http://example.org/sample",
    "url": "http://example.org/sample.html",
    "uuid": "urn:uuid:c757873d-ec9a-4326-a141-556f43239520",
    "xhtml": '<div xmlns="http://www.w3.org/1999/xhtml">sample</div>',
}

SKIPPED_ELEMENTS = {"id", "extension", "modifierExtension"}


def _sample(registry: SchemaRegistry, type_name: str) -> Any:
    if registry.is_primitive(type_name):
        return PRIMITIVE_SAMPLES[type_name]
    return _minimal_tree(registry, type_name)


def _minimal_tree(registry: SchemaRegistry, type_name: str) -> dict[str, Any]:
    """Smallest tree satisfying every required element, never empty when avoidable."""
    type_def = registry.lookup(type_name)
    tree: dict[str, Any] = {}

    for element in type_def.elements:
        if element.min < 1:
            continue
        value_type = element.types[0]
        value = _sample(registry, value_type)
        if element.choice:
            tree[choice_key(element.name, value_type)] = value
        else:
            tree[element.name] = [value] if element.is_repeated else value

    if tree:
        return tree

    optional = [e for e in type_def.elements if not e.choice and e.name not in SKIPPED_ELEMENTS]
    for element in sorted(optional, key=lambda e: not registry.is_primitive(e.types[0])):
        value = _sample(registry, element.types[0])
        tree[element.name] = [value] if element.is_repeated else value
        break

    return tree


def _choice_cases() -> list[Any]:
    registry = get_registry()
    cases = []
    for type_name in registry.type_names():
        for element in registry.lookup(type_name).choice_elements:
            for variant in element.types:
                case_id = f"{type_name}.{element.name}{type_suffix(variant)}"
                cases.append(pytest.param(type_name, element.name, variant, id=case_id))
    return cases


def _host_tree(type_name: str, element_name: str, variant: str) -> dict[str, Any]:
    registry = get_registry()
    element = registry.lookup(type_name).element(element_name)

    tree = _minimal_tree(registry, type_name)
    for key in variant_keys(element_name, element.types):
        tree.pop(key, None)
    tree[choice_key(element_name, variant)] = _sample(registry, variant)
    return tree


@pytest.mark.parametrize("type_name, element_name, variant", _choice_cases())
class TestChoiceVariantRoundTrip:
    """Every allowed variant of every choice element survives encoding."""

    def test_json(self, type_name: str, element_name: str, variant: str):
        """Test decode(encode(v)) == v through JSON text."""
        record = from_dict(type_name, _host_tree(type_name, element_name, variant))

        decoded = from_json(type_name, to_json(record))

        assert decoded == record
        assert decoded[element_name].type_name == variant

    def test_xml(self, type_name: str, element_name: str, variant: str):
        """Test decode(encode(v)) == v through XML text."""
        record = from_dict(type_name, _host_tree(type_name, element_name, variant))

        decoded = from_xml(type_name, to_xml(record))

        assert decoded == record
        assert decoded[element_name].type_name == variant


def test_every_extension_variant_covered():
    """Test the parametrized cases include all Extension.value[x] types."""
    extension_cases = [p.values for p in _choice_cases() if p.values[:2] == ("Extension", "value")]
    allowed = get_registry().lookup("Extension").element("value").types

    assert [case[2] for case in extension_cases] == list(allowed)
