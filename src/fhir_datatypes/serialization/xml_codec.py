"""
XML Codec

Convert between FHIR XML and records. XML is first mapped onto the same
generic tree shape the JSON codec consumes, so choice handling, cardinality
checks and strictness options behave identically for both formats.

Conventions: elements live in the ``http://hl7.org/fhir`` namespace,
primitives carry their value in a ``value`` attribute, ``id`` (and
``Extension.url``) are XML attributes, and ``Narrative.div`` is embedded
XHTML.
"""

from typing import Any
import copy
import logging
import xml.etree.ElementTree as ET

from fhir_datatypes.codec.choice import ChoiceValue, companion_key
from fhir_datatypes.exceptions import FHIRModelError
from fhir_datatypes.model.record import Record
from fhir_datatypes.schema.registry import SchemaRegistry, TypeDefinition, get_registry
from fhir_datatypes.serialization.json_codec import DecodeOptions, from_dict

logger = logging.getLogger(__name__)

FHIR_NS = "http://hl7.org/fhir"
XHTML_NS = "http://www.w3.org/1999/xhtml"

ATTRIBUTE_ELEMENTS = {"id"}
EXTENSION_ATTRIBUTES = {"url"}
RAW_ATTRIBUTES = ("id", "url", "value")


def from_xml(
    type_name: str,
    text: str | bytes,
    options: DecodeOptions | None = None,
    registry: SchemaRegistry | None = None,
) -> Record:
    """Decode a FHIR XML fragment whose root element is a ``type_name``."""
    schema = registry or get_registry()
    try:
        root = ET.fromstring(text)
    except ET.ParseError as e:
        raise FHIRModelError(f"invalid XML: {e}", type_name) from e

    tree = xml_to_tree(type_name, root, schema)
    return from_dict(type_name, tree, options, schema)


def root_type(text: str | bytes, registry: SchemaRegistry | None = None) -> str | None:
    """Type named by the root element of a FHIR XML fragment, if the registry knows it."""
    schema = registry or get_registry()
    try:
        root = ET.fromstring(text)
    except ET.ParseError as e:
        raise FHIRModelError(f"invalid XML: {e}") from e
    name = _local_name(root.tag)
    return name if schema.has_type(name) else None


def to_xml(record: Record, tag: str | None = None) -> str:
    """Encode a record as a FHIR XML fragment."""
    root = _record_to_node(record, tag or record.fhir_type.rsplit(".", 1)[-1])
    root.set("xmlns", FHIR_NS)
    return ET.tostring(root, encoding="unicode")


# ----------------------------------------------------------------------
# XML -> generic tree
# ----------------------------------------------------------------------


def xml_to_tree(type_name: str, node: ET.Element, registry: SchemaRegistry) -> dict[str, Any]:
    """Map an XML element onto the generic JSON tree for ``type_name``."""
    type_def = registry.lookup(type_name)
    tree: dict[str, Any] = {}

    for attribute in _attribute_names(type_def):
        if node.get(attribute) is not None:
            tree[attribute] = node.get(attribute)

    values: dict[str, list[Any]] = {}
    companions: dict[str, list[Any]] = {}
    repeated: set[str] = set()

    for child in node:
        tag = _local_name(child.tag)
        resolved = type_def.resolve_key(tag)

        if resolved is None:
            values.setdefault(tag, []).append(_raw_tree(child))
            companions.setdefault(tag, []).append(None)
            continue

        element, variant = resolved
        value_type = variant or element.type_name
        if element.is_repeated and not element.choice:
            repeated.add(tag)

        if registry.is_complex(value_type):
            values.setdefault(tag, []).append(xml_to_tree(value_type, child, registry))
            companions.setdefault(tag, []).append(None)
        elif value_type == "xhtml":
            values.setdefault(tag, []).append(_xhtml_to_string(child))
            companions.setdefault(tag, []).append(None)
        else:
            primitive = registry.primitive(value_type)
            raw = child.get("value")
            values.setdefault(tag, []).append(
                primitive.from_lexical(raw) if raw is not None else None
            )
            companions.setdefault(tag, []).append(_primitive_companion(child, registry))

    for tag, items in values.items():
        if tag in repeated or len(items) > 1:
            tree[tag] = items
        else:
            tree[tag] = items[0]

        extras = companions[tag]
        if any(extra is not None for extra in extras):
            key = companion_key(tag)
            tree[key] = extras if (tag in repeated or len(extras) > 1) else extras[0]

    return tree


def _attribute_names(type_def: TypeDefinition) -> set[str]:
    names = {name for name in ATTRIBUTE_ELEMENTS if type_def.element(name)}
    if type_def.name == "Extension":
        names |= EXTENSION_ATTRIBUTES
    return names


def _primitive_companion(node: ET.Element, registry: SchemaRegistry) -> dict[str, Any] | None:
    if node.get("id") is None and not len(node):
        return None
    return xml_to_tree("Element", node, registry)


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _strip_namespaces(node: ET.Element) -> ET.Element:
    stripped = copy.deepcopy(node)
    for item in stripped.iter():
        item.tag = _local_name(item.tag)
    return stripped


def _xhtml_to_string(node: ET.Element) -> str:
    div = _strip_namespaces(node)
    div.tail = None
    div.set("xmlns", XHTML_NS)
    return ET.tostring(div, encoding="unicode")


def _raw_tree(node: ET.Element) -> Any:
    """Generic tree for an element the schema does not declare.

    ``id``, ``url`` and ``value`` attributes become scalar keys and child
    elements nested trees. A bare ``value`` leaf collapses to its value.
    """
    attributes = {name: node.get(name) for name in RAW_ATTRIBUTES if node.get(name) is not None}
    if not len(node) and set(attributes) <= {"value"}:
        return attributes.get("value")

    children: dict[str, list[Any]] = {}
    for child in node:
        tag = _local_name(child.tag)
        item = _raw_tree(child)
        if tag in RAW_ATTRIBUTES and not isinstance(item, dict):
            # child elements named id/url/value stay nested
            item = {"value": item} if item is not None else {}
        children.setdefault(tag, []).append(item)

    tree: dict[str, Any] = dict(attributes)
    for tag, items in children.items():
        tree[tag] = items[0] if len(items) == 1 else items
    return tree


# ----------------------------------------------------------------------
# Record -> XML
# ----------------------------------------------------------------------


def _record_to_node(record: Record, tag: str) -> ET.Element:
    node = ET.Element(tag)
    attributes = _attribute_names(record.definition)
    registry = record.schema

    for element in record.definition.elements:
        value = record.get(element.name)

        if element.name in attributes:
            if value is not None:
                node.set(element.name, registry.primitive(element.type_name).to_lexical(value))
            continue

        if isinstance(value, ChoiceValue):
            key = value.key(element.name)
            if value.opaque:
                _raw_to_node(node, key, value.value)
            else:
                _emit(node, key, value.type_name, value.value, value.element, registry)
            continue

        companion = record.companions.get(element.name)
        if value is None and companion is None:
            continue

        if element.is_repeated:
            items = value or []
            extras = companion if isinstance(companion, list) else []
            for index in range(max(len(items), len(extras))):
                item = items[index] if index < len(items) else None
                extra = extras[index] if index < len(extras) else None
                _emit(node, element.name, element.type_name, item, extra, registry)
        else:
            _emit(node, element.name, element.type_name, value, companion, registry)

    for key, raw in record.unknown_elements.items():
        _raw_to_node(node, key, raw)

    return node


def _emit(
    parent: ET.Element,
    tag: str,
    type_name: str,
    value: Any,
    companion: Record | None,
    registry: SchemaRegistry,
) -> None:
    if isinstance(value, Record):
        parent.append(_record_to_node(value, tag))
        return

    if type_name == "xhtml":
        if value is not None:
            div = ET.fromstring(value)
            stripped = _strip_namespaces(div)
            stripped.set("xmlns", XHTML_NS)
            parent.append(stripped)
        return

    child = ET.SubElement(parent, tag)
    if companion is not None:
        if companion.get("id") is not None:
            child.set("id", str(companion.get("id")))
        for extension in companion.get("extension") or []:
            child.append(_record_to_node(extension, "extension"))
    if value is not None:
        child.set("value", registry.primitive(type_name).to_lexical(value))


def _raw_to_node(parent: ET.Element, tag: str, raw: Any) -> None:
    if isinstance(raw, list):
        for item in raw:
            _raw_to_node(parent, tag, item)
        return
    child = ET.SubElement(parent, tag)
    if isinstance(raw, dict):
        for key, item in raw.items():
            if key in RAW_ATTRIBUTES and not isinstance(item, (dict, list)):
                if item is not None:
                    child.set(key, _raw_lexical(item))
            else:
                _raw_to_node(child, key, item)
    elif raw is not None:
        child.set("value", _raw_lexical(raw))


def _raw_lexical(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
