"""
Schema Generator

Build the registry YAML from canonical FHIR StructureDefinitions (for example
the ``profiles-types.json`` Bundle shipped with the FHIR specification), so
per-type element tables are produced once at build time instead of being
hand-maintained.
"""

from pathlib import Path
from typing import Any, Iterable
import json
import logging

import yaml

from fhir_datatypes.exceptions import SchemaError

logger = logging.getLogger(__name__)

FHIR_TYPE_EXTENSION = "http://hl7.org/fhir/StructureDefinition/structuredefinition-fhir-type"
REGEX_EXTENSION = "http://hl7.org/fhir/StructureDefinition/regex"
SYSTEM_TYPE_PREFIX = "http://hl7.org/fhirpath/System."

# FHIRPath system types used for primitive values and Element.id
SYSTEM_TYPES = {
    "String": "string",
    "Boolean": "boolean",
    "Integer": "integer",
    "Decimal": "decimal",
    "Date": "date",
    "DateTime": "dateTime",
    "Time": "time",
}

JSON_TYPES = {
    "boolean": "boolean",
    "integer": "integer",
    "positiveInt": "integer",
    "unsignedInt": "integer",
    "decimal": "number",
}

BACKBONE_CODES = {"Element", "BackboneElement"}

# resources read alongside StructureDefinitions for binding codes
TERMINOLOGY_RESOURCES = {"ValueSet", "CodeSystem"}

HEADER = (
    "# FHIR R{release} ({version}) general-purpose data types.\n"
    "# Regenerate from profiles-types.json and valuesets.json with `fhir-datatypes generate-schema`.\n"
)


def load_structure_definitions(source: str | Path) -> list[dict[str, Any]]:
    """Read StructureDefinitions from a Bundle, a single file, or a directory.

    ValueSet and CodeSystem resources found in the same sources are kept too;
    ``generate_schema`` uses them for the known codes of bindings.
    """
    path = Path(source)

    if not path.exists():
        raise FileNotFoundError(f"StructureDefinition source not found: {path}")

    files = sorted(path.glob("*.json")) if path.is_dir() else [path]
    definitions: list[dict[str, Any]] = []

    for file in files:
        with open(file) as f:
            try:
                document = json.load(f)
            except json.JSONDecodeError as e:
                raise SchemaError(f"Invalid JSON in {file}: {e}") from e
        definitions.extend(_collect(document))

    logger.debug("Read %d StructureDefinitions from %s", len(definitions), path)
    return definitions


def _collect(document: dict[str, Any]) -> list[dict[str, Any]]:
    wanted = {"StructureDefinition"} | TERMINOLOGY_RESOURCES
    resource_type = document.get("resourceType")
    if resource_type in wanted:
        return [document]
    if resource_type == "Bundle":
        return [
            entry["resource"]
            for entry in document.get("entry", [])
            if entry.get("resource", {}).get("resourceType") in wanted
        ]
    return []


def generate_schema(
    definitions: Iterable[dict[str, Any]],
    type_names: Iterable[str] | None = None,
    fhir_version: str = "4.0.1",
) -> dict[str, Any]:
    """Convert StructureDefinitions into a registry schema document.

    Args:
        definitions: StructureDefinition resources.
        type_names: Restrict output to these complex types (plus ``Element``).
        fhir_version: Version recorded in the output.

    ValueSet and CodeSystem resources among ``definitions`` supply the
    ``codes`` of each binding whose value set they define.

    Returns:
        Schema document accepted by ``SchemaRegistry.from_dict``.
    """
    wanted = set(type_names) if type_names else None
    resources = list(definitions)
    value_sets = _value_set_codes(
        [r for r in resources if r.get("resourceType") in TERMINOLOGY_RESOURCES]
    )
    primitives: dict[str, Any] = {}
    types: dict[str, Any] = {}

    for sd in resources:
        if sd.get("resourceType") in TERMINOLOGY_RESOURCES:
            continue
        kind = sd.get("kind")
        name = sd.get("type") or sd.get("name")

        if sd.get("derivation") == "constraint":
            continue

        if kind == "primitive-type":
            primitives[name] = _primitive(sd)
        elif kind == "complex-type":
            if wanted is not None and name not in wanted and name != "Element":
                continue
            if sd.get("abstract") and name != "Element":
                continue
            types.update(_complex_types(sd, value_sets))

    if not types:
        raise SchemaError("No complex-type StructureDefinitions found")

    return {
        "fhirVersion": fhir_version,
        "primitives": dict(sorted(primitives.items())),
        "types": dict(sorted(types.items())),
    }


def write_schema(schema: dict[str, Any], output_path: str | Path) -> Path:
    """Write a schema document as YAML."""
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    version = str(schema.get("fhirVersion", "4.0.1"))
    with open(path, "w") as f:
        f.write(HEADER.format(release=version.split(".")[0], version=version))
        yaml.safe_dump(schema, f, sort_keys=False, default_flow_style=None, width=100)

    return path


def _primitive(sd: dict[str, Any]) -> dict[str, Any]:
    name = sd.get("type") or sd["name"]
    entry: dict[str, Any] = {"json": JSON_TYPES.get(name, "string")}

    for element in _elements(sd):
        if element.get("path") != f"{name}.value":
            continue
        for type_ref in element.get("type", []):
            for extension in type_ref.get("extension", []):
                if extension.get("url") == REGEX_EXTENSION:
                    entry["regex"] = extension.get("valueString")

    return entry


def _complex_types(sd: dict[str, Any], value_sets: dict[str, Any]) -> dict[str, Any]:
    root = sd.get("type") or sd["name"]
    elements = _elements(sd)
    paths = [element["path"] for element in elements]

    # element path -> name of the type that owns its children
    owners = {root: root}
    types: dict[str, Any] = {
        root: {"path": root, "elements": []},
    }
    if sd.get("description"):
        types[root]["description"] = " ".join(sd["description"].split())

    for element in elements:
        path = element["path"]
        if path == root:
            continue

        parent_path, name = path.rsplit(".", 1)
        owner = owners.get(parent_path)
        if owner is None:
            raise SchemaError("Element has no owning type", path)

        codes = [_type_code(type_ref) for type_ref in element.get("type", [])]
        has_children = any(p.startswith(f"{path}.") for p in paths)

        if has_children and set(codes) <= BACKBONE_CODES:
            backbone = f"{owner}.{name[:1].upper()}{name[1:]}"
            owners[path] = backbone
            types[backbone] = {"path": path, "elements": []}
            codes = [backbone]
        elif "contentReference" in element:
            referenced = element["contentReference"].lstrip("#")
            if referenced not in owners:
                raise SchemaError(f"Unresolved contentReference {referenced}", path)
            codes = [owners[referenced]]

        if not codes:
            raise SchemaError("Element declares no types", path)

        entry: dict[str, Any] = {"name": name, "path": path}
        if name.endswith("[x]"):
            entry["name"] = name[:-3]
            entry["choice"] = True
        entry["types"] = codes
        entry["min"] = int(element.get("min", 0))
        entry["max"] = _max(element.get("max", "1"))

        binding = _binding(element.get("binding"), value_sets)
        if binding:
            entry["binding"] = binding

        types[owner]["elements"].append(entry)

    return types


def _elements(sd: dict[str, Any]) -> list[dict[str, Any]]:
    snapshot = sd.get("snapshot") or sd.get("differential") or {}
    return snapshot.get("element", [])


def _type_code(type_ref: dict[str, Any]) -> str:
    for extension in type_ref.get("extension", []):
        if extension.get("url") == FHIR_TYPE_EXTENSION:
            return extension.get("valueUrl") or extension.get("valueUri") or extension.get("valueString")

    code = type_ref.get("code", "")
    if code.startswith(SYSTEM_TYPE_PREFIX):
        return SYSTEM_TYPES.get(code[len(SYSTEM_TYPE_PREFIX):], "string")
    return code


def _max(value: str) -> Any:
    if value == "*":
        return "*"
    return int(value)


def _binding(binding: dict[str, Any] | None, value_sets: dict[str, Any]) -> dict[str, Any] | None:
    if not binding:
        return None
    entry: dict[str, Any] = {"strength": binding.get("strength", "example")}
    if binding.get("valueSet"):
        url = binding["valueSet"].split("|", 1)[0]
        entry["valueSet"] = url
        if url in value_sets:
            entry["codes"] = value_sets[url]
    return entry


def _value_set_codes(resources: list[dict[str, Any]]) -> dict[str, dict[str, list[str]]]:
    """Known codes per system for each ValueSet URL.

    Codes come from an expansion when present, otherwise from the explicit
    concepts of each ``compose.include`` or, for a whole-system include,
    from the CodeSystem itself. Filtered includes contribute nothing.
    """
    code_systems = {
        cs["url"]: _concept_codes(cs.get("concept", []))
        for cs in resources
        if cs.get("resourceType") == "CodeSystem" and cs.get("url")
    }

    value_sets: dict[str, dict[str, list[str]]] = {}
    for vs in resources:
        if vs.get("resourceType") != "ValueSet" or not vs.get("url"):
            continue

        codes: dict[str, list[str]] = {}
        contains = (vs.get("expansion") or {}).get("contains", [])
        if contains:
            for item in contains:
                if item.get("system") and item.get("code"):
                    codes.setdefault(item["system"], []).append(item["code"])
        else:
            for include in (vs.get("compose") or {}).get("include", []):
                system = include.get("system")
                if not system or include.get("filter"):
                    continue
                if include.get("concept"):
                    listed = [concept["code"] for concept in include["concept"]]
                else:
                    listed = code_systems.get(system, [])
                if listed:
                    codes.setdefault(system, []).extend(listed)

        if codes:
            value_sets[vs["url"]] = codes

    return value_sets


def _concept_codes(concepts: list[dict[str, Any]]) -> list[str]:
    codes: list[str] = []
    for concept in concepts:
        if concept.get("code"):
            codes.append(concept["code"])
        codes.extend(_concept_codes(concept.get("concept", [])))
    return codes
