"""
Pytest Configuration and Shared Fixtures

Copyright (c) 2024 Cleansheet LLC
License: CC BY 4.0
"""

import json
from pathlib import Path
from typing import Any

import pytest

from fhir_datatypes.schema.registry import SchemaRegistry, get_registry


# =============================================================================
# REGISTRY FIXTURES
# =============================================================================


@pytest.fixture
def registry() -> SchemaRegistry:
    """Bundled FHIR R4 registry."""
    return get_registry()


@pytest.fixture
def widget_schema() -> dict[str, Any]:
    """Small hand-written schema document for registry tests."""
    return {
        "fhirVersion": "4.0.1",
        "primitives": {
            "string": {"json": "string", "regex": "[ \\r\\n\\t\\S]+"},
            "boolean": {"json": "boolean", "regex": "true|false"},
            "integer": {"json": "integer"},
        },
        "types": {
            "Widget": {
                "path": "Widget",
                "elements": [
                    {"name": "label", "path": "Widget.label", "types": ["string"], "min": 1, "max": 1},
                    {
                        "name": "value",
                        "path": "Widget.value[x]",
                        "choice": True,
                        "types": ["string", "boolean", "integer"],
                        "min": 0,
                        "max": 1,
                    },
                    {"name": "part", "path": "Widget.part", "types": ["Widget.Part"], "min": 0, "max": "*"},
                ],
                "description": "A test widget.",
            },
            "Widget.Part": {
                "path": "Widget.part",
                "elements": [
                    {"name": "size", "path": "Widget.part.size", "types": ["integer"], "min": 0, "max": 1},
                ],
            },
        },
    }


@pytest.fixture
def widget_registry(widget_schema: dict[str, Any]) -> SchemaRegistry:
    """Registry built from the widget schema."""
    return SchemaRegistry.from_dict(widget_schema)


# =============================================================================
# DOCUMENT FIXTURES
# =============================================================================


@pytest.fixture
def sample_extension() -> dict[str, Any]:
    """Extension carrying a nested extension and a string value."""
    return {
        "url": "http://example.org/fhir/StructureDefinition/note",
        "extension": [
            {"url": "http://example.org/fhir/StructureDefinition/flag", "valueBoolean": True},
        ],
        "valueString": "call before visit",
    }


@pytest.fixture
def sample_population() -> dict[str, Any]:
    """Population with an age range."""
    return {
        "ageRange": {
            "low": {"value": 18, "unit": "a", "system": "http://unitsofmeasure.org", "code": "a"},
            "high": {"value": 65, "unit": "a", "system": "http://unitsofmeasure.org", "code": "a"},
        },
        "gender": {"text": "female"},
    }


@pytest.fixture
def sample_dosage() -> dict[str, Any]:
    """Dosage with timing, a boolean as-needed variant and a dose quantity."""
    return {
        "sequence": 1,
        "text": "500 mg twice daily as needed",
        "timing": {
            "repeat": {"frequency": 2, "period": 1, "periodUnit": "d"},
        },
        "asNeededBoolean": True,
        "route": {
            "coding": [{"system": "http://snomed.info/sct", "code": "26643006", "display": "Oral route"}],
        },
        "doseAndRate": [
            {"doseQuantity": {"value": 500, "unit": "mg", "system": "http://unitsofmeasure.org", "code": "mg"}},
        ],
    }


@pytest.fixture
def sample_signature() -> dict[str, Any]:
    """Signature with its required elements."""
    return {
        "type": [{"system": "urn:iso-astm:E1762-95:2013", "code": "1.2.840.10065.1.12.1.1"}],
        "when": "2024-01-15T10:30:00Z",
        "who": {"reference": "Practitioner/example"},
    }


# =============================================================================
# PATH FIXTURES
# =============================================================================


@pytest.fixture
def temp_output_dir(tmp_path: Path) -> Path:
    """Create a temporary output directory."""
    output_dir = tmp_path / "output"
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


@pytest.fixture
def documents_dir(
    tmp_path: Path,
    sample_extension: dict[str, Any],
) -> Path:
    """Directory with two valid Extension documents and one with a choice conflict."""
    directory = tmp_path / "documents"
    directory.mkdir()

    (directory / "note.json").write_text(json.dumps(sample_extension))
    (directory / "flag.json").write_text(
        json.dumps({"url": "http://example.org/flag", "valueBoolean": False})
    )
    (directory / "conflict.json").write_text(
        json.dumps({"url": "http://example.org/bad", "valueString": "a", "valueBoolean": True})
    )
    return directory
