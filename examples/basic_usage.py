#!/usr/bin/env python3
"""
Basic Usage Example

Demonstrates building, decoding and encoding FHIR data type records.

Usage:
    python examples/basic_usage.py

Requirements:
    - pip install fhir-datatypes
"""

from fhir_datatypes import ChoiceConflict, Pipeline, Record
from fhir_datatypes.model.types import Extension


def main():
    # Build an Extension through its generated class
    ext = Extension(url="http://example.org/fhir/StructureDefinition/flag", valueBoolean=True)
    print(ext.to_json())

    # Switching the variant replaces the old one
    ext.valueString = "needs interpreter"
    print(f"value is now {ext.value.type_name}: {ext.valueString!r}")

    # A document carrying two variants is rejected
    try:
        Record("Extension", url="http://example.org/x", valueString="a", valueBoolean=True)
    except ChoiceConflict as e:
        print(f"Rejected: {e}")

    # Decode a Dosage and re-encode it as XML
    pipeline = Pipeline()
    dosage = pipeline.decode(
        "Dosage",
        {
            "text": "1 tablet every 6 hours as needed for pain",
            "asNeededCodeableConcept": {"text": "pain"},
            "timing": {"repeat": {"frequency": 1, "period": 6, "periodUnit": "h"}},
            "doseAndRate": [{"doseQuantity": {"value": 1, "unit": "tablet"}}],
        },
    )
    print(pipeline.encode(dosage, "xml"))

    # Validation
    result = pipeline.validate(dosage)
    print(f"\n--- Valid: {result.is_valid} ({result.error_count} errors) ---")


if __name__ == "__main__":
    main()
