"""
FHIR Data Types

Schema-driven records for the FHIR R4 general-purpose data types, with a
choice-element ([x]) codec that keeps exactly one variant per element.

Usage:
    from fhir_datatypes import Pipeline, Record

    ext = Record("Extension", url="http://example.org/flag", valueBoolean=True)
    print(ext.to_json())

    pipeline = Pipeline.from_config("configs/default.yaml")
    dosage = pipeline.decode_file("dosage.json", "Dosage")
"""

from fhir_datatypes.codec.choice import ChoiceValue, decode_choice, encode_choice
from fhir_datatypes.exceptions import (
    CardinalityError,
    ChoiceConflict,
    FHIRModelError,
    RequiredFieldMissing,
    SchemaError,
    UnknownElement,
    UnknownTypeError,
    UnknownVariant,
)
from fhir_datatypes.model.record import Record
from fhir_datatypes.model.types import record_class
from fhir_datatypes.pipeline.config import CodecConfig
from fhir_datatypes.pipeline.pipeline import Pipeline
from fhir_datatypes.schema.registry import SchemaRegistry, get_registry, lookup_field_metadata
from fhir_datatypes.serialization.json_codec import DecodeOptions

__version__ = "0.1.0"

__all__ = [
    "CardinalityError",
    "ChoiceConflict",
    "ChoiceValue",
    "CodecConfig",
    "DecodeOptions",
    "FHIRModelError",
    "Pipeline",
    "Record",
    "RequiredFieldMissing",
    "SchemaError",
    "SchemaRegistry",
    "UnknownElement",
    "UnknownTypeError",
    "UnknownVariant",
    "decode_choice",
    "encode_choice",
    "get_registry",
    "lookup_field_metadata",
    "record_class",
    "__version__",
]
