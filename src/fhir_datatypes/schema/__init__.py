"""
Schema Module

Registry of FHIR data type definitions and the generator that builds it.
"""

from fhir_datatypes.schema.registry import (
    Binding,
    ElementDefinition,
    SchemaRegistry,
    TypeDefinition,
    get_registry,
    lookup_field_metadata,
)
from fhir_datatypes.schema.primitives import PrimitiveType

__all__ = [
    "Binding",
    "ElementDefinition",
    "PrimitiveType",
    "SchemaRegistry",
    "TypeDefinition",
    "get_registry",
    "lookup_field_metadata",
]
