"""
Model Module

Schema-driven record classes for FHIR data types.
"""

from fhir_datatypes.model.record import Record
from fhir_datatypes.model.types import record_class

__all__ = [
    "Record",
    "record_class",
]
