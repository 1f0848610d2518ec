"""
Validation Module

Collect-all validation of FHIR data type records.
"""

from fhir_datatypes.validation.validators import (
    ValidationError,
    ValidationResult,
    validate_document,
    validate_record,
)

__all__ = [
    "ValidationError",
    "ValidationResult",
    "validate_document",
    "validate_record",
]
