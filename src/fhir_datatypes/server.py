"""
FHIR Data Types FastAPI Server

REST API for decoding and validating FHIR R4 data type documents.

Usage:
    uvicorn fhir_datatypes.server:app --reload --port 8000

Endpoints:
    GET  /api/v1/health            - Health check
    GET  /api/v1/types             - List registry types
    GET  /api/v1/types/{name}      - Field metadata for a type
    POST /api/v1/decode/{name}     - Decode and normalize a document
    POST /api/v1/validate/{name}   - Validate a document
"""

import logging
import os
from typing import Any, Optional

from fastapi import Body, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from fhir_datatypes import __version__
from fhir_datatypes.exceptions import FHIRModelError, UnknownTypeError
from fhir_datatypes.schema.registry import SchemaRegistry, get_registry
from fhir_datatypes.serialization.json_codec import DecodeOptions, document_type, from_dict, to_dict
from fhir_datatypes.validation.validators import validate_document

logger = logging.getLogger(__name__)

# =============================================================================
# App Configuration
# =============================================================================

app = FastAPI(
    title="FHIR Data Types API",
    description="Schema-driven FHIR R4 data type decoding and validation",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_schema() -> SchemaRegistry:
    """Registry from FHIR_DATATYPES_SCHEMA, or the bundled R4 registry."""
    return get_registry(os.getenv("FHIR_DATATYPES_SCHEMA"))


# =============================================================================
# Request/Response Models
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    fhir_version: str
    type_count: int


class TypeSummary(BaseModel):
    """One registry type."""
    name: str
    path: str
    element_count: int
    choice_elements: list[str] = []


class FieldMetadata(BaseModel):
    """Metadata for one element of a type."""
    fieldName: str
    path: str
    isChoice: bool
    allowedTypes: list[str]
    min: int
    max: str


class TypeDetail(BaseModel):
    """Full description of a registry type."""
    name: str
    path: str
    description: Optional[str] = None
    fields: list[FieldMetadata]
    backbone_types: list[str] = []


class DecodeResponse(BaseModel):
    """Normalized document."""
    type: str
    document: dict[str, Any]
    unknown_elements: list[str] = []


class ValidationIssue(BaseModel):
    path: str
    message: str
    code: str


class ValidationResponse(BaseModel):
    """Validation outcome."""
    valid: bool
    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []


# =============================================================================
# API Endpoints
# =============================================================================

@app.exception_handler(FHIRModelError)
async def model_error_handler(request, exc: FHIRModelError):
    """Report document errors with their element path."""
    return JSONResponse(status_code=422, content=exc.to_dict())


@app.get("/api/v1/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    registry = get_schema()
    return HealthResponse(
        status="ok",
        version=__version__,
        fhir_version=registry.fhir_version,
        type_count=len(registry.types),
    )


@app.get("/api/v1/types", response_model=list[TypeSummary])
async def list_types(include_backbone: bool = False):
    """List the data types in the registry."""
    registry = get_schema()
    summaries = []
    for name in registry.type_names(include_backbone):
        type_def = registry.lookup(name)
        summaries.append(
            TypeSummary(
                name=name,
                path=type_def.path,
                element_count=len(type_def.elements),
                choice_elements=[e.name for e in type_def.choice_elements],
            )
        )
    return summaries


@app.get("/api/v1/types/{name}", response_model=TypeDetail)
async def describe_type(name: str):
    """Field metadata for one type."""
    registry = get_schema()
    try:
        type_def = registry.lookup(name)
    except UnknownTypeError as e:
        raise HTTPException(status_code=404, detail=e.message)

    return TypeDetail(
        name=type_def.name,
        path=type_def.path,
        description=type_def.description,
        fields=[FieldMetadata(**metadata) for metadata in registry.lookup_field_metadata(name)],
        backbone_types=registry.backbone_types(name),
    )


@app.post("/api/v1/decode/{name}", response_model=DecodeResponse)
async def decode_document(
    name: str,
    document: dict[str, Any] = Body(...),
    lenient: bool = False,
):
    """
    Decode a FHIR JSON data type document and return its normalized form.

    - **name**: FHIR data type (for example ``Dosage`` or ``Extension``)
    - **lenient**: keep unknown variants and elements instead of rejecting them

    A ``resourceType`` key matching the type is accepted and dropped.

    Document errors answer 422 with ``{error, path, message}``.
    """
    registry = get_schema()
    if not registry.has_type(name):
        raise HTTPException(status_code=404, detail=f"unknown type '{name}'")

    options = DecodeOptions(strict_variants=not lenient, strict_elements=not lenient)
    name, document = document_type(name, document)
    record = from_dict(name, document, options, registry)
    logger.debug("Decoded %s document", name)

    return DecodeResponse(
        type=record.fhir_type,
        document=to_dict(record),
        unknown_elements=list(record.unknown_elements),
    )


@app.post("/api/v1/validate/{name}", response_model=ValidationResponse)
async def validate(
    name: str,
    document: dict[str, Any] = Body(...),
    lenient: bool = False,
):
    """Validate a FHIR JSON data type document, collecting every problem found."""
    registry = get_schema()
    if not registry.has_type(name):
        raise HTTPException(status_code=404, detail=f"unknown type '{name}'")

    options = DecodeOptions(strict_variants=not lenient, strict_elements=not lenient)
    result = validate_document(name, document, options, registry)

    return ValidationResponse(
        valid=result.is_valid,
        errors=[ValidationIssue(path=e.path, message=e.message, code=e.code) for e in result.errors],
        warnings=[ValidationIssue(path=w.path, message=w.message, code=w.code) for w in result.warnings],
    )


# =============================================================================
# Main
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "8000"))
    print(f"Starting FHIR Data Types API server on port {port}")
    print(f"Docs available at: http://localhost:{port}/docs")

    uvicorn.run(app, host="0.0.0.0", port=port)
