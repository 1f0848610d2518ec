"""
FHIR Data Type Pipeline

Configuration-driven loading, decoding, validation and re-encoding of data
type documents.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterable
import json
import logging

from fhir_datatypes.exceptions import FHIRModelError
from fhir_datatypes.model.record import Record
from fhir_datatypes.pipeline.config import CodecConfig, load_config
from fhir_datatypes.schema.registry import SchemaRegistry, get_registry
from fhir_datatypes.serialization.json_codec import (
    DecodeOptions,
    document_type,
    from_dict,
    to_json,
)
from fhir_datatypes.serialization.xml_codec import from_xml, root_type, to_xml
from fhir_datatypes.validation.validators import ValidationResult, validate_record

logger = logging.getLogger(__name__)

XML_SUFFIXES = {".xml"}


@dataclass
class DocumentResult:
    """Outcome of processing one document."""

    source: str
    success: bool
    record: Record | None = None
    error: FHIRModelError | None = None
    validation: ValidationResult | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"source": self.source, "success": self.success}
        if self.error is not None:
            data["error"] = self.error.to_dict()
        if self.validation is not None:
            data["validation"] = self.validation.to_dict()
        return data


@dataclass
class BatchResult:
    """Outcome of processing several documents."""

    results: list[DocumentResult] = field(default_factory=list)

    @property
    def succeeded(self) -> list[DocumentResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> list[DocumentResult]:
        return [r for r in self.results if not r.success]

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": len(self.results),
            "succeeded": self.success_count,
            "failed": self.failure_count,
            "documents": [r.to_dict() for r in self.results],
        }


class Pipeline:
    """Decode, validate and encode FHIR data type documents."""

    def __init__(self, config: CodecConfig | None = None):
        """Initialize pipeline with configuration."""
        self.config = config or CodecConfig()

        # Loaded on first use
        self._registry: SchemaRegistry | None = None

    @classmethod
    def from_config(cls, config_path: str | Path) -> "Pipeline":
        """Create pipeline from config file."""
        config = load_config(config_path)
        return cls(config)

    @classmethod
    def strict(cls) -> "Pipeline":
        """Create pipeline that rejects unknown variants and elements."""
        config = CodecConfig()
        config.decoding.strict_variants = True
        config.decoding.strict_elements = True
        return cls(config)

    @classmethod
    def lenient(cls) -> "Pipeline":
        """Create pipeline that preserves unknown variants and elements."""
        config = CodecConfig()
        config.decoding.strict_variants = False
        config.decoding.strict_elements = False
        return cls(config)

    @property
    def registry(self) -> SchemaRegistry:
        """Get or load the schema registry."""
        if self._registry is None:
            self._registry = get_registry(self.config.schema.path)
            if self._registry.fhir_version != self.config.schema.fhir_version:
                logger.warning(
                    "Schema declares FHIR %s but config expects %s",
                    self._registry.fhir_version,
                    self.config.schema.fhir_version,
                )
        return self._registry

    @property
    def options(self) -> DecodeOptions:
        return DecodeOptions(
            strict_variants=self.config.decoding.strict_variants,
            strict_elements=self.config.decoding.strict_elements,
        )

    def decode(self, type_name: str | None, tree: dict[str, Any]) -> Record:
        """Decode a generic tree into a record."""
        name, data = document_type(type_name, tree, self.config.decoding.default_type)
        return from_dict(name, data, self.options, self.registry)

    def decode_file(self, filepath: str | Path, type_name: str | None = None) -> Record:
        """Decode a JSON or XML file (chosen by extension) into a record."""
        path = Path(filepath)
        text = path.read_text()

        if path.suffix.lower() in XML_SUFFIXES:
            name = type_name or root_type(text, self.registry) or self.config.decoding.default_type
            if name is None:
                raise FHIRModelError(f"no type given for {path.name}")
            return from_xml(name, text, self.options, self.registry)

        try:
            tree = json.loads(text, parse_float=Decimal)
        except json.JSONDecodeError as e:
            raise FHIRModelError(f"invalid JSON in {path.name}: {e}") from e
        if not isinstance(tree, dict):
            raise FHIRModelError(f"expected a JSON object in {path.name}")
        return self.decode(type_name, tree)

    def validate(self, record: Record) -> ValidationResult:
        """Validate primitive values throughout a record."""
        return validate_record(record)

    def encode(self, record: Record, output_format: str | None = None) -> str:
        """Encode a record as JSON or XML text."""
        output_format = output_format or self.config.output.format
        if output_format == "xml":
            return to_xml(record)
        if output_format == "json":
            return to_json(record, indent=self.config.output.indent)
        raise ValueError(f"Unsupported output format: {output_format}")

    def process_file(self, filepath: str | Path, type_name: str | None = None) -> DocumentResult:
        """Decode (and optionally validate) one file, capturing document errors."""
        source = str(filepath)
        try:
            record = self.decode_file(filepath, type_name)
        except FHIRModelError as e:
            logger.info("Failed to decode %s: %s", source, e)
            return DocumentResult(source=source, success=False, error=e)

        validation = None
        if self.config.decoding.validate_primitives:
            validation = self.validate(record)

        return DocumentResult(
            source=source,
            success=validation is None or validation.is_valid,
            record=record,
            validation=validation,
        )

    def process_batch(
        self, filepaths: Iterable[str | Path], type_name: str | None = None
    ) -> BatchResult:
        """Process several files; a failing document never stops the batch."""
        batch = BatchResult()
        for filepath in filepaths:
            batch.results.append(self.process_file(filepath, type_name))

        logger.debug(
            "Batch finished: %d succeeded, %d failed",
            batch.success_count,
            batch.failure_count,
        )
        return batch

    def to_json(self, record: Record, indent: int | None = None) -> str:
        """Serialize record to JSON string."""
        return to_json(record, indent=self.config.output.indent if indent is None else indent)

    def save(
        self, record: Record, filepath: str | Path, output_format: str | None = None
    ) -> Path:
        """Save record to file."""
        path = Path(filepath)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            f.write(self.encode(record, output_format))
        return path
