"""
Pipeline Configuration

Configuration management for FHIR data type processing.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass
class SchemaConfig:
    """Schema registry configuration."""

    fhir_version: str = "4.0.1"
    path: str | None = None  # None uses the bundled R4 registry


@dataclass
class DecodingConfig:
    """Decoding configuration."""

    strict_variants: bool = True
    strict_elements: bool = True
    validate_primitives: bool = True
    default_type: str | None = None


@dataclass
class OutputConfig:
    """Output configuration."""

    format: str = "json"  # json, xml
    indent: int = 2


@dataclass
class CodecConfig:
    """Complete pipeline configuration."""

    name: str = "fhir-datatypes"
    version: str = "0.1.0"

    schema: SchemaConfig = field(default_factory=SchemaConfig)
    decoding: DecodingConfig = field(default_factory=DecodingConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CodecConfig":
        """Create config from dictionary."""
        config = cls()

        if "name" in data:
            config.name = data["name"]
        if "version" in data:
            config.version = str(data["version"])

        # Schema config
        if "schema" in data:
            sch = data["schema"] or {}
            config.schema = SchemaConfig(
                fhir_version=str(sch.get("fhir_version", "4.0.1")),
                path=sch.get("path"),
            )

        # Decoding config
        if "decoding" in data:
            dec = data["decoding"] or {}
            config.decoding = DecodingConfig(
                strict_variants=dec.get("strict_variants", True),
                strict_elements=dec.get("strict_elements", True),
                validate_primitives=dec.get("validate_primitives", True),
                default_type=dec.get("default_type"),
            )

        # Output config
        if "output" in data:
            out = data["output"] or {}
            output_format = out.get("format", "json")
            if output_format not in ("json", "xml"):
                raise ValueError(f"Unsupported output format: {output_format}")
            config.output = OutputConfig(
                format=output_format,
                indent=out.get("indent", 2),
            )

        return config

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary."""
        return {
            "name": self.name,
            "version": self.version,
            "schema": {
                "fhir_version": self.schema.fhir_version,
                "path": self.schema.path,
            },
            "decoding": {
                "strict_variants": self.decoding.strict_variants,
                "strict_elements": self.decoding.strict_elements,
                "validate_primitives": self.decoding.validate_primitives,
                "default_type": self.decoding.default_type,
            },
            "output": {
                "format": self.output.format,
                "indent": self.output.indent,
            },
        }


def load_config(config_path: str | Path) -> CodecConfig:
    """Load configuration from YAML file."""
    path = Path(config_path)

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        data = yaml.safe_load(f)

    return CodecConfig.from_dict(data or {})
