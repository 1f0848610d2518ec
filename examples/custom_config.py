#!/usr/bin/env python3
"""
Custom Configuration Example

Demonstrates creating a pipeline with custom configuration programmatically.

Usage:
    python examples/custom_config.py
"""

import yaml

from fhir_datatypes import CodecConfig, Pipeline
from fhir_datatypes.pipeline.config import DecodingConfig, OutputConfig, SchemaConfig


def main():
    # Create custom configuration programmatically
    config = CodecConfig(
        name="lenient-extension-import",
        version="1.0.0",

        # Use the bundled R4 registry
        schema=SchemaConfig(fhir_version="4.0.1"),

        # Keep vendor-specific variants instead of rejecting the document
        decoding=DecodingConfig(
            strict_variants=False,
            strict_elements=False,
            validate_primitives=True,
            default_type="Extension",
        ),

        output=OutputConfig(format="xml"),
    )

    pipeline = Pipeline(config)

    ext = pipeline.decode(None, {"url": "http://example.org/vendor", "valueVendorCode": {"code": "A1"}})
    print(pipeline.encode(ext))

    for warning in pipeline.validate(ext).warnings:
        print(f"Warning: {warning.path}: {warning.message}")

    # Save the configuration for reuse
    print("\n# Configuration")
    print(yaml.safe_dump(config.to_dict(), sort_keys=False))


if __name__ == "__main__":
    main()
