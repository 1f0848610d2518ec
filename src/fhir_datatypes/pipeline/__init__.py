"""
Pipeline Module

Configuration-driven document processing.
"""

from fhir_datatypes.pipeline.pipeline import BatchResult, DocumentResult, Pipeline
from fhir_datatypes.pipeline.config import CodecConfig, load_config

__all__ = [
    "BatchResult",
    "CodecConfig",
    "DocumentResult",
    "Pipeline",
    "load_config",
]
