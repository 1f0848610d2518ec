"""
Serialization Module

Generic tree (JSON/dict) and XML codecs for records.
"""

from fhir_datatypes.serialization.json_codec import (
    DecodeOptions,
    from_dict,
    from_json,
    to_dict,
    to_json,
)
from fhir_datatypes.serialization.xml_codec import from_xml, to_xml

__all__ = [
    "DecodeOptions",
    "from_dict",
    "from_json",
    "from_xml",
    "to_dict",
    "to_json",
    "to_xml",
]
