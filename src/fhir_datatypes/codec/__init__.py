"""
Codec Module

Choice-element ([x]) encoding and decoding.
"""

from fhir_datatypes.codec.choice import (
    ChoiceValue,
    choice_key,
    decode_choice,
    encode_choice,
    type_suffix,
    variant_keys,
)

__all__ = [
    "ChoiceValue",
    "choice_key",
    "decode_choice",
    "encode_choice",
    "type_suffix",
    "variant_keys",
]
