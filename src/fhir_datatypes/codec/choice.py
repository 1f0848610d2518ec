"""
Choice-Field Codec

Encode and decode FHIR choice elements (``value[x]``, ``age[x]``, ...).

On the wire a choice element is carried by exactly one key made of the base
name and a type suffix (``valueString``, ``ageRange``). In memory it is a
single ``ChoiceValue`` tagged with the variant type, so a record can never
hold two variants of the same element at once.

The codec is schema-driven: callers pass the base name and the ordered
allowed-type list from the registry. It works on generic trees only; turning
a payload into a nested record is the serializer's job.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Mapping
import logging

from fhir_datatypes.exceptions import (
    ChoiceConflict,
    RequiredFieldMissing,
    UnknownVariant,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChoiceValue:
    """A populated choice element: variant type tag plus payload.

    ``element`` holds the primitive companion (the ``_valueString`` tree in
    FHIR JSON) when present. ``opaque`` marks a variant whose type is not in
    the allowed list; its payload is the raw generic tree, kept verbatim.
    """

    type_name: str
    value: Any = None
    element: Any = None
    opaque: bool = False

    @property
    def suffix(self) -> str:
        return type_suffix(self.type_name)

    def key(self, base_name: str) -> str:
        """Wire key for this variant under ``base_name``."""
        return choice_key(base_name, self.type_name)

    def is_type(self, type_name: str) -> bool:
        return type_suffix(type_name) == self.suffix


def type_suffix(type_name: str) -> str:
    """Suffix used on the wire for a type (``dateTime`` -> ``DateTime``)."""
    return type_name[:1].upper() + type_name[1:]


def choice_key(base_name: str, type_name: str) -> str:
    return base_name + type_suffix(type_name)


def variant_keys(base_name: str, allowed_types: Iterable[str]) -> list[str]:
    """All wire keys a choice element may appear under, in declared order."""
    return [choice_key(base_name, type_name) for type_name in allowed_types]


def companion_key(key: str) -> str:
    """JSON key of the primitive companion element (``valueString`` -> ``_valueString``)."""
    return f"_{key}"


def split_choice_key(base_name: str, key: str) -> str | None:
    """Suffix of ``key`` when it has the shape of a ``base_name`` variant, else None."""
    if key.startswith("_"):
        key = key[1:]
    if not key.startswith(base_name) or len(key) == len(base_name):
        return None
    suffix = key[len(base_name):]
    if not suffix[0].isupper():
        return None
    return suffix


def variant_type(suffix: str, allowed_types: Iterable[str]) -> str | None:
    """Declared type name matching a wire suffix, or None if not allowed."""
    for type_name in allowed_types:
        if type_suffix(type_name) == suffix:
            return type_name
    return None


def resolve_variant(
    base_name: str,
    allowed_types: Iterable[str],
    type_name: str,
    path: str | None = None,
) -> str:
    """Check a requested variant type against the allowed list.

    Accepts either the declared spelling (``dateTime``) or the wire suffix
    (``DateTime``) and returns the declared spelling.
    """
    allowed = list(allowed_types)
    declared = variant_type(type_suffix(type_name), allowed)
    if declared is None:
        raise UnknownVariant(path or f"{base_name}[x]", type_suffix(type_name), allowed)
    return declared


def decode_choice(
    base_name: str,
    allowed_types: Iterable[str],
    source: Mapping[str, Any],
    *,
    min: int = 0,
    path: str | None = None,
    strict: bool = True,
    reserved: Iterable[str] = (),
) -> ChoiceValue | None:
    """Locate the single populated variant of a choice element.

    Args:
        base_name: Element name without ``[x]`` (``value``).
        allowed_types: Ordered declared types for the element.
        source: Generic key/value tree for one record.
        min: Declared minimum cardinality of the element.
        path: Element path used in errors (defaults to ``base_name[x]``).
        strict: Reject suffixes outside ``allowed_types``; when False they
            are returned as opaque variants.
        reserved: Other element names of the record. Keys listed here are
            never treated as variants even if they share the prefix.

    Returns:
        The populated ``ChoiceValue``, or None when the element is absent.

    Raises:
        ChoiceConflict: More than one variant is populated.
        RequiredFieldMissing: No variant is populated and ``min >= 1``.
        UnknownVariant: A suffix is not allowed and ``strict`` is set.
    """
    allowed = list(allowed_types)
    path = path or f"{base_name}[x]"
    reserved_keys = set(reserved)

    values: dict[str, Any] = {}
    companions: dict[str, Any] = {}
    opaque: dict[str, bool] = {}

    for key, raw in source.items():
        if raw is None:
            continue
        bare_key = key[1:] if key.startswith("_") else key
        if bare_key in reserved_keys:
            continue

        suffix = split_choice_key(base_name, key)
        if suffix is None:
            continue

        type_name = variant_type(suffix, allowed)
        if type_name is None:
            if strict:
                raise UnknownVariant(path, suffix, allowed)
            logger.warning("Keeping unrecognized variant %s%s at %s", base_name, suffix, path)
            type_name = suffix
            opaque[type_name] = True

        if key.startswith("_"):
            companions[type_name] = raw
        else:
            values[type_name] = raw

    populated = list(dict.fromkeys([*values, *companions]))

    if len(populated) > 1:
        raise ChoiceConflict(path, [choice_key(base_name, t) for t in populated])

    if not populated:
        if min >= 1:
            raise RequiredFieldMissing(path)
        return None

    type_name = populated[0]
    return ChoiceValue(
        type_name=type_name,
        value=values.get(type_name),
        element=companions.get(type_name),
        opaque=opaque.get(type_name, False),
    )


def encode_choice(base_name: str, choice: ChoiceValue) -> tuple[str, Any]:
    """Emit a choice value under its suffixed key."""
    return choice.key(base_name), choice.value
