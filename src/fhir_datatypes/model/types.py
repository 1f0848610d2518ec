"""
Data Type Classes

One ``Record`` subclass per registry type, created on first use::

    from fhir_datatypes.model.types import Extension, Dosage

    ext = Extension(url="http://example.org/ext", valueBoolean=True)
    dose = Dosage.DoseAndRate(doseQuantity={"value": 5, "unit": "mg"})

Backbone types are attributes of their parent class.
"""

from typing import Any

from fhir_datatypes.model.record import Record
from fhir_datatypes.schema.registry import SchemaRegistry, get_registry

_classes: dict[tuple[int, str], type[Record]] = {}


def record_class(type_name: str, registry: SchemaRegistry | None = None) -> type[Record]:
    """Get (or create) the record class for a registry type."""
    schema = registry or get_registry()
    cache_key = (id(schema), type_name)

    if cache_key not in _classes:
        type_def = schema.lookup(type_name)
        class_name = type_name.rsplit(".", 1)[-1]
        namespace: dict[str, Any] = {
            "type_name": type_name,
            "registry": registry,
            "__module__": __name__,
            "__qualname__": type_name,
            "__doc__": type_def.description,
        }
        cls = type(class_name, (Record,), namespace)
        _classes[cache_key] = cls

        for inner in schema.backbone_types(type_name):
            setattr(cls, inner.rsplit(".", 1)[-1], record_class(inner, registry))

    return _classes[cache_key]


def __getattr__(name: str) -> type[Record]:
    registry = get_registry()
    if not registry.has_type(name):
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    return record_class(name)


def __dir__() -> list[str]:
    return sorted(set(globals()) | set(get_registry().type_names(include_backbone=False)))
